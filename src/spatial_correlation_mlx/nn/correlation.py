"""MLX module wrapper for spatial correlation."""

from __future__ import annotations

from typing import Tuple, Union

import mlx.core as mx
import mlx.nn as nn

from spatial_correlation_mlx.functional import spatial_correlation_sample


class SpatialCorrelationSampler(nn.Module):
    """Cost volume layer for optical flow and stereo matching.

    Input:  two ``[B, C, H, W]`` (or ``[B, C, H, W, D]``) feature volumes
    Output: ``[B, pH, pW, oH, oW]`` (or ``[B, pH, pW, pD, oH, oW, oD]``)

    The layer has no trainable parameters.  Geometry arguments are scalars
    (applied to every spatial axis) or per-axis tuples whose length must
    match the rank of the inputs seen at call time.

    Args:
        kernel_size: Correlation window size.
        patch_size: Number of displacements searched per axis.
        stride: Step between output locations.
        padding: Implicit zero padding on both sides of each axis.
        dilation: Gap between window positions.
        dilation_patch: Gap between displacements.
    """

    def __init__(
        self,
        kernel_size: Union[int, Tuple[int, ...]] = 1,
        patch_size: Union[int, Tuple[int, ...]] = 1,
        stride: Union[int, Tuple[int, ...]] = 1,
        padding: Union[int, Tuple[int, ...]] = 0,
        dilation: Union[int, Tuple[int, ...]] = 1,
        dilation_patch: Union[int, Tuple[int, ...]] = 1,
    ):
        super().__init__()
        self.kernel_size = kernel_size
        self.patch_size = patch_size
        self.stride = stride
        self.padding = padding
        self.dilation = dilation
        self.dilation_patch = dilation_patch

    def __call__(self, input1: mx.array, input2: mx.array) -> mx.array:
        return spatial_correlation_sample(
            input1,
            input2,
            kernel_size=self.kernel_size,
            patch_size=self.patch_size,
            stride=self.stride,
            padding=self.padding,
            dilation=self.dilation,
            dilation_patch=self.dilation_patch,
        )

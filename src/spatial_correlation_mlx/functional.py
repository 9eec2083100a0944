"""Public functional API for spatial-correlation-mlx."""

from __future__ import annotations

from typing import Sequence, Tuple, Union

import mlx.core as mx

from spatial_correlation_mlx._core import ops
from spatial_correlation_mlx.autograd import correlation_with_grad
from spatial_correlation_mlx.utils.params import (
    Geometry,
    check_grad_output,
    check_output_size,
    check_volumes,
    infer_rank,
    normalize_geometry,
)

IntOrTuple = Union[int, Tuple[int, ...]]


def _prepare(
    input1: mx.array,
    input2: mx.array,
    kernel_size: IntOrTuple,
    patch_size: IntOrTuple,
    stride: IntOrTuple,
    padding: IntOrTuple,
    dilation: IntOrTuple,
    dilation_patch: IntOrTuple,
) -> tuple[Geometry, tuple[int, ...]]:
    """Validate inputs and geometry; return the geometry and the cost volume shape."""
    rank = infer_rank(input1)
    check_volumes(input1, input2, rank)
    geometry = normalize_geometry(
        rank,
        kernel_size=kernel_size,
        patch_size=patch_size,
        stride=stride,
        padding=padding,
        dilation=dilation,
        dilation_patch=dilation_patch,
    )
    out_spatial = check_output_size(input1.shape[2:], geometry)
    out_shape = (input1.shape[0],) + geometry.patch_size + out_spatial
    return geometry, out_shape


def correlation_output_shape(
    input_shape: Sequence[int],
    kernel_size: IntOrTuple = 1,
    patch_size: IntOrTuple = 1,
    stride: IntOrTuple = 1,
    padding: IntOrTuple = 0,
    dilation: IntOrTuple = 1,
    dilation_patch: IntOrTuple = 1,
) -> tuple[int, ...]:
    """Cost volume shape produced for an input of shape ``[B, C, *spatial]``.

    Returns ``(B, *patch_size, *out_spatial)`` where, per axis,
    ``out = (size + 2 * padding - ((kernel_size - 1) * dilation + 1)) // stride + 1``.
    """
    input_shape = tuple(int(s) for s in input_shape)
    rank = len(input_shape) - 2
    if rank not in (2, 3):
        raise ValueError(
            f"input_shape must be [B, C, H, W] or [B, C, H, W, D], got {input_shape}"
        )
    geometry = normalize_geometry(
        rank,
        kernel_size=kernel_size,
        patch_size=patch_size,
        stride=stride,
        padding=padding,
        dilation=dilation,
        dilation_patch=dilation_patch,
    )
    out_spatial = check_output_size(input_shape[2:], geometry)
    return (input_shape[0],) + geometry.patch_size + out_spatial


def spatial_correlation_sample(
    input1: mx.array,
    input2: mx.array,
    kernel_size: IntOrTuple = 1,
    patch_size: IntOrTuple = 1,
    stride: IntOrTuple = 1,
    padding: IntOrTuple = 0,
    dilation: IntOrTuple = 1,
    dilation_patch: IntOrTuple = 1,
) -> mx.array:
    """Local cross-correlation (cost volume) between two feature volumes.

    For every output location and every displacement in the search patch,
    sums the channel-wise products of a ``kernel_size`` window of ``input1``
    and the same window of ``input2`` shifted by the displacement.  Window
    positions outside either volume contribute zero.

    Differentiable with respect to both inputs; ``mx.grad`` dispatches to the
    active backend's explicit backward pass.

    Args:
        input1: ``[B, C, H, W]`` or ``[B, C, H, W, D]``.
        input2: Same shape and dtype as ``input1``.
        kernel_size: Correlation window size per axis.  Default ``1``.
        patch_size: Number of displacements per axis.  Default ``1``.
        stride: Step between output locations.  Default ``1``.
        padding: Implicit zero padding added on both sides.  Default ``0``.
        dilation: Gap between window positions.  Default ``1``.
        dilation_patch: Gap between displacements; ``0`` collapses every
            displacement onto the zero offset.  Default ``1``.

    Returns:
        ``[B, pH, pW, oH, oW]`` for 2D inputs, ``[B, pH, pW, pD, oH, oW, oD]``
        for 3D inputs.

    Raises:
        ValueError: On mismatched volumes, non-floating dtypes, invalid
            geometry, or an output size below one along any axis.
    """
    geometry, _ = _prepare(
        input1, input2, kernel_size, patch_size, stride, padding, dilation, dilation_patch
    )
    return correlation_with_grad(input1, input2, geometry)


def correlation_forward(
    input1: mx.array,
    input2: mx.array,
    kernel_size: IntOrTuple = 1,
    patch_size: IntOrTuple = 1,
    stride: IntOrTuple = 1,
    padding: IntOrTuple = 0,
    dilation: IntOrTuple = 1,
    dilation_patch: IntOrTuple = 1,
) -> mx.array:
    """Forward pass only, without autograd registration."""
    geometry, _ = _prepare(
        input1, input2, kernel_size, patch_size, stride, padding, dilation, dilation_patch
    )
    return ops.correlation_forward(input1, input2, geometry)


def correlation_backward(
    input1: mx.array,
    input2: mx.array,
    grad_output: mx.array,
    kernel_size: IntOrTuple = 1,
    patch_size: IntOrTuple = 1,
    stride: IntOrTuple = 1,
    padding: IntOrTuple = 0,
    dilation: IntOrTuple = 1,
    dilation_patch: IntOrTuple = 1,
) -> tuple[mx.array, mx.array]:
    """Gradients of ``sum(forward(input1, input2) * grad_output)``.

    ``grad_output`` must have exactly the shape the forward pass produces for
    the same geometry.  Returns ``(grad_input1, grad_input2)`` shaped like
    the inputs.
    """
    geometry, out_shape = _prepare(
        input1, input2, kernel_size, patch_size, stride, padding, dilation, dilation_patch
    )
    check_grad_output(grad_output, out_shape)
    return ops.correlation_backward(input1, input2, grad_output, geometry)

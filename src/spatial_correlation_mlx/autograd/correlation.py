"""Autograd helpers for spatial correlation."""

from __future__ import annotations

import mlx.core as mx

from spatial_correlation_mlx._core import ops
from spatial_correlation_mlx.utils.params import Geometry


if hasattr(mx, "custom_function"):

    @mx.custom_function
    def _correlation_custom(
        input1,
        input2,
        kernel_size_tuple,
        patch_size_tuple,
        stride_tuple,
        padding_tuple,
        dilation_tuple,
        dilation_patch_tuple,
    ):
        geometry = Geometry(
            kernel_size_tuple,
            patch_size_tuple,
            stride_tuple,
            padding_tuple,
            dilation_tuple,
            dilation_patch_tuple,
        )
        return ops.correlation_forward(input1, input2, geometry)

    @_correlation_custom.vjp
    def _correlation_vjp(primals, cotangent, output):
        input1, input2, *geometry_args = primals
        grad_input1, grad_input2 = ops.correlation_backward(
            input1, input2, cotangent, Geometry(*geometry_args)
        )
        return (grad_input1, grad_input2, None, None, None, None, None, None)

else:
    _correlation_custom = None


def correlation_with_grad(input1, input2, geometry: Geometry):
    """Autograd-capable entrypoint; gradients come from the active backend's backward."""
    if _correlation_custom is None:
        return ops.correlation_forward(input1, input2, geometry)
    return _correlation_custom(input1, input2, *geometry)

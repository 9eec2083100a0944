"""Parameter normalization and validation helpers."""

from __future__ import annotations

from typing import Any, Iterable, NamedTuple

import mlx.core as mx

from spatial_correlation_mlx.utils.window import output_size

_LAYOUTS = {2: "[B, C, H, W]", 3: "[B, C, H, W, D]"}


class Geometry(NamedTuple):
    """Per-axis geometry of one correlation call, each field a ``rank``-tuple."""

    kernel_size: tuple[int, ...]
    patch_size: tuple[int, ...]
    stride: tuple[int, ...]
    padding: tuple[int, ...]
    dilation: tuple[int, ...]
    dilation_patch: tuple[int, ...]

    @property
    def rank(self) -> int:
        return len(self.kernel_size)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (tuple, list))


def normalize_tuple_param(param: Any, rank: int, name: str) -> tuple[Any, ...]:
    """Normalize scalar/sequence parameter to a tuple of length ``rank``."""
    if rank <= 0:
        raise ValueError(f"rank must be positive, got {rank}")

    if _is_sequence(param):
        result = tuple(param)
        if len(result) != rank:
            raise ValueError(
                f"{name} must have length {rank}, got {len(result)}: {param}"
            )
        return result

    return tuple(param for _ in range(rank))


def _normalize_int_param(param: Any, rank: int, name: str, minimum: int) -> tuple[int, ...]:
    values = normalize_tuple_param(param, rank, name)
    for dim, value in enumerate(values):
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name}[{dim}] must be int, got {type(value)!r}")
        if value < minimum:
            bound = "positive" if minimum == 1 else f">= {minimum}"
            raise ValueError(f"{name}[{dim}] must be {bound}, got {value}")
    return values


def normalize_geometry(
    rank: int,
    kernel_size: Any = 1,
    patch_size: Any = 1,
    stride: Any = 1,
    padding: Any = 0,
    dilation: Any = 1,
    dilation_patch: Any = 1,
) -> Geometry:
    """Normalize every geometry parameter to a validated ``rank``-tuple.

    ``padding`` may be zero and ``dilation_patch`` may be zero (all
    displacements then collapse onto the zero offset); everything else must
    be a positive integer.
    """
    return Geometry(
        kernel_size=_normalize_int_param(kernel_size, rank, "kernel_size", 1),
        patch_size=_normalize_int_param(patch_size, rank, "patch_size", 1),
        stride=_normalize_int_param(stride, rank, "stride", 1),
        padding=_normalize_int_param(padding, rank, "padding", 0),
        dilation=_normalize_int_param(dilation, rank, "dilation", 1),
        dilation_patch=_normalize_int_param(dilation_patch, rank, "dilation_patch", 0),
    )


def infer_rank(input1: mx.array) -> int:
    """Map a ``[B, C, *spatial]`` volume to its spatial rank (2 or 3)."""
    rank = input1.ndim - 2
    if rank not in _LAYOUTS:
        raise ValueError(
            "spatial correlation expects inputs with shape "
            f"{_LAYOUTS[2]} or {_LAYOUTS[3]}, got {input1.shape}"
        )
    return rank


def _is_floating(dtype) -> bool:
    return mx.issubdtype(dtype, mx.floating)


def check_volumes(input1: mx.array, input2: mx.array, rank: int) -> None:
    """Validate that both feature volumes can be correlated with each other."""
    expected_ndim = rank + 2
    if input1.ndim != expected_ndim or input2.ndim != expected_ndim:
        raise ValueError(
            f"correlation{rank}d expects input1/input2 with shape {_LAYOUTS[rank]}, "
            f"got {input1.shape} and {input2.shape}"
        )
    if input1.shape[0] != input2.shape[0]:
        raise ValueError(
            f"Batch dimensions must match: input1={input1.shape[0]}, input2={input2.shape[0]}."
        )
    if input1.shape[1] != input2.shape[1]:
        raise ValueError(
            f"Channel dimensions must match: input1={input1.shape[1]}, input2={input2.shape[1]}."
        )
    if input1.shape[2:] != input2.shape[2:]:
        raise ValueError(
            f"Spatial dimensions must match: input1={input1.shape[2:]}, input2={input2.shape[2:]}."
        )
    for name, arr in (("input1", input1), ("input2", input2)):
        if not _is_floating(arr.dtype):
            raise ValueError(f"{name} must have a floating-point dtype, got {arr.dtype}")
    if input1.dtype != input2.dtype:
        raise ValueError(
            f"input1 and input2 must share a dtype, got {input1.dtype} and {input2.dtype}"
        )


def check_output_size(
    input_spatial_shape: Iterable[int], geometry: Geometry
) -> tuple[int, ...]:
    """Return the output spatial size, rejecting degenerate geometries."""
    sizes = []
    for dim, (size, k, s, p, d) in enumerate(
        zip(
            input_spatial_shape,
            geometry.kernel_size,
            geometry.stride,
            geometry.padding,
            geometry.dilation,
        )
    ):
        out = output_size(size, k, s, p, d)
        if out < 1:
            raise ValueError(
                f"Output size along axis {dim} is {out} (input {size}, kernel_size {k}, "
                f"dilation {d}, padding {p}, stride {s}); it must be >= 1"
            )
        sizes.append(out)
    return tuple(sizes)


def check_grad_output(grad_output: mx.array, expected_shape: tuple[int, ...]) -> None:
    """Validate the upstream gradient against the geometry-derived cost volume shape."""
    if tuple(grad_output.shape) != tuple(expected_shape):
        raise ValueError(
            f"grad_output must have shape {tuple(expected_shape)}, got {tuple(grad_output.shape)}"
        )
    if not _is_floating(grad_output.dtype):
        raise ValueError(f"grad_output must have a floating-point dtype, got {grad_output.dtype}")

# Geometry of the unit depth axis appended to 2D volumes, in field order.
_UNIT_AXIS = Geometry(
    kernel_size=(1,),
    patch_size=(1,),
    stride=(1,),
    padding=(0,),
    dilation=(1,),
    dilation_patch=(1,),
)


def promote_to_3d(geometry: Geometry) -> Geometry:
    """Extend a 2D geometry with a unit depth axis; 3D geometries pass through."""
    if geometry.rank == 3:
        return geometry
    return Geometry(*(values + unit for values, unit in zip(geometry, _UNIT_AXIS)))

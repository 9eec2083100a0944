"""Window and displacement formulas shared by every backend."""

from __future__ import annotations

import numpy as np


def dilated_kernel_size(kernel_size: int, dilation: int) -> int:
    """Spatial extent covered by a kernel window once dilation is applied."""
    return (kernel_size - 1) * dilation + 1


def output_size(length: int, kernel_size: int, stride: int, padding: int, dilation: int) -> int:
    """Number of output positions along one axis (may be <= 0 for bad geometry)."""
    return (length + 2 * padding - dilated_kernel_size(kernel_size, dilation)) // stride + 1


def patch_radius(patch_size: int) -> int:
    return (patch_size - 1) // 2


def displacement_shift(patch_index: int, patch_size: int, dilation_patch: int) -> int:
    """Offset applied to the second volume for one displacement index."""
    return (patch_index - patch_radius(patch_size)) * dilation_patch


def base_coordinate(out_index: int, stride: int, padding: int) -> int:
    """First window position of output ``out_index``, in unpadded input coordinates."""
    return -padding + out_index * stride


def within_bounds(p1, p2, length):
    """True where both the base and the shifted position lie inside ``[0, length)``.

    Works elementwise on NumPy arrays as well as on plain ints.
    """
    return (p1 >= 0) & (p1 < length) & (p2 >= 0) & (p2 < length)


def compute_shifts(patch_size: int, dilation_patch: int) -> np.ndarray:
    """Displacement shift for every patch index along one axis."""
    return np.array(
        [displacement_shift(p, patch_size, dilation_patch) for p in range(patch_size)],
        dtype=np.int32,
    )


def compute_axis_positions(
    length: int,
    out_length: int,
    kernel_size: int,
    stride: int,
    padding: int,
    dilation: int,
    shift: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorized window positions along one axis for a single displacement.

    Returns ``(base, shifted, valid)``, each ``[kernel_size, out_length]``.
    ``base`` and ``shifted`` are clipped into range so they can be used as
    gather indices; ``valid`` marks the entries that really contribute.
    """
    out_pos = np.arange(out_length, dtype=np.int32) * stride - padding
    k_steps = np.arange(kernel_size, dtype=np.int32) * dilation
    raw1 = k_steps[:, None] + out_pos[None, :]
    raw2 = raw1 + shift
    valid = within_bounds(raw1, raw2, length)
    base = np.clip(raw1, 0, length - 1).astype(np.int32)
    shifted = np.clip(raw2, 0, length - 1).astype(np.int32)
    return base, shifted, valid.astype(np.bool_)

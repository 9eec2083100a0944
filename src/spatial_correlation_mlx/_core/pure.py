"""Tier 0: pure MLX backend for spatial correlation.

Vectorizes over batch, channel and the whole output grid.  The Python
loops only run over displacements and kernel offsets, both of which are
small.  For each pair the base and shifted windows are gathered with
clipped indices and the out-of-bounds positions are replaced by zero
with ``mx.where``.
"""

from __future__ import annotations

import itertools

import numpy as np
import mlx.core as mx

from spatial_correlation_mlx.utils.params import Geometry, promote_to_3d
from spatial_correlation_mlx.utils.window import (
    compute_axis_positions,
    compute_shifts,
    output_size,
)


def is_available() -> bool:
    return True


def _expand_depth(x: mx.array, rank: int) -> mx.array:
    return mx.expand_dims(x, -1) if rank == 2 else x


def _output_shape(spatial_shape, geometry: Geometry) -> tuple[int, ...]:
    return tuple(
        output_size(n, k, s, p, d)
        for n, k, s, p, d in zip(
            spatial_shape,
            geometry.kernel_size,
            geometry.stride,
            geometry.padding,
            geometry.dilation,
        )
    )


def _displacement_tables(spatial_shape, out_shape, geometry: Geometry):
    """Yield ``(patch_index, axis_tables)`` for every displacement.

    ``axis_tables`` holds one ``(base, shifted, valid)`` triple per axis,
    as produced by :func:`compute_axis_positions`.
    """
    shifts = [
        compute_shifts(p, dp) for p, dp in zip(geometry.patch_size, geometry.dilation_patch)
    ]
    for patch_index in itertools.product(*(range(p) for p in geometry.patch_size)):
        tables = [
            compute_axis_positions(
                length,
                out_len,
                k,
                s,
                p,
                d,
                int(axis_shifts[pi]),
            )
            for length, out_len, k, s, p, d, axis_shifts, pi in zip(
                spatial_shape,
                out_shape,
                geometry.kernel_size,
                geometry.stride,
                geometry.padding,
                geometry.dilation,
                shifts,
                patch_index,
            )
        ]
        yield patch_index, tables


def _gather(x: mx.array, rows: np.ndarray, cols: np.ndarray, deps: np.ndarray) -> mx.array:
    """``x[:, :, rows][:, :, :, cols][..., deps]`` for a ``[B, C, H, W, D]`` volume."""
    x = mx.take(x, mx.array(rows, dtype=mx.int32), axis=2)
    x = mx.take(x, mx.array(cols, dtype=mx.int32), axis=3)
    return mx.take(x, mx.array(deps, dtype=mx.int32), axis=4)


def _offset_terms(tables, offset):
    """Gather indices and validity mask for one kernel offset ``(i, j, k)``."""
    (h1, h2, hv), (w1, w2, wv), (d1, d2, dv) = tables
    i, j, k = offset
    base = (h1[i], w1[j], d1[k])
    shifted = (h2[i], w2[j], d2[k])
    valid = hv[i][:, None, None] & wv[j][None, :, None] & dv[k][None, None, :]
    return base, shifted, valid


def _flat_positions(positions, spatial_shape) -> mx.array:
    rows, cols, deps = positions
    _, width, depth = spatial_shape
    lin = (rows[:, None, None] * width + cols[None, :, None]) * depth + deps[None, None, :]
    return mx.array(lin.reshape(-1), dtype=mx.int32)


def correlation_forward(input1: mx.array, input2: mx.array, geometry: Geometry) -> mx.array:
    rank = geometry.rank
    x1 = _expand_depth(input1, rank)
    x2 = _expand_depth(input2, rank)
    geo = promote_to_3d(geometry)

    batch = x1.shape[0]
    spatial_shape = tuple(x1.shape[2:])
    out_shape = _output_shape(spatial_shape, geo)
    kernel_offsets = list(itertools.product(*(range(k) for k in geo.kernel_size)))

    cells = []
    for _, tables in _displacement_tables(spatial_shape, out_shape, geo):
        acc = mx.zeros((batch,) + out_shape, dtype=x1.dtype)
        for offset in kernel_offsets:
            base, shifted, valid = _offset_terms(tables, offset)
            if not valid.any():
                continue
            win1 = _gather(x1, *base)
            win2 = _gather(x2, *shifted)
            # clipped reads may be non-finite; out-of-bounds terms are exactly 0
            cell = mx.where(mx.array(valid), mx.sum(win1 * win2, axis=1), 0)
            acc = acc + cell.astype(x1.dtype)
        cells.append(acc)

    out = mx.reshape(mx.stack(cells, axis=1), (batch,) + geo.patch_size + out_shape)
    if rank == 2:
        out = out[:, :, :, 0, :, :, 0]
    return out


def correlation_backward(
    input1: mx.array,
    input2: mx.array,
    grad_output: mx.array,
    geometry: Geometry,
) -> tuple[mx.array, mx.array]:
    """Scatter-add gradients of every (displacement, offset) pair.

    Gradient buffers are kept as ``[H*W*D, B, C]`` so each pair contributes
    with a single ``.at[positions].add``, which accumulates duplicate
    positions correctly and makes the result independent of pair order.
    """
    rank = geometry.rank
    x1 = _expand_depth(input1, rank)
    x2 = _expand_depth(input2, rank)
    grad = grad_output.astype(x1.dtype)
    if rank == 2:
        grad = grad[:, :, :, None, :, :, None]
    geo = promote_to_3d(geometry)

    batch, channels = x1.shape[:2]
    spatial_shape = tuple(x1.shape[2:])
    out_shape = tuple(grad.shape[4:])
    num_positions = int(np.prod(spatial_shape))
    kernel_offsets = list(itertools.product(*(range(k) for k in geo.kernel_size)))

    grad_flat1 = mx.zeros((num_positions, batch, channels), dtype=x1.dtype)
    grad_flat2 = mx.zeros((num_positions, batch, channels), dtype=x2.dtype)

    for patch_index, tables in _displacement_tables(spatial_shape, out_shape, geo):
        ph, pw, pd = patch_index
        cell_grads = grad[:, ph, pw, pd]
        for offset in kernel_offsets:
            base, shifted, valid = _offset_terms(tables, offset)
            if not valid.any():
                continue
            keep = mx.array(valid)
            g = cell_grads[:, None]
            win1 = _gather(x1, *base)
            win2 = _gather(x2, *shifted)
            term1 = mx.where(keep, g * win2, 0).astype(x1.dtype)
            term2 = mx.where(keep, g * win1, 0).astype(x2.dtype)

            # [B, C, oH, oW, oD] -> [oH*oW*oD, B, C]
            contrib1 = mx.transpose(term1.reshape(batch, channels, -1), (2, 0, 1))
            contrib2 = mx.transpose(term2.reshape(batch, channels, -1), (2, 0, 1))
            grad_flat1 = grad_flat1.at[_flat_positions(base, spatial_shape)].add(contrib1)
            grad_flat2 = grad_flat2.at[_flat_positions(shifted, spatial_shape)].add(contrib2)

    def _unflatten(flat: mx.array) -> mx.array:
        out = mx.reshape(mx.transpose(flat, (1, 2, 0)), (batch, channels) + spatial_shape)
        return out[..., 0] if rank == 2 else out

    return _unflatten(grad_flat1), _unflatten(grad_flat2)

"""Tier 1: explicit per-cell CPU backend.

Runs the window kernels from :mod:`.kernels` once per
``(batch, displacement, output location)`` on NumPy copies of the inputs,
fanned out over a thread pool.

Parallel granularity:
- forward: one work item per ``(batch, patchH, patchW)``.  Every item writes
  a disjoint slab of the cost volume, so no synchronization is needed.
- backward: one work item per batch element.  Within an element, distinct
  displacements and output locations scatter into overlapping gradient
  positions, so they run sequentially inside the item.  Batch elements own
  disjoint gradient slabs.
"""

from __future__ import annotations

import itertools
import logging
import os
from multiprocessing.dummy import Pool as ThreadPool

import numpy as np
import mlx.core as mx

from spatial_correlation_mlx._core.kernels import correlate_patch, correlate_patch_grad
from spatial_correlation_mlx.utils.params import Geometry, promote_to_3d
from spatial_correlation_mlx.utils.window import base_coordinate, compute_shifts, output_size

logger = logging.getLogger(__name__)


def _default_num_threads() -> int:
    raw = os.environ.get("SPATIAL_CORRELATION_NUM_THREADS", "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            logger.warning(
                "Ignoring non-integer SPATIAL_CORRELATION_NUM_THREADS=%r", raw
            )
    return os.cpu_count() or 1


_NUM_THREADS = _default_num_threads()


def is_available() -> bool:
    return True


def get_num_threads() -> int:
    return _NUM_THREADS


def set_num_threads(num_threads: int) -> None:
    global _NUM_THREADS
    if isinstance(num_threads, bool) or not isinstance(num_threads, int):
        raise ValueError(f"num_threads must be int, got {type(num_threads)!r}")
    if num_threads <= 0:
        raise ValueError(f"num_threads must be positive, got {num_threads}")
    _NUM_THREADS = num_threads


def _parallel_for(fn, items: list) -> None:
    workers = min(_NUM_THREADS, len(items))
    logger.debug("cpu parallel-for: %d work items on %d workers", len(items), workers)
    if workers <= 1:
        for item in items:
            fn(item)
        return
    with ThreadPool(workers) as pool:
        pool.map(fn, items)


def _to_numpy(x: mx.array) -> np.ndarray:
    # NumPy has no bfloat16
    if x.dtype == mx.bfloat16:
        x = x.astype(mx.float32)
    return np.array(x)


def _from_numpy(x: np.ndarray, dtype) -> mx.array:
    out = mx.array(np.ascontiguousarray(x))
    if out.dtype != dtype:
        out = out.astype(dtype)
    return out


def _base(out_index: tuple[int, ...], geometry: Geometry) -> tuple[int, ...]:
    return tuple(
        base_coordinate(o, s, p)
        for o, s, p in zip(out_index, geometry.stride, geometry.padding)
    )


def correlation_forward(input1: mx.array, input2: mx.array, geometry: Geometry) -> mx.array:
    rank = geometry.rank
    x1 = _to_numpy(input1)
    x2 = _to_numpy(input2)
    if rank == 2:
        x1 = x1[..., None]
        x2 = x2[..., None]
    geo = promote_to_3d(geometry)

    batch = x1.shape[0]
    out_shape = tuple(
        output_size(n, k, s, p, d)
        for n, k, s, p, d in zip(
            x1.shape[2:], geo.kernel_size, geo.stride, geo.padding, geo.dilation
        )
    )
    patch_h, patch_w, patch_d = geo.patch_size
    shifts = [compute_shifts(p, dp) for p, dp in zip(geo.patch_size, geo.dilation_patch)]

    output = np.zeros((batch, patch_h, patch_w, patch_d) + out_shape, dtype=x1.dtype)

    def _work(item):
        n, ph, pw = item
        for pd in range(patch_d):
            shift = (int(shifts[0][ph]), int(shifts[1][pw]), int(shifts[2][pd]))
            dst = output[n, ph, pw, pd]
            for out_index in np.ndindex(*out_shape):
                dst[out_index] += correlate_patch(
                    x1[n],
                    x2[n],
                    geo.kernel_size,
                    geo.dilation,
                    _base(out_index, geo),
                    shift,
                )

    items = list(itertools.product(range(batch), range(patch_h), range(patch_w)))
    _parallel_for(_work, items)

    if rank == 2:
        output = output[:, :, :, 0, :, :, 0]
    return _from_numpy(output, input1.dtype)


def correlation_backward(
    input1: mx.array,
    input2: mx.array,
    grad_output: mx.array,
    geometry: Geometry,
) -> tuple[mx.array, mx.array]:
    rank = geometry.rank
    x1 = _to_numpy(input1)
    x2 = _to_numpy(input2)
    grad = _to_numpy(grad_output.astype(input1.dtype))
    if rank == 2:
        x1 = x1[..., None]
        x2 = x2[..., None]
        grad = grad[:, :, :, None, :, :, None]
    geo = promote_to_3d(geometry)

    patch_shape = grad.shape[1:4]
    out_shape = grad.shape[4:]
    shifts = [compute_shifts(p, dp) for p, dp in zip(geo.patch_size, geo.dilation_patch)]

    grad_input1 = np.zeros_like(x1)
    grad_input2 = np.zeros_like(x2)

    def _work(n):
        for ph, pw, pd in np.ndindex(*patch_shape):
            shift = (int(shifts[0][ph]), int(shifts[1][pw]), int(shifts[2][pd]))
            cell_grads = grad[n, ph, pw, pd]
            for out_index in np.ndindex(*out_shape):
                correlate_patch_grad(
                    x1[n],
                    grad_input1[n],
                    x2[n],
                    grad_input2[n],
                    cell_grads[out_index],
                    geo.kernel_size,
                    geo.dilation,
                    _base(out_index, geo),
                    shift,
                )

    _parallel_for(_work, list(range(x1.shape[0])))

    if rank == 2:
        grad_input1 = grad_input1[..., 0]
        grad_input2 = grad_input2[..., 0]
    return _from_numpy(grad_input1, input1.dtype), _from_numpy(grad_input2, input2.dtype)

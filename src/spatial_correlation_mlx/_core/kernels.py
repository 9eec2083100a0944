"""Per-cell correlation kernels for the cpu backend.

Both kernels work on a single batch element laid out as ``[C, H, W, D]``;
2D volumes are handled by the caller with a unit depth axis.  For one
output cell and one displacement they visit the same window positions:
the base position ``base + offset * dilation`` in ``input1`` and the
shifted position ``base + offset * dilation + shift`` in ``input2``.
Positions where either coordinate falls outside the volume contribute
nothing (implicit zero padding).
"""

from __future__ import annotations

import numpy as np

from spatial_correlation_mlx.utils.window import within_bounds


def _axis_window(base: int, shift: int, kernel_size: int, dilation: int, length: int):
    pos1 = base + np.arange(kernel_size, dtype=np.intp) * dilation
    pos2 = pos1 + shift
    keep = within_bounds(pos1, pos2, length)
    return pos1[keep], pos2[keep]


def _window_indices(spatial_shape, kernel_size, dilation, base, shift):
    """Index tuples selecting the valid ``[C, kh, kw, kd]`` window of each volume.

    Returns ``None`` when no position of the window is in bounds.
    """
    axes = [
        _axis_window(b, s, k, d, n)
        for b, s, k, d, n in zip(base, shift, kernel_size, dilation, spatial_shape)
    ]
    if any(pos1.size == 0 for pos1, _ in axes):
        return None

    (h1, h2), (w1, w2), (d1, d2) = axes
    idx1 = (slice(None), h1[:, None, None], w1[None, :, None], d1[None, None, :])
    idx2 = (slice(None), h2[:, None, None], w2[None, :, None], d2[None, None, :])
    return idx1, idx2


def correlate_patch(
    input1: np.ndarray,
    input2: np.ndarray,
    kernel_size: tuple[int, int, int],
    dilation: tuple[int, int, int],
    base: tuple[int, int, int],
    shift: tuple[int, int, int],
):
    """Dot product between the ``input1`` window at ``base`` and the shifted ``input2`` window."""
    indices = _window_indices(input1.shape[1:], kernel_size, dilation, base, shift)
    if indices is None:
        return input1.dtype.type(0)
    idx1, idx2 = indices
    return np.sum(input1[idx1] * input2[idx2])


def correlate_patch_grad(
    input1: np.ndarray,
    grad_input1: np.ndarray,
    input2: np.ndarray,
    grad_input2: np.ndarray,
    grad_output,
    kernel_size: tuple[int, int, int],
    dilation: tuple[int, int, int],
    base: tuple[int, int, int],
    shift: tuple[int, int, int],
) -> None:
    """Scatter-add one cost-volume gradient into both input gradient buffers.

    Positions inside a single window are distinct, so the fancy-indexed
    ``+=`` below never hits the same element twice in one call.  Different
    calls do overlap; callers must serialize calls that share buffers.
    """
    indices = _window_indices(input1.shape[1:], kernel_size, dilation, base, shift)
    if indices is None:
        return
    idx1, idx2 = indices
    grad_input1[idx1] += grad_output * input2[idx2]
    grad_input2[idx2] += grad_output * input1[idx1]

"""Top-level API for spatial-correlation-mlx."""

from __future__ import annotations

import mlx.core as _mx  # noqa: F401

from spatial_correlation_mlx._core import cpu, ops
from spatial_correlation_mlx.functional import (
    correlation_backward,
    correlation_forward,
    correlation_output_shape,
    spatial_correlation_sample,
)
from spatial_correlation_mlx.nn import SpatialCorrelationSampler
from spatial_correlation_mlx.support_matrix import get_support_matrix
from spatial_correlation_mlx.version import __version__


def get_backend() -> str:
    return ops.get_backend()


def set_backend(name: str) -> None:
    ops.set_backend(name)


def get_num_threads() -> int:
    return cpu.get_num_threads()


def set_num_threads(num_threads: int) -> None:
    cpu.set_num_threads(num_threads)


__all__ = [
    "__version__",
    "spatial_correlation_sample",
    "correlation_forward",
    "correlation_backward",
    "correlation_output_shape",
    "SpatialCorrelationSampler",
    "get_backend",
    "set_backend",
    "get_num_threads",
    "set_num_threads",
    "get_support_matrix",
]

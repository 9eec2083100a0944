"""Backend capability matrix for spatial-correlation-mlx."""

from __future__ import annotations

from spatial_correlation_mlx._core import cpu, pure


def get_support_matrix() -> dict[str, dict]:
    """Return capability matrix for each backend tier.

    Notes:
    - "backward" means an explicit backward pass wired into ``mx.grad``.
    - "parallelism" names the axes work is split across.
    """

    return {
        "pure": {
            "available": pure.is_available(),
            "forward": {"correlation2d": True, "correlation3d": True},
            "backward": {"correlation2d": True, "correlation3d": True},
            "parallelism": {"forward": "mlx", "backward": "mlx"},
            "dtypes": ["float16", "bfloat16", "float32", "float64"],
            "constraints": [
                "Vectorized over batch, channel and output grid; loops over displacements and kernel offsets.",
                "Backward accumulates with scatter-add, independent of accumulation order.",
                "float64 runs on the CPU device only.",
            ],
        },
        "cpu": {
            "available": cpu.is_available(),
            "forward": {"correlation2d": True, "correlation3d": True},
            "backward": {"correlation2d": True, "correlation3d": True},
            "parallelism": {"forward": "batch x patchH x patchW", "backward": "batch"},
            "dtypes": ["float16", "bfloat16", "float32", "float64"],
            "constraints": [
                "Per-cell window kernels on NumPy copies of the inputs.",
                "bfloat16 inputs are computed in float32 and cast back.",
                f"Thread pool size from SPATIAL_CORRELATION_NUM_THREADS (currently {cpu.get_num_threads()}).",
            ],
        },
    }

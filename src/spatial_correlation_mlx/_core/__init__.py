from .ops import (
    correlation_backward,
    correlation_forward,
    get_backend,
    register_backend,
    set_backend,
)

__all__ = [
    "correlation_forward",
    "correlation_backward",
    "get_backend",
    "set_backend",
    "register_backend",
]

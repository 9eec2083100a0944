"""Backend dispatch for spatial-correlation-mlx."""

from __future__ import annotations

import logging
import os
from typing import Any

from . import cpu, pure

logger = logging.getLogger(__name__)

_BACKEND_REGISTRY: dict[str, Any] = {}
_ACTIVE_BACKEND = os.environ.get("SPATIAL_CORRELATION_BACKEND", "auto")


def register_backend(name: str, module: Any) -> None:
    _BACKEND_REGISTRY[name] = module


def _resolve_backend() -> str:
    if _ACTIVE_BACKEND != "auto":
        return _ACTIVE_BACKEND
    return "pure"


def get_backend() -> str:
    return _resolve_backend()


def set_backend(name: str) -> None:
    global _ACTIVE_BACKEND
    valid = {"auto", *_BACKEND_REGISTRY.keys()}
    if name not in valid:
        raise ValueError(f"Unknown backend {name!r}. Expected one of {sorted(valid)}")
    _ACTIVE_BACKEND = name


def _backend_module() -> Any:
    name = _resolve_backend()
    try:
        module = _BACKEND_REGISTRY[name]
    except KeyError as exc:
        raise RuntimeError(f"Backend {name!r} is not registered") from exc
    logger.debug("dispatching spatial correlation to %r backend", name)
    return module


def correlation_forward(input1, input2, geometry):
    return _backend_module().correlation_forward(input1, input2, geometry)


def correlation_backward(input1, input2, grad_output, geometry):
    return _backend_module().correlation_backward(input1, input2, grad_output, geometry)


register_backend("pure", pure)
register_backend("cpu", cpu)

if _ACTIVE_BACKEND not in {"auto", *list(_BACKEND_REGISTRY.keys())}:
    logger.warning(
        "Unknown SPATIAL_CORRELATION_BACKEND=%r, falling back to 'auto'", _ACTIVE_BACKEND
    )
    _ACTIVE_BACKEND = "auto"

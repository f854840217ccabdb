"""Name-keyed registry of optimizer backends used by the tuner."""

from __future__ import annotations

from typing import Dict, Tuple

from .common import INVALID_PENALTY, Backend, BackendResult
from .scipy_differential_evolution import ScipyDifferentialEvolutionBackend
from .scipy_minimize import ScipyMinimizeBackend

_BACKENDS: Dict[str, Backend] = {
    "scipy.minimize": ScipyMinimizeBackend(),
    "scipy.differential_evolution": ScipyDifferentialEvolutionBackend(),
}


def get_backend(name: str) -> Backend:
    try:
        return _BACKENDS[name]
    except KeyError as e:
        raise ValueError(
            f"Unknown optimizer backend {name!r}. Available: {available_backends()}"
        ) from e


def register_backend(name: str, backend: Backend, *, replace: bool = False) -> None:
    """Make `backend` selectable as ``OptimizerConfig(backend=name)``."""
    if name in _BACKENDS and not replace:
        raise ValueError(f"Optimizer backend {name!r} is already registered.")
    if not callable(getattr(backend, "minimize", None)):
        raise TypeError("An optimizer backend needs a minimize(*, objective, x0, bounds, config) method.")
    _BACKENDS[name] = backend


def available_backends() -> Tuple[str, ...]:
    return tuple(_BACKENDS)


AVAILABLE_BACKENDS = available_backends()

__all__ = [
    "AVAILABLE_BACKENDS",
    "Backend",
    "BackendResult",
    "INVALID_PENALTY",
    "available_backends",
    "get_backend",
    "register_backend",
]

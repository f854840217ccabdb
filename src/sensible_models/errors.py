"""Exception types raised by sensible_models."""

from __future__ import annotations

__all__ = [
    "PreconditionError",
    "CapabilityError",
    "ConsistencyError",
    "FitEqualityError",
]


class PreconditionError(ValueError):
    """A caller broke an operation's contract (sizes, fit-before-predict, ...)."""


class CapabilityError(NotImplementedError):
    """No direct or derived route exists for the requested prediction fidelity."""


class ConsistencyError(RuntimeError):
    """Fold bookkeeping does not cover the dataset exactly once."""


class FitEqualityError(TypeError):
    """Equality was requested on fit models that do not define it."""

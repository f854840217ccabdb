from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Protocol, Tuple

import numpy as np

# Value reported to an optimizer in place of a NaN/inf objective. Large but
# finite, so simplex bookkeeping (differences between vertices) stays finite.
INVALID_PENALTY = 1e100


@dataclass(frozen=True)
class BackendResult:
    """Normalized result returned by any optimizer backend."""

    x: np.ndarray  # unconstrained parameter vector, shape (P,)
    fun: float = math.nan
    success: bool = True
    message: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)


class Backend(Protocol):
    """Backend protocol: minimize one objective over an unconstrained vector."""

    name: str

    def minimize(
        self,
        *,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
        config: Any,
    ) -> BackendResult: ...


def penalized(
    objective: Callable[[np.ndarray], float], penalty: float = INVALID_PENALTY
) -> Callable[[np.ndarray], float]:
    """Wrap objective so invalid (non-finite) evaluations come back as `penalty`."""

    def wrapped(x: np.ndarray) -> float:
        value = float(objective(np.asarray(x, dtype=float)))
        if not math.isfinite(value):
            return float(penalty)
        return value

    return wrapped


def finite_bounds_or_none(bounds: Tuple[np.ndarray, np.ndarray]):
    """scipy-style [(lo, hi), ...] with None for infinite sides, or None if unbounded."""
    lo, hi = bounds
    out = []
    any_finite = False
    for lo_i, hi_i in zip(np.asarray(lo, dtype=float), np.asarray(hi, dtype=float)):
        lo_b = float(lo_i) if math.isfinite(lo_i) else None
        hi_b = float(hi_i) if math.isfinite(hi_i) else None
        any_finite = any_finite or lo_b is not None or hi_b is not None
        out.append((lo_b, hi_b))
    return out if any_finite else None

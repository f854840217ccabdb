"""Parameter priors.

A prior is two things at once: a validity constraint (``is_valid``) and a
log-density contribution (``log_likelihood``) used to bias tuning. Each prior
also knows a monotone, invertible map between its support and the real line,
so optimizers can always search an unconstrained space:

    support            transform
    (-inf, inf)        identity
    (lo, inf)          x = lo + exp(u)
    (-inf, hi)         x = hi - exp(u)
    (lo, hi)           x = lo + (hi - lo) * expit(u)

``FixedPrior`` marks a parameter that tuning must leave alone.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, ClassVar

import scipy.stats
from scipy.special import expit, logit

__all__ = [
    "Prior",
    "UninformativePrior",
    "FixedPrior",
    "PositivePrior",
    "NonNegativePrior",
    "UniformPrior",
    "GaussianPrior",
    "LogNormalPrior",
]

# Smallest offset from a finite bound used when mapping into unconstrained space.
_TINY = 1e-300
_EDGE = 1e-15


class Prior:
    lower: float = -math.inf
    upper: float = math.inf
    lower_inclusive: ClassVar[bool] = True
    upper_inclusive: ClassVar[bool] = True
    is_fixed: ClassVar[bool] = False

    @property
    def name(self) -> str:
        return type(self).__name__

    def is_valid(self, value: Any) -> bool:
        v = float(value)
        if not math.isfinite(v):
            return False
        lo, hi = float(self.lower), float(self.upper)
        if self.lower_inclusive:
            ok_lo = v >= lo
        else:
            ok_lo = v > lo
        if self.upper_inclusive:
            ok_hi = v <= hi
        else:
            ok_hi = v < hi
        return bool(ok_lo and ok_hi)

    def log_likelihood(self, value: Any) -> float:
        return 0.0 if self.is_valid(value) else -math.inf

    # ---- unconstrained search space ----
    @property
    def transform_decreasing(self) -> bool:
        """True when larger values map to smaller unconstrained coordinates."""
        return math.isinf(float(self.lower)) and not math.isinf(float(self.upper))

    def to_unconstrained(self, value: Any) -> float:
        v = float(value)
        lo, hi = float(self.lower), float(self.upper)
        if math.isinf(lo) and math.isinf(hi):
            return v
        if math.isinf(hi):
            return math.log(max(v - lo, _TINY))
        if math.isinf(lo):
            return math.log(max(hi - v, _TINY))
        frac = (v - lo) / (hi - lo)
        return float(logit(min(max(frac, _EDGE), 1.0 - _EDGE)))

    def from_unconstrained(self, u: Any) -> float:
        """Inverse of `to_unconstrained`; raises OverflowError for huge `u`."""
        u = float(u)
        lo, hi = float(self.lower), float(self.upper)
        if math.isinf(lo) and math.isinf(hi):
            return u
        if math.isinf(hi):
            return lo + math.exp(u)
        if math.isinf(lo):
            return hi - math.exp(u)
        return lo + (hi - lo) * float(expit(u))

    def __repr__(self) -> str:
        return f"{self.name}()"


class UninformativePrior(Prior):
    def __eq__(self, other: object) -> bool:
        return type(other) is type(self)

    def __hash__(self) -> int:
        return hash(type(self))


class FixedPrior(UninformativePrior):
    """Hold the parameter at its current value during tuning."""

    is_fixed = True


class PositivePrior(UninformativePrior):
    """Flat (improper) prior on (0, inf)."""

    lower = 0.0
    lower_inclusive = False


class NonNegativePrior(UninformativePrior):
    """Flat (improper) prior on [0, inf)."""

    lower = 0.0


@dataclass(frozen=True, repr=True)
class UniformPrior(Prior):
    lower: float = 0.0
    upper: float = 1.0

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise ValueError("UniformPrior requires finite bounds.")
        if self.upper <= self.lower:
            raise ValueError("UniformPrior requires upper > lower.")

    def log_likelihood(self, value: Any) -> float:
        if not self.is_valid(value):
            return -math.inf
        return -math.log(self.upper - self.lower)


@dataclass(frozen=True, repr=True)
class GaussianPrior(Prior):
    mu: float = 0.0
    sigma: float = 1.0

    def __post_init__(self) -> None:
        if not self.sigma > 0:
            raise ValueError("GaussianPrior requires sigma > 0.")

    def log_likelihood(self, value: Any) -> float:
        if not self.is_valid(value):
            return -math.inf
        return float(scipy.stats.norm.logpdf(float(value), loc=self.mu, scale=self.sigma))


@dataclass(frozen=True, repr=True)
class LogNormalPrior(Prior):
    """log(x) ~ Normal(mu, sigma), supported on (0, inf)."""

    mu: float = 0.0
    sigma: float = 1.0

    lower: ClassVar[float] = 0.0
    lower_inclusive: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if not self.sigma > 0:
            raise ValueError("LogNormalPrior requires sigma > 0.")

    def log_likelihood(self, value: Any) -> float:
        if not self.is_valid(value):
            return -math.inf
        return float(
            scipy.stats.lognorm.logpdf(float(value), s=self.sigma, scale=math.exp(self.mu))
        )

"""Prediction fidelities and the explicit capability descriptor models declare."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

import numpy as np

from .distribution import JointDistribution, MarginalDistribution
from .errors import CapabilityError

__all__ = ["Fidelity", "Capabilities", "derive_prediction", "FidelityLike"]


class Fidelity(str, Enum):
    """How much uncertainty a prediction carries."""

    MEAN = "mean"
    MARGINAL = "marginal"
    JOINT = "joint"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @classmethod
    def coerce(cls, value: "FidelityLike") -> "Fidelity":
        if isinstance(value, Fidelity):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as e:
            raise ValueError(
                f"Unknown fidelity {value!r}. Available: {tuple(f.value for f in cls)}"
            ) from e


FidelityLike = Union[Fidelity, str]

_RANK = {Fidelity.MEAN: 0, Fidelity.MARGINAL: 1, Fidelity.JOINT: 2}

# Cheapest richer source first.
_DERIVABLE_FROM: Dict[Fidelity, Tuple[Fidelity, ...]] = {
    Fidelity.MEAN: (Fidelity.MARGINAL, Fidelity.JOINT),
    Fidelity.MARGINAL: (Fidelity.JOINT,),
    Fidelity.JOINT: (),
}


def _fidelity_set(values: Iterable[FidelityLike]) -> FrozenSet[Fidelity]:
    if isinstance(values, (str, Fidelity)):
        values = (values,)
    return frozenset(Fidelity.coerce(v) for v in values)


@dataclass(frozen=True)
class Capabilities:
    """Which operations a model implements directly.

    predict          : fidelities with a dedicated ``_predict_<fidelity>`` hook
    fit_and_predict  : fidelities with a dedicated ``_fit_and_predict_<fidelity>``
                       hook (e.g. incremental leave-one-out); anything else
                       falls back to fit followed by predict.

    Anything not listed in ``predict`` is derived from a richer fidelity when
    one is available (marginal from the joint diagonal, mean from either).
    """

    predict: FrozenSet[Fidelity] = frozenset()
    fit_and_predict: FrozenSet[Fidelity] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "predict", _fidelity_set(self.predict))
        object.__setattr__(self, "fit_and_predict", _fidelity_set(self.fit_and_predict))

    def source(self, fidelity: FidelityLike) -> Optional[Fidelity]:
        """Return the fidelity to compute in order to answer `fidelity`, if any."""
        f = Fidelity.coerce(fidelity)
        if f in self.predict:
            return f
        for richer in _DERIVABLE_FROM[f]:
            if richer in self.predict:
                return richer
        return None

    def fit_and_predict_source(self, fidelity: FidelityLike) -> Optional[Fidelity]:
        """Dedicated fit_and_predict hook that can answer `fidelity`, if any.

        The exact hook wins; otherwise the cheapest richer declared hook.
        """
        f = Fidelity.coerce(fidelity)
        if f in self.fit_and_predict:
            return f
        for richer in _DERIVABLE_FROM[f]:
            if richer in self.fit_and_predict:
                return richer
        return None

    def route(self, fidelity: FidelityLike) -> Fidelity:
        src = self.source(fidelity)
        if src is None:
            f = Fidelity.coerce(fidelity)
            raise CapabilityError(
                f"Cannot produce {f.value} predictions: the model implements "
                f"{sorted(x.value for x in self.predict)} and none of them can "
                f"derive {f.value}."
            )
        return src

    def supports(self, fidelity: FidelityLike) -> bool:
        """True if `fidelity` is reachable through predict or through fit_and_predict."""
        return self.source(fidelity) is not None or self.fit_and_predict_source(fidelity) is not None

    def require(self, fidelity: FidelityLike) -> None:
        if not self.supports(fidelity):
            f = Fidelity.coerce(fidelity)
            declared = sorted({x.value for x in self.predict | self.fit_and_predict})
            raise CapabilityError(
                f"Cannot produce {f.value} predictions: the model implements "
                f"{declared} and none of them can derive {f.value}."
            )

    @property
    def provides_uncertainty(self) -> bool:
        return self.supports(Fidelity.MARGINAL)


def derive_prediction(result: Any, source: Fidelity, target: Fidelity) -> Any:
    """Reduce a prediction computed at `source` fidelity to `target` fidelity."""
    if source == target:
        return result
    if target.rank > source.rank:
        raise CapabilityError(f"Cannot derive {target.value} from {source.value}.")
    if target == Fidelity.MEAN:
        if isinstance(result, (MarginalDistribution, JointDistribution)):
            return np.array(result.mean, dtype=float, copy=True)
        raise TypeError(f"Expected a distribution, got {type(result).__name__}.")
    # marginal from joint
    if not isinstance(result, JointDistribution):
        raise TypeError(f"Expected a JointDistribution, got {type(result).__name__}.")
    return result.marginal()

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from .distribution import MarginalDistribution
from .errors import PreconditionError
from .util import is_sequence, take

__all__ = ["RegressionDataset", "make_toy_linear_data"]


@dataclass(frozen=True)
class RegressionDataset:
    """Features paired with a target distribution plus free-form metadata.

    Features are opaque to the framework: any sequence works, as long as the
    model being fit understands the elements. Bare target vectors are wrapped
    in a zero-variance MarginalDistribution.
    """

    features: Any
    targets: MarginalDistribution
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not is_sequence(self.features):
            raise TypeError("features must be a list, tuple or numpy array.")
        if not isinstance(self.targets, MarginalDistribution):
            object.__setattr__(self, "targets", MarginalDistribution(self.targets))
        if len(self.features) != len(self.targets):
            raise PreconditionError(
                f"features length {len(self.features)} != targets length {len(self.targets)}."
            )

    @staticmethod
    def from_arrays(
        features: Any,
        y: Any,
        variance: Optional[Any] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> "RegressionDataset":
        return RegressionDataset(
            features=features,
            targets=MarginalDistribution(y, variance),
            metadata=dict(metadata or {}),
        )

    def size(self) -> int:
        return len(self.features)

    def __len__(self) -> int:
        return self.size()

    def subset(self, indices: Sequence[int]) -> "RegressionDataset":
        """Rows at `indices`, in that order."""
        return RegressionDataset(
            features=take(self.features, indices),
            targets=self.targets.subset(indices),
            metadata=dict(self.metadata),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegressionDataset):
            return NotImplemented
        return bool(
            len(self.features) == len(other.features)
            and all(np.all(a == b) for a, b in zip(self.features, other.features))
            and self.targets == other.targets
            and self.metadata == other.metadata
        )

    __hash__ = None  # type: ignore[assignment]


def make_toy_linear_data(
    slope: float = 5.0,
    intercept: float = 1.0,
    sigma: float = 0.1,
    n: int = 10,
    seed: Optional[int] = 0,
) -> RegressionDataset:
    """Noisy samples of y = slope * x + intercept on x in [0, 10]."""
    rng = np.random.default_rng(seed)
    x = np.linspace(0.0, 10.0, int(n))
    y = slope * x + intercept + rng.normal(0.0, sigma, size=x.shape)
    return RegressionDataset.from_arrays(
        x, y, metadata={"source": "toy_linear"}
    )

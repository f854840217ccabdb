from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np

from .errors import PreconditionError

try:
    from uncertainties import unumpy as unp
except Exception:  # pragma: no cover - optional at import time
    unp = None


__all__ = ["MarginalDistribution", "JointDistribution"]


class MarginalDistribution:
    """Independent Gaussian per element: a mean vector and a variance vector.

    ``variance=None`` means the values are known exactly (zero variance).
    """

    __slots__ = ("mean", "variance")

    def __init__(self, mean: Any, variance: Optional[Any] = None):
        mean = np.asarray(mean, dtype=float).reshape(-1)
        if variance is None:
            var = np.zeros_like(mean)
        else:
            var = np.asarray(variance, dtype=float)
            if var.shape == ():
                var = np.full(mean.shape, float(var))
            var = var.reshape(-1)
        if var.shape != mean.shape:
            raise PreconditionError(
                f"variance length {var.shape[0]} != mean length {mean.shape[0]}."
            )
        self.mean = mean
        self.variance = var

    def size(self) -> int:
        return int(self.mean.shape[0])

    def __len__(self) -> int:
        return self.size()

    @property
    def std(self) -> np.ndarray:
        return np.sqrt(np.clip(self.variance, 0.0, np.inf))

    @property
    def u(self):
        """Return an uncertainties uarray of mean +/- std."""
        if unp is None:
            raise RuntimeError("uncertainties package is not available.")
        return unp.uarray(self.mean, self.std)

    def subset(self, indices: Sequence[int]) -> "MarginalDistribution":
        idx = np.asarray(indices, dtype=int)
        return MarginalDistribution(self.mean[idx], self.variance[idx])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MarginalDistribution):
            return NotImplemented
        return bool(
            np.array_equal(self.mean, other.mean)
            and np.array_equal(self.variance, other.variance)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"MarginalDistribution(size={self.size()})"


class JointDistribution:
    """Multivariate Gaussian: a mean vector and a full covariance matrix."""

    __slots__ = ("mean", "covariance")

    def __init__(self, mean: Any, covariance: Any):
        mean = np.asarray(mean, dtype=float).reshape(-1)
        cov = np.asarray(covariance, dtype=float)
        n = mean.shape[0]
        if cov.shape != (n, n):
            raise PreconditionError(
                f"covariance shape {cov.shape} does not match mean length {n}."
            )
        self.mean = mean
        self.covariance = cov

    def size(self) -> int:
        return int(self.mean.shape[0])

    def __len__(self) -> int:
        return self.size()

    def marginal(self) -> MarginalDistribution:
        """Drop the off-diagonal terms."""
        return MarginalDistribution(self.mean, np.diag(self.covariance).copy())

    def subset(self, indices: Sequence[int]) -> "JointDistribution":
        idx = np.asarray(indices, dtype=int)
        return JointDistribution(self.mean[idx], self.covariance[np.ix_(idx, idx)])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JointDistribution):
            return NotImplemented
        return bool(
            np.array_equal(self.mean, other.mean)
            and np.array_equal(self.covariance, other.covariance)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"JointDistribution(size={self.size()})"

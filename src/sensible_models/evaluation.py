from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np
from scipy.linalg import cho_factor, cho_solve

from .capabilities import Fidelity
from .dataset import RegressionDataset
from .distribution import JointDistribution, MarginalDistribution
from .errors import PreconditionError
from .folds import LeaveOneOut

__all__ = [
    "PredictionMetric",
    "CrossValidatedMetric",
    "negative_log_likelihood",
    "marginal_negative_log_likelihood",
    "root_mean_square_error",
    "leave_one_out_likelihood",
]

_LOG_2PI = math.log(2.0 * math.pi)


@dataclass(frozen=True)
class PredictionMetric:
    """A score computed from one prediction and the matching targets.

    `fidelity` tells callers what kind of prediction to hand over, so
    cross-validation only computes as much as the metric needs.
    """

    fidelity: Fidelity
    func: Callable[[Any, MarginalDistribution], float]
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "fidelity", Fidelity.coerce(self.fidelity))

    def __call__(self, prediction: Any, targets: MarginalDistribution) -> float:
        if len(prediction) != len(targets):
            raise PreconditionError(
                f"{self.name or 'metric'}: {len(prediction)} predictions for {len(targets)} targets."
            )
        return float(self.func(prediction, targets))


def _joint_nll(pred: JointDistribution, targets: MarginalDistribution) -> float:
    """-log N(targets.mean | pred.mean, pred.covariance + diag(targets.variance))."""
    resid = targets.mean - pred.mean
    cov = pred.covariance + np.diag(targets.variance)
    try:
        c = cho_factor(cov, lower=True, check_finite=True)
    except (np.linalg.LinAlgError, ValueError):
        return math.nan
    log_det = 2.0 * float(np.sum(np.log(np.diag(c[0]))))
    quad = float(resid @ cho_solve(c, resid))
    return 0.5 * (quad + log_det + resid.size * _LOG_2PI)


def _marginal_nll(pred: MarginalDistribution, targets: MarginalDistribution) -> float:
    resid = targets.mean - pred.mean
    var = pred.variance + targets.variance
    if np.any(~np.isfinite(var)) or np.any(var <= 0.0):
        return math.nan
    return float(0.5 * np.sum(resid * resid / var + np.log(var) + _LOG_2PI))


def _rmse(pred: np.ndarray, targets: MarginalDistribution) -> float:
    resid = targets.mean - np.asarray(pred, dtype=float)
    return float(np.sqrt(np.mean(resid * resid)))


negative_log_likelihood = PredictionMetric(Fidelity.JOINT, _joint_nll, "negative_log_likelihood")
marginal_negative_log_likelihood = PredictionMetric(
    Fidelity.MARGINAL, _marginal_nll, "marginal_negative_log_likelihood"
)
root_mean_square_error = PredictionMetric(Fidelity.MEAN, _rmse, "root_mean_square_error")


@dataclass(frozen=True)
class CrossValidatedMetric:
    """Model-level metric: cross-validate, score each fold, aggregate.

    Called as ``metric(model, dataset) -> float``; this is the shape the
    tuner expects.
    """

    metric: PredictionMetric
    strategy: Any = field(default_factory=LeaveOneOut)
    aggregate: Callable[[np.ndarray], float] = np.mean
    parallel: Any = None

    @property
    def fidelity(self) -> Fidelity:
        return self.metric.fidelity

    def scores(self, model: Any, dataset: RegressionDataset) -> np.ndarray:
        return model.cross_validate(parallel=self.parallel).scores(self.metric, dataset, self.strategy)

    def __call__(self, model: Any, dataset: RegressionDataset) -> float:
        return float(self.aggregate(self.scores(model, dataset)))


# Single-row folds have no off-diagonal terms, so marginal predictions suffice.
leave_one_out_likelihood = CrossValidatedMetric(marginal_negative_log_likelihood, LeaveOneOut())

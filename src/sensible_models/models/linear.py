from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from ..capabilities import Capabilities
from ..distribution import MarginalDistribution
from ..model import Model
from ..params import Parameter
from ..priors import PositivePrior
from ..util import as_float_features


@dataclass(frozen=True)
class LeastSquaresFit:
    coefficients: np.ndarray  # (intercept, slope)
    coefficient_covariance: np.ndarray


def _design(x: np.ndarray) -> np.ndarray:
    return np.column_stack([np.ones_like(x), x])


class LeastSquaresRegression(Model):
    """Weighted straight-line fit y = intercept + slope * x.

    Only marginal predictions are implemented; the mean is read off them and
    joint predictions are unavailable.
    """

    name = "least_squares"
    capabilities = Capabilities(predict={"marginal"})
    fit_state_type = LeastSquaresFit

    def default_params(self) -> Dict[str, Parameter]:
        return {"sigma_noise": Parameter(1.0, PositivePrior())}

    def _noise_variance(self) -> float:
        return self.get_param_value("sigma_noise") ** 2

    def _fit_impl(self, features: Any, targets: MarginalDistribution) -> LeastSquaresFit:
        x = as_float_features(features)
        h = _design(x)
        w = 1.0 / (self._noise_variance() + targets.variance)
        information = h.T @ (w[:, None] * h)
        # Singular for fewer than two distinct x values.
        cov = np.linalg.inv(information)
        coef = cov @ (h.T @ (w * targets.mean))
        return LeastSquaresFit(coefficients=coef, coefficient_covariance=cov)

    def _predict_marginal(self, fit_state: LeastSquaresFit, features: Any) -> MarginalDistribution:
        h = _design(as_float_features(features))
        mean = h @ fit_state.coefficients
        var = np.einsum("ij,jk,ik->i", h, fit_state.coefficient_covariance, h) + self._noise_variance()
        return MarginalDistribution(mean, var)

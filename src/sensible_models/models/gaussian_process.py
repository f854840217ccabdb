from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import numpy as np
from scipy.linalg import cho_factor, cho_solve, solve_triangular

from ..capabilities import Capabilities
from ..distribution import JointDistribution, MarginalDistribution
from ..model import Model
from ..params import Parameter
from ..priors import PositivePrior
from ..util import as_float_features


@dataclass(frozen=True)
class GaussianProcessFit:
    """Training features, lower Cholesky factor of the training covariance and
    the information vector ``K^-1 y``."""

    features: np.ndarray
    cholesky: np.ndarray
    information: np.ndarray


class GaussianProcessRegression(Model):
    """Gaussian process on scalar features.

    Covariance:

        k(x, x') = sigma_constant^2
                 + sigma_linear^2 * x * x'
                 + sigma_squared_exponential^2 * exp(-(x - x')^2 / (2 length_scale^2))

    plus ``sigma_noise^2`` on the diagonal. Predictions are for new
    observations, so they include the noise term.
    """

    name = "gaussian_process"
    capabilities = Capabilities(predict={"mean", "marginal", "joint"})
    fit_state_type = GaussianProcessFit

    def default_params(self) -> Dict[str, Parameter]:
        return {
            "sigma_constant": Parameter(10.0, PositivePrior()),
            "sigma_linear": Parameter(10.0, PositivePrior()),
            "sigma_squared_exponential": Parameter(1.0, PositivePrior()),
            "length_scale": Parameter(2.0, PositivePrior()),
            "sigma_noise": Parameter(0.5, PositivePrior()),
        }

    # ---- covariance ----
    def covariance(self, x: Any, y: Any) -> np.ndarray:
        x = as_float_features(x)
        y = as_float_features(y)
        p = self.param_values()
        d = x[:, None] - y[None, :]
        ell = p["length_scale"]
        return (
            p["sigma_constant"] ** 2
            + p["sigma_linear"] ** 2 * np.outer(x, y)
            + p["sigma_squared_exponential"] ** 2 * np.exp(-0.5 * d * d / (ell * ell))
        )

    def _noise_variance(self) -> float:
        return self.get_param_value("sigma_noise") ** 2

    # ---- model hooks ----
    def _fit_impl(self, features: Any, targets: MarginalDistribution) -> GaussianProcessFit:
        x = as_float_features(features)
        cov = self.covariance(x, x)
        cov[np.diag_indices_from(cov)] += self._noise_variance() + targets.variance
        if not np.all(np.isfinite(cov)):
            raise np.linalg.LinAlgError("training covariance is not finite")
        # Raises LinAlgError when the covariance is not positive definite.
        c, lower = cho_factor(cov, lower=True)
        information = cho_solve((c, lower), targets.mean)
        return GaussianProcessFit(
            features=x,
            cholesky=np.tril(c),
            information=np.asarray(information, dtype=float),
        )

    def _cross(self, fit_state: GaussianProcessFit, features: Any) -> np.ndarray:
        return self.covariance(fit_state.features, features)

    def _predict_mean(self, fit_state: GaussianProcessFit, features: Any) -> np.ndarray:
        return self._cross(fit_state, features).T @ fit_state.information

    def _predict_marginal(self, fit_state: GaussianProcessFit, features: Any) -> MarginalDistribution:
        x = as_float_features(features)
        cross = self._cross(fit_state, x)
        v = solve_triangular(fit_state.cholesky, cross, lower=True)
        prior_var = np.diag(self.covariance(x, x)) + self._noise_variance()
        return MarginalDistribution(cross.T @ fit_state.information, prior_var - np.sum(v * v, axis=0))

    def _predict_joint(self, fit_state: GaussianProcessFit, features: Any) -> JointDistribution:
        x = as_float_features(features)
        cross = self._cross(fit_state, x)
        v = solve_triangular(fit_state.cholesky, cross, lower=True)
        cov = self.covariance(x, x) - v.T @ v
        cov[np.diag_indices_from(cov)] += self._noise_variance()
        return JointDistribution(cross.T @ fit_state.information, cov)

    # ---- fit-state hooks ----
    def fit_states_equal(self, a: GaussianProcessFit, b: GaussianProcessFit) -> bool:
        return bool(
            np.array_equal(a.features, b.features)
            and np.array_equal(a.cholesky, b.cholesky)
            and np.array_equal(a.information, b.information)
        )

    def fit_state_to_dict(self, fit_state: GaussianProcessFit) -> Dict[str, Any]:
        return {
            "features": fit_state.features.tolist(),
            "cholesky": fit_state.cholesky.tolist(),
            "information": fit_state.information.tolist(),
        }

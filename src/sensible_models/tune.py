"""Hyperparameter tuning against a cross-validated objective.

The optimizer only ever sees an unconstrained real vector, one entry per
non-fixed parameter. Each entry is mapped back through its prior's
transform before the model is evaluated, so a positivity prior can't be
violated by a proposal. The objective is

    aggregate(metric(model, dataset) for dataset in datasets) - sum(prior log-likelihoods)

and is NaN for anything numerically invalid. The backend turns NaN into a
penalty and keeps searching.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .backends import get_backend
from .dataset import RegressionDataset
from .diagnostics import Diagnostics
from .errors import PreconditionError
from .params import Parameter

__all__ = ["OptimizerConfig", "TuneResult", "Tuner", "get_tuner", "mean_aggregator"]

logger = logging.getLogger(__name__)

# Failures that mean "this candidate is numerically bad", not "the caller is wrong".
_NUMERICAL_ERRORS = (np.linalg.LinAlgError, FloatingPointError, OverflowError, ZeroDivisionError)


def mean_aggregator(scores: Sequence[float]) -> float:
    return float(np.mean(np.asarray(scores, dtype=float)))


@dataclass(frozen=True)
class OptimizerConfig:
    """How to run the optimizer; fixed when the tuner is built.

    backend         : name in sensible_models.backends (default: scipy.minimize)
    max_evaluations : objective evaluation budget
    tolerance       : convergence tolerance forwarded to the backend
    seed            : seed for stochastic backends
    options         : backend-specific options (see each backend's docstring)
    """

    backend: str = "scipy.minimize"
    max_evaluations: int = 200
    tolerance: float = 1e-6
    seed: Optional[int] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if int(self.max_evaluations) < 1:
            raise ValueError("max_evaluations must be >= 1.")


@dataclass(frozen=True)
class TuneResult:
    params: Dict[str, Parameter]
    objective: float
    initial_objective: float
    n_evaluations: int
    n_invalid: int
    success: bool
    message: str
    backend: str
    stats: Dict[str, Any] = field(default_factory=dict)


class Tuner:
    """Search a model's free parameters to minimize a cross-validated objective.

    `metric` is a model-level metric ``(model, dataset) -> float``, e.g.
    ``leave_one_out_likelihood``. The tuner evaluates candidates on its own
    copy of the model; the caller applies the returned parameters with
    ``model.set_params(tuner.tune())``.
    """

    def __init__(
        self,
        model: Any,
        metric: Callable[[Any, RegressionDataset], float],
        datasets: Union[RegressionDataset, Sequence[RegressionDataset]],
        aggregator: Callable[[Sequence[float]], float] = mean_aggregator,
        config: Optional[OptimizerConfig] = None,
        *,
        diagnostics: Optional[Diagnostics] = None,
    ):
        if isinstance(datasets, RegressionDataset):
            datasets = [datasets]
        self.datasets: List[RegressionDataset] = list(datasets)
        if not self.datasets:
            raise PreconditionError("Tuning requires at least one dataset.")
        fidelity = getattr(metric, "fidelity", None)
        if fidelity is not None:
            model.require(fidelity)

        self.metric = metric
        self.aggregator = aggregator
        self.config = config if config is not None else OptimizerConfig()
        self.diagnostics = diagnostics if diagnostics is not None else model.diagnostics

        self._model = model.snapshot()
        self._initial_params = model.get_params()
        self.free_names: Tuple[str, ...] = tuple(
            name for name, p in self._initial_params.items() if not p.is_fixed
        )
        self.result: Optional[TuneResult] = None
        self._reset()

    def _reset(self) -> None:
        self._n_eval = 0
        self._n_invalid = 0
        self._best_x: Optional[np.ndarray] = None
        self._best_value = math.inf

    # ---- parameter <-> vector ----
    def initial_vector(self) -> np.ndarray:
        return np.asarray(
            [
                self._initial_params[n].effective_prior.to_unconstrained(self._initial_params[n].value)
                for n in self.free_names
            ],
            dtype=float,
        )

    def to_params(self, x: Any) -> Dict[str, Parameter]:
        """Map an unconstrained vector back to a full parameter mapping."""
        x = np.asarray(x, dtype=float).reshape((-1,))
        if x.shape[0] != len(self.free_names):
            raise ValueError(f"Expected {len(self.free_names)} values, got {x.shape[0]}.")
        out = dict(self._initial_params)
        for u, name in zip(x.tolist(), self.free_names):
            p = out[name]
            try:
                value = p.effective_prior.from_unconstrained(u)
            except OverflowError:
                value = math.nan
            out[name] = Parameter(value, p.prior)
        return out

    def search_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Unconstrained search bounds from ``config.options['bounds']`` (model space).

        A decreasing transform maps the model-space upper bound to the lower
        end of the unconstrained interval.
        """
        user = dict(self.config.options.get("bounds", None) or {})
        lo = np.full(len(self.free_names), -np.inf)
        hi = np.full(len(self.free_names), np.inf)
        for j, name in enumerate(self.free_names):
            if name not in user:
                continue
            prior = self._initial_params[name].effective_prior
            b_lo, b_hi = user[name]
            if prior.transform_decreasing:
                b_lo, b_hi = b_hi, b_lo
            if b_lo is not None:
                lo[j] = prior.to_unconstrained(b_lo)
            if b_hi is not None:
                hi[j] = prior.to_unconstrained(b_hi)
            if lo[j] > hi[j]:
                lo[j], hi[j] = hi[j], lo[j]
        return lo, hi

    # ---- objective ----
    def _invalid(self, reason: str) -> float:
        self._n_invalid += 1
        self.diagnostics.record("invalid_evaluation", reason=reason, evaluation=self._n_eval)
        return math.nan

    def objective(self, x: Any) -> float:
        """Objective at an unconstrained vector; NaN when the candidate is invalid."""
        x = np.asarray(x, dtype=float).reshape((-1,))
        self._n_eval += 1
        params = self.to_params(x)

        bad = [n for n, p in params.items() if not p.is_valid()]
        if bad:
            return self._invalid(f"outside prior support: {bad}")

        self._model.set_params(params)
        prior_ll = self._model.prior_log_likelihood()
        if not math.isfinite(prior_ll):
            return self._invalid("non-finite prior log-likelihood")

        try:
            with np.errstate(all="ignore"):
                scores = [float(self.metric(self._model, ds)) for ds in self.datasets]
                value = float(self.aggregator(scores)) - prior_ll
        except _NUMERICAL_ERRORS as e:
            return self._invalid(f"{type(e).__name__}: {e}")

        if not math.isfinite(value):
            return self._invalid("non-finite objective")

        logger.debug("evaluation %d: objective=%.8g", self._n_eval, value, extra={"evaluation": self._n_eval})
        if value < self._best_value:
            self._best_value = value
            self._best_x = x.copy()
        return value

    # ---- driver ----
    def tune(self) -> Dict[str, Parameter]:
        """Run the optimizer and return the best parameters found."""
        self._reset()
        cfg = self.config
        x0 = self.initial_vector()
        initial = self.objective(x0)
        logger.info(
            "tuning %s: %d free parameter(s) %s, %d dataset(s), backend=%s, max_evaluations=%d",
            self._model.name,
            len(self.free_names),
            list(self.free_names),
            len(self.datasets),
            cfg.backend,
            cfg.max_evaluations,
        )

        stats: Dict[str, Any] = {}
        success, message = True, "no free parameters"
        if self.free_names:
            res = get_backend(cfg.backend).minimize(
                objective=self.objective,
                x0=x0,
                bounds=self.search_bounds(),
                config=cfg,
            )
            success, message, stats = res.success, res.message, dict(res.stats)

        if self._best_x is None:
            logger.warning("tuning %s found no valid evaluation; keeping initial parameters", self._model.name)
            params, best_value = dict(self._initial_params), initial
            success = False
        else:
            params, best_value = self.to_params(self._best_x), self._best_value

        self.result = TuneResult(
            params=params,
            objective=float(best_value),
            initial_objective=float(initial),
            n_evaluations=self._n_eval,
            n_invalid=self._n_invalid,
            success=bool(success),
            message=str(message),
            backend=cfg.backend,
            stats=stats,
        )
        logger.info(
            "tuned %s: objective %.6g -> %.6g after %d evaluations (%d invalid)",
            self._model.name,
            initial,
            best_value,
            self._n_eval,
            self._n_invalid,
        )
        return params


def get_tuner(
    model: Any,
    metric: Callable[[Any, RegressionDataset], float],
    datasets: Union[RegressionDataset, Sequence[RegressionDataset]],
    aggregator: Callable[[Sequence[float]], float] = mean_aggregator,
    config: Optional[OptimizerConfig] = None,
) -> Tuner:
    return Tuner(model, metric, datasets, aggregator, config)

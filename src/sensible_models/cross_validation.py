from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from .capabilities import Fidelity, FidelityLike, derive_prediction
from .dataset import RegressionDataset
from .distribution import JointDistribution, MarginalDistribution
from .errors import ConsistencyError, PreconditionError
from .fit_model import Prediction
from .folds import (
    FoldIndexer,
    LeaveOneOut,
    RegressionFold,
    as_indexer,
    dataset_size_from_indexer,
    folds_from_indexer,
)

__all__ = [
    "CrossValidation",
    "get_predictions",
    "predict_folds",
    "get_means",
    "get_marginals",
    "get_joints",
    "concatenate_mean_predictions",
    "concatenate_marginal_predictions",
    "concatenate_joint_predictions",
    "cross_validated_scores",
]

logger = logging.getLogger(__name__)

Parallel = Union[None, bool, int, str]


def _n_workers(parallel: Parallel) -> Optional[int]:
    """None means run sequentially; 0 means let the executor decide."""
    if parallel is None or parallel is False:
        return None
    if parallel is True or parallel == "auto":
        return 0
    if isinstance(parallel, int):
        return None if parallel <= 1 else int(parallel)
    raise ValueError(f"parallel must be None, 'auto' or an int, got {parallel!r}.")


def _map_folds(
    func: Callable[[RegressionFold], Any],
    folds: Sequence[RegressionFold],
    parallel: Parallel,
) -> Dict[str, Any]:
    """Apply func to every fold; the result follows fold order regardless of completion order."""
    workers = _n_workers(parallel)
    if workers is None or len(folds) <= 1:
        return {fold.name: func(fold) for fold in folds}

    with ThreadPoolExecutor(max_workers=workers or None) as pool:
        futures = {fold.name: pool.submit(func, fold) for fold in folds}
        # Collect in fold order from this thread only; one writer per key.
        return {name: fut.result() for name, fut in futures.items()}


# ---- per-fold predictions ----
def get_predictions(
    model: Any,
    folds: Sequence[RegressionFold],
    *,
    parallel: Parallel = None,
) -> Dict[str, Prediction]:
    """Fit every fold's training set and return lazy predictions on its test set."""

    def _one(fold: RegressionFold) -> Prediction:
        fit = model.snapshot().fit(fold.train_dataset)
        return fit.predict(fold.test_dataset.features)

    return _map_folds(_one, folds, parallel)


def predict_folds(
    model: Any,
    folds: Sequence[RegressionFold],
    fidelity: FidelityLike,
    *,
    parallel: Parallel = None,
) -> Dict[str, Any]:
    """Concrete per-fold predictions at `fidelity`, via the model's fit_and_predict."""
    f = Fidelity.coerce(fidelity)
    model.require(f)

    def _one(fold: RegressionFold) -> Any:
        return model.snapshot().fit_and_predict(
            fold.train_dataset.features,
            fold.train_dataset.targets,
            fold.test_dataset.features,
            f,
        )

    return _map_folds(_one, folds, parallel)


def _at_fidelity(pred: Any, fidelity: Fidelity) -> Any:
    if isinstance(pred, Prediction):
        return pred.get(fidelity)
    if isinstance(pred, JointDistribution):
        return derive_prediction(pred, Fidelity.JOINT, fidelity)
    if isinstance(pred, MarginalDistribution):
        return derive_prediction(pred, Fidelity.MARGINAL, fidelity)
    if fidelity != Fidelity.MEAN:
        raise TypeError(f"Cannot read a {fidelity.value} prediction from {type(pred).__name__}.")
    return np.asarray(pred, dtype=float)


def get_means(predictions: Mapping[str, Any]) -> Dict[str, np.ndarray]:
    return {k: _at_fidelity(v, Fidelity.MEAN) for k, v in predictions.items()}


def get_marginals(predictions: Mapping[str, Any]) -> Dict[str, MarginalDistribution]:
    return {k: _at_fidelity(v, Fidelity.MARGINAL) for k, v in predictions.items()}


def get_joints(predictions: Mapping[str, Any]) -> Dict[str, JointDistribution]:
    return {k: _at_fidelity(v, Fidelity.JOINT) for k, v in predictions.items()}


# ---- reassembly ----
def _scatter_plan(indexer: FoldIndexer, per_fold: Mapping[str, Any], size: Optional[int]) -> int:
    """Check that per-fold outputs can be scattered back exactly once; return n."""
    if set(indexer) != set(per_fold):
        raise ConsistencyError(
            f"Predictions for folds {sorted(per_fold)} do not match indexer folds {sorted(indexer)}."
        )
    n = dataset_size_from_indexer(indexer)
    if size is not None and int(size) != n:
        raise ConsistencyError(f"Indexer covers {n} rows but the dataset has {size}.")
    written = np.zeros(n, dtype=int)
    for name, indices in indexer.items():
        if len(per_fold[name]) != len(indices):
            raise ConsistencyError(
                f"Fold {name!r} has {len(per_fold[name])} predictions for {len(indices)} rows."
            )
        idx = np.asarray(indices, dtype=int)
        if idx.size and (idx.min() < 0 or idx.max() >= n):
            raise ConsistencyError(f"Fold {name!r} writes outside [0, {n}).")
        np.add.at(written, idx, 1)
    if np.any(written != 1):
        raise ConsistencyError(
            "Fold reassembly does not write every row exactly once "
            f"(rows written {written.tolist()})."
        )
    return n


def concatenate_mean_predictions(
    indexer: FoldIndexer,
    means: Mapping[str, Any],
    *,
    size: Optional[int] = None,
) -> np.ndarray:
    """Put each fold's predicted means back at their original row positions."""
    means = get_means(means)
    n = _scatter_plan(indexer, means, size)
    out = np.empty(n, dtype=float)
    for name, indices in indexer.items():
        out[np.asarray(indices, dtype=int)] = means[name]
    return out


def concatenate_marginal_predictions(
    indexer: FoldIndexer,
    predictions: Mapping[str, Any],
    *,
    size: Optional[int] = None,
) -> MarginalDistribution:
    """Reassemble per-fold marginals.

    Folds are fit independently, so any covariance between rows in
    different folds is taken to be zero.
    """
    marginals = get_marginals(predictions)
    n = _scatter_plan(indexer, marginals, size)
    mean = np.empty(n, dtype=float)
    variance = np.empty(n, dtype=float)
    for name, indices in indexer.items():
        idx = np.asarray(indices, dtype=int)
        mean[idx] = marginals[name].mean
        variance[idx] = marginals[name].variance
    return MarginalDistribution(mean, variance)


def concatenate_joint_predictions(
    indexer: FoldIndexer,
    predictions: Mapping[str, Any],
    *,
    size: Optional[int] = None,
) -> JointDistribution:
    """Reassemble per-fold joints into one block-diagonal joint.

    Within-fold covariance is kept; cross-fold blocks are zero.
    """
    joints = get_joints(predictions)
    n = _scatter_plan(indexer, joints, size)
    mean = np.empty(n, dtype=float)
    cov = np.zeros((n, n), dtype=float)
    for name, indices in indexer.items():
        idx = np.asarray(indices, dtype=int)
        mean[idx] = joints[name].mean
        cov[np.ix_(idx, idx)] = joints[name].covariance
    return JointDistribution(mean, cov)


# ---- scoring ----
def cross_validated_scores(
    metric: Callable[[Any, MarginalDistribution], float],
    folds: Sequence[RegressionFold],
    predictions: Mapping[str, Any],
) -> np.ndarray:
    """Score every fold with `metric`; one entry per fold, in fold order.

    `metric` may carry a ``fidelity`` attribute (see PredictionMetric);
    otherwise joint predictions are passed.
    """
    fidelity = Fidelity.coerce(getattr(metric, "fidelity", Fidelity.JOINT))
    scores = np.empty(len(folds), dtype=float)
    for i, fold in enumerate(folds):
        if fold.name not in predictions:
            raise ConsistencyError(f"No prediction for fold {fold.name!r}.")
        pred = _at_fidelity(predictions[fold.name], fidelity)
        if len(pred) != len(fold.test_dataset):
            raise PreconditionError(
                f"Fold {fold.name!r}: {len(pred)} predictions for {len(fold.test_dataset)} test rows."
            )
        scores[i] = float(metric(pred, fold.test_dataset.targets))
    return scores


class CrossValidation:
    """Cross-validation bound to one model.

    `strategy` everywhere is either a ready FoldIndexer or a callable
    ``dataset -> FoldIndexer`` such as LeaveOneOut() or KFold(5); the
    default is leave-one-out.
    """

    def __init__(self, model: Any, *, parallel: Parallel = None):
        self.model = model
        self.parallel = parallel

    def indexer(self, dataset: RegressionDataset, strategy: Any = None) -> FoldIndexer:
        return as_indexer(dataset, LeaveOneOut() if strategy is None else strategy)

    def folds(self, dataset: RegressionDataset, strategy: Any = None) -> List[RegressionFold]:
        return folds_from_indexer(dataset, self.indexer(dataset, strategy))

    def predictions(self, dataset: RegressionDataset, strategy: Any = None) -> Dict[str, Prediction]:
        folds = self.folds(dataset, strategy)
        logger.debug("fitting %s on %d folds", self.model.name, len(folds))
        return get_predictions(self.model, folds, parallel=self.parallel)

    def _reassembled(self, dataset: RegressionDataset, strategy: Any, fidelity: Fidelity, concat: Callable) -> Any:
        self.model.require(fidelity)
        indexer = self.indexer(dataset, strategy)
        folds = folds_from_indexer(dataset, indexer)
        preds = predict_folds(self.model, folds, fidelity, parallel=self.parallel)
        return concat(indexer, preds, size=len(dataset))

    def means(self, dataset: RegressionDataset, strategy: Any = None) -> np.ndarray:
        return self._reassembled(dataset, strategy, Fidelity.MEAN, concatenate_mean_predictions)

    def marginals(self, dataset: RegressionDataset, strategy: Any = None) -> MarginalDistribution:
        return self._reassembled(dataset, strategy, Fidelity.MARGINAL, concatenate_marginal_predictions)

    def joints(self, dataset: RegressionDataset, strategy: Any = None) -> JointDistribution:
        return self._reassembled(dataset, strategy, Fidelity.JOINT, concatenate_joint_predictions)

    def scores(self, metric: Any, dataset: RegressionDataset, strategy: Any = None) -> np.ndarray:
        """Per-fold metric scores in fold order; aggregation is up to the caller."""
        fidelity = Fidelity.coerce(getattr(metric, "fidelity", Fidelity.JOINT))
        self.model.require(fidelity)
        folds = self.folds(dataset, strategy)
        preds = predict_folds(self.model, folds, fidelity, parallel=self.parallel)
        return cross_validated_scores(metric, folds, preds)

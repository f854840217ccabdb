"""Partitioning a dataset into named cross-validation folds.

A FoldIndexer maps fold name -> the ordered dataset positions in that fold's
test set. Every generator here returns a partition: test sets are disjoint
and together cover each row exactly once. Iteration order of the indexer is
the order fold scores are reported in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional
from warnings import warn

import numpy as np

from .dataset import RegressionDataset
from .errors import PreconditionError

__all__ = [
    "FoldIndexer",
    "RegressionFold",
    "leave_one_out_indexer",
    "k_fold_indexer",
    "leave_one_group_out_indexer",
    "validate_indexer",
    "dataset_size_from_indexer",
    "folds_from_indexer",
    "LeaveOneOut",
    "KFold",
    "LeaveOneGroupOut",
]

FoldIndexer = Dict[str, List[int]]


@dataclass(frozen=True)
class RegressionFold:
    train_dataset: RegressionDataset
    test_dataset: RegressionDataset
    name: str
    test_indices: List[int]


def leave_one_out_indexer(dataset: RegressionDataset) -> FoldIndexer:
    """One fold per row, named by its position."""
    return {str(i): [i] for i in range(len(dataset))}


def k_fold_indexer(
    dataset: RegressionDataset,
    k: int,
    *,
    shuffle: bool = False,
    seed: Optional[int] = None,
) -> FoldIndexer:
    """Split rows into k contiguous (or shuffled) groups of near-equal size.

    The first ``n % k`` folds get one extra row. Test indices inside each
    fold are sorted so the fold layout does not depend on the shuffle order.
    """
    n = len(dataset)
    k = int(k)
    if k < 1:
        raise PreconditionError("k_fold_indexer requires k >= 1.")
    if n == 0:
        raise PreconditionError("Cannot build folds for an empty dataset.")
    if k > n:
        warn(f"Requested {k} folds for {n} rows; using {n} folds.", UserWarning, stacklevel=2)
        k = n

    order = np.arange(n)
    if shuffle:
        order = np.random.default_rng(seed).permutation(n)

    indexer: FoldIndexer = {}
    for i, chunk in enumerate(np.array_split(order, k)):
        indexer[str(i)] = sorted(int(j) for j in chunk)
    return indexer


def leave_one_group_out_indexer(
    dataset: RegressionDataset,
    group_key: Callable[[Any], Hashable],
) -> FoldIndexer:
    """One fold per distinct ``group_key(feature)``, in sorted group order."""
    groups: Dict[Hashable, List[int]] = {}
    for i, feature in enumerate(dataset.features):
        groups.setdefault(group_key(feature), []).append(i)
    try:
        keys = sorted(groups)
    except TypeError:
        # Unorderable keys keep first-seen order, which is still deterministic.
        keys = list(groups)
    names: Dict[str, Hashable] = {}
    for key in keys:
        clash = names.setdefault(str(key), key)
        if clash is not key:
            raise PreconditionError(
                f"Groups {clash!r} and {key!r} both map to fold name {str(key)!r}; "
                "use a group_key whose values have distinct string forms."
            )
    return {str(key): groups[key] for key in keys}


def dataset_size_from_indexer(indexer: FoldIndexer) -> int:
    return int(sum(len(v) for v in indexer.values()))


def validate_indexer(indexer: FoldIndexer, n: Optional[int] = None) -> None:
    """Raise PreconditionError unless the indexer partitions range(n)."""
    if not indexer:
        raise PreconditionError("Fold indexer is empty.")
    size = dataset_size_from_indexer(indexer) if n is None else int(n)
    seen = np.zeros(size, dtype=int)
    for name, indices in indexer.items():
        if len(indices) == 0:
            raise PreconditionError(f"Fold {name!r} has no test rows.")
        for i in indices:
            i = int(i)
            if i < 0 or i >= size:
                raise PreconditionError(f"Fold {name!r} index {i} outside [0, {size}).")
            seen[i] += 1
    if np.any(seen != 1):
        dup = np.flatnonzero(seen > 1).tolist()
        missing = np.flatnonzero(seen == 0).tolist()
        raise PreconditionError(
            f"Fold indexer is not a partition (duplicated rows {dup}, missing rows {missing})."
        )


def folds_from_indexer(dataset: RegressionDataset, indexer: FoldIndexer) -> List[RegressionFold]:
    """Build train/test datasets for every fold, keeping relative row order."""
    n = len(dataset)
    validate_indexer(indexer, n)
    folds = []
    for name, test_indices in indexer.items():
        test = [int(i) for i in test_indices]
        mask = np.ones(n, dtype=bool)
        mask[test] = False
        train = np.flatnonzero(mask).tolist()
        folds.append(
            RegressionFold(
                train_dataset=dataset.subset(train),
                test_dataset=dataset.subset(test),
                name=str(name),
                test_indices=test,
            )
        )
    return folds


# ---- strategies: dataset -> FoldIndexer ----
@dataclass(frozen=True)
class LeaveOneOut:
    def __call__(self, dataset: RegressionDataset) -> FoldIndexer:
        return leave_one_out_indexer(dataset)


@dataclass(frozen=True)
class KFold:
    k: int = 5
    shuffle: bool = False
    seed: Optional[int] = None

    def __call__(self, dataset: RegressionDataset) -> FoldIndexer:
        return k_fold_indexer(dataset, self.k, shuffle=self.shuffle, seed=self.seed)


@dataclass(frozen=True)
class LeaveOneGroupOut:
    group_key: Callable[[Any], Hashable]

    def __call__(self, dataset: RegressionDataset) -> FoldIndexer:
        return leave_one_group_out_indexer(dataset, self.group_key)


def as_indexer(dataset: RegressionDataset, strategy: Any) -> FoldIndexer:
    """Accept a ready FoldIndexer or a callable producing one."""
    if isinstance(strategy, dict):
        return {str(k): [int(i) for i in v] for k, v in strategy.items()}
    if callable(strategy):
        return strategy(dataset)
    raise TypeError("strategy must be a FoldIndexer mapping or a callable(dataset) -> FoldIndexer.")

import numpy as np
import pytest

from sensible_models import KFold, LeaveOneGroupOut, LeaveOneOut, PreconditionError, RegressionDataset, make_toy_linear_data
from sensible_models.folds import (
    dataset_size_from_indexer,
    folds_from_indexer,
    k_fold_indexer,
    leave_one_out_indexer,
    validate_indexer,
)


def test_leave_one_out_indexer():
    ds = make_toy_linear_data(n=4)
    indexer = leave_one_out_indexer(ds)
    assert indexer == {"0": [0], "1": [1], "2": [2], "3": [3]}
    assert LeaveOneOut()(ds) == indexer
    assert dataset_size_from_indexer(indexer) == 4


def test_k_fold_sizes_and_order():
    ds = make_toy_linear_data(n=10)
    indexer = KFold(3)(ds)
    assert list(indexer) == ["0", "1", "2"]
    assert [len(v) for v in indexer.values()] == [4, 3, 3]
    assert indexer["0"] == [0, 1, 2, 3]
    validate_indexer(indexer, 10)


def test_shuffled_k_fold_is_seeded():
    ds = make_toy_linear_data(n=12)
    a = k_fold_indexer(ds, 4, shuffle=True, seed=7)
    b = k_fold_indexer(ds, 4, shuffle=True, seed=7)
    assert a == b
    assert a != k_fold_indexer(ds, 4)
    validate_indexer(a, 12)


def test_too_many_folds_warns():
    ds = make_toy_linear_data(n=3)
    with pytest.warns(UserWarning):
        indexer = k_fold_indexer(ds, 5)
    assert len(indexer) == 3


def test_invalid_k():
    with pytest.raises(PreconditionError):
        k_fold_indexer(make_toy_linear_data(n=3), 0)


def test_leave_one_group_out():
    ds = RegressionDataset.from_arrays(np.array([0.1, 1.2, 0.7, 2.5, 1.9]), np.zeros(5))
    indexer = LeaveOneGroupOut(lambda x: int(x))(ds)
    assert indexer == {"0": [0, 2], "1": [1, 4], "2": [3]}


def test_leave_one_group_out_rejects_clashing_fold_names():
    ds = RegressionDataset.from_arrays([1, "1", 2], np.zeros(3))
    with pytest.raises(PreconditionError, match="fold name '1'"):
        LeaveOneGroupOut(lambda x: x)(ds)


@pytest.mark.parametrize(
    "indexer",
    [
        {},
        {"a": [0, 1], "b": []},
        {"a": [0, 1], "b": [1, 2]},
        {"a": [0, 1], "b": [3]},
    ],
)
def test_validate_indexer_rejects_non_partitions(indexer):
    with pytest.raises(PreconditionError):
        validate_indexer(indexer, 3)


def test_folds_from_indexer():
    ds = make_toy_linear_data(n=5)
    folds = folds_from_indexer(ds, {"even": [0, 2, 4], "odd": [1, 3]})
    assert [f.name for f in folds] == ["even", "odd"]
    even = folds[0]
    assert even.test_indices == [0, 2, 4]
    np.testing.assert_array_equal(even.test_dataset.features, ds.features[[0, 2, 4]])
    np.testing.assert_array_equal(even.train_dataset.features, ds.features[[1, 3]])
    np.testing.assert_array_equal(even.train_dataset.targets.mean, ds.targets.mean[[1, 3]])


def test_folds_from_indexer_rejects_overlap():
    ds = make_toy_linear_data(n=3)
    with pytest.raises(PreconditionError):
        folds_from_indexer(ds, {"a": [0, 1], "b": [1, 2]})

import numpy as np
import pytest

from sensible_models import MarginalDistribution, PreconditionError, RegressionDataset, make_toy_linear_data


def test_toy_data_is_reproducible():
    a = make_toy_linear_data(n=12, seed=3)
    b = make_toy_linear_data(n=12, seed=3)
    assert len(a) == 12
    assert a == b
    assert a.metadata["source"] == "toy_linear"


def test_bare_targets_are_wrapped():
    ds = RegressionDataset([0.0, 1.0], [2.0, 3.0])
    assert isinstance(ds.targets, MarginalDistribution)
    np.testing.assert_array_equal(ds.targets.variance, [0.0, 0.0])


def test_length_mismatch_rejected():
    with pytest.raises(PreconditionError):
        RegressionDataset([0.0, 1.0, 2.0], [2.0, 3.0])


def test_subset_keeps_order_and_container():
    ds = RegressionDataset.from_arrays(["a", "b", "c"], [1.0, 2.0, 3.0], variance=[0.1, 0.2, 0.3])
    sub = ds.subset([2, 0])
    assert sub.features == ["c", "a"]
    np.testing.assert_array_equal(sub.targets.mean, [3.0, 1.0])
    np.testing.assert_array_equal(sub.targets.variance, [0.3, 0.1])

import numpy as np
import pytest

from sensible_models import (
    CapabilityError,
    ConsistencyError,
    JointDistribution,
    KFold,
    MarginalDistribution,
    make_toy_linear_data,
    marginal_negative_log_likelihood,
    negative_log_likelihood,
    root_mean_square_error,
)
from sensible_models.cross_validation import (
    concatenate_joint_predictions,
    concatenate_marginal_predictions,
    concatenate_mean_predictions,
    get_predictions,
)
from sensible_models.models import GaussianProcessRegression, LeastSquaresRegression

from toy_models import ConstantMean, DirectLooMean, JointOnlyFitAndPredict, LooMarginal


def test_concatenate_means_scatters_rows():
    indexer = {"a": [2, 0], "b": [1]}
    out = concatenate_mean_predictions(indexer, {"a": np.array([20.0, 0.0]), "b": np.array([10.0])})
    np.testing.assert_array_equal(out, [0.0, 10.0, 20.0])


def test_concatenate_joint_is_block_diagonal():
    indexer = {"a": [0, 2], "b": [1]}
    preds = {
        "a": JointDistribution([1.0, 3.0], [[1.0, 0.5], [0.5, 2.0]]),
        "b": JointDistribution([2.0], [[4.0]]),
    }
    out = concatenate_joint_predictions(indexer, preds)
    np.testing.assert_array_equal(out.mean, [1.0, 2.0, 3.0])
    np.testing.assert_array_equal(
        out.covariance,
        [[1.0, 0.0, 0.5], [0.0, 4.0, 0.0], [0.5, 0.0, 2.0]],
    )


def test_concatenate_marginals_from_joints():
    indexer = {"a": [1], "b": [0]}
    preds = {"a": JointDistribution([5.0], [[2.0]]), "b": MarginalDistribution([6.0], [3.0])}
    out = concatenate_marginal_predictions(indexer, preds)
    np.testing.assert_array_equal(out.mean, [6.0, 5.0])
    np.testing.assert_array_equal(out.variance, [3.0, 2.0])


def test_concatenate_rejects_overlapping_folds():
    indexer = {"a": [0, 1], "b": [1, 2]}
    means = {"a": np.zeros(2), "b": np.zeros(2)}
    with pytest.raises(ConsistencyError):
        concatenate_mean_predictions(indexer, means)


def test_concatenate_rejects_mismatched_folds():
    with pytest.raises(ConsistencyError):
        concatenate_mean_predictions({"a": [0], "b": [1]}, {"a": np.zeros(1)})
    with pytest.raises(ConsistencyError):
        concatenate_mean_predictions({"a": [0], "b": [1]}, {"a": np.zeros(2), "b": np.zeros(1)})
    with pytest.raises(ConsistencyError):
        concatenate_mean_predictions({"a": [0], "b": [1]}, {"a": np.zeros(1), "b": np.zeros(1)}, size=3)


def test_reassembled_marginals_match_per_fold_fits():
    ds = make_toy_linear_data(n=9)
    model = GaussianProcessRegression()
    cv = model.cross_validate()
    strategy = KFold(3)
    marginals = cv.marginals(ds, strategy)
    assert len(marginals) == len(ds)

    for fold in cv.folds(ds, strategy):
        expected = model.fit(fold.train_dataset).predict(fold.test_dataset.features).marginal()
        got = marginals.subset(fold.test_indices)
        np.testing.assert_allclose(got.mean, expected.mean)
        np.testing.assert_allclose(got.variance, expected.variance)


def test_scores_agree_with_reassembled_predictions():
    ds = make_toy_linear_data(n=9)
    cv = GaussianProcessRegression().cross_validate()
    strategy = KFold(3)
    scores = cv.scores(negative_log_likelihood, ds, strategy)
    joints = cv.joints(ds, strategy)
    assert scores.shape == (3,)
    for score, fold in zip(scores, cv.folds(ds, strategy)):
        expected = negative_log_likelihood(joints.subset(fold.test_indices), fold.test_dataset.targets)
        assert score == pytest.approx(expected)


def test_leave_one_out_joint_and_marginal_scores_coincide():
    ds = make_toy_linear_data(n=6)
    cv = GaussianProcessRegression().cross_validate()
    np.testing.assert_allclose(
        cv.scores(negative_log_likelihood, ds),
        cv.scores(marginal_negative_log_likelihood, ds),
    )


def test_parallel_matches_sequential():
    ds = make_toy_linear_data(n=12)
    model = GaussianProcessRegression()
    seq = model.cross_validate().marginals(ds)
    par = model.cross_validate(parallel=4).marginals(ds)
    np.testing.assert_allclose(par.mean, seq.mean)
    np.testing.assert_allclose(par.variance, seq.variance)


def test_get_predictions_are_lazy_per_fold():
    ds = make_toy_linear_data(n=6)
    model = LeastSquaresRegression()
    cv = model.cross_validate()
    folds = cv.folds(ds, KFold(2))
    preds = get_predictions(model, folds)
    assert list(preds) == ["0", "1"]
    assert all(len(p) == 3 for p in preds.values())
    assert np.isfinite(preds["0"].mean()).all()


def test_capability_checked_before_any_fold_runs():
    ds = make_toy_linear_data(n=6)
    cv = ConstantMean().cross_validate()
    with pytest.raises(CapabilityError):
        cv.marginals(ds)
    with pytest.raises(CapabilityError):
        cv.scores(negative_log_likelihood, ds)
    scores = cv.scores(root_mean_square_error, ds)
    assert scores.shape == (6,)


def test_cross_validation_uses_fit_and_predict_hook():
    ds = make_toy_linear_data(n=5)
    model = DirectLooMean()
    means = model.cross_validate().means(ds)
    assert model.direct_calls == [1, 1, 1, 1, 1]
    total = np.sum(ds.targets.mean)
    np.testing.assert_allclose(means, (total - ds.targets.mean) / 4.0)


def test_mean_only_model_cross_validates_means():
    ds = make_toy_linear_data(n=4)
    means = ConstantMean().cross_validate().means(ds, {"x": [0, 1], "y": [2, 3]})
    np.testing.assert_allclose(means[:2], np.mean(ds.targets.mean[2:]))
    np.testing.assert_allclose(means[2:], np.mean(ds.targets.mean[:2]))


def test_cross_validation_uses_richer_fit_and_predict_hook():
    ds = make_toy_linear_data(n=5)
    model = LooMarginal()
    means = model.cross_validate().means(ds)
    assert model.direct_calls == [1, 1, 1, 1, 1]
    total = np.sum(ds.targets.mean)
    np.testing.assert_allclose(means, (total - ds.targets.mean) / 4.0)

    scores = model.cross_validate().scores(root_mean_square_error, ds)
    assert scores.shape == (5,)
    assert len(model.direct_calls) == 10


def test_cross_validation_of_fidelity_only_reachable_through_fit_and_predict():
    ds = make_toy_linear_data(n=4)
    joint = JointOnlyFitAndPredict().cross_validate().joints(ds, {"a": [0, 1], "b": [2, 3]})
    assert joint.covariance.shape == (4, 4)
    np.testing.assert_allclose(joint.covariance[:2, 2:], 0.0)

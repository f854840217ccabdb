import logging

import numpy as np
import pytest

from sensible_models import (
    Capabilities,
    CapabilityError,
    Diagnostics,
    Fidelity,
    FitEqualityError,
    Model,
    PreconditionError,
    make_toy_linear_data,
)
from sensible_models.models import GaussianProcessRegression, LeastSquaresRegression

from toy_models import CachingMean, ConstantMean, DirectLooMean, JointOnlyFitAndPredict, ListMean, LooMarginal, MeanState, ShortMean


def test_route_table():
    caps = Capabilities(predict={"joint"})
    assert caps.route("mean") == Fidelity.JOINT
    assert caps.route(Fidelity.MARGINAL) == Fidelity.JOINT
    caps = Capabilities(predict={"marginal", "joint"})
    assert caps.route("mean") == Fidelity.MARGINAL
    caps = Capabilities(predict={"mean"})
    with pytest.raises(CapabilityError):
        caps.route("marginal")
    assert not caps.provides_uncertainty


def test_unknown_fidelity_name():
    with pytest.raises(ValueError):
        Fidelity.coerce("variance")


def test_mean_only_model_refuses_richer_predictions():
    ds = make_toy_linear_data()
    model = ConstantMean()
    assert model.supports("mean")
    assert not model.supports("marginal")
    with pytest.raises(CapabilityError):
        model.require("joint")

    pred = model.fit(ds).predict(ds.features)
    np.testing.assert_allclose(pred.mean(), np.mean(ds.targets.mean))
    with pytest.raises(CapabilityError):
        pred.marginal()
    with pytest.raises(CapabilityError):
        pred.joint()


def test_mean_only_fit_and_predict_defaults_to_joint():
    ds = make_toy_linear_data()
    with pytest.raises(CapabilityError):
        ConstantMean().fit_and_predict(ds.features, ds.targets, ds.features)


def test_undeclared_hook_fails_at_class_definition():
    with pytest.raises(TypeError):

        class Undeclared(ConstantMean):
            def _predict_joint(self, fit_state, features):
                raise AssertionError


def test_declared_but_missing_hook_fails_at_class_definition():
    with pytest.raises(TypeError):

        class Missing(Model):
            capabilities = Capabilities(predict={"mean", "marginal"})
            fit_state_type = MeanState

            def _fit_impl(self, features, targets):
                return MeanState(0.0)

            def _predict_mean(self, fit_state, features):
                return np.zeros(len(features))


def test_missing_fit_impl_fails_at_class_definition():
    with pytest.raises(TypeError):

        class NoFit(Model):
            capabilities = Capabilities(predict={"mean"})

            def _predict_mean(self, fit_state, features):
                return np.zeros(len(features))


def test_base_model_is_abstract():
    with pytest.raises(TypeError):
        Model()


def test_fallback_is_recorded(caplog):
    ds = make_toy_linear_data()
    diag = Diagnostics()
    model = LeastSquaresRegression(diagnostics=diag)
    pred = model.fit(ds).predict(ds.features)

    with caplog.at_level(logging.WARNING):
        mean = pred.mean()
    assert diag.count("prediction_fallback") == 1
    assert any("prediction_fallback" in r.getMessage() for r in caplog.records)

    np.testing.assert_array_equal(mean, pred.marginal().mean)
    pred.mean()
    assert diag.count("prediction_fallback") == 1


def test_direct_predictions_record_no_fallback():
    ds = make_toy_linear_data()
    diag = Diagnostics()
    pred = GaussianProcessRegression(diagnostics=diag).fit(ds).predict(ds.features)
    pred.mean()
    pred.marginal()
    pred.joint()
    assert diag.count("prediction_fallback") == 0


def test_least_squares_has_no_joint():
    ds = make_toy_linear_data()
    model = LeastSquaresRegression()
    assert not model.supports("joint")
    with pytest.raises(CapabilityError):
        model.fit(ds).predict(ds.features).joint()


def test_least_squares_recovers_line():
    ds = make_toy_linear_data(slope=5.0, intercept=1.0, sigma=0.1, n=20)
    state = LeastSquaresRegression({"sigma_noise": 0.1}).fit(ds).fit_state
    np.testing.assert_allclose(state.coefficients, [1.0, 5.0], atol=0.2)


def test_gp_marginal_matches_joint_diagonal():
    ds = make_toy_linear_data(n=8)
    fit = GaussianProcessRegression().fit(ds)
    test_x = np.linspace(-1.0, 11.0, 7)
    joint = fit.predict(test_x).joint()
    marginal = fit.predict(test_x).marginal()
    mean = fit.predict(test_x).mean()
    np.testing.assert_allclose(marginal.mean, joint.mean)
    np.testing.assert_allclose(marginal.variance, np.diag(joint.covariance))
    np.testing.assert_allclose(mean, joint.mean)


def test_gp_interpolates_training_data():
    ds = make_toy_linear_data(n=10)
    fit = GaussianProcessRegression({"sigma_noise": 0.1}).fit(ds)
    np.testing.assert_allclose(fit.predict(ds.features).mean(), ds.targets.mean, atol=0.3)


def test_fit_input_checks():
    model = GaussianProcessRegression()
    with pytest.raises(PreconditionError):
        model.fit([], [])
    with pytest.raises(PreconditionError):
        model.fit([0.0, 1.0, 2.0], [1.0, 2.0])
    with pytest.raises(TypeError):
        model.fit([0.0, 1.0])


def test_predict_direct_before_fit():
    with pytest.raises(PreconditionError):
        GaussianProcessRegression().predict_direct(None, [0.0], "mean")


def test_prediction_length_and_type_checks():
    ds = make_toy_linear_data()
    with pytest.raises(PreconditionError):
        ShortMean().fit(ds).predict(ds.features).mean()
    with pytest.raises(TypeError):
        ListMean().fit(ds).predict(ds.features).mean()


def test_fit_and_predict_uses_dedicated_hook():
    ds = make_toy_linear_data()
    model = DirectLooMean()
    out = model.fit_and_predict(ds.features, ds.targets, [0.0, 1.0], "mean")
    assert model.direct_calls == [2]
    np.testing.assert_allclose(out, np.mean(ds.targets.mean))
    assert model.has_been_fit


def test_fit_and_predict_without_hook_matches_fit_then_predict():
    ds = make_toy_linear_data()
    model = GaussianProcessRegression()
    test_x = [0.5, 2.5]
    direct = model.fit_and_predict(ds.features, ds.targets, test_x, "marginal")
    via_fit = model.fit(ds).predict(test_x).marginal()
    np.testing.assert_allclose(direct.mean, via_fit.mean)
    np.testing.assert_allclose(direct.variance, via_fit.variance)


def test_model_equality_before_and_after_fit():
    a = GaussianProcessRegression()
    b = GaussianProcessRegression()
    assert a == b
    b.set_param("sigma_noise", 0.3)
    assert not a == b
    a.fit(make_toy_linear_data())
    with pytest.raises(FitEqualityError):
        a == GaussianProcessRegression()


def test_state_dict_round_trip():
    a = GaussianProcessRegression({"length_scale": 3.0})
    b = GaussianProcessRegression()
    b.load_state_dict(a.state_dict())
    assert b.get_param_value("length_scale") == 3.0
    with pytest.raises(ValueError):
        LeastSquaresRegression().load_state_dict(a.state_dict())


def test_fit_and_predict_derives_from_richer_hook():
    ds = make_toy_linear_data()
    diag = Diagnostics()
    model = LooMarginal(diagnostics=diag)
    out = model.fit_and_predict(ds.features, ds.targets, [0.0, 1.0, 2.0], "mean")
    assert model.direct_calls == [3]
    assert isinstance(out, np.ndarray)
    np.testing.assert_allclose(out, np.mean(ds.targets.mean))
    assert diag.count("prediction_fallback") == 1


def test_capability_reachable_only_through_fit_and_predict():
    ds = make_toy_linear_data()
    model = JointOnlyFitAndPredict()
    assert model.supports("joint")
    assert model.supports("marginal")
    model.require("joint")

    joint = model.fit_and_predict(ds.features, ds.targets, [0.0, 1.0], "joint")
    np.testing.assert_allclose(joint.mean, np.mean(ds.targets.mean))
    marginal = model.fit_and_predict(ds.features, ds.targets, [0.0, 1.0], "marginal")
    np.testing.assert_allclose(marginal.variance, [1.25, 1.25])

    pred = model.fit(ds).predict([0.0, 1.0])
    np.testing.assert_allclose(pred.mean(), np.mean(ds.targets.mean))
    with pytest.raises(CapabilityError):
        pred.joint()


def test_capabilities_require_names_declared_fidelities():
    caps = Capabilities(predict={"mean"}, fit_and_predict={"mean"})
    with pytest.raises(CapabilityError, match="marginal"):
        caps.require("marginal")
    assert Capabilities(predict={"mean"}, fit_and_predict={"joint"}).fit_and_predict_source("mean") == Fidelity.JOINT


def test_snapshot_copies_per_copy_state():
    diag = Diagnostics()
    model = CachingMean(diagnostics=diag)
    model.cache["seen"] = 1
    copy = model.snapshot()
    copy.cache["other"] = 2
    assert model.cache == {"seen": 1}
    assert copy.cache == {"seen": 1, "other": 2}
    assert copy.diagnostics is diag


def test_snapshot_shares_undeclared_state():
    model = DirectLooMean()
    copy = model.snapshot()
    assert copy.direct_calls is model.direct_calls

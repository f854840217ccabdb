import threading

import numpy as np
import pytest

from sensible_models import Diagnostics, FitEqualityError, FitModel, make_toy_linear_data
from sensible_models.models import GaussianProcessRegression, LeastSquaresRegression

from toy_models import CountingJoint


def test_fit_model_is_immutable():
    fit = GaussianProcessRegression().fit(make_toy_linear_data())
    with pytest.raises(AttributeError):
        fit.anything = 1
    with pytest.raises(AttributeError):
        fit._fit_state = None


def test_fit_state_type_is_checked():
    with pytest.raises(TypeError):
        FitModel(GaussianProcessRegression(), object())


def test_fit_model_snapshots_configuration():
    ds = make_toy_linear_data()
    model = GaussianProcessRegression()
    fit = model.fit(ds)
    before = fit.predict([3.3]).marginal()

    model.set_param("sigma_noise", 5.0)
    fit.model.set_param("length_scale", 9.0)

    assert fit.model.get_param_value("sigma_noise") == 0.5
    assert fit.model.get_param_value("length_scale") == 2.0
    after = fit.predict([3.3]).marginal()
    np.testing.assert_array_equal(before.mean, after.mean)
    np.testing.assert_array_equal(before.variance, after.variance)


def test_prediction_is_lazy_and_cached():
    ds = make_toy_linear_data()
    diag = Diagnostics()
    model = CountingJoint(diagnostics=diag)
    pred = model.fit(ds).predict([1.0, 2.0, 3.0])
    assert model.calls == []

    mean = pred.mean()
    assert model.calls == [3]
    marginal = pred.marginal()
    joint = pred.joint()
    assert model.calls == [3]

    np.testing.assert_array_equal(mean, joint.mean)
    np.testing.assert_array_equal(marginal.variance, np.full(3, 2.5))
    assert diag.count("prediction_fallback") == 1


def test_each_prediction_is_independent():
    ds = make_toy_linear_data()
    model = CountingJoint()
    fit = model.fit(ds)
    fit.predict([1.0]).joint()
    fit.predict([1.0]).joint()
    assert model.calls == [1, 1]


def test_prediction_computes_once_under_concurrency():
    ds = make_toy_linear_data()
    model = CountingJoint()
    pred = model.fit(ds).predict(np.linspace(0.0, 1.0, 5))
    threads = [threading.Thread(target=pred.marginal) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert model.calls == [5]


def test_gp_fit_models_compare_by_state():
    ds = make_toy_linear_data()
    other = make_toy_linear_data(seed=1)
    a = GaussianProcessRegression().fit(ds)
    b = GaussianProcessRegression().fit(ds)
    c = GaussianProcessRegression().fit(other)
    d = GaussianProcessRegression({"sigma_noise": 0.25}).fit(ds)
    assert a == b
    assert not a == c
    assert not a == d


def test_equality_undefined_without_model_support():
    ds = make_toy_linear_data()
    a = LeastSquaresRegression().fit(ds)
    b = LeastSquaresRegression().fit(ds)
    with pytest.raises(FitEqualityError):
        a == b


def test_state_dict():
    ds = make_toy_linear_data(n=4)
    gp_state = GaussianProcessRegression().fit(ds).state_dict()
    assert gp_state["model"]["name"] == "gaussian_process"
    assert gp_state["model"]["has_been_fit"] is True
    assert len(gp_state["fit"]["information"]) == 4

    ls_state = LeastSquaresRegression().fit(ds).state_dict()
    assert "fit" not in ls_state

from __future__ import annotations

import copy
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

import numpy as np

from .capabilities import Capabilities, Fidelity, FidelityLike, derive_prediction
from .dataset import RegressionDataset
from .diagnostics import Diagnostics
from .distribution import JointDistribution, MarginalDistribution
from .errors import FitEqualityError, PreconditionError
from .fit_model import FitModel
from .params import ParameterStore, ParamValue

__all__ = ["Model"]

_PREDICT_HOOKS: Dict[Fidelity, str] = {
    Fidelity.MEAN: "_predict_mean",
    Fidelity.MARGINAL: "_predict_marginal",
    Fidelity.JOINT: "_predict_joint",
}

_FIT_AND_PREDICT_HOOKS: Dict[Fidelity, str] = {
    Fidelity.MEAN: "_fit_and_predict_mean",
    Fidelity.MARGINAL: "_fit_and_predict_marginal",
    Fidelity.JOINT: "_fit_and_predict_joint",
}

_RESULT_TYPES: Dict[Fidelity, type] = {
    Fidelity.MEAN: np.ndarray,
    Fidelity.MARGINAL: MarginalDistribution,
    Fidelity.JOINT: JointDistribution,
}


class Model(ParameterStore):
    """Base class for every model.

    A concrete model declares, as class attributes:

    name            : human readable name
    capabilities    : a Capabilities listing the hooks it implements
    fit_state_type  : the type `_fit_impl` returns
    per_copy_state  : names of mutable instance attributes that each
                      snapshot must own (optional)

    and implements `_fit_impl(features, targets)` plus the `_predict_<fidelity>`
    hooks named in its capabilities. The declaration is checked against the
    implemented hooks when the subclass is created, so a mismatch fails at
    import time rather than on first prediction.

    Anything the model does not implement directly is derived on request
    from a richer fidelity it does implement. Each derivation is recorded as
    a ``prediction_fallback`` event on the model's Diagnostics.

    Cross-validation fits every fold on a snapshot, possibly in parallel
    threads. Snapshots share all instance attributes except the parameters
    and ``per_copy_state``, so any other mutable state kept on the instance
    must be read-only after construction or thread-safe.
    """

    name: ClassVar[str] = "model"
    capabilities: ClassVar[Optional[Capabilities]] = None
    fit_state_type: ClassVar[type] = object
    per_copy_state: ClassVar[Tuple[str, ...]] = ()

    _routes: ClassVar[Dict[Fidelity, Fidelity]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        caps = getattr(cls, "capabilities", None)
        if caps is None:
            return
        if not isinstance(caps, Capabilities):
            raise TypeError(f"{cls.__name__}.capabilities must be a Capabilities instance.")
        if not isinstance(cls.fit_state_type, type):
            raise TypeError(f"{cls.__name__}.fit_state_type must be a type.")
        if cls._fit_impl is Model._fit_impl:
            raise TypeError(f"{cls.__name__} declares capabilities but does not implement _fit_impl.")
        if not caps.predict:
            raise TypeError(f"{cls.__name__} must implement at least one prediction fidelity.")

        for table, declared, what in (
            (_PREDICT_HOOKS, caps.predict, "predict"),
            (_FIT_AND_PREDICT_HOOKS, caps.fit_and_predict, "fit_and_predict"),
        ):
            for fidelity, hook in table.items():
                implemented = getattr(cls, hook) is not getattr(Model, hook)
                if fidelity in declared and not implemented:
                    raise TypeError(
                        f"{cls.__name__} declares {what}={fidelity.value!r} but does not define {hook}."
                    )
                if implemented and fidelity not in declared:
                    raise TypeError(
                        f"{cls.__name__} defines {hook} but does not declare "
                        f"{what}={fidelity.value!r} in its capabilities."
                    )

        cls._routes = {}
        for fidelity in Fidelity:
            src = caps.source(fidelity)
            if src is not None:
                cls._routes[fidelity] = src

    def __init__(
        self,
        params: Optional[Mapping[str, ParamValue]] = None,
        *,
        diagnostics: Optional[Diagnostics] = None,
    ):
        if type(self).capabilities is None:
            raise TypeError(f"{type(self).__name__} is abstract: declare capabilities.")
        self._init_params(params)
        self._has_been_fit = False
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    # ---- capability queries ----
    def supports(self, fidelity: FidelityLike) -> bool:
        """True if predict or fit_and_predict can produce `fidelity`."""
        return self.capabilities.supports(fidelity)

    def route(self, fidelity: FidelityLike) -> Fidelity:
        """Fidelity that must be computed to answer a `fidelity` request."""
        f = Fidelity.coerce(fidelity)
        try:
            return self._routes[f]
        except KeyError:
            return self.capabilities.route(f)  # raises CapabilityError

    def require(self, *fidelities: FidelityLike) -> None:
        """Raise CapabilityError now if any of `fidelities` cannot be produced."""
        for f in fidelities:
            self.capabilities.require(f)

    @property
    def has_been_fit(self) -> bool:
        return self._has_been_fit

    # ---- hooks ----
    def _fit_impl(self, features: Any, targets: MarginalDistribution) -> Any:
        raise NotImplementedError

    def _predict_mean(self, fit_state: Any, features: Any) -> np.ndarray:
        raise NotImplementedError

    def _predict_marginal(self, fit_state: Any, features: Any) -> MarginalDistribution:
        raise NotImplementedError

    def _predict_joint(self, fit_state: Any, features: Any) -> JointDistribution:
        raise NotImplementedError

    def _fit_and_predict_mean(
        self, train_features: Any, train_targets: MarginalDistribution, test_features: Any
    ) -> np.ndarray:
        raise NotImplementedError

    def _fit_and_predict_marginal(
        self, train_features: Any, train_targets: MarginalDistribution, test_features: Any
    ) -> MarginalDistribution:
        raise NotImplementedError

    def _fit_and_predict_joint(
        self, train_features: Any, train_targets: MarginalDistribution, test_features: Any
    ) -> JointDistribution:
        raise NotImplementedError

    # ---- fitting ----
    def fit(self, features: Any, targets: Any = None) -> FitModel:
        """Fit to (features, targets) or to a RegressionDataset and return a FitModel."""
        features, targets = _unpack(features, targets)
        _check_fit_inputs(features, targets)
        state = self._fit_impl(features, targets)
        self._has_been_fit = True
        return FitModel(self, state)

    def fit_and_predict(
        self,
        train_features: Any,
        train_targets: Any,
        test_features: Any,
        fidelity: FidelityLike = Fidelity.JOINT,
    ) -> Any:
        """Fit on the training data and predict the test features.

        Resolution order: the dedicated hook for `fidelity`, then a dedicated
        hook for a richer fidelity reduced to `fidelity` (recorded as a
        ``prediction_fallback``), then ``fit(...).predict(test_features).get(fidelity)``.
        """
        f = Fidelity.coerce(fidelity)
        self.require(f)
        train_features, train_targets = _unpack(train_features, train_targets)
        source = self.capabilities.fit_and_predict_source(f)
        if source is None:
            return self.fit(train_features, train_targets).predict(test_features).get(f)

        _check_fit_inputs(train_features, train_targets)
        hook = getattr(self, _FIT_AND_PREDICT_HOOKS[source])
        result = hook(train_features, train_targets, test_features)
        self._has_been_fit = True
        _check_prediction(result, source, test_features, self.name)
        if source != f:
            self.record_fallback(requested=f, source=source)
            result = derive_prediction(result, source, f)
        return result

    # ---- prediction dispatch (used by Prediction) ----
    def predict_direct(self, fit_state: Any, features: Any, fidelity: FidelityLike) -> Any:
        """Call the model's own hook for `fidelity`; no derivation."""
        f = Fidelity.coerce(fidelity)
        if not self.has_been_fit:
            raise PreconditionError(f"{self.name}: predict called before fit.")
        if f not in self.capabilities.predict:
            raise PreconditionError(f"{self.name} has no direct {f.value} prediction.")
        result = getattr(self, _PREDICT_HOOKS[f])(fit_state, features)
        _check_prediction(result, f, features, self.name)
        return result

    def record_fallback(self, *, requested: Fidelity, source: Fidelity) -> None:
        self.diagnostics.record(
            "prediction_fallback",
            model=self.name,
            requested=requested.value,
            source=source.value,
        )

    # ---- fit-state hooks ----
    def fit_states_equal(self, a: Any, b: Any) -> bool:
        """Override to make FitModel equality meaningful for this model."""
        raise FitEqualityError(
            f"{type(self).__name__} does not define equality between fit states."
        )

    def fit_state_to_dict(self, fit_state: Any) -> Optional[Dict[str, Any]]:
        """Serialized form of a fit state, or None if the model doesn't define one."""
        return None

    # ---- copies, equality, persistence ----
    def snapshot(self) -> "Model":
        """Copy of the configuration for one fit.

        Parameters and the attributes named in ``per_copy_state`` are copied;
        everything else (diagnostics included) is shared with the original.
        """
        out = copy.copy(self)
        out._params = dict(self._params)
        for attr in type(self).per_copy_state:
            if attr in self.__dict__:
                setattr(out, attr, copy.deepcopy(self.__dict__[attr]))
        return out

    def config_equal(self, other: "Model") -> bool:
        return (
            type(self) is type(other)
            and self.name == other.name
            and self._params == other._params
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        if self.has_been_fit or other.has_been_fit:
            raise FitEqualityError(
                "Model equality is undefined once a model has been fit; "
                "compare FitModel objects or override __eq__."
            )
        return self.config_equal(other) and self.has_been_fit == other.has_been_fit

    __hash__ = None  # type: ignore[assignment]

    def state_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "parameters": self.param_values(),
            "has_been_fit": bool(self._has_been_fit),
        }

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        name = state.get("name")
        if name is not None and name != self.name:
            raise ValueError(f"State is for model {name!r}, not {self.name!r}.")
        self.set_params(dict(state.get("parameters", {})))
        self._has_been_fit = bool(state.get("has_been_fit", False))

    def pretty_string(self) -> str:
        return f"{self.name}\n{self.pretty_params()}"

    def cross_validate(self, *, parallel: Any = None) -> Any:
        """Return a CrossValidation engine bound to this model."""
        from .cross_validation import CrossValidation

        return CrossValidation(self, parallel=parallel)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.param_values()!r})"


def _unpack(features: Any, targets: Any) -> tuple:
    if isinstance(features, RegressionDataset):
        if targets is not None:
            raise TypeError("If features is a RegressionDataset, do not also pass targets.")
        return features.features, features.targets
    if targets is None:
        raise TypeError("fit() missing required argument: targets")
    if not isinstance(targets, MarginalDistribution):
        targets = MarginalDistribution(targets)
    return features, targets


def _check_fit_inputs(features: Any, targets: MarginalDistribution) -> None:
    n = len(features)
    if n == 0:
        raise PreconditionError("Cannot fit a model to an empty feature set.")
    if n != len(targets):
        raise PreconditionError(
            f"features length {n} != targets length {len(targets)}."
        )


def _check_prediction(result: Any, fidelity: Fidelity, features: Any, name: str) -> None:
    expected = _RESULT_TYPES[fidelity]
    if not isinstance(result, expected):
        raise TypeError(
            f"{name}: {fidelity.value} prediction returned {type(result).__name__}, "
            f"expected {expected.__name__}."
        )
    if len(result) != len(features):
        raise PreconditionError(
            f"{name}: predicted {len(result)} values for {len(features)} features."
        )

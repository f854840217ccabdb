from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import numpy as np

from .capabilities import Fidelity, FidelityLike, derive_prediction
from .distribution import JointDistribution, MarginalDistribution

__all__ = ["FitModel", "Prediction"]


class FitModel:
    """Immutable pairing of a model configuration with its post-fit state.

    Only ``Model.fit`` should build these. The model is snapshotted on the
    way in so later ``set_params`` calls on the caller's model can't leak
    into existing predictions. The fit state is held as-is: it can be large
    (a factorized covariance, say) and is never copied.
    """

    __slots__ = ("_model", "_fit_state")

    def __init__(self, model: Any, fit_state: Any):
        expected = getattr(model, "fit_state_type", object)
        if not isinstance(fit_state, expected):
            raise TypeError(
                f"{type(model).__name__} produces {expected.__name__} fit states, "
                f"got {type(fit_state).__name__}."
            )
        object.__setattr__(self, "_model", model.snapshot())
        object.__setattr__(self, "_fit_state", fit_state)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("FitModel is immutable; fit again to get a new one.")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("FitModel is immutable.")

    @property
    def model(self) -> Any:
        """A copy of the model configuration this fit was made with."""
        return self._model.snapshot()

    @property
    def fit_state(self) -> Any:
        return self._fit_state

    @property
    def name(self) -> str:
        return self._model.name

    def predict(self, features: Any) -> "Prediction":
        """Return a lazy prediction; nothing is computed until a fidelity is requested."""
        return Prediction(self._model, self._fit_state, features)

    def state_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"model": self._model.state_dict()}
        fit = self._model.fit_state_to_dict(self._fit_state)
        if fit is not None:
            out["fit"] = fit
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FitModel):
            return NotImplemented
        return bool(
            self._model.config_equal(other._model)
            and self._model.fit_states_equal(self._fit_state, other._fit_state)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"FitModel({self._model.name!r})"


class Prediction:
    """Per-request view over a FitModel and a set of query features.

    Each accessor computes on first use. Results are cached by fidelity, and
    a cached richer result answers cheaper requests without going back to the
    model.
    """

    def __init__(self, model: Any, fit_state: Any, features: Any):
        self._model = model
        self._fit_state = fit_state
        self.features = features
        self._cache: Dict[Fidelity, Any] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.features)

    def mean(self) -> np.ndarray:
        return self.get(Fidelity.MEAN)

    def marginal(self) -> MarginalDistribution:
        return self.get(Fidelity.MARGINAL)

    def joint(self) -> JointDistribution:
        return self.get(Fidelity.JOINT)

    def get(self, fidelity: FidelityLike) -> Any:
        f = Fidelity.coerce(fidelity)
        with self._lock:
            hit = self._from_cache(f)
            if hit is not None:
                return hit
            source = self._model.route(f)
            result = self._model.predict_direct(self._fit_state, self.features, source)
            self._cache[source] = result
            if source != f:
                self._model.record_fallback(requested=f, source=source)
                result = derive_prediction(result, source, f)
                self._cache[f] = result
            return result

    def _from_cache(self, f: Fidelity) -> Optional[Any]:
        if f in self._cache:
            return self._cache[f]
        richer = [c for c in self._cache if c.rank > f.rank]
        if not richer:
            return None
        src = min(richer, key=lambda c: c.rank)
        out = derive_prediction(self._cache[src], src, f)
        self._cache[f] = out
        return out

    def __repr__(self) -> str:
        cached = sorted(c.value for c in self._cache)
        return f"Prediction({self._model.name!r}, n={len(self)}, cached={cached})"

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional, Union

from .priors import Prior, UninformativePrior

__all__ = ["Parameter", "ParameterStore", "ParamValue"]


@dataclass(frozen=True)
class Parameter:
    """A named model hyperparameter's value plus an optional prior.

    ``prior=None`` means unconstrained and uninformative.
    """

    value: float
    prior: Optional[Prior] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))

    @property
    def effective_prior(self) -> Prior:
        return self.prior if self.prior is not None else UninformativePrior()

    @property
    def is_fixed(self) -> bool:
        return self.prior is not None and self.prior.is_fixed

    def is_valid(self) -> bool:
        return self.effective_prior.is_valid(self.value)

    def log_likelihood(self) -> float:
        return self.effective_prior.log_likelihood(self.value)


ParamValue = Union[float, int, Parameter]


class ParameterStore:
    """Name -> Parameter bookkeeping shared by every model.

    Parameters are ordered; the order of ``default_params()`` is the order the
    tuner lays out its search vector in.
    """

    _params: Dict[str, Parameter]

    def default_params(self) -> Dict[str, Parameter]:
        return {}

    def _init_params(self, overrides: Optional[Mapping[str, ParamValue]] = None) -> None:
        self._params = dict(self.default_params())
        if overrides:
            self.set_params(overrides)

    # ---- access ----
    def get_params(self) -> Dict[str, Parameter]:
        return dict(self._params)

    def get_param(self, name: str) -> Parameter:
        try:
            return self._params[name]
        except KeyError as e:
            raise KeyError(
                f"Unknown parameter {name!r}. Available: {tuple(self._params)}"
            ) from e

    def get_param_value(self, name: str) -> float:
        return self.get_param(name).value

    def param_values(self) -> Dict[str, float]:
        return {k: p.value for k, p in self._params.items()}

    # ---- mutation ----
    def set_param(self, name: str, value: ParamValue) -> None:
        """Set a value (keeping the existing prior) or replace the whole Parameter."""
        current = self.get_param(name)
        if isinstance(value, Parameter):
            self._params[name] = value
        else:
            self._params[name] = replace(current, value=float(value))

    def set_params(self, params: Mapping[str, ParamValue]) -> None:
        unknown = [k for k in params if k not in self._params]
        if unknown:
            raise KeyError(f"Unknown parameters: {unknown}")
        for k, v in params.items():
            self.set_param(k, v)

    def set_prior(self, name: str, prior: Optional[Prior]) -> None:
        self._params[name] = replace(self.get_param(name), prior=prior)

    # ---- priors ----
    def params_are_valid(self) -> bool:
        return all(p.is_valid() for p in self._params.values())

    def prior_log_likelihood(self) -> float:
        total = 0.0
        for p in self._params.values():
            total += p.log_likelihood()
            if math.isinf(total) and total < 0:
                return -math.inf
        return float(total)

    def pretty_params(self) -> str:
        lines = []
        width = max((len(k) for k in self._params), default=0)
        for k, p in self._params.items():
            prior = "" if p.prior is None else f"  [{p.prior!r}]"
            lines.append(f"  {k:<{width}} = {p.value:.6g}{prior}")
        return "\n".join(lines)

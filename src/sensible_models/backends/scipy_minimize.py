from __future__ import annotations

from typing import Any, Callable, Dict, Tuple

import numpy as np
from scipy.optimize import minimize

from .common import INVALID_PENALTY, BackendResult, finite_bounds_or_none, penalized


class ScipyMinimizeBackend:
    name = "scipy.minimize"

    def minimize(
        self,
        *,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
        config: Any,
    ) -> BackendResult:
        """Local, derivative-free search via scipy.optimize.minimize.

        Backend options (config.options):
        - method: optimizer name (default: Nelder-Mead; Powell also works well)
        - options: dict forwarded to scipy.optimize.minimize
        - invalid_penalty: value reported for NaN objectives (default: 1e100)

        config.max_evaluations becomes ``maxfev`` and config.tolerance the
        method's x/f tolerances unless given explicitly in ``options``.
        """
        x0 = np.asarray(x0, dtype=float)
        opts: Dict[str, Any] = dict(config.options or {})
        method = str(opts.get("method", "Nelder-Mead"))
        scipy_opts: Dict[str, Any] = dict(opts.get("options", None) or {})
        penalty = float(opts.get("invalid_penalty", INVALID_PENALTY))

        tol = float(config.tolerance)
        maxfev = int(config.max_evaluations)
        if method.lower() == "nelder-mead":
            scipy_opts.setdefault("maxfev", maxfev)
            scipy_opts.setdefault("xatol", tol)
            scipy_opts.setdefault("fatol", tol)
        elif method.lower() == "powell":
            scipy_opts.setdefault("maxfev", maxfev)
            scipy_opts.setdefault("xtol", tol)
            scipy_opts.setdefault("ftol", tol)
        else:
            scipy_opts.setdefault("maxiter", maxfev)

        res = minimize(
            penalized(objective, penalty),
            x0,
            method=method,
            bounds=finite_bounds_or_none(bounds),
            options=scipy_opts,
        )

        return BackendResult(
            x=np.asarray(res.x, dtype=float).reshape(x0.shape),
            fun=float(res.fun),
            success=bool(res.success),
            message=str(res.message),
            stats={
                "backend": self.name,
                "method": method,
                "nfev": int(getattr(res, "nfev", 0) or 0),
                "nit": int(getattr(res, "nit", 0) or 0),
            },
        )

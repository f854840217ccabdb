from __future__ import annotations

from typing import Any, Callable, Dict, Tuple

import numpy as np
from scipy.optimize import differential_evolution

from .common import INVALID_PENALTY, BackendResult, penalized


class ScipyDifferentialEvolutionBackend:
    name = "scipy.differential_evolution"

    def minimize(
        self,
        *,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
        config: Any,
    ) -> BackendResult:
        """Global search via scipy.optimize.differential_evolution.

        Notes:
        - Needs finite bounds in the unconstrained space. Infinite sides are
          replaced by x0 -/+ ``search_width`` (default: 5.0).
        - The population is seeded from config.seed so runs are repeatable.

        Backend options (config.options, subset of differential_evolution):
        - popsize (int, default: 10)
        - strategy (str, default: "best1bin")
        - search_width (float, default: 5.0)
        - invalid_penalty (float, default: 1e100)
        - mutation, recombination, init, atol, updating, workers
        """
        x0 = np.asarray(x0, dtype=float).reshape((-1,))
        opts: Dict[str, Any] = dict(config.options or {})
        width = float(opts.get("search_width", 5.0))
        penalty = float(opts.get("invalid_penalty", INVALID_PENALTY))

        lo, hi = bounds
        lo = np.asarray(lo, dtype=float).reshape((-1,))
        hi = np.asarray(hi, dtype=float).reshape((-1,))
        if lo.shape != x0.shape or hi.shape != x0.shape:
            raise ValueError("Bounds shape mismatch for free parameters.")
        lo = np.where(np.isfinite(lo), lo, x0 - width)
        hi = np.where(np.isfinite(hi), hi, x0 + width)
        if np.any(hi <= lo):
            raise ValueError("Invalid bounds: require hi > lo for all parameters.")

        popsize = int(opts.get("popsize", 10))
        npar = max(1, int(x0.shape[0]))
        # nfev ~= (maxiter + 1) * popsize * npar
        maxiter = max(1, int(config.max_evaluations) // (popsize * npar) - 1)

        de_kwargs: Dict[str, Any] = {
            "maxiter": maxiter,
            "popsize": popsize,
            "tol": float(config.tolerance),
            "strategy": str(opts.get("strategy", "best1bin")),
            "seed": config.seed,
            "polish": False,
            "x0": np.clip(x0, lo, hi),
        }
        for k in ("mutation", "recombination", "init", "atol", "updating", "workers"):
            if k in opts:
                de_kwargs[k] = opts[k]

        res = differential_evolution(
            penalized(objective, penalty),
            list(zip(lo.tolist(), hi.tolist())),
            **de_kwargs,
        )

        return BackendResult(
            x=np.asarray(res.x, dtype=float),
            fun=float(res.fun),
            success=bool(res.success),
            message=str(res.message),
            stats={
                "backend": self.name,
                "nfev": int(getattr(res, "nfev", 0) or 0),
                "nit": int(getattr(res, "nit", 0) or 0),
            },
        )

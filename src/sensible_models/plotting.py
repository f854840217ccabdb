from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

import numpy as np

from .dataset import RegressionDataset
from .distribution import MarginalDistribution


def plot_cross_validation(
    dataset: RegressionDataset,
    marginal: MarginalDistribution,
    *,
    ax: Optional[Any] = None,
    data_kwargs: Optional[Mapping[str, Any]] = None,
    pred_kwargs: Optional[Mapping[str, Any]] = None,
    title: Optional[str] = None,
) -> Tuple[Any, Any]:
    """Plot targets against reassembled cross-validated predictions.

    Parameters
    ----------
    dataset : RegressionDataset
        Scalar-feature dataset that was cross-validated.
    marginal : MarginalDistribution
        Held-out predictions in dataset order, e.g. from
        ``model.cross_validate().marginals(dataset)``.
    ax : matplotlib.axes.Axes, optional
        If None, a new figure/axes is created.
    data_kwargs, pred_kwargs : dict, optional
        Styling kwargs for the two errorbar calls.
    """
    import matplotlib.pyplot as plt

    if len(marginal) != len(dataset):
        raise ValueError("plot_cross_validation requires one prediction per dataset row.")
    x = np.asarray(dataset.features, dtype=float)
    if x.ndim != 1:
        raise ValueError("plot_cross_validation requires 1D numeric features.")

    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    data_kwargs = dict(data_kwargs or {})
    pred_kwargs = dict(pred_kwargs or {})
    data_kwargs.setdefault("fmt", "o")
    data_kwargs.setdefault("label", "data")
    pred_kwargs.setdefault("fmt", "s")
    pred_kwargs.setdefault("mfc", "none")
    pred_kwargs.setdefault("label", "held-out prediction")

    target_err = dataset.targets.std
    ax.errorbar(x, dataset.targets.mean, yerr=target_err if np.any(target_err > 0) else None, **data_kwargs)
    ax.errorbar(x, marginal.mean, yerr=marginal.std, **pred_kwargs)
    ax.set_xlabel("feature")
    ax.set_ylabel("target")
    if title is not None:
        ax.set_title(title)
    ax.legend()
    return fig, ax

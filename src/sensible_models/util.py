from __future__ import annotations

from typing import Any, Sequence

import numpy as np


def take(features: Any, indices: Sequence[int]) -> Any:
    """Select features at indices, keeping order and container type."""
    if isinstance(features, np.ndarray):
        return features[np.asarray(indices, dtype=int)]
    if isinstance(features, tuple):
        return tuple(features[int(i)] for i in indices)
    return [features[int(i)] for i in indices]


def is_sequence(x: Any) -> bool:
    return isinstance(x, (list, tuple, np.ndarray))


def as_float_features(features: Any) -> np.ndarray:
    """Return 1D float features, as used by the bundled scalar-input models."""
    x = np.asarray(features, dtype=float)
    if x.ndim != 1:
        raise TypeError(f"Expected 1D scalar features, got shape {x.shape}.")
    return x

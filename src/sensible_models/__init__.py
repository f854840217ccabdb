"""sensible_models public API."""
import logging

from .capabilities import Capabilities, Fidelity
from .cross_validation import CrossValidation
from .dataset import RegressionDataset, make_toy_linear_data
from .diagnostics import Diagnostics, configure_logging
from .distribution import JointDistribution, MarginalDistribution
from .errors import CapabilityError, ConsistencyError, FitEqualityError, PreconditionError
from .evaluation import (
    CrossValidatedMetric,
    PredictionMetric,
    leave_one_out_likelihood,
    marginal_negative_log_likelihood,
    negative_log_likelihood,
    root_mean_square_error,
)
from .fit_model import FitModel, Prediction
from .folds import KFold, LeaveOneGroupOut, LeaveOneOut, RegressionFold
from .model import Model
from .params import Parameter
from .tune import OptimizerConfig, TuneResult, Tuner, get_tuner
from . import models, priors

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Capabilities",
    "CapabilityError",
    "ConsistencyError",
    "CrossValidatedMetric",
    "CrossValidation",
    "Diagnostics",
    "Fidelity",
    "FitEqualityError",
    "FitModel",
    "JointDistribution",
    "KFold",
    "LeaveOneGroupOut",
    "LeaveOneOut",
    "MarginalDistribution",
    "Model",
    "OptimizerConfig",
    "Parameter",
    "PreconditionError",
    "Prediction",
    "PredictionMetric",
    "RegressionDataset",
    "RegressionFold",
    "TuneResult",
    "Tuner",
    "configure_logging",
    "get_tuner",
    "leave_one_out_likelihood",
    "make_toy_linear_data",
    "marginal_negative_log_likelihood",
    "models",
    "negative_log_likelihood",
    "priors",
    "root_mean_square_error",
]

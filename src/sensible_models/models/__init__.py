from .gaussian_process import GaussianProcessFit, GaussianProcessRegression
from .linear import LeastSquaresFit, LeastSquaresRegression

__all__ = [
    "GaussianProcessFit",
    "GaussianProcessRegression",
    "LeastSquaresFit",
    "LeastSquaresRegression",
]

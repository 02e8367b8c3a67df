"""
Generalization-error estimators.

Importing this package registers every interval method with the
EstimatorRegistry, which ``infer(result, method="auto")`` dispatches through.
"""

from .base import Estimator, EstimatorRegistry, infer, methods_for, resolve_method
from .holdout import HoldoutEstimator
from .corrected_t import CorrectedTEstimator
from .conservative_z import ConservativeZEstimator
from .nested_cv import NestedCVEstimator
from .wald import WaldCVEstimator

__all__ = [
    "Estimator",
    "EstimatorRegistry",
    "infer",
    "methods_for",
    "resolve_method",
    "HoldoutEstimator",
    "CorrectedTEstimator",
    "ConservativeZEstimator",
    "NestedCVEstimator",
    "WaldCVEstimator",
]

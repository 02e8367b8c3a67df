"""
Core abstractions for the geinfer framework.

This module provides the dataset wrapper, the learner / measure protocols,
the resampling schemes and the fold executor that together produce the fold
results the interval estimators consume.
"""

from .protocols import Learner, Measure, FoldEvaluator, Prediction
from .data import Dataset
from .results import Partition, FoldResult, ResampleResult, GEEstimate
from .resampling import (
    ResamplingScheme,
    ResamplingRegistry,
    Instantiation,
    make_resampling,
    list_resamplings,
)
from . import spatial
from .resample import ResampleExecutor, ExecutionConfig, LearnerFoldEvaluator, resample


__all__ = [
    # Protocol interfaces
    "Learner",
    "Measure",
    "FoldEvaluator",
    "Prediction",
    # Data
    "Dataset",
    # Resampling
    "ResamplingScheme",
    "ResamplingRegistry",
    "Instantiation",
    "make_resampling",
    "list_resamplings",
    "spatial",
    # Execution
    "ResampleExecutor",
    "ExecutionConfig",
    "LearnerFoldEvaluator",
    "resample",
    # Results
    "Partition",
    "FoldResult",
    "ResampleResult",
    "GEEstimate",
]

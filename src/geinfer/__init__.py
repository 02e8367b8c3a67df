from .core import Dataset, make_resampling, resample, ResampleExecutor, ExecutionConfig, GEEstimate
from .inference import infer, methods_for
from .measures import get_measure
from .learners import SklearnLearner, get_learner
from .evaluation import run_experiment, compare_methods
from .errors import ConfigurationError, IncompatibilityError, DataError, FoldError, IncompleteResultError

__all__ = [
    "Dataset",
    "make_resampling",
    "resample",
    "ResampleExecutor",
    "ExecutionConfig",
    "GEEstimate",
    "infer",
    "methods_for",
    "get_measure",
    "SklearnLearner",
    "get_learner",
    "run_experiment",
    "compare_methods",
    "ConfigurationError",
    "IncompatibilityError",
    "DataError",
    "FoldError",
    "IncompleteResultError",
]

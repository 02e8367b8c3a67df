"""
Exception hierarchy for geinfer.

Every error signals a misconfigured experiment and is surfaced to the caller
immediately; nothing here is retried.
"""

from typing import Optional


class GEInferError(Exception):
    """Base class for all geinfer errors"""


class ConfigurationError(GEInferError, ValueError):
    """Invalid resampling / method parameters (folds, repeats, ratio, alpha, ...)"""


class IncompatibilityError(GEInferError):
    """A method cannot be used with the given resampling scheme or measure"""


class DataError(GEInferError, ValueError):
    """Grouping, stratification or coordinate columns are missing or malformed,
    or the learner saw unseen categorical levels at prediction time."""


class FoldError(GEInferError):
    """Training, prediction or scoring failed inside one resampling iteration"""

    def __init__(self, iteration: int, message: str):
        super().__init__(f"Iteration {iteration} failed: {message}")
        self.iteration = iteration


class IncompleteResultError(GEInferError):
    """An interval was requested from a resample result with missing iterations"""

    def __init__(self, missing: int, total: int, detail: Optional[str] = None):
        msg = f"{missing} of {total} iterations have no result"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.missing = missing
        self.total = total

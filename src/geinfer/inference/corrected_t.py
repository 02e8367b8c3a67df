"""Corrected resampled t interval for repeated subsampling (Nadeau & Bengio, 2003)."""

import numpy as np

from ..core.results import GEEstimate, ResampleResult
from ..errors import IncompatibilityError
from ..utils import t_ci
from .base import Estimator, EstimatorRegistry


@EstimatorRegistry.register
class CorrectedTEstimator(Estimator):
    """
    t interval on the subsampling scores with the variance inflated by the
    correlation between iterations that share training data:

        var = (1 / J + n_test / n_train) * s^2

    where s^2 is the sample variance of the J iteration scores.
    """

    name = "cor_t"
    scheme_kinds = ("subsampling",)
    default_for = ("subsampling",)

    def _estimate(self, result: ResampleResult, alpha: float) -> GEEstimate:
        scores = result.scores
        J = len(scores)
        if J < 2:
            raise IncompatibilityError(f"Method '{self.name}' needs at least 2 subsampling repeats, got {J}")

        n_train = np.mean([f.train_size for f in result.fold_results])
        n_test = np.mean([f.test_size for f in result.fold_results])

        estimate = float(scores.mean())
        var = (1 / J + n_test / n_train) * scores.var(ddof=1)
        se = float(np.sqrt(var))
        return self.make_estimate(
            result, estimate, t_ci(estimate, se, J - 1, alpha), se, alpha, df=J - 1, repeats=J
        )

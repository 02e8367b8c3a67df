"""Nested cross-validation interval (Bates, Hastie & Tibshirani, 2023)."""

import numpy as np

from ..core.results import GEEstimate, ResampleResult
from ..utils import normal_ci, sample_sd
from .base import Estimator, EstimatorRegistry, delta_transform


@EstimatorRegistry.register
class NestedCVEstimator(Estimator):
    """
    For every repeat r and outer fold k, with e_in the inner-CV losses on the
    other folds and e_out the losses on fold k of the model trained on all
    other folds:

        a_rk = (mean(e_in) - mean(e_out))^2
        b_rk = var(e_out) / |fold k|
        MSE  = mean(a) - mean(b)
        SE   = sqrt(max(0, (K - 1) / K * MSE)), clamped to [se_cv, sqrt(K) * se_cv]

    where se_cv is the naive CV standard error. The point estimate removes the
    bias of the inner folds' smaller training sets:

        bias     = (1 + (K - 2) / K) * (err_ncv - err_cv)
        estimate = err_ncv - bias

    The interval is built from per-observation losses, so measures without them
    (classif.auc, regr.rsq) are refused with IncompatibilityError.
    """

    name = "ncv"
    scheme_kinds = ("nested_cv",)
    default_for = ("nested_cv",)
    requires_pointwise = True

    def _estimate(self, result: ResampleResult, alpha: float) -> GEEstimate:
        params = result.instantiation.params
        K = params["folds"]
        R = params["repeats"]

        a_list, b_list, e_in_all, e_out_all = [], [], [], []
        for r in range(R):
            for k in range(K):
                e_in = np.concatenate([f.pointwise for f in result.select(stage="inner", repeat=r, outer=k)])
                (outer,) = result.select(stage="outer", repeat=r, outer=k)
                e_out = np.asarray(outer.pointwise, dtype=float)

                a_list.append((e_in.mean() - e_out.mean()) ** 2)
                b_list.append(np.var(e_out, ddof=1) / len(e_out) if len(e_out) > 1 else 0.0)
                e_in_all.append(e_in)
                e_out_all.append(e_out)

        e_in_all = np.concatenate(e_in_all)
        e_out_all = np.concatenate(e_out_all)

        mse = float(np.mean(a_list) - np.mean(b_list))
        err_ncv = float(e_in_all.mean())
        err_cv = float(e_out_all.mean())

        se_cv = sample_sd(e_out_all) / np.sqrt(result.n_obs)
        se = float(np.sqrt(max(0.0, (K - 1) / K * mse)))
        se = float(np.clip(se, se_cv, np.sqrt(K) * se_cv))

        bias = (1 + (K - 2) / K) * (err_ncv - err_cv)
        theta = err_ncv - bias
        estimate, se = delta_transform(theta, se, result.transform)

        return self.make_estimate(
            result,
            estimate,
            normal_ci(estimate, se, alpha),
            se,
            alpha,
            err_ncv=err_ncv,
            err_cv=err_cv,
            bias=bias,
            mse=mse,
        )

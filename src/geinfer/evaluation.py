from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd
from ezcolorlog import root_logger as logger

from .core.data import Dataset
from .core.protocols import Learner, Measure
from .core.resample import ExecutionConfig, ResampleExecutor
from .core.resampling import ResamplingScheme, make_resampling
from .core.results import GEEstimate
from .inference import infer
from .measures import get_measure

ResamplingSpec = Union[str, Dict[str, Any], ResamplingScheme]


# =============================================================================
# SINGLE EXPERIMENT -----------------------------------------------------------
# =============================================================================


def run_experiment(
    learner: Learner,
    data: Dataset,
    measure: Union[Measure, str],
    resampling: ResamplingSpec,
    method: str = "auto",
    alpha: float = 0.05,
    seed: int = 42,
    n_jobs: int = 1,
    on_error: str = "raise",
    verbose: bool = False,
    show_progress: bool = False,
) -> GEEstimate:
    """
    Estimate the generalization error of a learner with a confidence interval.

    Instantiates the resampling scheme with ``seed``, runs all of its folds and
    computes the interval with ``method`` ("auto" picks the method that is valid
    for the resampling scheme).

    Args:
        learner: Learner to evaluate
        data: Dataset to resample
        measure: Measure or measure id (e.g. "classif.ce", "regr.rmse")
        resampling: Resampling kind, configuration mapping or scheme
        method: Interval method name or "auto"
        alpha: Significance level of the two-sided interval
        seed: Top-level seed all partition draws and model fits derive from
        n_jobs: Number of parallel fold workers
        on_error: "raise" to abort on the first failing fold, "skip" to continue
        verbose: Whether to log per-experiment details
        show_progress: Whether to show a progress bar over iterations

    Returns:
        GEEstimate with point estimate and interval
    """
    if isinstance(measure, str):
        measure = get_measure(measure)
    scheme = make_resampling(resampling)
    instantiation = scheme.instantiate(data, seed)

    config = ExecutionConfig(n_jobs=n_jobs, on_error=on_error, verbose=verbose, show_progress=show_progress)
    result = ResampleExecutor(config).run(learner, data, instantiation, measure)
    estimate = infer(result, method=method, alpha=alpha)

    if verbose:
        logger.info(
            f"[{learner.id.upper()}] {estimate.method}: {measure.id} = {estimate.estimate:.4f} "
            f"[{estimate.lower:.4f}, {estimate.upper:.4f}] ({estimate.conf_level:.0%} CI, {scheme})"
        )
    return estimate


# =============================================================================
# METHOD COMPARISON -----------------------------------------------------------
# =============================================================================


def compare_methods(
    learner: Learner,
    data: Dataset,
    measure: Union[Measure, str],
    configs: Sequence[Union[ResamplingSpec, Tuple[ResamplingSpec, str]]],
    alpha: float = 0.05,
    seed: int = 42,
    n_jobs: int = 1,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Run several (resampling, method) pairs on the same learner and dataset.

    Each entry of ``configs`` is a resampling configuration (method "auto") or a
    ``(resampling, method)`` tuple. Returns one summary row per pair and logs
    the table.
    """
    if not configs:
        raise ValueError("No resampling configurations provided")

    estimates: List[GEEstimate] = []
    for entry in configs:
        resampling, method = entry if isinstance(entry, tuple) else (entry, "auto")
        estimates.append(
            run_experiment(
                learner,
                data,
                measure,
                resampling,
                method=method,
                alpha=alpha,
                seed=seed,
                n_jobs=n_jobs,
                verbose=verbose,
            )
        )

    summary_df = estimates_to_frame(estimates)
    log_estimates(summary_df, title=f"{learner.id} on {data.name}")
    return summary_df


def estimates_to_frame(estimates: Sequence[GEEstimate]) -> pd.DataFrame:
    summary_df = pd.DataFrame([e.to_summary_dict() for e in estimates])
    if not summary_df.empty:
        summary_df["Width"] = summary_df["Upper"] - summary_df["Lower"]
    return summary_df


def log_estimates(summary: Union[pd.DataFrame, Sequence[GEEstimate]], title: Optional[str] = None):
    """Log a table of estimates"""
    if not isinstance(summary, pd.DataFrame):
        summary = estimates_to_frame(summary)
    if summary.empty:
        logger.warning("No estimates to summarize")
        return

    table_summary = "\n" + "=" * 80 + "\n"
    table_summary += "GENERALIZATION ERROR ESTIMATES" + (f": {title}" if title else "") + "\n"
    table_summary += "=" * 80 + "\n"
    table_summary += summary.to_string(index=False, float_format=lambda v: f"{v:.4f}") + "\n"
    table_summary += "=" * 80 + "\n"
    logger.info(table_summary)

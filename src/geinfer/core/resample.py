"""
Fold execution for all resampling schemes.

This module runs every partition of an instantiated resampling scheme through
a learner and a measure, through the Learner protocol and the FoldEvaluator
interface, and collects the per-fold scores and pointwise losses.
"""

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Union

import numpy as np
from ezcolorlog import root_logger as logger
from joblib import Parallel, delayed
from tqdm.auto import tqdm

from ..errors import FoldError, GEInferError, IncompatibilityError
from ..measures import get_measure
from ..utils import derive_seed
from .data import Dataset
from .protocols import FoldEvaluator, Learner, Measure
from .resampling import Instantiation, ResamplingScheme, make_resampling
from .results import FoldResult, Partition, ResampleResult


@dataclass
class ExecutionConfig:
    """Configuration for fold execution"""

    n_jobs: int = 1
    backend: str = "loky"
    on_error: Literal["raise", "skip"] = "raise"
    store_models: bool = False
    verbose: bool = True
    show_progress: bool = False

    def __post_init__(self):
        if self.on_error not in ("raise", "skip"):
            raise ValueError(f"Unknown error policy: {self.on_error}")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")


class LearnerFoldEvaluator(FoldEvaluator):
    """Fit, predict and score one partition; keeps pointwise losses when the measure has them"""

    def __init__(self, store_models: bool = False):
        self.store_models = store_models

    def train_and_evaluate_fold(
        self,
        learner: Learner,
        data: Dataset,
        partition: Partition,
        measure: Measure,
        seed: int,
    ) -> FoldResult:
        model = learner.fit(data, partition.train_idx, seed)
        prediction = learner.predict(model, data, partition.test_idx)

        score = measure.score(prediction)
        if not np.isfinite(score):
            # e.g. AUC on a test set holding a single class
            raise ValueError(f"{measure.id} is undefined on this test set (score={score})")
        pointwise = np.asarray(measure.obs_loss(prediction), dtype=float) if measure.pointwise else None

        metadata: Dict[str, Any] = {**partition.meta, "seed": seed}
        if self.store_models:
            metadata["model"] = model

        return FoldResult(
            iteration=partition.iteration,
            score=float(score),
            train_size=partition.train_size,
            test_idx=partition.test_idx,
            pointwise=pointwise,
            inclusion_probs=data.inclusion_probs(partition.test_idx),
            metadata=metadata,
        )


def _evaluate_partition(
    evaluator: FoldEvaluator,
    learner: Learner,
    data: Dataset,
    partition: Partition,
    measure: Measure,
    seed: int,
    on_error: str,
) -> FoldResult:
    try:
        return evaluator.train_and_evaluate_fold(learner, data, partition, measure, seed)
    except GEInferError:
        # misconfigured experiment, never skipped
        raise
    except Exception as e:
        if on_error == "raise":
            raise FoldError(partition.iteration, f"{type(e).__name__}: {e}") from e
        logger.error(f"Iteration {partition.iteration} failed, skipping: {e}", exc_info=True)
        return FoldResult(
            iteration=partition.iteration,
            score=float("nan"),
            train_size=partition.train_size,
            test_idx=partition.test_idx,
            metadata={**partition.meta, "seed": seed},
            error=f"{type(e).__name__}: {e}",
        )


class ResampleExecutor:
    """Resampling engine running every iteration of an instantiated scheme"""

    def __init__(self, config: Optional[ExecutionConfig] = None, evaluator: Optional[FoldEvaluator] = None):
        self.config = config or ExecutionConfig()
        self.evaluator = evaluator or LearnerFoldEvaluator(store_models=self.config.store_models)

    def __str__(self):
        return f"ResampleExecutor(config={self.config})"

    def run(
        self,
        learner: Learner,
        data: Dataset,
        instantiation: Instantiation,
        measure: Union[Measure, str],
    ) -> ResampleResult:
        """
        Run all iterations of an instantiated resampling scheme.

        Folds are independent and may run in parallel; the result is ordered by
        iteration regardless of completion order.

        Args:
            learner: Learner to fit on every training set
            data: Full dataset the partitions index into
            instantiation: Resampling scheme with fixed partitions
            measure: Measure (or measure id) scoring every test set

        Returns:
            ResampleResult with one FoldResult per iteration

        Raises:
            IncompatibilityError: if learner, measure and dataset disagree on the task
            FoldError: if an iteration fails under the "raise" policy
        """
        if isinstance(measure, str):
            measure = get_measure(measure)
        if measure.task != learner.task or data.task != learner.task:
            raise IncompatibilityError(
                f"Task mismatch: learner {learner.id} ({learner.task}), measure {measure.id} ({measure.task}), "
                f"dataset {data.name} ({data.task})"
            )
        if instantiation.n_obs != data.n_obs:
            raise IncompatibilityError(
                f"Resampling was instantiated for {instantiation.n_obs} rows but {data.name} has {data.n_obs}"
            )

        partitions = tqdm(
            instantiation.partitions(),
            desc=f"[{learner.id.upper()}] {instantiation.kind}",
            total=instantiation.iters,
            disable=not self.config.show_progress,
        )
        jobs = (
            delayed(_evaluate_partition)(
                self.evaluator,
                learner,
                data,
                partition,
                measure,
                derive_seed(instantiation.seed, "fit", partition.iteration),
                self.config.on_error,
            )
            for partition in partitions
        )
        if self.config.n_jobs == 1:
            fold_results = [fn(*args, **kwargs) for fn, args, kwargs in jobs]
        else:
            fold_results = Parallel(n_jobs=self.config.n_jobs, backend=self.config.backend)(jobs)

        result = ResampleResult.from_fold_results(
            instantiation=instantiation,
            measure_id=measure.id,
            learner_id=learner.id,
            fold_results=fold_results,
            transform=measure.transform,
        )

        if result.n_failed:
            logger.warning(
                f"[{learner.id.upper()}] {result.n_failed} of {result.iters} iterations failed; "
                f"the result is incomplete and cannot be used for interval estimation"
            )
        if self.config.verbose:
            self.log_results(result)

        return result

    @staticmethod
    def log_results(result: ResampleResult):
        """Log resampling results"""
        logger.info(
            f"[{result.learner_id.upper()}] "
            f"{result.measure_id}: {result.mean_score:.4f} ± {result.std_score:.4f} "
            f"({result.scheme_kind}, iters={result.iters}, n={result.n_obs})"
        )


def resample(
    learner: Learner,
    data: Dataset,
    resampling: Union[str, Dict[str, Any], ResamplingScheme, Instantiation],
    measure: Union[Measure, str],
    seed: int = 42,
    config: Optional[ExecutionConfig] = None,
) -> ResampleResult:
    """Instantiate a resampling scheme (unless already instantiated) and run all of its folds"""
    if isinstance(resampling, Instantiation):
        instantiation = resampling
    else:
        instantiation = make_resampling(resampling).instantiate(data, seed)
    return ResampleExecutor(config).run(learner, data, instantiation, measure)

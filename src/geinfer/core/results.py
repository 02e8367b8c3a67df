"""
Result structures for the geinfer framework.

This module provides the objects flowing from the resampling generator through
the fold executor to the generalization-error estimators: partitions, per-fold
results, the collected resample result and the final estimate.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, TYPE_CHECKING
import math

import numpy as np
import pandas as pd

from ..utils import weighted_mean_std

if TYPE_CHECKING:
    from .resampling import Instantiation


@dataclass(frozen=True)
class Partition:
    """One train/test split of a resampling scheme (indices, never copies)"""

    iteration: int
    train_idx: np.ndarray
    test_idx: np.ndarray
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def train_size(self) -> int:
        return len(self.train_idx)

    @property
    def test_size(self) -> int:
        return len(self.test_idx)


@dataclass
class FoldResult:
    """Result from a single resampling iteration"""

    iteration: int
    score: float
    train_size: int
    test_idx: np.ndarray
    pointwise: Optional[np.ndarray] = None
    inclusion_probs: Optional[np.ndarray] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def test_size(self) -> int:
        return len(self.test_idx)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ResampleResult:
    """All fold results of one instantiated resampling scheme"""

    instantiation: "Instantiation"
    measure_id: str
    learner_id: str
    fold_results: List[FoldResult]
    mean_score: float
    std_score: float
    has_pointwise: bool = False
    transform: str = "identity"

    @classmethod
    def from_fold_results(
        cls,
        instantiation: "Instantiation",
        measure_id: str,
        learner_id: str,
        fold_results: List[FoldResult],
        transform: str = "identity",
    ) -> "ResampleResult":
        """Create ResampleResult from fold results with calculated statistics"""
        fold_results = sorted(fold_results, key=lambda f: f.iteration)
        ok = [f for f in fold_results if f.ok]

        if ok:
            mean_score, std_score = weighted_mean_std([f.score for f in ok], [f.test_size for f in ok])
        else:
            mean_score, std_score = float("nan"), float("nan")

        return cls(
            instantiation=instantiation,
            measure_id=measure_id,
            learner_id=learner_id,
            fold_results=fold_results,
            mean_score=mean_score,
            std_score=std_score,
            has_pointwise=bool(ok) and all(f.pointwise is not None for f in ok),
            transform=transform,
        )

    @property
    def scheme_kind(self) -> str:
        return self.instantiation.kind

    @property
    def iters(self) -> int:
        return self.instantiation.iters

    @property
    def n_obs(self) -> int:
        return self.instantiation.n_obs

    @property
    def n_failed(self) -> int:
        return sum(1 for f in self.fold_results if not f.ok)

    @property
    def is_complete(self) -> bool:
        """True when every iteration of the scheme produced a usable fold result"""
        done = {f.iteration for f in self.fold_results if f.ok}
        return len(done) == self.iters

    @property
    def scores(self) -> np.ndarray:
        return np.array([f.score for f in self.fold_results if f.ok], dtype=float)

    def select(self, **meta: Any) -> List[FoldResult]:
        """Fold results whose metadata matches all given key/value pairs"""
        return [f for f in self.fold_results if f.ok and all(f.metadata.get(k) == v for k, v in meta.items())]

    def pointwise_losses(self) -> np.ndarray:
        if not self.has_pointwise:
            raise ValueError(f"{self.measure_id} results carry no pointwise losses")
        return np.concatenate([f.pointwise for f in self.fold_results if f.ok])

    def to_frame(self) -> pd.DataFrame:
        """One row per iteration, for inspection and reporting"""
        records = []
        for f in self.fold_results:
            records.append(
                {
                    "iteration": f.iteration,
                    "score": f.score,
                    "train_size": f.train_size,
                    "test_size": f.test_size,
                    "error": f.error,
                    **{k: v for k, v in f.metadata.items() if np.isscalar(v) or v is None},
                }
            )
        return pd.DataFrame.from_records(records)


@dataclass(frozen=True)
class GEEstimate:
    """Point estimate and (1 - alpha) interval of the generalization error"""

    estimate: float
    lower: float
    upper: float
    alpha: float
    method: str
    scheme_kind: str
    measure_id: str = ""
    se: float = float("nan")
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if math.isnan(self.estimate):
            raise ValueError(f"{self.method}: point estimate is NaN")
        bounds_nan = math.isnan(self.lower) or math.isnan(self.upper)
        if bounds_nan and not self.extra.get("ill_defined", False):
            raise ValueError(f"{self.method}: interval bounds are NaN")
        if not bounds_nan and not (self.lower <= self.estimate <= self.upper):
            raise ValueError(
                f"{self.method}: invalid interval ordering lower={self.lower} estimate={self.estimate} upper={self.upper}"
            )

    @property
    def width(self) -> float:
        return self.upper - self.lower

    @property
    def conf_level(self) -> float:
        return 1 - self.alpha

    def to_summary_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for summary table"""
        return {
            "Method": self.method,
            "Resampling": self.scheme_kind,
            "Measure": self.measure_id,
            "Estimate": self.estimate,
            "Lower": self.lower,
            "Upper": self.upper,
            "SE": self.se,
            "Level": self.conf_level,
        }

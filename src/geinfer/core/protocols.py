"""
All protocols for learners, measures and fold evaluators.

This module defines the interface hierarchy the resampling executor works with:
- Learner: anything that can be fit on training rows and predict test rows
- Measure: a scoring function, optionally exposing per-observation losses
- FoldEvaluator: abstract base for running one resampling iteration
"""

from typing import Protocol, Optional, Any, Literal, runtime_checkable, TYPE_CHECKING
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

if TYPE_CHECKING:
    from .data import Dataset
    from .results import FoldResult, Partition


Task = Literal["clf", "reg"]  # classification or regression
Transform = Literal["identity", "sqrt"]  # post-aggregation transform of the mean pointwise loss


########################################################
# Predictions
########################################################


@dataclass
class Prediction:
    """Predictions of one model on a set of test rows"""

    row_ids: np.ndarray
    truth: np.ndarray
    response: np.ndarray
    prob: Optional[np.ndarray] = None  # (n, n_classes), columns ordered like class_labels
    class_labels: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.row_ids)

    def prob_positive(self) -> np.ndarray:
        """Probability of the second class label for binary problems"""
        if self.prob is None:
            raise ValueError("Prediction has no probabilities")
        if self.prob.ndim != 2 or self.prob.shape[1] != 2:
            raise ValueError(f"Expected binary probabilities, got shape {self.prob.shape}")
        return self.prob[:, 1]

    def prob_truth(self) -> np.ndarray:
        """Probability assigned to the true class of every row"""
        if self.prob is None or self.class_labels is None:
            raise ValueError("Prediction has no probabilities")
        col = np.searchsorted(self.class_labels, self.truth)
        col = np.clip(col, 0, len(self.class_labels) - 1)
        hit = self.class_labels[col] == self.truth
        out = np.zeros(len(self.truth), dtype=float)
        out[hit] = self.prob[np.arange(len(self.truth))[hit], col[hit]]
        return out


########################################################
# Learners & measures
########################################################


@runtime_checkable
class Learner(Protocol):
    """Fit / predict capability consumed by the resampling executor"""

    id: str
    task: Task

    def fit(self, data: "Dataset", train_idx: np.ndarray, seed: int) -> Any:
        """Fit a model on the given training rows and return it"""
        ...

    def predict(self, model: Any, data: "Dataset", test_idx: np.ndarray) -> Prediction:
        """Predict the given test rows with a fitted model"""
        ...


@runtime_checkable
class Measure(Protocol):
    """Scoring capability.

    ``pointwise`` is the capability flag: when True, ``obs_loss`` returns one
    loss per test row and the mean of those losses, after ``transform``,
    equals ``score``.
    """

    id: str
    task: Task
    minimize: bool
    pointwise: bool
    transform: Transform

    def score(self, prediction: Prediction) -> float:
        ...

    def obs_loss(self, prediction: Prediction) -> np.ndarray:
        ...


########################################################
# Fold evaluation
########################################################


class FoldEvaluator(ABC):
    """Abstract base for fold evaluation strategies"""

    @abstractmethod
    def train_and_evaluate_fold(
        self,
        learner: Learner,
        data: "Dataset",
        partition: "Partition",
        measure: Measure,
        seed: int,
    ) -> "FoldResult":
        """Train on the partition's train rows, score its test rows"""
        pass

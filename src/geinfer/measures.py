"""
Performance measures.

Every measure declares whether it is ``pointwise``: pointwise measures expose
``obs_loss`` returning one value per test row whose mean (after the measure's
``transform``) equals the aggregate score. Interval methods that need
per-observation losses check this flag before running.
"""

from typing import Dict, List, Type

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score,
    zero_one_loss,
)

from .core.protocols import Prediction, Task, Transform
from .errors import ConfigurationError, IncompatibilityError

LOGLOSS_EPS = 1e-15


class BaseMeasure:
    """Base class of all measures"""

    id: str = ""
    task: Task = "clf"
    minimize: bool = True
    pointwise: bool = True
    transform: Transform = "identity"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, pointwise={self.pointwise})"

    def obs_loss(self, prediction: Prediction) -> np.ndarray:
        raise IncompatibilityError(f"Measure {self.id} has no pointwise loss")

    def score(self, prediction: Prediction) -> float:
        loss = self.obs_loss(prediction)
        return apply_transform(float(np.mean(loss)), self.transform)


def apply_transform(value: float, transform: Transform) -> float:
    match transform:
        case "identity":
            return value
        case "sqrt":
            return float(np.sqrt(value))
        case _:
            raise ValueError(f"Unknown transform: {transform}")


class MeasureRegistry:
    """Registry for all available measures"""

    _measures: Dict[str, Type[BaseMeasure]] = {}

    @classmethod
    def register(cls, measure_class: Type[BaseMeasure]) -> Type[BaseMeasure]:
        """Decorator to register a measure class."""
        if not measure_class.id:
            raise ValueError(f"Measure {measure_class.__name__} must define an 'id'")
        cls._measures[measure_class.id] = measure_class
        return measure_class

    @classmethod
    def get(cls, measure_id: str) -> BaseMeasure:
        if measure_id not in cls._measures:
            raise ConfigurationError(f"Unknown measure: {measure_id}. Available: {sorted(cls._measures)}")
        return cls._measures[measure_id]()

    @classmethod
    def list_measures(cls) -> List[str]:
        return sorted(cls._measures)


def get_measure(measure_id: str) -> BaseMeasure:
    return MeasureRegistry.get(measure_id)


# =============================================================================
# CLASSIFICATION --------------------------------------------------------------
# =============================================================================


@MeasureRegistry.register
class ClassifCE(BaseMeasure):
    """Misclassification error, pointwise 0/1 loss"""

    id = "classif.ce"
    task = "clf"

    def obs_loss(self, prediction):
        return (prediction.response != prediction.truth).astype(float)

    def score(self, prediction):
        return float(zero_one_loss(prediction.truth, prediction.response))


@MeasureRegistry.register
class ClassifAcc(BaseMeasure):
    """Accuracy, pointwise 0/1 hits"""

    id = "classif.acc"
    task = "clf"
    minimize = False

    def obs_loss(self, prediction):
        return (prediction.response == prediction.truth).astype(float)

    def score(self, prediction):
        return float(accuracy_score(prediction.truth, prediction.response))


@MeasureRegistry.register
class ClassifBrier(BaseMeasure):
    """Binary Brier score"""

    id = "classif.bbrier"
    task = "clf"

    def obs_loss(self, prediction):
        hit = (prediction.truth == prediction.class_labels[1]).astype(float)
        return (prediction.prob_positive() - hit) ** 2


@MeasureRegistry.register
class ClassifLogloss(BaseMeasure):
    """Log loss of the probability assigned to the true class"""

    id = "classif.logloss"
    task = "clf"

    def obs_loss(self, prediction):
        return -np.log(np.clip(prediction.prob_truth(), LOGLOSS_EPS, 1.0))


@MeasureRegistry.register
class ClassifAUC(BaseMeasure):
    """Area under the ROC curve; not decomposable into per-row losses"""

    id = "classif.auc"
    task = "clf"
    minimize = False
    pointwise = False

    def score(self, prediction):
        truth = prediction.truth == prediction.class_labels[1]
        if truth.all() or not truth.any():
            return float("nan")
        return float(roc_auc_score(truth, prediction.prob_positive()))


# =============================================================================
# REGRESSION ------------------------------------------------------------------
# =============================================================================


@MeasureRegistry.register
class RegrMSE(BaseMeasure):
    """Mean squared error"""

    id = "regr.mse"
    task = "reg"

    def obs_loss(self, prediction):
        return (np.asarray(prediction.truth, dtype=float) - np.asarray(prediction.response, dtype=float)) ** 2

    def score(self, prediction):
        return float(mean_squared_error(prediction.truth, prediction.response))


@MeasureRegistry.register
class RegrMAE(BaseMeasure):
    """Mean absolute error"""

    id = "regr.mae"
    task = "reg"

    def obs_loss(self, prediction):
        return np.abs(np.asarray(prediction.truth, dtype=float) - np.asarray(prediction.response, dtype=float))

    def score(self, prediction):
        return float(mean_absolute_error(prediction.truth, prediction.response))


@MeasureRegistry.register
class RegrRMSE(RegrMSE):
    """Root mean squared error: squared-error pointwise loss with a sqrt transform"""

    id = "regr.rmse"
    transform = "sqrt"

    def score(self, prediction):
        return float(np.sqrt(mean_squared_error(prediction.truth, prediction.response)))


@MeasureRegistry.register
class RegrRSQ(BaseMeasure):
    """Coefficient of determination"""

    id = "regr.rsq"
    task = "reg"
    minimize = False
    pointwise = False

    def score(self, prediction):
        if len(prediction) < 2:
            return float("nan")
        return float(r2_score(prediction.truth, prediction.response))

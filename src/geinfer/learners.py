"""
scikit-learn learners for the resampling executor.

This module contains the SklearnLearner adapter and related utilities for
fitting scikit-learn estimators on the training rows of a partition and
predicting its test rows.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, clone
from sklearn.dummy import DummyClassifier, DummyRegressor
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.preprocessing import LabelEncoder

from .core.data import Dataset
from .core.protocols import Prediction, Task
from .errors import DataError

UnseenPolicy = Literal["encode", "error"]


def make_rf_estimator(task: Task, seed: Optional[int] = None, n_jobs: Optional[int] = None) -> BaseEstimator:
    if task == "clf":
        return RandomForestClassifier(n_estimators=100, random_state=seed, n_jobs=n_jobs)
    else:
        return RandomForestRegressor(n_estimators=200, random_state=seed, n_jobs=n_jobs)


def fit_encoders(X_train: pd.DataFrame) -> Dict[str, Dict[str, int]]:
    """Label-encode *object* / categorical columns, fit on **train only** to avoid leak."""
    cat_cols = X_train.select_dtypes(include=["object", "category"]).columns
    encoders: Dict[str, Dict[str, int]] = {}
    for col in cat_cols:
        enc = LabelEncoder().fit(X_train[col].astype(str))
        encoders[col] = {cls: i for i, cls in enumerate(enc.classes_)}
    return encoders


def apply_encoders(X: pd.DataFrame, encoders: Dict[str, Dict[str, int]], unseen: UnseenPolicy = "encode") -> pd.DataFrame:
    """Return a **copy** of X with categorical columns mapped to integer codes.

    Levels not seen during training map to -1, or raise DataError when
    ``unseen == "error"``.
    """
    X = X.copy()
    for col, mapping in encoders.items():
        values = X[col].astype(str)
        codes = values.map(mapping)
        if codes.isna().any():
            if unseen == "error":
                levels = sorted(values[codes.isna()].unique())
                raise DataError(f"Column '{col}' has levels not seen during training: {levels}")
            codes = codes.fillna(-1)
        X[col] = codes.astype(int)
    return X


@dataclass
class FittedModel:
    """A fitted estimator together with the encoders learned on its training rows"""

    estimator: BaseEstimator
    encoders: Dict[str, Dict[str, int]] = field(default_factory=dict)
    train_size: int = 0


class SklearnLearner:
    """Adapter exposing fit / predict on dataset rows for any scikit-learn estimator"""

    def __init__(
        self,
        estimator: BaseEstimator,
        task: Task,
        id: Optional[str] = None,
        unseen: UnseenPolicy = "encode",
        predict_proba: bool = True,
    ):
        if task not in ("clf", "reg"):
            raise ValueError(f"Unknown task: {task}")
        if unseen not in ("encode", "error"):
            raise ValueError(f"Unknown unseen-level policy: {unseen}")
        self.estimator = estimator
        self.task: Task = task
        self.id = id or type(estimator).__name__
        self.unseen = unseen
        self.predict_proba = predict_proba and task == "clf" and hasattr(estimator, "predict_proba")

    def __str__(self) -> str:
        return f"SklearnLearner({self.id}, task={self.task})"

    def fit(self, data: Dataset, train_idx: np.ndarray, seed: int) -> FittedModel:
        if data.task != self.task:
            raise DataError(f"Learner {self.id} is for task '{self.task}' but {data.name} is '{data.task}'")
        X_tr = data.X(train_idx)
        encoders = fit_encoders(X_tr)
        X_tr = apply_encoders(X_tr, encoders)

        estimator = clone(self.estimator)
        if "random_state" in estimator.get_params():
            estimator.set_params(random_state=seed)
        estimator.fit(X_tr, data.y(train_idx))
        return FittedModel(estimator=estimator, encoders=encoders, train_size=len(train_idx))

    def predict(self, model: FittedModel, data: Dataset, test_idx: np.ndarray) -> Prediction:
        X_te = apply_encoders(data.X(test_idx), model.encoders, self.unseen)
        est = model.estimator
        prob = None
        class_labels = None
        if self.task == "clf":
            class_labels = np.asarray(est.classes_)
            if self.predict_proba:
                prob = np.asarray(est.predict_proba(X_te), dtype=float)
        return Prediction(
            row_ids=np.asarray(test_idx),
            truth=data.y(test_idx),
            response=np.asarray(est.predict(X_te)),
            prob=prob,
            class_labels=class_labels,
        )


def make_rf_learner(task: Task, unseen: UnseenPolicy = "encode") -> SklearnLearner:
    # n_jobs=1: folds are already parallelized by the executor
    return SklearnLearner(make_rf_estimator(task, n_jobs=1), task, id=f"{task}.rf", unseen=unseen)


def make_linear_learner(task: Task, unseen: UnseenPolicy = "encode") -> SklearnLearner:
    if task == "clf":
        return SklearnLearner(LogisticRegression(max_iter=1000), task, id="clf.log_reg", unseen=unseen)
    return SklearnLearner(LinearRegression(), task, id="reg.lm", unseen=unseen)


def make_featureless_learner(task: Task) -> SklearnLearner:
    """Baseline predicting the majority class / the training mean"""
    if task == "clf":
        return SklearnLearner(DummyClassifier(strategy="prior"), task, id="clf.featureless")
    return SklearnLearner(DummyRegressor(strategy="mean"), task, id="reg.featureless")


LEARNER_FACTORIES: Dict[str, Any] = {
    "rf": make_rf_learner,
    "linear": make_linear_learner,
    "featureless": make_featureless_learner,
}


def get_learner(name: str, task: Task) -> SklearnLearner:
    if name not in LEARNER_FACTORIES:
        raise ValueError(f"Unknown learner: {name}. Available: {sorted(LEARNER_FACTORIES)}")
    return LEARNER_FACTORIES[name](task)

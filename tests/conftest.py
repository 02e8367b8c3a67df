"""
Pytest configuration and shared fixtures for geinfer tests.
"""

import numpy as np
import pandas as pd
import pytest

from geinfer.core.data import Dataset
from geinfer.core.protocols import Prediction
from geinfer.core.results import FoldResult, ResampleResult
from geinfer.inference import EstimatorRegistry
from geinfer.measures import apply_transform


def create_clf_frame(n_samples=120, n_classes=2, seed=42):
    """Create a classification frame with balanced labels and two informative features"""
    rng = np.random.default_rng(seed)
    labels = np.arange(n_classes)
    y = np.tile(labels, int(np.ceil(n_samples / n_classes)))[:n_samples]
    rng.shuffle(y)
    return pd.DataFrame(
        {
            "feature_1": y + rng.normal(0, 1.0, n_samples),
            "feature_2": rng.normal(0, 1.0, n_samples),
            "target": y,
        }
    )


def create_reg_frame(n_samples=120, seed=42):
    """Create a regression frame with a linear signal"""
    rng = np.random.default_rng(seed)
    x1 = rng.normal(0, 1.0, n_samples)
    x2 = rng.normal(0, 1.0, n_samples)
    return pd.DataFrame({"feature_1": x1, "feature_2": x2, "target": 2 * x1 - x2 + rng.normal(0, 0.5, n_samples)})


def create_spatial_frame(n_samples=200, seed=42):
    """Points on the unit square with a coordinate-dependent regression target and region labels"""
    rng = np.random.default_rng(seed)
    x = rng.uniform(0, 1, n_samples)
    y = rng.uniform(0, 1, n_samples)
    return pd.DataFrame(
        {
            "x": x,
            "y": y,
            "elevation": np.sin(3 * x) + rng.normal(0, 0.1, n_samples),
            "rain": np.cos(3 * y) + rng.normal(0, 0.1, n_samples),
            "region": np.char.add(np.where(x < 0.5, "west", "east"), np.where(y < 0.5, "_south", "_north")),
            "target": np.sin(3 * x) + np.cos(3 * y) + rng.normal(0, 0.1, n_samples),
        }
    )


class RuleLearner:
    """Deterministic learner for testing.

    Classification: predicts the true label except on rows whose id is a
    multiple of ``err_every``, where it predicts the other label. Regression:
    predicts truth + (row id % 3 - 1).
    """

    def __init__(self, task="clf", err_every=5):
        self.task = task
        self.id = f"{task}.rule"
        self.err_every = err_every
        self.fit_calls = 0

    def fit(self, data, train_idx, seed):
        self.fit_calls += 1
        return {"seed": seed, "n": len(train_idx)}

    def predict(self, model, data, test_idx):
        truth = data.y(test_idx)
        test_idx = np.asarray(test_idx)
        if self.task == "clf":
            labels = data.class_labels
            wrong = test_idx % self.err_every == 0
            response = truth.copy()
            response[wrong] = np.where(truth[wrong] == labels[0], labels[1], labels[0])
            prob = np.where(response == labels[1], 0.8, 0.2)
            return Prediction(
                row_ids=test_idx,
                truth=truth,
                response=response,
                prob=np.column_stack([1 - prob, prob]),
                class_labels=labels,
            )
        return Prediction(row_ids=test_idx, truth=truth, response=truth + (test_idx % 3 - 1))


class FailingLearner(RuleLearner):
    """RuleLearner that raises when fitted on a training set containing row ``bad_row``"""

    def __init__(self, task="clf", bad_row=0):
        super().__init__(task)
        self.bad_row = bad_row

    def fit(self, data, train_idx, seed):
        if self.bad_row in set(np.asarray(train_idx).tolist()):
            raise RuntimeError("cannot fit this fold")
        return super().fit(data, train_idx, seed)


def make_result(instantiation, loss_fn, measure_id="classif.ce", pointwise=True, transform="identity", failed=()):
    """Build a ResampleResult without fitting anything.

    ``loss_fn(partition)`` returns the pointwise losses of the partition's test
    rows; iterations listed in ``failed`` are recorded as errors.
    """
    folds = []
    for p in instantiation.partitions():
        if p.iteration in failed:
            folds.append(
                FoldResult(p.iteration, float("nan"), p.train_size, p.test_idx, metadata=dict(p.meta), error="boom")
            )
            continue
        losses = np.asarray(loss_fn(p), dtype=float)
        folds.append(
            FoldResult(
                iteration=p.iteration,
                score=apply_transform(float(losses.mean()), transform),
                train_size=p.train_size,
                test_idx=p.test_idx,
                pointwise=losses if pointwise else None,
                metadata=dict(p.meta),
            )
        )
    return ResampleResult.from_fold_results(instantiation, measure_id, "test.learner", folds, transform)


@pytest.fixture
def clf_data():
    return Dataset(create_clf_frame(), target_col="target", task="clf", name="clf_test")


@pytest.fixture
def reg_data():
    return Dataset(create_reg_frame(), target_col="target", task="reg", name="reg_test")


@pytest.fixture
def grouped_data():
    df = create_clf_frame(90)
    df["patient"] = np.repeat(np.arange(30), 3)
    return Dataset(df, target_col="target", task="clf", group_col="patient", name="grouped_test")


@pytest.fixture
def spatial_data():
    return Dataset(
        create_spatial_frame(),
        target_col="target",
        feature_cols=["elevation", "rain"],
        task="reg",
        coord_cols=["x", "y"],
        region_col="region",
        name="spatial_test",
    )


@pytest.fixture
def clean_registry():
    """
    Isolate the estimator registry state during a test.

    Usage:
        def test_something(clean_registry):
            # Registry is empty, and restored afterwards
            pass
    """
    original_estimators = EstimatorRegistry._estimators.copy()
    original_defaults = EstimatorRegistry._defaults.copy()
    EstimatorRegistry._estimators = {}
    EstimatorRegistry._defaults = {}

    try:
        yield
    finally:
        EstimatorRegistry._estimators = original_estimators
        EstimatorRegistry._defaults = original_defaults

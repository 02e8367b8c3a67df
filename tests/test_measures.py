"""
Tests for performance measures.
"""

import numpy as np
import pytest

from geinfer.core.protocols import Prediction
from geinfer.errors import ConfigurationError, IncompatibilityError
from geinfer.measures import MeasureRegistry, apply_transform, get_measure


@pytest.fixture
def clf_prediction():
    truth = np.array([0, 1, 1, 0, 1])
    response = np.array([0, 1, 0, 0, 0])
    p1 = np.array([0.1, 0.9, 0.4, 0.3, 0.2])
    return Prediction(
        row_ids=np.arange(5),
        truth=truth,
        response=response,
        prob=np.column_stack([1 - p1, p1]),
        class_labels=np.array([0, 1]),
    )


@pytest.fixture
def reg_prediction():
    return Prediction(row_ids=np.arange(4), truth=np.array([1.0, 2.0, 3.0, 4.0]), response=np.array([1.5, 2.0, 2.0, 6.0]))


class TestRegistry:
    def test_lookup(self):
        assert get_measure("classif.ce").id == "classif.ce"
        assert "regr.rmse" in MeasureRegistry.list_measures()

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown measure"):
            get_measure("classif.f1")


class TestClassification:
    def test_ce(self, clf_prediction):
        m = get_measure("classif.ce")
        assert m.pointwise and m.minimize
        np.testing.assert_array_equal(m.obs_loss(clf_prediction), [0, 0, 1, 0, 1])
        assert np.isclose(m.score(clf_prediction), 0.4)

    def test_acc(self, clf_prediction):
        m = get_measure("classif.acc")
        assert not m.minimize
        assert np.isclose(m.score(clf_prediction), 0.6)
        assert np.isclose(m.obs_loss(clf_prediction).mean(), m.score(clf_prediction))

    def test_brier(self, clf_prediction):
        m = get_measure("classif.bbrier")
        expected = np.array([0.01, 0.01, 0.36, 0.09, 0.64])
        np.testing.assert_allclose(m.obs_loss(clf_prediction), expected)
        assert np.isclose(m.score(clf_prediction), expected.mean())

    def test_logloss(self, clf_prediction):
        m = get_measure("classif.logloss")
        expected = -np.log([0.9, 0.9, 0.4, 0.7, 0.2])
        np.testing.assert_allclose(m.obs_loss(clf_prediction), expected)

    def test_auc_is_not_pointwise(self, clf_prediction):
        m = get_measure("classif.auc")
        assert not m.pointwise
        assert 0.0 <= m.score(clf_prediction) <= 1.0
        with pytest.raises(IncompatibilityError, match="no pointwise loss"):
            m.obs_loss(clf_prediction)

    def test_auc_single_class(self):
        pred = Prediction(
            row_ids=np.arange(3),
            truth=np.array([1, 1, 1]),
            response=np.array([1, 1, 1]),
            prob=np.array([[0.2, 0.8]] * 3),
            class_labels=np.array([0, 1]),
        )
        assert np.isnan(get_measure("classif.auc").score(pred))


class TestRegression:
    def test_mse(self, reg_prediction):
        m = get_measure("regr.mse")
        np.testing.assert_allclose(m.obs_loss(reg_prediction), [0.25, 0.0, 1.0, 4.0])
        assert np.isclose(m.score(reg_prediction), 5.25 / 4)

    def test_mae(self, reg_prediction):
        m = get_measure("regr.mae")
        assert np.isclose(m.score(reg_prediction), 3.5 / 4)

    def test_rmse_uses_sqrt_transform(self, reg_prediction):
        m = get_measure("regr.rmse")
        assert m.pointwise
        assert m.transform == "sqrt"
        assert np.isclose(m.score(reg_prediction), np.sqrt(5.25 / 4))
        # pointwise losses are squared errors, the transform applies after averaging
        assert np.isclose(apply_transform(m.obs_loss(reg_prediction).mean(), m.transform), m.score(reg_prediction))

    def test_rsq_is_not_pointwise(self, reg_prediction):
        m = get_measure("regr.rsq")
        assert not m.pointwise
        assert not m.minimize
        assert m.score(reg_prediction) < 1.0

    def test_unknown_transform(self):
        with pytest.raises(ValueError):
            apply_transform(1.0, "log")

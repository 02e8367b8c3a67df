"""
Tests for the Dataset abstraction.
"""

import numpy as np
import pandas as pd
import pytest

from geinfer.core.data import Dataset
from geinfer.errors import DataError

from conftest import create_clf_frame, create_reg_frame


class TestDataset:
    """Test column roles and row access"""

    def test_default_features_exclude_reserved_columns(self):
        df = create_clf_frame(30)
        df["patient"] = np.arange(30) // 3
        df["pi"] = 1.0
        data = Dataset(df, target_col="target", group_col="patient", weight_col="pi")
        assert data.feature_cols == ["feature_1", "feature_2"]
        assert data.n_obs == len(data) == 30

    def test_task_inference(self):
        assert Dataset(create_clf_frame(30), target_col="target").task == "clf"
        assert Dataset(create_reg_frame(30), target_col="target").task == "reg"

    def test_row_access(self, clf_data):
        idx = np.array([5, 1, 7])
        X = clf_data.X(idx)
        assert list(X.columns) == ["feature_1", "feature_2"]
        assert len(X) == 3
        np.testing.assert_array_equal(clf_data.y(idx), clf_data.frame["target"].to_numpy()[idx])

    def test_index_is_reset(self):
        df = create_clf_frame(10)
        df.index = np.arange(100, 110)
        data = Dataset(df, target_col="target")
        assert data.y(np.array([0]))[0] == df["target"].iloc[0]

    def test_frame_is_a_copy(self, clf_data):
        frame = clf_data.frame
        frame["target"] = -1
        assert (clf_data.y() != -1).all()

    def test_class_labels(self, clf_data, reg_data):
        np.testing.assert_array_equal(clf_data.class_labels, [0, 1])
        with pytest.raises(DataError):
            reg_data.class_labels

    def test_inclusion_probs(self, clf_data):
        assert clf_data.inclusion_probs() is None
        df = create_clf_frame(10)
        df["pi"] = np.linspace(0.1, 1.0, 10)
        data = Dataset(df, target_col="target", weight_col="pi")
        np.testing.assert_allclose(data.inclusion_probs(np.array([0, 9])), [0.1, 1.0])


class TestDatasetValidation:
    """Malformed column roles raise DataError"""

    def test_missing_target(self):
        with pytest.raises(DataError, match="Target column"):
            Dataset(create_clf_frame(10), target_col="label")

    def test_missing_feature(self):
        with pytest.raises(DataError, match="Feature columns"):
            Dataset(create_clf_frame(10), target_col="target", feature_cols=["feature_9"])

    def test_missing_group_column(self):
        with pytest.raises(DataError, match="Group column"):
            Dataset(create_clf_frame(10), target_col="target", group_col="patient")

    def test_group_column_with_missing_values(self):
        df = create_clf_frame(10)
        df["patient"] = [1, 2, None, 3, 4, 5, 6, 7, 8, 9]
        with pytest.raises(DataError, match="missing values"):
            Dataset(df, target_col="target", group_col="patient")

    @pytest.mark.parametrize("weights", [0.0, 1.5, -0.2])
    def test_invalid_inclusion_probabilities(self, weights):
        df = create_clf_frame(10)
        df["pi"] = weights
        with pytest.raises(DataError, match="inclusion probabilities"):
            Dataset(df, target_col="target", weight_col="pi")

    def test_coordinates_need_two_columns(self):
        df = create_clf_frame(10)
        df["x"] = 0.0
        with pytest.raises(DataError, match="two coordinate"):
            Dataset(df, target_col="target", coord_cols=["x"])

    def test_stratify_regression(self):
        with pytest.raises(DataError, match="Stratification"):
            Dataset(create_reg_frame(20), target_col="target", task="reg", stratify=True)

    def test_unknown_task(self):
        with pytest.raises(DataError, match="Unknown task"):
            Dataset(create_clf_frame(10), target_col="target", task="survival")

    def test_data_error_is_value_error(self):
        with pytest.raises(ValueError):
            Dataset(pd.DataFrame({"target": [0, 1]}), target_col="target")

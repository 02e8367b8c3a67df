"""
Tests for the fold executor.

These tests run deterministic learners through ResampleExecutor and check
ordering, pointwise losses, error policies and parallel execution.
"""

import numpy as np
import pytest

from geinfer.core.data import Dataset
from geinfer.core.resample import ExecutionConfig, LearnerFoldEvaluator, ResampleExecutor, resample
from geinfer.core.resampling import CV, make_resampling
from geinfer.errors import DataError, FoldError, IncompatibilityError
from geinfer.utils import derive_seed

from conftest import FailingLearner, RuleLearner, create_clf_frame


class DataErrorLearner(RuleLearner):
    def fit(self, data, train_idx, seed):
        raise DataError("unseen level 'x'")


@pytest.fixture
def quiet():
    return ExecutionConfig(verbose=False)


class TestExecutionConfig:
    def test_defaults(self):
        config = ExecutionConfig()
        assert config.n_jobs == 1
        assert config.on_error == "raise"

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            ExecutionConfig(on_error="retry")

    def test_zero_jobs(self):
        with pytest.raises(ValueError):
            ExecutionConfig(n_jobs=0)


class TestResampleExecutor:
    """Test running every partition of an instantiation"""

    def test_one_result_per_iteration(self, clf_data, quiet):
        learner = RuleLearner("clf")
        inst = CV(folds=4).instantiate(clf_data, seed=3)
        result = ResampleExecutor(quiet).run(learner, clf_data, inst, "classif.ce")

        assert learner.fit_calls == 4
        assert [f.iteration for f in result.fold_results] == [0, 1, 2, 3]
        assert result.is_complete
        assert result.measure_id == "classif.ce"
        assert result.learner_id == "clf.rule"
        # every fifth row is misclassified
        assert np.isclose(result.mean_score, 0.2)

    def test_pointwise_losses_match_rows(self, clf_data, quiet):
        inst = CV(folds=3).instantiate(clf_data, seed=0)
        result = ResampleExecutor(quiet).run(RuleLearner("clf"), clf_data, inst, "classif.ce")
        assert result.has_pointwise
        for fold, partition in zip(result.fold_results, inst.partitions()):
            np.testing.assert_array_equal(fold.test_idx, partition.test_idx)
            np.testing.assert_array_equal(fold.pointwise, (partition.test_idx % 5 == 0).astype(float))
            assert np.isclose(fold.score, fold.pointwise.mean())
            assert fold.train_size == partition.train_size

    def test_non_pointwise_measure(self, clf_data, quiet):
        inst = CV(folds=3).instantiate(clf_data, seed=0)
        result = ResampleExecutor(quiet).run(RuleLearner("clf"), clf_data, inst, "classif.auc")
        assert not result.has_pointwise
        assert all(f.pointwise is None for f in result.fold_results)

    def test_regression_losses(self, reg_data, quiet):
        inst = CV(folds=3).instantiate(reg_data, seed=0)
        result = ResampleExecutor(quiet).run(RuleLearner("reg"), reg_data, inst, "regr.mae")
        all_idx = np.concatenate([f.test_idx for f in result.fold_results])
        all_loss = np.concatenate([f.pointwise for f in result.fold_results])
        np.testing.assert_allclose(all_loss, np.abs(all_idx % 3 - 1))

    def test_metadata_carries_partition_and_seed(self, clf_data, quiet):
        inst = make_resampling("repeated_cv", folds=3, repeats=2).instantiate(clf_data, seed=9)
        result = ResampleExecutor(quiet).run(RuleLearner("clf"), clf_data, inst, "classif.ce")
        for fold in result.fold_results:
            assert fold.metadata["seed"] == derive_seed(9, "fit", fold.iteration)
            assert "repeat" in fold.metadata and "fold" in fold.metadata
            assert "model" not in fold.metadata

    def test_store_models(self, clf_data):
        config = ExecutionConfig(verbose=False, store_models=True)
        inst = CV(folds=2).instantiate(clf_data, seed=0)
        result = ResampleExecutor(config).run(RuleLearner("clf"), clf_data, inst, "classif.ce")
        assert result.fold_results[0].metadata["model"]["n"] == result.fold_results[0].train_size

    def test_inclusion_probs_are_collected(self, clf_data, quiet):
        df = clf_data.frame
        df["pi"] = 0.5
        data = Dataset(df, target_col="target", feature_cols=["feature_1", "feature_2"], task="clf", weight_col="pi")
        inst = make_resampling("holdout").instantiate(data, seed=0)
        result = ResampleExecutor(quiet).run(RuleLearner("clf"), data, inst, "classif.ce")
        np.testing.assert_allclose(result.fold_results[0].inclusion_probs, 0.5)


class TestCompatibility:
    """Test task and size checks before any fold runs"""

    def test_task_mismatch(self, clf_data, quiet):
        inst = CV(folds=3).instantiate(clf_data)
        with pytest.raises(IncompatibilityError, match="Task mismatch"):
            ResampleExecutor(quiet).run(RuleLearner("clf"), clf_data, inst, "regr.mse")

    def test_learner_dataset_mismatch(self, clf_data, quiet):
        inst = CV(folds=3).instantiate(clf_data)
        with pytest.raises(IncompatibilityError):
            ResampleExecutor(quiet).run(RuleLearner("reg"), clf_data, inst, "regr.mse")

    def test_size_mismatch(self, clf_data, quiet):
        inst = CV(folds=3).instantiate(50)
        with pytest.raises(IncompatibilityError, match="instantiated for 50 rows"):
            ResampleExecutor(quiet).run(RuleLearner("clf"), clf_data, inst, "classif.ce")


class TestErrorPolicies:
    """Test the raise and skip policies for failing folds"""

    def test_raise_policy(self, clf_data, quiet):
        inst = CV(folds=4).instantiate(clf_data, seed=1)
        with pytest.raises(FoldError, match="cannot fit this fold") as excinfo:
            ResampleExecutor(quiet).run(FailingLearner("clf", bad_row=0), clf_data, inst, "classif.ce")
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_skip_policy(self, clf_data):
        config = ExecutionConfig(verbose=False, on_error="skip")
        inst = CV(folds=4).instantiate(clf_data, seed=1)
        result = ResampleExecutor(config).run(FailingLearner("clf", bad_row=0), clf_data, inst, "classif.ce")

        # row 0 is in the training set of every fold but the one testing it
        assert result.n_failed == 3
        assert not result.is_complete
        (ok,) = [f for f in result.fold_results if f.ok]
        assert 0 in ok.test_idx
        failed = [f for f in result.fold_results if not f.ok]
        assert all("RuntimeError" in f.error for f in failed)
        assert all(np.isnan(f.score) for f in failed)

    def test_configuration_errors_are_never_skipped(self, clf_data):
        config = ExecutionConfig(verbose=False, on_error="skip")
        inst = CV(folds=3).instantiate(clf_data, seed=1)
        with pytest.raises(DataError, match="unseen level"):
            ResampleExecutor(config).run(DataErrorLearner("clf"), clf_data, inst, "classif.ce")

    def test_undefined_score_fails_the_fold(self, quiet):
        # two-row test sets, many of them hold a single class and have no AUC
        data = Dataset(create_clf_frame(20), target_col="target", task="clf")
        inst = make_resampling("subsampling", ratio=0.9, repeats=30).instantiate(data, seed=1)
        with pytest.raises(FoldError, match="undefined"):
            ResampleExecutor(quiet).run(RuleLearner("clf"), data, inst, "classif.auc")

        config = ExecutionConfig(verbose=False, on_error="skip")
        result = ResampleExecutor(config).run(RuleLearner("clf"), data, inst, "classif.auc")
        assert result.n_failed > 0
        assert all("ValueError" in f.error for f in result.fold_results if not f.ok)
        assert all(np.isfinite(f.score) for f in result.fold_results if f.ok)


class TestParallel:
    """Parallel execution gives the same result as sequential execution"""

    def test_parallel_matches_sequential(self, clf_data):
        inst = make_resampling("subsampling", repeats=6).instantiate(clf_data, seed=5)
        sequential = ResampleExecutor(ExecutionConfig(verbose=False)).run(RuleLearner("clf"), clf_data, inst, "classif.ce")
        parallel = ResampleExecutor(ExecutionConfig(verbose=False, n_jobs=2, backend="threading")).run(
            RuleLearner("clf"), clf_data, inst, "classif.ce"
        )
        np.testing.assert_array_equal(sequential.scores, parallel.scores)
        for a, b in zip(sequential.fold_results, parallel.fold_results):
            assert a.iteration == b.iteration
            np.testing.assert_array_equal(a.pointwise, b.pointwise)
            assert a.metadata["seed"] == b.metadata["seed"]


class TestResampleFunction:
    def test_resample_from_configuration(self, clf_data):
        result = resample(RuleLearner("clf"), clf_data, {"kind": "cv", "folds": 5}, "classif.ce", seed=2,
                          config=ExecutionConfig(verbose=False))
        assert result.scheme_kind == "cv"
        assert result.iters == 5
        assert result.instantiation.seed == 2

    def test_resample_from_instantiation(self, clf_data):
        inst = CV(folds=3).instantiate(clf_data, seed=4)
        result = resample(RuleLearner("clf"), clf_data, inst, "classif.ce", config=ExecutionConfig(verbose=False))
        assert result.instantiation is inst

    def test_custom_evaluator(self, clf_data, quiet):
        evaluator = LearnerFoldEvaluator(store_models=True)
        inst = CV(folds=2).instantiate(clf_data, seed=0)
        result = ResampleExecutor(quiet, evaluator).run(RuleLearner("clf"), clf_data, inst, "classif.ce")
        assert all("model" in f.metadata for f in result.fold_results)

"""
Dataset abstraction used by resampling schemes, learners and measures.

A Dataset is a read-only view of a pandas DataFrame together with the column
roles an experiment needs: the target, the features, and optional grouping,
coordinate, region and weight columns. Rows are always addressed by position.
"""

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from ..errors import DataError
from .protocols import Task


class Dataset:
    """Row-addressable, column-typed dataset for one experiment"""

    def __init__(
        self,
        df: pd.DataFrame,
        target_col: str,
        feature_cols: Optional[List[str]] = None,
        task: Optional[Task] = None,
        group_col: Optional[str] = None,
        stratify: bool = False,
        coord_cols: Optional[Sequence[str]] = None,
        region_col: Optional[str] = None,
        weight_col: Optional[str] = None,
        name: str = "dataset",
    ):
        if target_col not in df.columns:
            raise DataError(f"Target column '{target_col}' not found. Available: {list(df.columns)}")

        reserved = {target_col, group_col, region_col, weight_col} - {None}
        if feature_cols is None:
            feature_cols = [c for c in df.columns if c not in reserved and c not in (coord_cols or [])]
        missing = [c for c in feature_cols if c not in df.columns]
        if missing:
            raise DataError(f"Feature columns not found: {missing}")
        if not feature_cols:
            raise DataError("Dataset needs at least one feature column")

        for role, col in (("group", group_col), ("region", region_col), ("weight", weight_col)):
            if col is not None and col not in df.columns:
                raise DataError(f"{role.capitalize()} column '{col}' not found")
            if col is not None and df[col].isna().any():
                raise DataError(f"{role.capitalize()} column '{col}' contains missing values")

        if coord_cols is not None:
            coord_cols = list(coord_cols)
            if len(coord_cols) != 2:
                raise DataError(f"Expected two coordinate columns, got {coord_cols}")
            for col in coord_cols:
                if col not in df.columns:
                    raise DataError(f"Coordinate column '{col}' not found")
                if not is_numeric_dtype(df[col]) or df[col].isna().any():
                    raise DataError(f"Coordinate column '{col}' must be numeric without missing values")

        if weight_col is not None:
            w = df[weight_col]
            if not is_numeric_dtype(w) or (w <= 0).any() or (w > 1).any():
                raise DataError(f"Weight column '{weight_col}' must hold inclusion probabilities in (0, 1]")

        if task is None:
            y = df[target_col]
            task = "reg" if is_numeric_dtype(y) and not pd.api.types.is_bool_dtype(y) and y.nunique() > 10 else "clf"
        if task not in ("clf", "reg"):
            raise DataError(f"Unknown task: {task}")
        if stratify and task != "clf":
            raise DataError("Stratification requires a classification target")

        self._df = df.reset_index(drop=True).copy()
        self.target_col = target_col
        self.feature_cols = list(feature_cols)
        self.task: Task = task
        self.group_col = group_col
        self.stratify = stratify
        self.coord_cols = coord_cols
        self.region_col = region_col
        self.weight_col = weight_col
        self.name = name

    def __len__(self) -> int:
        return len(self._df)

    def __str__(self) -> str:
        return f"Dataset({self.name}, n={self.n_obs}, task={self.task}, features={len(self.feature_cols)})"

    @property
    def n_obs(self) -> int:
        return len(self._df)

    @property
    def frame(self) -> pd.DataFrame:
        """Return a **copy** of the underlying frame"""
        return self._df.copy()

    def rows(self, idx: np.ndarray) -> pd.DataFrame:
        return self._df.iloc[np.asarray(idx)]

    def X(self, idx: Optional[np.ndarray] = None) -> pd.DataFrame:
        df = self._df if idx is None else self.rows(idx)
        return df[self.feature_cols].copy()

    def y(self, idx: Optional[np.ndarray] = None) -> np.ndarray:
        df = self._df if idx is None else self.rows(idx)
        return df[self.target_col].to_numpy()

    @property
    def class_labels(self) -> np.ndarray:
        if self.task != "clf":
            raise DataError(f"{self.name} is a regression dataset and has no class labels")
        return np.unique(self._df[self.target_col].to_numpy())

    def groups(self) -> np.ndarray:
        if self.group_col is None:
            raise DataError(f"{self.name} has no group column")
        return self._df[self.group_col].to_numpy()

    def strata(self) -> np.ndarray:
        if self.task != "clf":
            raise DataError(f"{self.name}: stratification requires a classification target")
        return self._df[self.target_col].to_numpy()

    def coords(self) -> np.ndarray:
        if self.coord_cols is None:
            raise DataError(f"{self.name} has no coordinate columns")
        return self._df[self.coord_cols].to_numpy(dtype=float)

    def regions(self) -> np.ndarray:
        if self.region_col is None:
            raise DataError(f"{self.name} has no region column")
        return self._df[self.region_col].to_numpy()

    def inclusion_probs(self, idx: Optional[np.ndarray] = None) -> Optional[np.ndarray]:
        """Inclusion probabilities for Horvitz-Thompson weighting, if the dataset carries them"""
        if self.weight_col is None:
            return None
        df = self._df if idx is None else self.rows(idx)
        return df[self.weight_col].to_numpy(dtype=float)

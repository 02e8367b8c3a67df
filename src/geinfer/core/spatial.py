"""
Spatial resampling schemes.

Fold membership is a function of the coordinates (or of predefined region
labels) instead of a purely random assignment. Every scheme accepts an
optional ``buffer``: training rows closer than ``buffer`` to any test row are
dropped from the training set.
"""

from abc import abstractmethod
from typing import ClassVar, List, Literal, Optional

import numpy as np
from pandas.api.types import is_numeric_dtype
from pydantic import Field
from scipy.spatial import cKDTree
from sklearn.cluster import KMeans
from sklearn.preprocessing import StandardScaler

from ..errors import ConfigurationError, DataError
from ..utils import derive_seed, make_rng
from .data import Dataset
from .resampling import RawSplit, ResamplingRegistry, ResamplingScheme, folds_to_splits


def apply_buffer(coords: np.ndarray, train_idx: np.ndarray, test_idx: np.ndarray, buffer: float) -> np.ndarray:
    """Drop training rows within ``buffer`` distance of any test row"""
    if len(train_idx) == 0 or len(test_idx) == 0:
        return train_idx
    nearest, _ = cKDTree(coords[test_idx]).query(coords[train_idx], k=1)
    return train_idx[nearest > buffer]


def grid_cells(coords: np.ndarray, nx: int, ny: int) -> np.ndarray:
    """Cell id (ix * ny + iy) of every point on an nx * ny grid over the bounding box"""
    lo = coords.min(axis=0)
    span = coords.max(axis=0) - lo
    span[span == 0] = 1.0
    rel = (coords - lo) / span
    ix = np.minimum((rel[:, 0] * nx).astype(np.int64), nx - 1)
    iy = np.minimum((rel[:, 1] * ny).astype(np.int64), ny - 1)
    return ix * ny + iy


class SpatialScheme(ResamplingScheme):
    """Base class for schemes that need the dataset's coordinates"""

    needs_data: ClassVar[bool] = True
    buffer: Optional[float] = Field(None, ge=0, description="Exclusion distance around test rows")

    def _split(self, data: Dataset, n: int, seed: int) -> List[RawSplit]:
        splits = self._spatial_split(data, n, seed)
        if self.buffer is None:
            return splits
        coords = data.coords()
        return [(apply_buffer(coords, tr, te, self.buffer), te, meta) for tr, te, meta in splits]

    @abstractmethod
    def _spatial_split(self, data: Dataset, n: int, seed: int) -> List[RawSplit]:
        """Produce the splits before the buffer is applied"""
        ...


@ResamplingRegistry.register
class SpatialTiles(SpatialScheme):
    """Leave-one-tile-out over a regular nx * ny grid; empty tiles are skipped"""

    kind: Literal["spcv_tiles"] = "spcv_tiles"
    nx: int = Field(2, ge=1)
    ny: int = Field(2, ge=1)

    def _spatial_split(self, data, n, seed):
        if self.nx * self.ny < 2:
            raise ConfigurationError(f"{self.kind} needs at least 2 tiles, got {self.nx}x{self.ny}")
        cells = grid_cells(data.coords(), self.nx, self.ny)
        if len(np.unique(cells)) < 2:
            raise ConfigurationError(f"{self.kind}: all points fall into a single tile")
        return folds_to_splits(cells)


@ResamplingRegistry.register
class SpatialBlock(SpatialScheme):
    """Rectangular blocks of a rows * cols grid randomly assigned to folds"""

    kind: Literal["spcv_block"] = "spcv_block"
    folds: int = Field(5, ge=2)
    rows: int = Field(4, ge=1)
    cols: int = Field(4, ge=1)

    @property
    def iters(self) -> int:
        return self.folds

    def _spatial_split(self, data, n, seed):
        cells = grid_cells(data.coords(), self.cols, self.rows)
        uniq, inverse = np.unique(cells, return_inverse=True)
        if len(uniq) < self.folds:
            raise ConfigurationError(
                f"{self.kind}: only {len(uniq)} non-empty blocks for {self.folds} folds, use a finer grid"
            )
        perm = make_rng(seed, 0).permutation(len(uniq))
        fold_of_block = np.empty(len(uniq), dtype=np.int64)
        fold_of_block[perm] = np.arange(len(uniq)) % self.folds
        return folds_to_splits(fold_of_block[inverse])


def _kmeans_folds(values: np.ndarray, folds: int, seed: int, kind: str) -> np.ndarray:
    n_distinct = len(np.unique(values, axis=0))
    if n_distinct < folds:
        raise ConfigurationError(f"{kind}: only {n_distinct} distinct points for {folds} clusters")
    km = KMeans(n_clusters=folds, n_init=10, random_state=derive_seed(seed, "kmeans"))
    return km.fit_predict(values)


@ResamplingRegistry.register
class SpatialCoords(SpatialScheme):
    """Folds from k-means clustering of the coordinates"""

    kind: Literal["spcv_coords"] = "spcv_coords"
    folds: int = Field(5, ge=2)

    @property
    def iters(self) -> int:
        return self.folds

    def _spatial_split(self, data, n, seed):
        return folds_to_splits(_kmeans_folds(data.coords(), self.folds, seed, self.kind))


@ResamplingRegistry.register
class SpatialEnv(SpatialScheme):
    """Folds from k-means clustering of standardized covariates"""

    kind: Literal["spcv_env"] = "spcv_env"
    folds: int = Field(5, ge=2)
    features: Optional[List[str]] = None

    @property
    def iters(self) -> int:
        return self.folds

    def _spatial_split(self, data, n, seed):
        frame = data.frame
        features = self.features
        if features is None:
            features = [c for c in data.feature_cols if is_numeric_dtype(frame[c])]
        if not features:
            raise DataError(f"{self.kind}: no numeric covariates to cluster on")
        for col in features:
            if col not in frame.columns:
                raise DataError(f"{self.kind}: covariate '{col}' not found")
            if not is_numeric_dtype(frame[col]) or frame[col].isna().any():
                raise DataError(f"{self.kind}: covariate '{col}' must be numeric without missing values")
        values = StandardScaler().fit_transform(frame[features].to_numpy(dtype=float))
        return folds_to_splits(_kmeans_folds(values, self.folds, seed, self.kind))


@ResamplingRegistry.register
class SpatialDisc(SpatialScheme):
    """Circular test discs around randomly drawn centre points.

    Test rows lie within ``radius`` of the centre; training rows are all rows
    farther than ``radius + buffer`` from it.
    """

    kind: Literal["spcv_disc"] = "spcv_disc"
    folds: int = Field(5, ge=1)
    radius: float = Field(..., gt=0)
    replace: bool = False

    @property
    def iters(self) -> int:
        return self.folds

    def _split(self, data, n, seed):
        # the buffer is part of the disc geometry here, not a post-filter
        coords = data.coords()
        if not self.replace and self.folds > n:
            raise ConfigurationError(f"{self.kind}: cannot draw {self.folds} distinct centres from {n} points")
        centres = make_rng(seed, 0).choice(n, size=self.folds, replace=self.replace)
        all_idx = np.arange(n)
        outer = self.radius + (self.buffer or 0.0)
        splits = []
        for k, c in enumerate(centres):
            dist = np.linalg.norm(coords - coords[c], axis=1)
            splits.append((all_idx[dist > outer], all_idx[dist <= self.radius], {"fold": k, "centre": int(c)}))
        return splits


@ResamplingRegistry.register
class SpatialLeaveOneUnitOut(SpatialScheme):
    """Leave one predefined spatial unit (region label) out per iteration"""

    kind: Literal["spcv_loo"] = "spcv_loo"

    def _spatial_split(self, data, n, seed):
        regions = data.regions()
        if len(np.unique(regions)) < 2:
            raise ConfigurationError(f"{self.kind} needs at least 2 spatial units")
        return folds_to_splits(regions)

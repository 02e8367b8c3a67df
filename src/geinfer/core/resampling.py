"""
Resampling schemes.

A scheme is a validated, immutable configuration (kind + parameters). Calling
``instantiate`` with a dataset (or a dataset size) and a seed fixes its random
partitions in an ``Instantiation``. All randomness is derived from that single
seed with ``derive_seed`` so re-instantiating with the same seed gives
bit-identical partitions.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Literal, Optional, Tuple, Type, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sklearn.model_selection import KFold, StratifiedKFold

from ..errors import ConfigurationError, DataError
from ..utils import derive_seed, make_rng
from .data import Dataset
from .results import Partition


# (train_idx, test_idx, meta) as produced by a scheme before validation
RawSplit = Tuple[np.ndarray, np.ndarray, Dict[str, Any]]


@dataclass
class Instantiation:
    """A resampling scheme with its partitions fixed for one experiment"""

    scheme: "ResamplingScheme"
    seed: int
    n_obs: int
    splits: List[Partition] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return self.scheme.kind

    @property
    def params(self) -> Dict[str, Any]:
        return self.scheme.params

    @property
    def iters(self) -> int:
        return len(self.splits)

    def __len__(self) -> int:
        return self.iters

    def __str__(self) -> str:
        return f"Instantiation({self.scheme}, seed={self.seed}, iters={self.iters})"

    def partitions(self) -> Iterator[Partition]:
        """Iterate over the partitions; every call starts from the first one"""
        for partition in self.splits:
            yield partition

    def train_set(self, i: int) -> np.ndarray:
        return self.splits[i].train_idx

    def test_set(self, i: int) -> np.ndarray:
        return self.splits[i].test_idx


class ResamplingScheme(BaseModel):
    """Base class of all resampling schemes"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str
    needs_data: ClassVar[bool] = False

    def __str__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.kind}({params})"

    @property
    def params(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"kind"})

    @property
    def iters(self) -> Optional[int]:
        """Declared iteration count, or None when it depends on the data"""
        return None

    def instantiate(self, data: Union[Dataset, int], seed: int = 42) -> Instantiation:
        """Fix the partitions of this scheme for a dataset (or a dataset size).

        Raises:
            ConfigurationError: if any partition would have an empty train or test set
            DataError: if the scheme needs dataset columns the dataset does not have
        """
        if isinstance(data, Dataset):
            n = data.n_obs
        else:
            if self.needs_data:
                raise DataError(f"{self.kind} needs a Dataset, got a dataset size")
            n = int(data)
            data = None
        if n < 2:
            raise ConfigurationError(f"{self.kind} needs at least 2 observations, got {n}")

        raw = self._split(data, n, int(seed))

        splits = []
        for i, (train_idx, test_idx, meta) in enumerate(raw):
            train_idx = np.asarray(train_idx, dtype=np.int64)
            test_idx = np.asarray(test_idx, dtype=np.int64)
            if len(train_idx) == 0 or len(test_idx) == 0:
                raise ConfigurationError(
                    f"{self} on {n} observations gives iteration {i} an empty "
                    f"{'train' if len(train_idx) == 0 else 'test'} set"
                )
            splits.append(Partition(iteration=i, train_idx=train_idx, test_idx=test_idx, meta=dict(meta)))

        declared = self.iters
        assert declared is None or declared == len(splits), (
            f"{self.kind} declared {declared} iterations but produced {len(splits)}"
        )
        return Instantiation(scheme=self, seed=int(seed), n_obs=n, splits=splits)

    @abstractmethod
    def _split(self, data: Optional[Dataset], n: int, seed: int) -> List[RawSplit]:
        """Produce the raw splits for n observations"""
        ...


class ResamplingRegistry:
    """Registry mapping a scheme kind tag to its configuration class"""

    _schemes: Dict[str, Type[ResamplingScheme]] = {}

    @classmethod
    def register(cls, scheme_class: Type[ResamplingScheme]) -> Type[ResamplingScheme]:
        """Decorator to register a resampling scheme class."""
        kind = scheme_class.model_fields["kind"].default
        if not isinstance(kind, str):
            raise ValueError(f"Resampling {scheme_class.__name__} must define a default 'kind'")
        cls._schemes[kind] = scheme_class
        return scheme_class

    @classmethod
    def get(cls, kind: str) -> Type[ResamplingScheme]:
        if kind not in cls._schemes:
            raise ConfigurationError(f"Unknown resampling: {kind}. Available: {sorted(cls._schemes)}")
        return cls._schemes[kind]

    @classmethod
    def list_kinds(cls) -> List[str]:
        return sorted(cls._schemes)


def make_resampling(config: Union[str, Dict[str, Any], ResamplingScheme], **params: Any) -> ResamplingScheme:
    """Build a resampling scheme from named configuration.

    Examples:
        make_resampling("cv", folds=5)
        make_resampling({"kind": "subsampling", "ratio": 0.8, "repeats": 20})
    """
    if isinstance(config, ResamplingScheme):
        if not params:
            return config
        config = config.model_dump()
    if isinstance(config, str):
        kind, values = config, dict(params)
    elif isinstance(config, dict):
        if "kind" not in config:
            raise ConfigurationError(f"Resampling configuration needs a 'kind': {config}")
        values = {k: v for k, v in config.items() if k != "kind"}
        values.update(params)
        kind = config["kind"]
    else:
        raise ConfigurationError(f"Cannot build a resampling from {type(config).__name__}")

    scheme_class = ResamplingRegistry.get(kind)
    try:
        return scheme_class.model_validate({"kind": kind, **values})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid parameters for {kind}: {e}") from e


def list_resamplings() -> List[str]:
    return ResamplingRegistry.list_kinds()


###############################################################################
# Helpers ---------------------------------------------------------------------
###############################################################################


def holdout_split(idx: np.ndarray, ratio: float, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """Randomly split ``idx`` into round(ratio * len(idx)) train rows and the remainder"""
    perm = rng.permutation(idx)
    n_train = int(round(ratio * len(idx)))
    return np.sort(perm[:n_train]), np.sort(perm[n_train:])


def folds_to_splits(fold_of_row: np.ndarray, meta: Optional[Dict[str, Any]] = None) -> List[RawSplit]:
    """Leave-one-fold-out splits from a fold label per row (labels in sorted order)"""
    all_idx = np.arange(len(fold_of_row))
    splits = []
    for fold_id, label in enumerate(np.unique(fold_of_row)):
        test = all_idx[fold_of_row == label]
        train = all_idx[fold_of_row != label]
        splits.append((train, test, {**(meta or {}), "fold": fold_id}))
    return splits


def _check_folds(kind: str, folds: int, n_units: int, unit: str = "observations"):
    if folds > n_units:
        raise ConfigurationError(f"{kind}: cannot make {folds} folds from {n_units} {unit}")


def _kfold_splits(kind: str, data: Optional[Dataset], n: int, folds: int, random_state: int):
    """KFold splits, stratified by the target when the dataset asks for it"""
    if data is not None and data.stratify:
        splitter = StratifiedKFold(n_splits=folds, shuffle=True, random_state=random_state)
        try:
            return list(splitter.split(np.zeros(n), data.strata()))
        except ValueError as e:
            raise ConfigurationError(f"{kind}: {e}") from e
    return list(KFold(n_splits=folds, shuffle=True, random_state=random_state).split(np.arange(n)))


###############################################################################
# Schemes ---------------------------------------------------------------------
###############################################################################


@ResamplingRegistry.register
class Holdout(ResamplingScheme):
    """Single random train/test split"""

    kind: Literal["holdout"] = "holdout"
    ratio: float = Field(2 / 3, gt=0, lt=1, description="Fraction of rows used for training")

    @property
    def iters(self) -> int:
        return 1

    def _split(self, data, n, seed):
        train, test = holdout_split(np.arange(n), self.ratio, make_rng(seed, 0))
        return [(train, test, {"repeat": 0})]


@ResamplingRegistry.register
class Subsampling(ResamplingScheme):
    """Repeated independent holdout splits"""

    kind: Literal["subsampling"] = "subsampling"
    ratio: float = Field(2 / 3, gt=0, lt=1)
    repeats: int = Field(30, ge=1)

    @property
    def iters(self) -> int:
        return self.repeats

    def _split(self, data, n, seed):
        splits = []
        for r in range(self.repeats):
            train, test = holdout_split(np.arange(n), self.ratio, make_rng(seed, r))
            splits.append((train, test, {"repeat": r}))
        return splits


@ResamplingRegistry.register
class PairedSubsampling(ResamplingScheme):
    """Subsampling on the full data plus subsampling within random data halves.

    The first ``repeats_in`` iterations subsample the full data. Then, for each
    of the ``repeats_out`` outer repeats, the data is split into two random
    halves and each half is subsampled ``repeats_in`` times. The defaults
    reproduce the 315 iterations of Nadeau & Bengio's experiments.
    """

    kind: Literal["paired_subsampling"] = "paired_subsampling"
    repeats_in: int = Field(15, ge=1)
    repeats_out: int = Field(10, ge=1)
    ratio: float = Field(0.9, gt=0, lt=1)

    @property
    def iters(self) -> int:
        return self.repeats_in * (2 * self.repeats_out + 1)

    def _split(self, data, n, seed):
        if n < 4:
            raise ConfigurationError(f"{self.kind} needs at least 4 observations to form halves, got {n}")
        all_idx = np.arange(n)
        splits = []
        for j in range(self.repeats_in):
            train, test = holdout_split(all_idx, self.ratio, make_rng(seed, "full", j))
            splits.append((train, test, {"stage": "full", "inner": j}))

        for m in range(self.repeats_out):
            perm = make_rng(seed, "halves", m).permutation(n)
            halves = (np.sort(perm[: n // 2]), np.sort(perm[n // 2 :]))
            for h, half in enumerate(halves, 1):
                for j in range(self.repeats_in):
                    train, test = holdout_split(half, self.ratio, make_rng(seed, "half", m, h, j))
                    splits.append((train, test, {"stage": "half", "repeat": m, "half": h, "inner": j}))
        return splits


@ResamplingRegistry.register
class CV(ResamplingScheme):
    """K-fold cross-validation"""

    kind: Literal["cv"] = "cv"
    folds: int = Field(10, ge=2)

    @property
    def iters(self) -> int:
        return self.folds

    def _split(self, data, n, seed):
        _check_folds(self.kind, self.folds, n)
        folds = _kfold_splits(self.kind, data, n, self.folds, derive_seed(seed, 0))
        return [(tr, te, {"repeat": 0, "fold": k}) for k, (tr, te) in enumerate(folds)]


@ResamplingRegistry.register
class RepeatedCV(ResamplingScheme):
    """K-fold cross-validation repeated with independent fold assignments"""

    kind: Literal["repeated_cv"] = "repeated_cv"
    folds: int = Field(10, ge=2)
    repeats: int = Field(10, ge=1)

    @property
    def iters(self) -> int:
        return self.folds * self.repeats

    def _split(self, data, n, seed):
        _check_folds(self.kind, self.folds, n)
        splits = []
        for r in range(self.repeats):
            for k, (tr, te) in enumerate(_kfold_splits(self.kind, data, n, self.folds, derive_seed(seed, r))):
                splits.append((tr, te, {"repeat": r, "fold": k}))
        return splits


@ResamplingRegistry.register
class NestedCV(ResamplingScheme):
    """Repeated nested cross-validation.

    For every repeat the rows are assigned to ``folds`` folds. For every outer
    fold k, the ``folds - 1`` inner CV iterations on the remaining folds come
    first (stage "inner"), followed by the outer iteration trained on all other
    folds and tested on fold k (stage "outer"). The outer iterations of one
    repeat form an ordinary K-fold CV. ``repeats * folds**2`` iterations total.
    """

    kind: Literal["nested_cv"] = "nested_cv"
    folds: int = Field(5, ge=3)
    repeats: int = Field(10, ge=1)

    @property
    def iters(self) -> int:
        return self.repeats * self.folds**2

    def _split(self, data, n, seed):
        _check_folds(self.kind, self.folds, n)
        all_idx = np.arange(n)
        splits = []
        for r in range(self.repeats):
            perm = make_rng(seed, r).permutation(n)
            fold_of_row = np.empty(n, dtype=np.int64)
            fold_of_row[perm] = np.arange(n) % self.folds
            for k in range(self.folds):
                for j in range(self.folds):
                    if j == k:
                        continue
                    train = all_idx[(fold_of_row != k) & (fold_of_row != j)]
                    test = all_idx[fold_of_row == j]
                    splits.append((train, test, {"stage": "inner", "repeat": r, "outer": k, "inner": j}))
                train = all_idx[fold_of_row != k]
                test = all_idx[fold_of_row == k]
                splits.append((train, test, {"stage": "outer", "repeat": r, "outer": k}))
        return splits


@ResamplingRegistry.register
class GroupedCV(ResamplingScheme):
    """K-fold CV where all rows of a group land in the same fold"""

    kind: Literal["grouped_cv"] = "grouped_cv"
    folds: int = Field(10, ge=2)
    needs_data: ClassVar[bool] = True

    @property
    def iters(self) -> int:
        return self.folds

    def _split(self, data, n, seed):
        groups = data.groups()
        uniq, inverse = np.unique(groups, return_inverse=True)
        _check_folds(self.kind, self.folds, len(uniq), unit="groups")
        perm = make_rng(seed, 0).permutation(len(uniq))
        fold_of_group = np.empty(len(uniq), dtype=np.int64)
        fold_of_group[perm] = np.arange(len(uniq)) % self.folds
        return folds_to_splits(fold_of_group[inverse], {"repeat": 0})


@ResamplingRegistry.register
class StratifiedCV(ResamplingScheme):
    """K-fold CV preserving class proportions in every fold"""

    kind: Literal["stratified_cv"] = "stratified_cv"
    folds: int = Field(10, ge=2)
    needs_data: ClassVar[bool] = True

    @property
    def iters(self) -> int:
        return self.folds

    def _split(self, data, n, seed):
        strata = data.strata()
        _check_folds(self.kind, self.folds, n)
        splitter = StratifiedKFold(n_splits=self.folds, shuffle=True, random_state=derive_seed(seed, 0))
        try:
            folds = list(splitter.split(np.zeros(n), strata))
        except ValueError as e:
            raise ConfigurationError(f"{self.kind}: {e}") from e
        return [(tr, te, {"repeat": 0, "fold": k}) for k, (tr, te) in enumerate(folds)]

from typing import Iterable, Tuple, Union

import numpy as np
from scipy.stats import norm, t

from .errors import ConfigurationError


SeedKey = Union[int, str]


# =============================================================================
# SEEDS -----------------------------------------------------------------------
# =============================================================================


def _key_to_int(key: SeedKey) -> int:
    if isinstance(key, (bool, np.bool_)):
        raise TypeError(f"Seed keys must be int or str, got {type(key).__name__}")
    if isinstance(key, (int, np.integer)):
        if key < 0:
            raise ValueError(f"Seed keys must be non-negative, got {key}")
        return int(key)
    if isinstance(key, str):
        # stable across interpreter runs, unlike hash()
        return int.from_bytes(key.encode("utf-8"), "little") % (2**32)
    raise TypeError(f"Seed keys must be int or str, got {type(key).__name__}")


def derive_seed(base: int, *keys: SeedKey) -> int:
    """Derive a child seed from a base seed and a path of keys.

    Uses numpy's SeedSequence with the keys as spawn key, so
    derive_seed(42, 3) and derive_seed(42, "fit", 3) are independent streams
    and identical inputs always give the identical seed.

    Args:
        base: top-level experiment seed
        keys: iteration indices / stage names identifying the child stream

    Returns:
        A 32-bit unsigned integer usable as a ``random_state``
    """
    ss = np.random.SeedSequence(entropy=int(base), spawn_key=tuple(_key_to_int(k) for k in keys))
    return int(ss.generate_state(1, dtype=np.uint32)[0])


def make_rng(base: int, *keys: SeedKey) -> np.random.Generator:
    return np.random.default_rng(derive_seed(base, *keys))


# =============================================================================
# SUMMARY STATISTICS ----------------------------------------------------------
# =============================================================================


def weighted_mean_std(scores: np.ndarray, counts: np.ndarray) -> Tuple[float, float]:
    """
    Weighted mean:
        wgt_mean = sum(score_i * count_i) / sum(count_i)
    Weighted variance:
        weighted_var = sum(count_i * (score_i - wgt_mean)**2) / sum(count_i)
    Weighted std:
        weighted_std = sqrt(weighted_var)
    Only entries with count > 0 are included.
    """
    scores = np.asarray(scores, dtype=float)
    counts = np.asarray(counts, dtype=float)

    mask = counts > 0
    scores = scores[mask]
    counts = counts[mask]
    if counts.sum() <= 0:
        return 0.0, 0.0
    wgt_mean = (scores * counts).sum() / counts.sum()
    wgt_var = (counts * (scores - wgt_mean) ** 2).sum() / counts.sum()
    return float(wgt_mean), float(wgt_var**0.5)


def sample_sd(values: Iterable[float]) -> float:
    """Sample standard deviation (ddof=1); NaN for fewer than two values"""
    values = np.asarray(values, dtype=float)
    if values.shape[0] < 2:
        return float("nan")
    return float(values.std(ddof=1))


# =============================================================================
# CONFIDENCE INTERVALS --------------------------------------------------------
# =============================================================================


def check_alpha(alpha: float) -> float:
    if not isinstance(alpha, (int, float)) or isinstance(alpha, bool):
        raise ConfigurationError(f"alpha must be a number, got {alpha!r}")
    if not 0 < alpha < 1:
        raise ConfigurationError(f"alpha must be in (0, 1), got {alpha}")
    return float(alpha)


def normal_ci(estimate: float, se: float, alpha: float = 0.05) -> Tuple[float, float]:
    """Two-sided (1 - alpha) normal interval ``estimate +- z * se``"""
    z = norm.ppf(1 - alpha / 2)
    half = z * se
    return estimate - half, estimate + half


def t_ci(estimate: float, se: float, df: int, alpha: float = 0.05) -> Tuple[float, float]:
    """Two-sided (1 - alpha) Student-t interval with ``df`` degrees of freedom"""
    q = t.ppf(1 - alpha / 2, df)
    half = q * se
    return estimate - half, estimate + half

"""
Example datasets bundled with scikit-learn, wrapped as geinfer Datasets.
"""

from functools import lru_cache
from typing import List

import pandas as pd
from sklearn.datasets import load_breast_cancer, load_diabetes, load_iris, load_wine

from .core.data import Dataset

EXAMPLES = {
    "breast_cancer": (load_breast_cancer, "clf"),
    "diabetes": (load_diabetes, "reg"),
    "iris": (load_iris, "clf"),
    "wine": (load_wine, "clf"),
}


@lru_cache(maxsize=None)
def _load_frame(name: str) -> pd.DataFrame:
    loader, _ = EXAMPLES[name]
    return loader(as_frame=True).frame


def load_example(name: str, stratify: bool = False) -> Dataset:
    """Load a bundled example dataset; the target column is always ``target``"""
    if name not in EXAMPLES:
        raise ValueError(f"Unknown dataset: {name}. Available: {list_examples()}")
    _, task = EXAMPLES[name]
    return Dataset(_load_frame(name), target_col="target", task=task, stratify=stratify, name=name)


def list_examples() -> List[str]:
    return sorted(EXAMPLES)

from __future__ import annotations

import os
from pathlib import Path

import numpy as np


def load_array(path: str | Path) -> np.ndarray:
    """Load a test tensor stored as ``.npy``."""
    return np.load(str(path), allow_pickle=False)


def save_array(path: str | Path, arr: np.ndarray) -> None:
    os.makedirs(os.path.dirname(str(path)) or ".", exist_ok=True)
    np.save(str(path), np.asarray(arr), allow_pickle=False)

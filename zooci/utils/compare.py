from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import numpy as np

from ..errors import OutputShapeMismatch, ToleranceExceeded

DEVIATION_MODES = ("min", "abs")


@dataclass(frozen=True)
class Tolerance:
    """Numeric comparison settings for reproduced outputs.

    ``decimals`` gives the threshold ``10**-decimals``. ``mode`` picks the
    deviation metric: ``"min"`` only looks at the most negative difference
    (``max(-min, min)``), ``"abs"`` at the largest magnitude either way.
    """

    decimals: int = 4
    mode: str = "min"

    def __post_init__(self) -> None:
        if self.mode not in DEVIATION_MODES:
            raise ValueError(f"Unknown deviation mode '{self.mode}', expected one of {DEVIATION_MODES}")

    @property
    def threshold(self) -> float:
        return threshold(self.decimals)


def threshold(decimals: int) -> float:
    return 10.0 ** -int(decimals)


def max_deviation(diff: np.ndarray, mode: str = "min") -> float:
    if diff.size == 0:
        return 0.0
    lo = float(np.min(diff))
    if mode == "min":
        return max(-lo, lo)
    if mode == "abs":
        hi = float(np.max(diff))
        return max(abs(lo), abs(hi))
    raise ValueError(f"Unknown deviation mode '{mode}'")


def exceeds(deviation: float, limit: float) -> bool:
    # NaN never compares <= so it is treated as exceeding
    return not (deviation <= limit)


def compare_arrays(produced: np.ndarray, reference: np.ndarray, tol: Tolerance) -> Dict[str, float | bool]:
    produced = np.asarray(produced)
    reference = np.asarray(reference)
    if tuple(produced.shape) != tuple(reference.shape):
        return {
            "shape_match": False,
            "passed": False,
            "deviation": float("inf"),
            "min_diff": float("nan"),
            "max_diff": float("nan"),
            "numel": float(reference.size),
        }
    diff = produced.astype(np.float64) - reference.astype(np.float64)
    deviation = max_deviation(diff, tol.mode)
    return {
        "shape_match": True,
        "passed": not exceeds(deviation, tol.threshold),
        "deviation": deviation,
        "min_diff": float(diff.min()) if diff.size else 0.0,
        "max_diff": float(diff.max()) if diff.size else 0.0,
        "numel": float(diff.size),
    }


def check_output(index: int, produced: np.ndarray, reference: np.ndarray, tol: Tolerance) -> float:
    """Compare output ``index`` and return its deviation.

    Raises:
        OutputShapeMismatch: the shapes differ.
        ToleranceExceeded: the deviation is above ``tol.threshold`` (or NaN).
    """
    stats = compare_arrays(produced, reference, tol)
    if not stats["shape_match"]:
        raise OutputShapeMismatch(
            f"output number {index} has shape {tuple(np.shape(produced))}, "
            f"expected {tuple(np.shape(reference))}"
        )
    deviation = float(stats["deviation"])
    if not stats["passed"]:
        raise ToleranceExceeded(index, deviation, tol.threshold)
    return deviation

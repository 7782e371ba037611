from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np
import torch


@dataclass
class Tensor:
    """Named n-d array with an axes layout (e.g. ``"bcyx"``).

    ``data`` is ``None`` for an output tensor the engine has not filled yet.
    """

    name: str
    axes: str
    data: Optional[np.ndarray] = None

    @classmethod
    def build(cls, name: str, axes: str, data: Any) -> "Tensor":
        return cls(name=name, axes=axes, data=as_array(data))

    @classmethod
    def empty(cls, name: str, axes: str) -> "Tensor":
        return cls(name=name, axes=axes, data=None)

    @property
    def is_empty(self) -> bool:
        return self.data is None

    @property
    def shape(self) -> Sequence[int]:
        return () if self.data is None else tuple(self.data.shape)

    def axis_indices(self, axes: Optional[str]) -> Optional[tuple]:
        """Map axis letters (``"xy"``) to array dimensions; ``None`` means all."""
        if axes is None:
            return None
        dims = []
        for a in axes:
            if a not in self.axes:
                raise ValueError(f"Axis '{a}' not present in tensor '{self.name}' with axes '{self.axes}'.")
            dims.append(self.axes.index(a))
        return tuple(sorted(dims))


def is_tensor_like(value: Any) -> bool:
    return isinstance(value, (Tensor, np.ndarray, torch.Tensor))


def as_array(value: Any) -> np.ndarray:
    if isinstance(value, Tensor):
        if value.data is None:
            raise ValueError(f"Tensor '{value.name}' is empty.")
        return value.data
    if isinstance(value, torch.Tensor):
        return value.detach().cpu().numpy()
    if isinstance(value, np.ndarray):
        return value
    raise TypeError(f"Cannot convert object of type {type(value).__name__} to an array.")

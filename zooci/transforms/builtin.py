"""Built-in pre/post-processing transformations.

These cover the standard bioimage.io processing names. Each one is looked up
by converting the rdf name to CamelCase and adding ``Transformation``, e.g.
``scale_range`` -> ``ScaleRangeTransformation``.

All built-ins return a new array; the input tensor is left untouched.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Type

import numpy as np

from ..errors import ArgumentBindingError
from ..models.tensor import Tensor


BUILTIN_TRANSFORMS: Dict[str, Type["Transform"]] = {}


def _builtin(cls: Type["Transform"]) -> Type["Transform"]:
    BUILTIN_TRANSFORMS[cls.__name__] = cls
    return cls


class Transform:
    """Processing unit capability: ``configure(kwargs)`` then ``apply(tensor)``.

    Subclasses list the keyword arguments they accept in ``arguments``; the
    values become instance attributes.
    """

    arguments: Tuple[str, ...] = ()

    def configure(self, kwargs: Mapping[str, Any]) -> "Transform":
        for key, value in kwargs.items():
            if key not in self.arguments:
                raise ArgumentBindingError(
                    f"Argument '{key}' is not accepted by {type(self).__name__}; "
                    f"accepted arguments: {list(self.arguments)}"
                )
            setattr(self, key, value)
        return self

    def apply(self, tensor: Tensor) -> Any:  # pragma: no cover - interface
        raise NotImplementedError


def _data(tensor: Tensor) -> np.ndarray:
    if tensor.data is None:
        raise ValueError(f"Tensor '{tensor.name}' is empty.")
    return tensor.data


def _reduce_dims(tensor: Tensor, axes: Any) -> Optional[Tuple[int, ...]]:
    # 0.4 uses "xy", 0.5 uses ["x", "y"]
    if axes is None:
        return None
    if not isinstance(axes, str):
        axes = "".join(str(a)[0] for a in axes)
    return tensor.axis_indices(axes)


def _along_channel(value: Any, tensor: Tensor) -> Any:
    """Broadcast a per-channel list against the tensor; scalars pass through."""
    if not isinstance(value, Sequence) or isinstance(value, str):
        return float(value)
    arr = np.asarray(value, dtype=np.float64)
    if "c" not in tensor.axes:
        return arr
    shape = [1] * len(tensor.axes)
    shape[tensor.axes.index("c")] = arr.size
    return arr.reshape(shape)


@_builtin
class BinarizeTransformation(Transform):
    arguments = ("threshold",)

    def __init__(self) -> None:
        self.threshold = 0.5

    def apply(self, tensor: Tensor) -> np.ndarray:
        x = _data(tensor)
        return (x > _along_channel(self.threshold, tensor)).astype(np.float32)


@_builtin
class ClipTransformation(Transform):
    arguments = ("min", "max")

    def __init__(self) -> None:
        self.min = None
        self.max = None

    def apply(self, tensor: Tensor) -> np.ndarray:
        if self.min is None and self.max is None:
            raise ArgumentBindingError("clip needs at least one of 'min' or 'max'")
        return np.clip(_data(tensor), self.min, self.max)


@_builtin
class ScaleLinearTransformation(Transform):
    arguments = ("gain", "offset", "axes")

    def __init__(self) -> None:
        self.gain = 1.0
        self.offset = 0.0
        self.axes = None

    def apply(self, tensor: Tensor) -> np.ndarray:
        x = _data(tensor).astype(np.float32)
        out = x * _along_channel(self.gain, tensor) + _along_channel(self.offset, tensor)
        return out.astype(np.float32)


@_builtin
class SigmoidTransformation(Transform):
    def apply(self, tensor: Tensor) -> np.ndarray:
        x = _data(tensor).astype(np.float32)
        return (1.0 / (1.0 + np.exp(-x))).astype(np.float32)


@_builtin
class ZeroMeanUnitVarianceTransformation(Transform):
    arguments = ("mode", "axes", "mean", "std", "eps")

    def __init__(self) -> None:
        self.mode = "per_sample"
        self.axes = None
        self.mean = None
        self.std = None
        self.eps = 1e-6

    def apply(self, tensor: Tensor) -> np.ndarray:
        x = _data(tensor).astype(np.float32)
        if self.mode == "fixed":
            if self.mean is None or self.std is None:
                raise ArgumentBindingError("mode 'fixed' needs both 'mean' and 'std'")
            mean = _along_channel(self.mean, tensor)
            std = _along_channel(self.std, tensor)
        elif self.mode in ("per_sample", "per_dataset"):
            # Only one sample is available, dataset statistics equal sample statistics
            dims = _reduce_dims(tensor, self.axes)
            mean = x.mean(axis=dims, keepdims=True)
            std = x.std(axis=dims, keepdims=True)
        else:
            raise ArgumentBindingError(f"Unknown mode '{self.mode}' for zero_mean_unit_variance")
        return ((x - mean) / (std + float(self.eps))).astype(np.float32)


@_builtin
class FixedZeroMeanUnitVarianceTransformation(Transform):
    arguments = ("mean", "std", "axis", "eps")

    def __init__(self) -> None:
        self.mean = 0.0
        self.std = 1.0
        self.axis = None
        self.eps = 1e-6

    def apply(self, tensor: Tensor) -> np.ndarray:
        x = _data(tensor).astype(np.float32)
        mean = _along_channel(self.mean, tensor)
        std = _along_channel(self.std, tensor)
        return ((x - mean) / (std + float(self.eps))).astype(np.float32)


@_builtin
class ScaleRangeTransformation(Transform):
    arguments = ("mode", "axes", "min_percentile", "max_percentile", "eps", "reference_tensor")

    def __init__(self) -> None:
        self.mode = "per_sample"
        self.axes = None
        self.min_percentile = 0.0
        self.max_percentile = 100.0
        self.eps = 1e-6
        self.reference_tensor = None

    def apply(self, tensor: Tensor) -> np.ndarray:
        if self.mode not in ("per_sample", "per_dataset"):
            raise ArgumentBindingError(f"Unknown mode '{self.mode}' for scale_range")
        if self.reference_tensor not in (None, tensor.name):
            raise ArgumentBindingError("scale_range with a different 'reference_tensor' is not supported")
        x = _data(tensor).astype(np.float32)
        dims = _reduce_dims(tensor, self.axes)
        lo = np.percentile(x, float(self.min_percentile), axis=dims, keepdims=True)
        hi = np.percentile(x, float(self.max_percentile), axis=dims, keepdims=True)
        return ((x - lo) / (hi - lo + float(self.eps))).astype(np.float32)


@_builtin
class EnsureDtypeTransformation(Transform):
    arguments = ("dtype",)

    def __init__(self) -> None:
        self.dtype = "float32"

    def apply(self, tensor: Tensor) -> np.ndarray:
        try:
            dtype = np.dtype(self.dtype)
        except TypeError as e:
            raise ArgumentBindingError(f"Unknown dtype '{self.dtype}'") from e
        return _data(tensor).astype(dtype)

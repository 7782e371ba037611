"""Resolve processing steps named in an rdf.yaml to runnable transformations.

A step name is resolved with these rules, first match wins:

1. ``pkg.module.Class::method`` -> unit ``pkg.module.Class``, operation ``method``
2. ``pkg.module.Class``         -> unit ``pkg.module.Class``, operation ``apply``
3. ``scale_range``              -> built-in ``ScaleRangeTransformation``, operation ``apply``

Qualified units are taken from explicit registrations first and imported
otherwise. Built-ins and registered units implement ``configure(kwargs)``;
any other class is configured through one-argument setters named after the
keyword (``min_percentile`` -> ``setMinPercentile``).
"""

from __future__ import annotations

import importlib
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from ..errors import ArgumentBindingError, TransformError, TransformNotFound, UnsupportedOutputType
from ..models.descriptor import TransformSpec
from ..models.tensor import Tensor, is_tensor_like
from .builtin import BUILTIN_TRANSFORMS

logger = logging.getLogger(__name__)

BUILTIN_SUFFIX = "Transformation"
DEFAULT_OPERATION = "apply"
MEMBER_MARKER = "::"
QUALIFIER = "."


def snake_to_camel(name: str) -> str:
    """``min_percentile`` -> ``MinPercentile``."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_"))


def setter_name(argument: str) -> str:
    """``min_percentile`` -> ``setMinPercentile``."""
    return "set" + snake_to_camel(argument)


@dataclass(frozen=True)
class Resolution:
    reference: str
    operation: str
    builtin: bool


def parse_reference(name: str) -> Resolution:
    if QUALIFIER in name and MEMBER_MARKER in name:
        unit, _, operation = name.partition(MEMBER_MARKER)
        return Resolution(reference=unit, operation=operation or DEFAULT_OPERATION, builtin=False)
    if QUALIFIER in name:
        return Resolution(reference=name, operation=DEFAULT_OPERATION, builtin=False)
    return Resolution(reference=snake_to_camel(name) + BUILTIN_SUFFIX, operation=DEFAULT_OPERATION, builtin=True)


def _import_unit(reference: str, name: str) -> Callable[[], Any]:
    module_name, _, attr = reference.rpartition(QUALIFIER)
    if not module_name or not attr:
        raise TransformNotFound(name, "not a qualified reference")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise TransformNotFound(name, f"module '{module_name}' cannot be imported ({e})") from e
    unit = getattr(module, attr, None)
    if unit is None:
        raise TransformNotFound(name, f"module '{module_name}' has no attribute '{attr}'")
    return unit


def bind_arguments(unit: Any, kwargs: Mapping[str, Any]) -> None:
    """Set each keyword through its ``set<CamelCase>`` one-parameter setter."""
    for key, value in kwargs.items():
        name = setter_name(key)
        setter = getattr(unit, name, None)
        if not callable(setter):
            raise ArgumentBindingError(
                f"Setter for argument '{key}' not found in '{type(unit).__name__}'. "
                f"A method called '{name}' should be present."
            )
        try:
            n_params = len(inspect.signature(setter).parameters)
        except (TypeError, ValueError):
            n_params = 1
        if n_params != 1:
            raise ArgumentBindingError(f"Setter '{name}' should have only one input parameter.")
        setter(value)


class BoundTransform:
    """A located, instantiated and configured processing step."""

    def __init__(self, spec: TransformSpec, unit: Any, operation: Callable[..., Any]) -> None:
        self.spec = spec
        self.unit = unit
        self.operation = operation

    @property
    def name(self) -> str:
        return self.spec.name

    def execute(self, tensor: Tensor, tensors: Optional[Mapping[str, Tensor]] = None) -> Dict[str, Tensor]:
        """Run on ``tensor`` and return the produced tensors by name.

        ``tensors`` is the current set the step belongs to; it only provides
        axes for arrays returned under another tensor's name.
        """
        try:
            out = self.operation(tensor)
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(f"processing '{self.name}' failed on tensor '{tensor.name}': {e}") from e
        return self._normalize(out, tensor, tensors or {})

    def _normalize(self, out: Any, tensor: Tensor, tensors: Mapping[str, Tensor]) -> Dict[str, Tensor]:
        if out is None:
            # mutated in place
            return {tensor.name: tensor}
        if isinstance(out, Mapping):
            result: Dict[str, Tensor] = {}
            for key, value in out.items():
                key = str(key)
                if isinstance(value, Tensor):
                    result[key] = value
                elif is_tensor_like(value):
                    axes = tensors[key].axes if key in tensors else tensor.axes
                    result[key] = Tensor.build(key, axes, value)
                else:
                    raise UnsupportedOutputType(
                        f"The processing transformation '{self.name}' returned a mapping whose entry "
                        f"'{key}' has unsupported type {type(value).__name__}."
                    )
            return result
        if isinstance(out, Tensor):
            return {tensor.name: Tensor(name=tensor.name, axes=out.axes, data=out.data)}
        if is_tensor_like(out):
            return {tensor.name: Tensor.build(tensor.name, tensor.axes, out)}
        raise UnsupportedOutputType(
            f"The processing transformation '{self.name}' corresponding to tensor '{tensor.name}' "
            f"outputs an object of type {type(out).__name__}, which is not supported. Supported "
            "outputs are None (in-place), tensors, numpy/torch arrays and mappings of those."
        )


class TransformRegistry:
    """Name -> factory table used to build processing steps."""

    def __init__(self, builtins: Optional[Mapping[str, Callable[[], Any]]] = None) -> None:
        self._builtins: Dict[str, Callable[[], Any]] = dict(BUILTIN_TRANSFORMS if builtins is None else builtins)
        self._external: Dict[str, Callable[[], Any]] = {}

    def register(self, reference: str, factory: Optional[Callable[[], Any]] = None):
        """Register an external unit under its qualified reference.

        Usable directly or as a class decorator.
        """

        def deco(fn: Callable[[], Any]):
            self._external[reference] = fn
            return fn

        if factory is not None:
            return deco(factory)
        return deco

    def names(self) -> Iterable[str]:
        return tuple(self._builtins.keys()) + tuple(self._external.keys())

    def locate(self, resolution: Resolution, name: Optional[str] = None) -> Callable[[], Any]:
        """Factory for ``resolution``; errors name the step as written (``name``)."""
        name = name or resolution.reference
        if resolution.builtin:
            if resolution.reference not in self._builtins:
                raise TransformNotFound(name, f"no built-in '{resolution.reference}'")
            return self._builtins[resolution.reference]
        if resolution.reference in self._external:
            return self._external[resolution.reference]
        return _import_unit(resolution.reference, name)

    def create(self, spec: TransformSpec) -> BoundTransform:
        """Locate, instantiate and configure the unit named by ``spec``."""
        resolution = parse_reference(spec.name)
        factory = self.locate(resolution, spec.name)
        try:
            unit = factory()
        except Exception as e:
            raise TransformNotFound(spec.name, f"cannot be instantiated without arguments ({e})") from e

        configure = getattr(unit, "configure", None)
        try:
            if callable(configure):
                configured = configure(dict(spec.kwargs))
                unit = configured if configured is not None else unit
            else:
                bind_arguments(unit, spec.kwargs)
        except ArgumentBindingError:
            raise
        except Exception as e:
            raise ArgumentBindingError(f"Unable to configure '{spec.name}' with {dict(spec.kwargs)}: {e}") from e

        operation = getattr(unit, resolution.operation, None)
        if not callable(operation):
            raise TransformNotFound(
                spec.name, f"the unit has no operation '{resolution.operation}'"
            )
        logger.debug("Resolved processing '%s' -> %s.%s", spec.name, resolution.reference, resolution.operation)
        return BoundTransform(spec, unit, operation)


default_registry = TransformRegistry()

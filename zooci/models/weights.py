from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import InvalidWeightSpec
from .descriptor import file_name
from .registry import list_engines


@dataclass(frozen=True)
class WeightFormat:
    """One entry of the rdf.yaml ``weights`` section the engines can run."""

    framework: str
    source: str
    sha256: Optional[str] = None  # hex digest, lowercase
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def source_file_name(self) -> str:
        return file_name(self.source)


def resolve_weight_formats(weights: Any, supported: Optional[Iterable[str]] = None) -> List[WeightFormat]:
    """Return the supported weight formats of a ``weights`` section.

    Args:
        weights: The raw ``weights`` value of the rdf (expected: framework -> entry mapping).
        supported: Framework keys that can be run; defaults to the registered engines.

    Raises:
        InvalidWeightSpec: section absent or malformed, or no supported format found.
    """
    if weights is None:
        raise InvalidWeightSpec("missing 'weights' section")
    if not isinstance(weights, Mapping):
        raise InvalidWeightSpec(
            f"'weights' section must be a mapping of framework -> entry, got {type(weights).__name__}"
        )
    supported = set(supported if supported is not None else list_engines())
    formats: List[WeightFormat] = []
    for framework, entry in weights.items():
        if not isinstance(entry, Mapping):
            raise InvalidWeightSpec(f"'weights.{framework}' must be a mapping, got {type(entry).__name__}")
        if framework not in supported:
            warnings.warn(f"Weights '{framework}' are not supported; skipping.", RuntimeWarning)
            continue
        source = entry.get("source")
        if not isinstance(source, str) or not source:
            raise InvalidWeightSpec(f"'weights.{framework}' has no 'source'")
        sha = entry.get("sha256")
        formats.append(
            WeightFormat(
                framework=str(framework),
                source=source,
                sha256=sha.lower() if isinstance(sha, str) else None,
                metadata={k: v for k, v in entry.items() if k not in ("source", "sha256")},
            )
        )
    if not formats:
        raise InvalidWeightSpec(f"no supported weights found in 'weights' (supported: {sorted(supported)})")
    return formats


@dataclass(frozen=True)
class Architecture:
    """Model class needed to rebuild a network from a PyTorch state dict.

    Exactly one of ``source`` (a ``.py`` file next to the rdf, or a URL) and
    ``module`` (an importable module path) is set.
    """

    callable: str
    source: Optional[str] = None
    module: Optional[str] = None
    kwargs: Dict[str, Any] = field(default_factory=dict)


def parse_architecture(value: Any, kwargs: Optional[Mapping[str, Any]] = None) -> Architecture:
    """Parse ``file.py:Class`` / ``module:Class`` or a ``{source|import_from, callable}`` mapping."""
    if isinstance(value, Mapping):
        name = value.get("callable")
        if not isinstance(name, str) or not name:
            raise InvalidWeightSpec("'architecture' has no 'callable'")
        arch_kwargs = dict(value.get("kwargs") or kwargs or {})
        if isinstance(value.get("source"), str):
            return Architecture(callable=name, source=value["source"], kwargs=arch_kwargs)
        if isinstance(value.get("import_from"), str):
            return Architecture(callable=name, module=value["import_from"], kwargs=arch_kwargs)
        raise InvalidWeightSpec("'architecture' needs either 'source' or 'import_from'")
    if isinstance(value, str):
        ref, sep, name = value.rpartition(":")
        if not sep or not ref or not name:
            raise InvalidWeightSpec(f"'architecture' must look like 'file.py:Class' or 'module:Class', got '{value}'")
        if ref.endswith(".py"):
            return Architecture(callable=name, source=ref, kwargs=dict(kwargs or {}))
        return Architecture(callable=name, module=ref, kwargs=dict(kwargs or {}))
    raise InvalidWeightSpec("missing 'architecture' for pytorch_state_dict weights")


def architecture_of(weight_format: WeightFormat) -> Architecture:
    return parse_architecture(weight_format.metadata.get("architecture"), weight_format.metadata.get("kwargs"))

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

import yaml

from ..errors import DescriptorInvalid, DiscoveryAnomaly


RDF_FNAME = "rdf.yaml"

# Axis type -> single letter layout used for tensors (format 0.5 axes lists)
_AXIS_TYPE_LETTERS = {"batch": "b", "channel": "c", "index": "i", "time": "t"}


def load_rdf(path: str | Path) -> Dict[str, Any]:
    """Load an rdf.yaml into a plain dict."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise DiscoveryAnomaly(f"Unable to load {RDF_FNAME}: {e}") from e
    if not isinstance(data, dict):
        raise DiscoveryAnomaly(f"Unable to load {RDF_FNAME}: top level is not a mapping ({path})")
    return data


def is_url(ref: str) -> bool:
    return urlparse(ref).scheme in ("http", "https")


def file_name(ref: str) -> str:
    """Base file name of a relative path or URL reference."""
    if is_url(ref):
        return os.path.basename(urlparse(ref).path)
    return os.path.basename(ref)


@dataclass(frozen=True)
class TransformSpec:
    name: str
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, m: Any) -> "TransformSpec":
        if not isinstance(m, Mapping):
            raise DescriptorInvalid(f"Processing step must be a mapping, got {type(m).__name__}")
        # format 0.5 renamed 'name' to 'id'
        name = m.get("name", m.get("id"))
        if not isinstance(name, str) or not name:
            raise DescriptorInvalid(f"Processing step without a name: {dict(m)}")
        kwargs = m.get("kwargs") or {}
        if not isinstance(kwargs, Mapping):
            raise DescriptorInvalid(f"kwargs of processing step '{name}' must be a mapping")
        return cls(name=name, kwargs=dict(kwargs))


def _parse_axes(axes: Any, tensor_name: str) -> str:
    if isinstance(axes, str):
        return axes
    if isinstance(axes, Sequence):
        letters = []
        for ax in axes:
            if isinstance(ax, str):
                letters.append(ax)
            elif isinstance(ax, Mapping):
                ax_id = ax.get("id")
                ax_type = ax.get("type")
                if ax_type in _AXIS_TYPE_LETTERS:
                    letters.append(_AXIS_TYPE_LETTERS[ax_type])
                elif isinstance(ax_id, str) and ax_id:
                    letters.append(ax_id[0])
                else:
                    raise DescriptorInvalid(f"Cannot interpret axis {dict(ax)} of tensor '{tensor_name}'")
            else:
                raise DescriptorInvalid(f"Cannot interpret axes of tensor '{tensor_name}'")
        return "".join(letters)
    raise DescriptorInvalid(f"Tensor '{tensor_name}' has no valid 'axes'")


def _parse_steps(steps: Any, key: str, tensor_name: str) -> Tuple[TransformSpec, ...]:
    if steps is None:
        return ()
    if not isinstance(steps, list):
        raise DescriptorInvalid(f"'{key}' of tensor '{tensor_name}' must be a list")
    return tuple(TransformSpec.from_mapping(s) for s in steps)


@dataclass(frozen=True)
class TensorSpec:
    name: str
    axes: str
    preprocessing: Tuple[TransformSpec, ...] = ()
    postprocessing: Tuple[TransformSpec, ...] = ()
    test_tensor: Optional[str] = None

    @classmethod
    def from_mapping(cls, m: Any) -> "TensorSpec":
        if not isinstance(m, Mapping):
            raise DescriptorInvalid(f"Tensor description must be a mapping, got {type(m).__name__}")
        name = m.get("name", m.get("id"))
        if not isinstance(name, str) or not name:
            raise DescriptorInvalid(f"Tensor description without a name: {dict(m)}")
        test_tensor = m.get("test_tensor")
        if isinstance(test_tensor, Mapping):
            test_tensor = test_tensor.get("source")
        return cls(
            name=name,
            axes=_parse_axes(m.get("axes"), name),
            preprocessing=_parse_steps(m.get("preprocessing"), "preprocessing", name),
            postprocessing=_parse_steps(m.get("postprocessing"), "postprocessing", name),
            test_tensor=test_tensor if isinstance(test_tensor, str) else None,
        )


def _str_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise DescriptorInvalid(f"'{key}' must be a list of file references")


@dataclass
class ModelDescriptor:
    """Model resource description built from a parsed rdf.yaml.

    Only ``local_path`` changes after construction; it is attached once the
    model files have been downloaded.
    """

    id: str
    type: str
    name: str
    inputs: List[TensorSpec]
    outputs: List[TensorSpec]
    weights: Any
    test_inputs: List[str]
    test_outputs: List[str]
    root: str
    format_version: str = ""
    attachments: List[str] = field(default_factory=list)
    source_path: Optional[Path] = None
    local_path: Optional[Path] = None

    @classmethod
    def from_mapping(cls, rdf: Mapping[str, Any], source_path: str | Path | None = None) -> "ModelDescriptor":
        if not isinstance(rdf, Mapping):
            raise DescriptorInvalid("Resource description is not a mapping")
        rid = rdf.get("id")
        if not isinstance(rid, str) or not rid:
            raise DescriptorInvalid("Missing/Invalid 'id'")
        rtype = rdf.get("type")
        if not isinstance(rtype, str):
            raise DescriptorInvalid(f"Missing/Invalid 'type' for {rid}")

        inputs_raw = rdf.get("inputs") or []
        outputs_raw = rdf.get("outputs") or []
        if not isinstance(inputs_raw, list) or not isinstance(outputs_raw, list):
            raise DescriptorInvalid(f"'inputs' and 'outputs' of {rid} must be lists")
        inputs = [TensorSpec.from_mapping(t) for t in inputs_raw]
        outputs = [TensorSpec.from_mapping(t) for t in outputs_raw]

        # format 0.4 lists test files at top level, 0.5 attaches them per tensor
        if "test_inputs" in rdf or "test_outputs" in rdf:
            test_inputs = _str_list(rdf.get("test_inputs"), "test_inputs")
            test_outputs = _str_list(rdf.get("test_outputs"), "test_outputs")
        else:
            test_inputs = [t.test_tensor for t in inputs if t.test_tensor]
            test_outputs = [t.test_tensor for t in outputs if t.test_tensor]

        weights = rdf.get("weights")
        attachments = rdf.get("attachments") or {}
        files = attachments.get("files") if isinstance(attachments, Mapping) else attachments
        src = Path(source_path).resolve() if source_path is not None else None
        return cls(
            id=rid,
            type=rtype,
            name=str(rdf.get("name") or rid),
            inputs=inputs,
            outputs=outputs,
            weights=weights,
            test_inputs=test_inputs,
            test_outputs=test_outputs,
            root=_resolve_root(rdf, src),
            format_version=str(rdf.get("format_version") or ""),
            attachments=[f for f in (files or []) if isinstance(f, str)],
            source_path=src,
        )

    def attach_local_path(self, path: str | Path) -> None:
        self.local_path = Path(path)

    def local_file(self, ref: str) -> Path:
        if self.local_path is None:
            raise RuntimeError(f"Model '{self.id}' has not been downloaded yet.")
        return self.local_path / file_name(ref)


def _resolve_root(rdf: Mapping[str, Any], source_path: Optional[Path]) -> str:
    root = rdf.get("root")
    if isinstance(root, str) and root:
        return root
    rdf_source = rdf.get("rdf_source")
    if isinstance(rdf_source, str) and is_url(rdf_source):
        return rdf_source.rsplit("/", 1)[0]
    if source_path is not None:
        return str(source_path.parent)
    return os.getcwd()

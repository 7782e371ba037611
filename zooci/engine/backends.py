from __future__ import annotations

import importlib
import importlib.util
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np
import torch

from ..errors import InferenceExecutionFailure, InvalidWeightSpec, ModelLoadFailure
from ..models.descriptor import file_name
from ..models.tensor import Tensor, as_array
from ..models.weights import WeightFormat, architecture_of

logger = logging.getLogger(__name__)


class Engine:
    """Runs one weight format: ``load(model_dir)`` once, then ``run(inputs, outputs)``.

    ``run`` fills the ``data`` of the (empty) output tensors in place, in the
    order the outputs are declared.
    """

    framework = ""

    def __init__(self, weight_format: WeightFormat) -> None:
        self.weight_format = weight_format
        self.model_dir: Optional[Path] = None

    def weights_path(self, model_dir: Path) -> Path:
        path = Path(model_dir) / self.weight_format.source_file_name
        if not path.is_file():
            raise ModelLoadFailure(f"{self.framework} weights '{path.name}' not found in {model_dir}")
        return path

    def load(self, model_dir: str | Path) -> None:
        self.model_dir = Path(model_dir)
        try:
            self._load(self.weights_path(self.model_dir))
        except ModelLoadFailure:
            raise
        except Exception as e:
            raise ModelLoadFailure(f"Unable to load {self.framework} model: {e}") from e

    def run(self, inputs: Sequence[Tensor], outputs: Sequence[Tensor]) -> None:
        try:
            produced = self._run([as_array(t) for t in inputs], outputs)
        except InferenceExecutionFailure:
            raise
        except Exception as e:
            raise InferenceExecutionFailure(f"{self.framework} inference failed: {e}") from e
        if len(produced) != len(outputs):
            raise InferenceExecutionFailure(
                f"the model produced {len(produced)} outputs but {len(outputs)} are declared"
            )
        for tensor, value in zip(outputs, produced):
            tensor.data = as_array(value)

    def close(self) -> None:
        pass

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _load(self, weights: Path) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def _run(self, arrays: List[np.ndarray], outputs: Sequence[Tensor]) -> List[Any]:  # pragma: no cover - interface
        raise NotImplementedError


def _as_list(result: Any, outputs: Sequence[Tensor]) -> List[Any]:
    if isinstance(result, (torch.Tensor, np.ndarray)):
        return [result]
    if isinstance(result, Mapping):
        names = [t.name for t in outputs]
        if all(n in result for n in names):
            return [result[n] for n in names]
        return list(result.values())
    if isinstance(result, (list, tuple)):
        return list(result)
    raise InferenceExecutionFailure(f"unsupported model output of type {type(result).__name__}")


class _TorchEngine(Engine):
    module: Optional[torch.nn.Module] = None

    @torch.no_grad()
    def _run(self, arrays: List[np.ndarray], outputs: Sequence[Tensor]) -> List[Any]:
        assert self.module is not None, "model not loaded"
        xs = [torch.from_numpy(np.ascontiguousarray(a)) for a in arrays]
        return _as_list(self.module(*xs), outputs)

    def close(self) -> None:
        self.module = None


class TorchScriptEngine(_TorchEngine):
    framework = "torchscript"

    def _load(self, weights: Path) -> None:
        self.module = torch.jit.load(str(weights), map_location="cpu")
        self.module.eval()


def _load_architecture_module(model_dir: Path, source: str):
    path = model_dir / file_name(source)
    if not path.is_file():
        raise ModelLoadFailure(f"architecture source '{path.name}' not found in {model_dir}")
    spec = importlib.util.spec_from_file_location(f"zooci_arch_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ModelLoadFailure(f"cannot import architecture source '{path.name}'")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class PytorchStateDictEngine(_TorchEngine):
    """Rebuild the network from its architecture and load a state dict into it."""

    framework = "pytorch_state_dict"

    def _load(self, weights: Path) -> None:
        assert self.model_dir is not None
        try:
            arch = architecture_of(self.weight_format)
        except InvalidWeightSpec as e:
            raise ModelLoadFailure(str(e)) from e
        if arch.source:
            module = _load_architecture_module(self.model_dir, arch.source)
        else:
            module = importlib.import_module(str(arch.module))
        cls = getattr(module, arch.callable, None)
        if cls is None:
            raise ModelLoadFailure(f"architecture '{arch.callable}' not found in {module.__name__}")
        model = cls(**arch.kwargs)
        state = torch.load(str(weights), map_location="cpu", weights_only=True)
        model.load_state_dict(state)
        model.eval()
        self.module = model


class OnnxEngine(Engine):
    framework = "onnx"

    def __init__(self, weight_format: WeightFormat) -> None:
        import onnxruntime as ort  # type: ignore

        super().__init__(weight_format)
        self._ort = ort
        self.session = None

    def _load(self, weights: Path) -> None:
        avail = set(self._ort.get_available_providers())
        providers = [p for p in ("CUDAExecutionProvider", "CPUExecutionProvider") if p in avail]
        logger.debug("ORT providers: %s", providers)
        self.session = self._ort.InferenceSession(str(weights), providers=providers or None)

    def _run(self, arrays: List[np.ndarray], outputs: Sequence[Tensor]) -> List[Any]:
        assert self.session is not None, "model not loaded"
        names = [i.name for i in self.session.get_inputs()]
        if len(names) != len(arrays):
            raise InferenceExecutionFailure(f"the model expects {len(names)} inputs, got {len(arrays)}")
        return list(self.session.run(None, dict(zip(names, arrays))))

    def close(self) -> None:
        self.session = None

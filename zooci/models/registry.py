from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional

from ..errors import EngineIncompatible

if TYPE_CHECKING:
    from ..engine.backends import Engine
    from .weights import WeightFormat


# Engine registry (weights framework key -> builder)
_ENGINE_BUILDERS: Dict[str, Callable[["WeightFormat"], "Engine"]] = {}
# Python module that must be importable for the engine to run
_RUNTIME_MODULES: Dict[str, str] = {}


def _register_engine(name: str, runtime: str):
    def deco(fn: Callable[["WeightFormat"], "Engine"]):
        _ENGINE_BUILDERS[name] = fn
        _RUNTIME_MODULES[name] = runtime
        return fn

    return deco


@_register_engine("torchscript", runtime="torch")
def _build_torchscript(weight_format: "WeightFormat") -> "Engine":
    from ..engine.backends import TorchScriptEngine
    return TorchScriptEngine(weight_format)


@_register_engine("pytorch_state_dict", runtime="torch")
def _build_pytorch_state_dict(weight_format: "WeightFormat") -> "Engine":
    from ..engine.backends import PytorchStateDictEngine
    return PytorchStateDictEngine(weight_format)


@_register_engine("onnx", runtime="onnxruntime")
def _build_onnx(weight_format: "WeightFormat") -> "Engine":
    from ..engine.backends import OnnxEngine
    return OnnxEngine(weight_format)


def list_engines() -> Iterable[str]:
    return tuple(_ENGINE_BUILDERS.keys())


def runtime_module(framework: str) -> Optional[str]:
    return _RUNTIME_MODULES.get(framework)


def get_engine(weight_format: "WeightFormat") -> "Engine":
    """Create the engine able to run ``weight_format``.

    Raises:
        EngineIncompatible: the framework is unknown or its runtime cannot be imported.
    """
    framework = weight_format.framework
    if framework not in _ENGINE_BUILDERS:
        raise EngineIncompatible(
            f"selected weights not supported: {framework}. Available: {list_engines()}"
        )
    try:
        return _ENGINE_BUILDERS[framework](weight_format)
    except ImportError as e:
        raise EngineIncompatible(
            f"runtime '{runtime_module(framework)}' for {framework} weights is not installed: {e}"
        ) from e

from .backends import Engine, OnnxEngine, PytorchStateDictEngine, TorchScriptEngine
from .cache import DownloadCache, DownloadOutcome
from .install import EngineInstaller, ProgressEvent
from .orchestrator import TestOrchestrator, discover_rdfs, merge_summaries
from .tester import ReproductionTester, Stage

__all__ = [
    "Engine",
    "OnnxEngine",
    "PytorchStateDictEngine",
    "TorchScriptEngine",
    "DownloadCache",
    "DownloadOutcome",
    "EngineInstaller",
    "ProgressEvent",
    "TestOrchestrator",
    "discover_rdfs",
    "merge_summaries",
    "ReproductionTester",
    "Stage",
]

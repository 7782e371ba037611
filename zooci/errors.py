"""
Canonical exception types for zooci.

Every failure that can happen while testing one descriptor or one weight
format is one of these. The tester and the orchestrator catch them and turn
them into failed/skipped test results; only filesystem errors raised while
writing a report are allowed to escape a run.
"""

from __future__ import annotations


class ZooCIError(Exception):
    """Base class for all recoverable zooci errors."""


class DiscoveryAnomaly(ZooCIError):
    """An rdf.yaml could not be parsed or does not carry a usable 'id'."""


class DescriptorInvalid(ZooCIError):
    """The descriptor was parsed but its content cannot be turned into a model description."""


class InvalidWeightSpec(DescriptorInvalid):
    """The 'weights' section is missing, malformed, or has no supported format."""


class DownloadFailure(ZooCIError):
    """The model files could not be downloaded (possibly a cached failure)."""


class CountMismatch(ZooCIError):
    """Number of declared tensors and number of test arrays disagree."""


class TestFixtureError(ZooCIError):
    """A test input/output array could not be read."""

    __test__ = False  # keep pytest from collecting this class


class TransformError(ZooCIError):
    """Base class for pre/post-processing failures."""


class TransformNotFound(TransformError):
    """The referenced transformation unit or its operation does not exist."""

    def __init__(self, reference: str, detail: str = "") -> None:
        self.reference = reference
        msg = f"transformation '{reference}' not found"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ArgumentBindingError(TransformError):
    """A descriptor keyword argument cannot be bound to the transformation."""


class UnsupportedOutputType(TransformError):
    """The transformation returned something that is not a tensor or a mapping."""


class EngineIncompatible(ZooCIError):
    """No runnable engine exists for the weight format."""


class ModelLoadFailure(ZooCIError):
    """The engine could not instantiate or load the model weights."""


class InferenceExecutionFailure(ZooCIError):
    """The engine failed while running the model."""


class OutputShapeMismatch(ZooCIError):
    """A produced output does not have the shape of its reference array."""


class ToleranceExceeded(ZooCIError):
    """A produced output deviates from its reference more than allowed."""

    def __init__(self, index: int, deviation: float, threshold: float) -> None:
        self.index = index
        self.deviation = deviation
        self.threshold = threshold
        super().__init__(
            f"output number {index} produces a very different result, "
            f"the max difference ({deviation:.6g}) is bigger than {threshold:g}"
        )


__all__ = [
    "ZooCIError",
    "DiscoveryAnomaly",
    "DescriptorInvalid",
    "InvalidWeightSpec",
    "DownloadFailure",
    "CountMismatch",
    "TestFixtureError",
    "TransformError",
    "TransformNotFound",
    "ArgumentBindingError",
    "UnsupportedOutputType",
    "EngineIncompatible",
    "ModelLoadFailure",
    "InferenceExecutionFailure",
    "OutputShapeMismatch",
    "ToleranceExceeded",
]

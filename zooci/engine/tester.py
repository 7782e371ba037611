"""Reproduction test of one descriptor with one weight format.

The tester walks LOADED -> DOWNLOADED -> INPUTS_BUILT -> INFERRED -> COMPARED
and ends in PASSED or FAILED. Every zooci error on the way stops the test and
is turned into a failed result carrying the error kind and its traceback.
"""

from __future__ import annotations

import enum
import logging
import traceback
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..data.arrays import load_array
from ..errors import (
    CountMismatch,
    DescriptorInvalid,
    DownloadFailure,
    InferenceExecutionFailure,
    TestFixtureError,
    ZooCIError,
)
from ..models.descriptor import ModelDescriptor, TensorSpec, TransformSpec
from ..models.registry import get_engine
from ..models.results import (
    DOWNLOAD_TEST_NAME,
    FAILED,
    LOAD_TEST_NAME,
    PASSED,
    REPRODUCE_TEST_NAME,
    TYPE_TEST_NAME,
    TestResult,
)
from ..models.tensor import Tensor
from ..models.weights import WeightFormat
from ..transforms.registry import TransformRegistry, default_registry
from ..utils.compare import Tolerance, check_output
from ..utils.download import fetch_model
from .backends import Engine
from .cache import DownloadCache

logger = logging.getLogger(__name__)

EXPECTED_TYPE = "model"


class Stage(enum.Enum):
    LOADED = "loaded"
    DOWNLOADED = "downloaded"
    INPUTS_BUILT = "inputs built"
    INFERRED = "inferred"
    COMPARED = "compared"
    PASSED = "passed"
    FAILED = "failed"


def stack_trace(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def first_step(steps: Sequence[TransformSpec], tensor_name: str, kind: str) -> Optional[TransformSpec]:
    """Only the first declared processing step is applied."""
    if not steps:
        return None
    if len(steps) > 1:
        ignored = ", ".join(s.name for s in steps[1:])
        logger.info("Only the first %s step of '%s' is applied; ignoring: %s", kind, tensor_name, ignored)
    return steps[0]


class ReproductionTester:
    def __init__(
        self,
        tool_version: str,
        *,
        tolerance: Optional[Tolerance] = None,
        cache: Optional[DownloadCache] = None,
        transforms: Optional[TransformRegistry] = None,
        engine_factory: Callable[[WeightFormat], Engine] = get_engine,
        downloader: Optional[Callable[[ModelDescriptor], Path]] = None,
        cache_dir: Optional[str] = None,
    ) -> None:
        self.tool_version = tool_version
        self.tolerance = tolerance or Tolerance()
        self.cache = cache if cache is not None else DownloadCache()
        self.transforms = transforms or default_registry
        self.engine_factory = engine_factory
        self.downloader = downloader or (lambda d: fetch_model(d, cache_dir))
        self.stage = Stage.LOADED

    def _result(self, name: str, status: str, source_name: str, error: Optional[str] = None, tb: Optional[str] = None) -> TestResult:
        return TestResult(
            name=name, status=status, source_name=source_name, tool_version=self.tool_version, error=error, traceback=tb
        )

    def test_resource(self, rdf: Mapping, weight_format: WeightFormat, source_path: Optional[Path] = None) -> List[TestResult]:
        """Run the checks of one weight format, in order, stopping at the first failure."""
        source_name = str(source_path) if source_path is not None else str(rdf.get("id", ""))
        self.stage = Stage.LOADED
        results: List[TestResult] = []

        try:
            descriptor = ModelDescriptor.from_mapping(rdf, source_path)
        except DescriptorInvalid as e:
            results.append(self._result(LOAD_TEST_NAME, FAILED, source_name, describe(e), stack_trace(e)))
            return results
        results.append(self._result(LOAD_TEST_NAME, PASSED, source_name))

        if descriptor.type != EXPECTED_TYPE:
            msg = f"expected type '{EXPECTED_TYPE}', found '{descriptor.type}'"
            results.append(self._result(TYPE_TEST_NAME, FAILED, source_name, msg))
            return results
        results.append(self._result(TYPE_TEST_NAME, PASSED, source_name))

        outcome = self.cache.fetch(descriptor.id, lambda: self.downloader(descriptor))
        if outcome.path is None:
            results.append(self._result(DOWNLOAD_TEST_NAME, FAILED, source_name, outcome.error, outcome.traceback))
            results.append(
                self._result(
                    REPRODUCE_TEST_NAME, FAILED, source_name, f"DownloadFailure: unable to download model {descriptor.id}"
                )
            )
            self.stage = Stage.FAILED
            return results
        results.append(self._result(DOWNLOAD_TEST_NAME, PASSED, source_name))
        descriptor.attach_local_path(outcome.path)
        self.stage = Stage.DOWNLOADED

        results.append(self.reproduce(descriptor, weight_format, source_name))
        return results

    def reproduce(self, descriptor: ModelDescriptor, weight_format: WeightFormat, source_name: str) -> TestResult:
        try:
            deviations = self._reproduce(descriptor, weight_format)
        except ZooCIError as e:
            self.stage = Stage.FAILED
            logger.info("%s (%s): %s", descriptor.id, weight_format.framework, describe(e))
            return self._result(REPRODUCE_TEST_NAME, FAILED, source_name, describe(e), stack_trace(e))
        self.stage = Stage.PASSED
        logger.info("%s (%s): reproduced, max deviations %s", descriptor.id, weight_format.framework, deviations)
        return self._result(REPRODUCE_TEST_NAME, PASSED, source_name)

    def _reproduce(self, descriptor: ModelDescriptor, weight_format: WeightFormat) -> List[float]:
        if descriptor.local_path is None:
            raise DownloadFailure(f"model {descriptor.id} has no local folder")
        if len(descriptor.inputs) != len(descriptor.test_inputs):
            raise CountMismatch(
                f"the number of inputs ({len(descriptor.inputs)}) and test inputs "
                f"({len(descriptor.test_inputs)}) does not match"
            )
        if len(descriptor.outputs) != len(descriptor.test_outputs):
            raise CountMismatch(
                f"the number of outputs ({len(descriptor.outputs)}) and test outputs "
                f"({len(descriptor.test_outputs)}) does not match"
            )

        tensors: Dict[str, Tensor] = {}
        for spec, ref in zip(descriptor.inputs, descriptor.test_inputs):
            tensors[spec.name] = Tensor.build(spec.name, spec.axes, self._fixture(descriptor, ref))
        for spec in descriptor.inputs:
            self._process(spec, spec.preprocessing, tensors, "preprocessing")
        inputs = [tensors[spec.name] for spec in descriptor.inputs]
        self.stage = Stage.INPUTS_BUILT

        outputs = [Tensor.empty(spec.name, spec.axes) for spec in descriptor.outputs]
        with self.engine_factory(weight_format) as engine:
            engine.load(descriptor.local_path)
            engine.run(inputs, outputs)
        self.stage = Stage.INFERRED

        produced: Dict[str, Tensor] = {t.name: t for t in outputs}
        deviations = []
        for i, (spec, ref) in enumerate(zip(descriptor.outputs, descriptor.test_outputs)):
            if produced[spec.name].is_empty:
                raise InferenceExecutionFailure(f"output '{spec.name}' was not produced")
            self._process(spec, spec.postprocessing, produced, "postprocessing")
            reference = self._fixture(descriptor, ref)
            deviations.append(check_output(i, produced[spec.name].data, reference, self.tolerance))
        self.stage = Stage.COMPARED
        return deviations

    def _process(self, spec: TensorSpec, steps: Sequence[TransformSpec], tensors: Dict[str, Tensor], kind: str) -> None:
        step = first_step(steps, spec.name, kind)
        if step is None:
            return
        bound = self.transforms.create(step)
        tensors.update(bound.execute(tensors[spec.name], tensors))

    @staticmethod
    def _fixture(descriptor: ModelDescriptor, ref: str):
        path = descriptor.local_file(ref)
        try:
            return load_array(path)
        except (OSError, ValueError) as e:
            raise TestFixtureError(f"Unable to read test array '{path.name}': {e}") from e

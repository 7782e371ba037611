from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import DiscoveryAnomaly, InvalidWeightSpec
from ..models.descriptor import RDF_FNAME, load_rdf
from ..models.results import FAILED, REPRODUCE_TEST_NAME, SKIPPED, TestResult
from ..models.weights import WeightFormat, resolve_weight_formats
from ..utils.report import write_summaries
from .cache import DownloadCache
from .install import EngineInstaller
from .tester import ReproductionTester, stack_trace

logger = logging.getLogger(__name__)

# Per weight format: the framework and the results of its run
FormatResults = Tuple[str, List[TestResult]]


def discover_rdfs(root: str | Path, resource_id: str = "**", version_id: str = "**") -> List[Path]:
    """Descriptor files matching ``<root>/<resource_id>/<version_id>/rdf.yaml``, sorted."""
    root = Path(root)
    # consecutive "**" may yield the same file more than once
    return sorted({p for p in root.glob(f"{resource_id}/{version_id}/{RDF_FNAME}") if p.is_file()})


def merge_summaries(per_format: Sequence[FormatResults]) -> List[TestResult]:
    """Merge per-format results into one report.

    Reproduction results are kept, split by status. Every other result is
    kept only the first time its content is seen. Kept results get the
    framework as a ``" (<framework>)"`` suffix.
    """
    passed: List[TestResult] = []
    failed: List[TestResult] = []
    other: List[TestResult] = []
    seen = set()
    for framework, results in per_format:
        for result in results:
            if result.name == REPRODUCE_TEST_NAME:
                (passed if result.passed else failed).append(result.with_suffix(framework))
                continue
            key = result.identity()
            if key in seen:
                continue
            seen.add(key)
            other.append(result.with_suffix(framework))
    return passed + failed + other


class TestOrchestrator:
    """Runs the reproduction tests of every descriptor found under ``rdf_dir``."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        rdf_dir: str | Path,
        summaries_dir: str | Path,
        tool_version: str,
        *,
        resource_id: str = "**",
        version_id: str = "**",
        tester_factory: Optional[Callable[[DownloadCache], ReproductionTester]] = None,
        check_engines: bool = True,
    ) -> None:
        self.rdf_dir = Path(rdf_dir)
        self.summaries_dir = Path(summaries_dir)
        self.tool_version = tool_version
        self.resource_id = resource_id
        self.version_id = version_id
        self.check_engines = check_engines
        self.cache = DownloadCache()
        factory = tester_factory or (lambda cache: ReproductionTester(tool_version, cache=cache))
        self.tester = factory(self.cache)

    def _result(self, name: str, status: str, source_name: str, error: Optional[str] = None, tb: Optional[str] = None) -> TestResult:
        return TestResult(
            name=name, status=status, source_name=source_name, tool_version=self.tool_version, error=error, traceback=tb
        )

    def run(self) -> Dict[str, Path]:
        """Test every descriptor and return ``{id: written report path}``."""
        if self.check_engines:
            events = EngineInstaller().run()
            missing = sorted(name for name, ev in events.items() if not ev.available)
            if missing:
                logger.warning("Engines without runtime: %s", ", ".join(missing))

        paths = discover_rdfs(self.rdf_dir, self.resource_id, self.version_id)
        logger.info("Found %d %s files under %s", len(paths), RDF_FNAME, self.rdf_dir)
        reports: Dict[str, Path] = {}
        for path in paths:
            tested = self.test_rdf(path)
            if tested is None:
                continue
            rid, results = tested
            reports[rid] = write_summaries(self.summaries_dir, rid, self.tool_version, results)
            logger.info("%s: %s", rid, ", ".join(f"{r.name}={r.status}" for r in results))
        return reports

    def test_rdf(self, path: Path) -> Optional[Tuple[str, List[TestResult]]]:
        """Results of one descriptor, or ``None`` when it is not testable at all."""
        source_name = str(path)
        try:
            rdf = load_rdf(path)
        except DiscoveryAnomaly as e:
            logger.error("Skipping %s: %s", path, e)
            return None
        rid = rdf.get("id")
        if not isinstance(rid, str) or not rid:
            logger.error("Skipping %s: missing/invalid 'id'", path)
            return None

        if rdf.get("type") != "model":
            name = f"Reproduce outputs with zooci {self.tool_version}"
            return rid, [self._result(name, SKIPPED, source_name, "not a model RDF")]

        try:
            formats = resolve_weight_formats(rdf.get("weights"))
        except InvalidWeightSpec as e:
            msg = f"Missing/Invalid weight formats for {rid}: {e}"
            return rid, [self._result(REPRODUCE_TEST_NAME, FAILED, source_name, msg)]

        per_format: List[Tuple[str, List[TestResult]]] = []
        for wf in formats:
            per_format.append((wf.framework, self._test_format(rdf, wf, path)))
        return rid, merge_summaries(per_format)

    def _test_format(self, rdf: dict, wf: WeightFormat, path: Path) -> List[TestResult]:
        try:
            return self.tester.test_resource(rdf, wf, path)
        except Exception as e:
            logger.exception("Unexpected error testing %s with %s", path, wf.framework)
            return [self._result(REPRODUCE_TEST_NAME, FAILED, str(path), f"unable to perform tests: {e}", stack_trace(e))]

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from ..version import VERSION_TAG

PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"

# Names of the individual checks recorded per weight format
LOAD_TEST_NAME = "load resource description"
TYPE_TEST_NAME = "has expected resource type"
DOWNLOAD_TEST_NAME = "zooci is able to download model"
REPRODUCE_TEST_NAME = "reproduce test outputs from test inputs"


@dataclass(frozen=True)
class TestResult:
    """One record of a test summary."""

    __test__ = False  # not a pytest test class

    name: str
    status: str
    source_name: str
    tool_version: str
    error: Optional[str] = None
    traceback: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status not in (PASSED, FAILED, SKIPPED):
            raise ValueError(f"Invalid status '{self.status}'")
        if self.status == FAILED and self.error is None:
            raise ValueError(f"Failed result '{self.name}' must carry an error message")

    @property
    def passed(self) -> bool:
        return self.status == PASSED

    def identity(self) -> Tuple[str, str, Optional[str], str, Optional[str], str]:
        """Content key used to collapse identical checks across weight formats."""
        return (self.name, self.status, self.error, self.source_name, self.traceback, self.tool_version)

    def with_suffix(self, label: str) -> "TestResult":
        return replace(self, name=f"{self.name} ({label})")

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "name": self.name,
            "status": self.status,
            "error": self.error,
            "source_name": self.source_name,
            "traceback": self.traceback,
            VERSION_TAG: self.tool_version,
        }

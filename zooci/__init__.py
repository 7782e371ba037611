"""zooci: reproducibility tests for model zoo resource descriptions."""

from .version import get_tool_version

__all__ = ["get_tool_version"]

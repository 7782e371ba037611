from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml

from ..models.results import TestResult


def summary_path(summaries_dir: str | Path, model_id: str, tool_version: str) -> Path:
    """``<summaries_dir>/<id>/test_summary_<version>.yaml``."""
    return Path(summaries_dir) / model_id / f"test_summary_{tool_version}.yaml"


def write_summaries(summaries_dir: str | Path, model_id: str, tool_version: str, results: Iterable[TestResult]) -> Path:
    path = summary_path(summaries_dir, model_id, tool_version)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump([r.to_dict() for r in results], f, sort_keys=False, allow_unicode=True)
    return path

from __future__ import annotations

from importlib import metadata
from typing import Optional

UNKNOWN_VERSION = "UNKNOWN"
# Key used to stamp the tool version on every summary record
VERSION_TAG = "ZOOCI_VERSION"


def get_tool_version(override: Optional[str] = None) -> str:
    """Return the installed zooci version, or ``"UNKNOWN"``.

    ``override`` wins when given (CLI ``--version``).
    """
    if override:
        return override
    try:
        return metadata.version("zooci")
    except metadata.PackageNotFoundError:
        return UNKNOWN_VERSION

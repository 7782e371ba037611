from .compare import Tolerance, check_output, compare_arrays, exceeds, max_deviation, threshold
from .download import default_cache_dir, fetch_model, sha256_of_file
from .logger import setup_logger
from .report import summary_path, write_summaries

__all__ = [
    "Tolerance",
    "check_output",
    "compare_arrays",
    "exceeds",
    "max_deviation",
    "threshold",
    "default_cache_dir",
    "fetch_model",
    "sha256_of_file",
    "setup_logger",
    "summary_path",
    "write_summaries",
]

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import requests
from tqdm import tqdm

from ..errors import DownloadFailure, InvalidWeightSpec
from ..models.descriptor import ModelDescriptor, file_name, is_url
from ..models.weights import architecture_of, resolve_weight_formats

logger = logging.getLogger(__name__)


def default_cache_dir() -> str:
    # Prefer explicit env var; otherwise cache in user dir
    return os.environ.get(
        "ZOOCI_CACHE_DIR",
        os.path.join(os.path.expanduser("~"), ".cache", "zooci"),
    )


def model_dir_name(model_id: str) -> str:
    """Folder name for a model id (ids such as ``10.5281/zenodo.1`` contain slashes)."""
    return model_id.replace("/", "_").replace("\\", "_").replace(":", "_")


def sha256_of_file(path: str | Path, chunk_size: int = 1 << 20) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def download_to(url: str, dst: str | Path, *, progress: bool = True, timeout: float = 60) -> None:
    """Stream ``url`` into ``dst`` through a temporary file in the same folder."""
    dst = Path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(dst.parent)) as tmp:
        tmp_path = tmp.name
        try:
            with requests.get(url, stream=True, timeout=timeout) as r:
                r.raise_for_status()
                total = int(r.headers.get("Content-Length", 0))
                with tqdm(total=total or None, unit="B", unit_scale=True, desc=dst.name, disable=not progress) as bar:
                    for part in r.iter_content(chunk_size=1 << 20):
                        if not part:
                            continue
                        tmp.write(part)
                        bar.update(len(part))
        except BaseException:
            tmp.close()
            os.remove(tmp_path)
            raise
    os.replace(tmp_path, dst)


def resolve_reference(root: str, ref: str) -> str:
    """Absolute location (URL or path) of a file referenced from an rdf."""
    if is_url(ref) or os.path.isabs(ref):
        return ref
    if is_url(root):
        return root.rstrip("/") + "/" + ref
    return str(Path(root) / ref)


def required_files(descriptor: ModelDescriptor) -> List[Tuple[str, Optional[str]]]:
    """Every file a reproduction run needs, as ``(reference, sha256)`` pairs."""
    files: List[Tuple[str, Optional[str]]] = []
    try:
        formats = resolve_weight_formats(descriptor.weights)
    except InvalidWeightSpec as e:
        raise DownloadFailure(f"Cannot collect weights of {descriptor.id}: {e}") from e
    for wf in formats:
        files.append((wf.source, wf.sha256))
        if wf.framework == "pytorch_state_dict":
            try:
                arch = architecture_of(wf)
            except InvalidWeightSpec as e:
                # reported by the state dict engine for its own format
                logger.warning("%s: %s", descriptor.id, e)
                continue
            if arch.source:
                files.append((arch.source, None))
    for ref in descriptor.test_inputs + descriptor.test_outputs + descriptor.attachments:
        files.append((ref, None))
    seen: Dict[str, Optional[str]] = {}
    for ref, sha in files:
        if ref not in seen or (sha and not seen[ref]):
            seen[ref] = sha
    return list(seen.items())


def fetch_model(
    descriptor: ModelDescriptor,
    cache_dir: Optional[str] = None,
    *,
    verify_hash: bool = True,
    progress: bool = False,
) -> Path:
    """Materialise the model files of ``descriptor`` and return their folder.

    Order of resolution:
    1) ZOOCI_MODELS_DIR/<id>/ when it exists (nothing is downloaded)
    2) cache_dir (or default cache)/models/<id>/, downloading missing files

    Raises:
        DownloadFailure: a file could not be fetched or has the wrong hash.
    """
    env_dir = os.environ.get("ZOOCI_MODELS_DIR")
    if env_dir:
        candidate = Path(env_dir) / model_dir_name(descriptor.id)
        if candidate.is_dir():
            logger.info("Using pre-populated model folder %s", candidate)
            return candidate

    target = Path(cache_dir or default_cache_dir()) / "models" / model_dir_name(descriptor.id)
    target.mkdir(parents=True, exist_ok=True)

    for ref, sha in required_files(descriptor):
        dst = target / file_name(ref)

        def valid_hash(path: Path) -> bool:
            if not (verify_hash and sha):
                return True
            try:
                return sha256_of_file(path) == sha
            except FileNotFoundError:
                return False

        if dst.exists() and valid_hash(dst):
            continue
        location = resolve_reference(descriptor.root, ref)
        try:
            if is_url(location):
                logger.info("Downloading %s", location)
                download_to(location, dst, progress=progress)
            else:
                shutil.copyfile(location, dst)
        except (requests.RequestException, OSError) as e:
            raise DownloadFailure(f"Unable to fetch '{ref}' for {descriptor.id}: {e}") from e
        if not valid_hash(dst):
            # Avoid using a corrupted file
            dst.unlink(missing_ok=True)
            raise DownloadFailure(f"Downloaded file hash mismatch for '{file_name(ref)}' of {descriptor.id}.")
    return target

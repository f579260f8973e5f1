"""Runtime provenance helpers.

This module gathers lightweight metadata needed to reproduce a run from
the on-disk artifacts.  Collectors never raise: information that cannot
be determined is recorded as ``None``.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
import platform
import subprocess
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

_DEFAULT_PACKAGE_DISTS: tuple[str, ...] = (
    "numpy",
    "scipy",
    "pandas",
    "pyarrow",
    "h5py",
    "pydantic",
    "ruamel.yaml",
)


def _utc_timestamp_iso() -> str:
    stamp = dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()
    return stamp.replace("+00:00", "Z")


def _safe_package_version(dist_name: str) -> str | None:
    try:
        return metadata.version(dist_name)
    except metadata.PackageNotFoundError:
        return None


def _safe_git_commit(repo_root: Path | None = None) -> str | None:
    root = repo_root if repo_root is not None else Path(__file__).resolve().parents[1]
    try:
        commit = subprocess.check_output(
            ["git", "rev-parse", "HEAD"],
            cwd=root,
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return None
    return commit or None


def _safe_sha256(path: Path, *, max_bytes: int | None = None, chunk_bytes: int = 1024 * 1024) -> str | None:
    try:
        if max_bytes is not None and path.stat().st_size > max_bytes:
            return None
        hasher = hashlib.sha256()
        with path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(chunk_bytes), b""):
                hasher.update(chunk)
    except OSError:
        return None
    return hasher.hexdigest()


def config_hash(payload: Mapping[str, Any]) -> str:
    """Return a SHA-256 digest of a JSON-serialisable configuration."""

    text = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _describe_file(item: str | Path, max_bytes: int) -> dict[str, Any]:
    path = Path(item).expanduser()
    try:
        path = path.resolve()
        exists = path.exists()
        size_bytes = path.stat().st_size if exists else None
    except OSError:
        return {"path": str(path), "exists": None, "size_bytes": None, "sha256": None}
    return {
        "path": str(path),
        "exists": exists,
        "size_bytes": size_bytes,
        "sha256": _safe_sha256(path, max_bytes=max_bytes) if exists else None,
    }


def gather_runtime_provenance(
    *,
    config: Mapping[str, Any] | None = None,
    external_files: Iterable[str | Path | None] = (),
    package_dists: Sequence[str] | None = None,
    max_external_file_bytes: int = 50 * 1024 * 1024,
) -> dict[str, Any]:
    """Return a JSON-serialisable runtime provenance snapshot."""

    try:
        cwd: str | None = str(Path.cwd())
    except OSError:
        cwd = None

    seen: set[str] = set()
    external_rows: list[dict[str, Any]] = []
    for item in external_files:
        if not item:
            continue
        row = _describe_file(item, max_external_file_bytes)
        if row["path"] in seen:
            continue
        seen.add(row["path"])
        external_rows.append(row)

    return {
        "timestamp_utc": _utc_timestamp_iso(),
        "cwd": cwd,
        "argv": list(sys.argv),
        "python": {
            "version": platform.python_version(),
            "executable": sys.executable,
        },
        "platform": {
            "system": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "packages": {dist: _safe_package_version(dist) for dist in package_dists or _DEFAULT_PACKAGE_DISTS},
        "git_commit": _safe_git_commit(),
        "config_sha256": config_hash(config) if config is not None else None,
        "external_files": external_rows,
    }


__all__ = ["config_hash", "gather_runtime_provenance"]

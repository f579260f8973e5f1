"""Helper utilities for loading and normalising configuration inputs."""
from __future__ import annotations

import logging
import subprocess
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ruamel.yaml import YAML

from .errors import ConfigurationError
from .schema import Config

logger = logging.getLogger(__name__)


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    if lower in {"inf", "+inf", "+infinity", "infinity"}:
        return float("inf")
    if lower in {"-inf", "-infinity"}:
        return float("-inf")
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if text.startswith("[") and text.endswith("]"):
        inner = text[1:-1].strip()
        if not inner:
            return []
        return [parse_override_value(item) for item in inner.split(",")]
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    return text


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply dotted-path overrides to a configuration dictionary.

    Integer path segments index into lists, e.g.
    ``elements.0.omega=2.0``.
    """

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        parts = [segment for segment in key.strip().split(".") if segment]
        if not parts:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        target: Any = payload
        for segment in parts[:-1]:
            if isinstance(target, dict):
                if segment not in target or target[segment] is None:
                    target[segment] = {}
                target = target[segment]
            elif isinstance(target, list) and segment.isdigit() and int(segment) < len(target):
                target = target[int(segment)]
            else:
                raise ConfigurationError(
                    f"Cannot traverse into non-mapping for override '{item}' at '{segment}'"
                )
        final_key = parts[-1]
        value = parse_override_value(value_str)
        if isinstance(target, dict):
            target[final_key] = value
        elif isinstance(target, list) and final_key.isdigit() and int(final_key) < len(target):
            target[int(final_key)] = value
        else:
            raise ConfigurationError(f"Cannot set override '{item}'; target is not a mapping")
    return payload


def read_overrides_file(path: Path) -> List[str]:
    """Return ``PATH=VALUE`` lines from ``path``, skipping blanks and comments."""

    overrides: List[str] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            text = line.strip()
            if not text or text.startswith("#"):
                continue
            overrides.append(text)
    return overrides


def load_config(path: Optional[Path], overrides: Optional[Sequence[str]] = None) -> Config:
    """Load a YAML configuration file into a :class:`Config` instance.

    ``path=None`` starts from the defaults, which is convenient together
    with ``overrides``.
    """

    data: Any = {}
    source_path = None
    if path is not None:
        yaml = YAML(typ="safe")
        source_path = Path(path).resolve()
        if not source_path.exists():
            raise ConfigurationError(f"Configuration file {source_path} does not exist")
        with source_path.open("r", encoding="utf-8") as fh:
            data = yaml.load(fh)
        if data is None:
            data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("The YAML root of a configuration file must be a mapping")
    if overrides:
        data = apply_overrides_dict(data, overrides)
    cfg = Config(**data)
    logger.debug("load_config: loaded %s with %d overrides", source_path, len(overrides or ()))
    return cfg


def gather_git_info() -> Dict[str, Any]:
    """Return basic git metadata for provenance recording."""

    repo_root = Path(__file__).resolve().parents[1]
    info: Dict[str, Any] = {}
    try:
        info["commit"] = subprocess.check_output(
            ["git", "rev-parse", "HEAD"], cwd=repo_root, text=True, stderr=subprocess.DEVNULL
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        info["commit"] = "unknown"
    try:
        status = subprocess.check_output(
            ["git", "status", "--short"], cwd=repo_root, text=True, stderr=subprocess.DEVNULL
        )
        info["dirty"] = bool(status.strip())
    except (OSError, subprocess.CalledProcessError):
        info["dirty"] = None
    return info


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level)
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)


__all__ = [
    "parse_override_value",
    "apply_overrides_dict",
    "read_overrides_file",
    "load_config",
    "gather_git_info",
    "configure_logging",
]

"""Hive file loading.

A hive file is either:

- ``hive.json`` — a JSON object; package set paths are written as
  ``{"path": "relative/or/absolute"}`` and resolve against the file's
  directory
- ``hive.py`` — a Python module exposing a ``hive`` mapping, which may use
  ``pathlib.Path`` values, callables and priority wrappers
"""

from __future__ import annotations

import importlib.util
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from hiveforge.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_HIVE_FILES = ("hive.py", "hive.json")


def find_hive_file(start_dir: Path | None = None) -> Path | None:
    """Walk up from *start_dir* to the first directory holding a hive file."""
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()
    while True:
        for name in DEFAULT_HIVE_FILES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if current == current.parent:
            return None
        current = current.parent


def read_hive_file(path: Path) -> dict[str, Any]:
    """Load the raw hive description stored at *path*.

    Raises
    ------
    ConfigError
        If the file is missing, unparsable or does not hold a mapping.
    """
    if not path.is_file():
        raise ConfigError(f"Hive file not found: {path}")

    if path.suffix == ".py":
        raw = _read_python(path)
    else:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{path}: invalid JSON: {exc}") from exc
        if isinstance(raw, Mapping):
            raw = _anchor_meta_paths(raw, path.parent)

    if not isinstance(raw, Mapping):
        raise ConfigError(f"{path}: a hive must be a mapping, got {type(raw).__name__}")
    logger.debug("Read hive file %s", path)
    return dict(raw)


def _read_python(path: Path) -> Any:
    spec = importlib.util.spec_from_file_location("_hiveforge_hive", path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import hive file {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    if not hasattr(module, "hive"):
        raise ConfigError(f"{path}: hive files must define `hive`")
    return module.hive


def _anchor_meta_paths(raw: Mapping[str, Any], base_dir: Path) -> dict[str, Any]:
    """Turn relative ``{"path": ...}`` package set references into absolute ones."""
    result = dict(raw)
    for key in ("meta", "network"):
        meta = result.get(key)
        if not isinstance(meta, Mapping):
            continue
        meta = dict(meta)
        if "nixpkgs" in meta:
            meta["nixpkgs"] = _anchor(meta["nixpkgs"], base_dir)
        if isinstance(meta.get("nodeNixpkgs"), Mapping):
            meta["nodeNixpkgs"] = {
                node: _anchor(ref, base_dir) for node, ref in meta["nodeNixpkgs"].items()
            }
        result[key] = meta
    return result


def _anchor(ref: Any, base_dir: Path) -> Any:
    if isinstance(ref, Mapping) and set(ref) == {"path"} and isinstance(ref["path"], str):
        path = Path(ref["path"]).expanduser()
        return {"path": str(path if path.is_absolute() else base_dir / path)}
    return ref

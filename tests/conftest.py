"""Shared test fixtures for hiveforge."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from hiveforge.build.executors import StoreBuildSystem, system_payload
from hiveforge.config import HiveforgeSettings, settings
from hiveforge.core.artifact_store import ContentAddressedStore
from hiveforge.core.hasher import content_address
from hiveforge.models.artifacts import BuildArtifactRef


class RecordingBuildSystem:
    """Build system double that records every configuration it is given.

    Artifacts are addressed by the same payload ``StoreBuildSystem`` would
    persist, but nothing is written to disk.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def build(self, config: Mapping[str, Any]) -> BuildArtifactRef:
        with self._lock:
            self.calls.append(dict(config))
        address = content_address(system_payload(config))
        return BuildArtifactRef(
            name="system",
            content_address=address,
            path=f"/store/{address.removeprefix('sha256:')}-system",
        )

    @property
    def built_hosts(self) -> list[str]:
        return sorted(call["deployment"]["targetHost"] or "" for call in self.calls)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def artifact_store(tmp_dir: Path) -> ContentAddressedStore:
    """Provide a fresh ContentAddressedStore in a temp directory."""
    return ContentAddressedStore(tmp_dir / "artifacts")


@pytest.fixture
def store_build_system(artifact_store: ContentAddressedStore) -> StoreBuildSystem:
    """Provide a StoreBuildSystem writing into the test artifact store."""
    return StoreBuildSystem(artifact_store)


@pytest.fixture
def recording_build_system() -> RecordingBuildSystem:
    """Provide a build system that only records what it was asked to build."""
    return RecordingBuildSystem()


@pytest.fixture
def test_settings(tmp_dir: Path) -> HiveforgeSettings:
    """Provide settings isolated from the environment and the working directory."""
    return HiveforgeSettings(
        artifact_store_path=tmp_dir / "settings-artifacts",
        max_workers=4,
        max_redirect_depth=10,
        default_package_set=None,
    )


@pytest.fixture
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_dir: Path) -> HiveforgeSettings:
    """Point the module-level settings singleton at the temp directory."""
    monkeypatch.setattr(settings, "artifact_store_path", tmp_dir / "store")
    monkeypatch.setattr(settings, "default_package_set", None)
    return settings


# ---------------------------------------------------------------------------
# Hive factories shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_hive() -> Callable[..., dict[str, Any]]:
    """Factory fixture: a small three-node hive with sensible defaults."""

    def _factory(**overrides: Any) -> dict[str, Any]:
        hive: dict[str, Any] = {
            "meta": {
                "name": "testnet",
                "description": "Test hive",
                "nixpkgs": {
                    "toolchain": "gcc13",
                    "overlays": ["base-overlay"],
                    "config": {"allowUnfree": True},
                },
            },
            "defaults": {
                "deployment": {"tags": ["all"]},
                "services": {"sshd": {"enable": True}},
            },
            "alpha": {"deployment": {"tags": ["web"]}},
            "beta": {"deployment": {"targetHost": "beta.example.org", "targetPort": 2222}},
            "gamma": {"services": {"nginx": {"enable": True}}},
        }
        hive.update(overrides)
        return hive

    return _factory


@pytest.fixture
def write_json() -> Callable[[Path, Any], Path]:
    """Factory fixture: write a JSON document, creating parent directories."""

    def _write(path: Path, value: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(value), encoding="utf-8")
        return path

    return _write

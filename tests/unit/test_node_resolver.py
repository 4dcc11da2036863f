"""Tests for NodeResolver — layer order, validation, warnings and isolation."""

from __future__ import annotations

from typing import Any

import pytest

from hiveforge.build.executors import StoreBuildSystem
from hiveforge.core.artifact_store import ContentAddressedStore
from hiveforge.core.errors import InvalidPackageSetReference, ValidationFailed
from hiveforge.core.hive_model import load
from hiveforge.core.node_resolver import NodeResolver
from hiveforge.core.schema import force
from hiveforge.models.artifacts import ResolvedNode
from hiveforge.models.package_set import PackageSet


def _resolve(build_system, raw: dict[str, Any], name: str) -> ResolvedNode:
    hive = load(raw)
    return NodeResolver(build_system).resolve_node(name, hive.nodes[name], hive)


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


class TestLayering:
    def test_target_host_defaults_to_node_name(self, recording_build_system):
        node = _resolve(recording_build_system, {"web-1": {}}, "web-1")
        assert node.deployment.target_host == "web-1"
        assert node.config["deployment"]["targetHost"] == "web-1"

    def test_node_overrides_defaults(self, recording_build_system, make_hive):
        node = _resolve(recording_build_system, make_hive(), "beta")
        assert node.deployment.target_host == "beta.example.org"
        assert node.deployment.target_port == 2222
        assert node.deployment.tags == ["all"]

    def test_freeform_config_merges(self, recording_build_system, make_hive):
        node = _resolve(recording_build_system, make_hive(), "gamma")
        assert node.config["services"] == {
            "sshd": {"enable": True},
            "nginx": {"enable": True},
        }

    def test_overlays_hive_before_node(self, recording_build_system):
        raw = {
            "meta": {"nixpkgs": {"overlays": ["Y"]}},
            "defaults": {"nixpkgs": {"overlays": ["D"]}},
            "web": {"nixpkgs": {"overlays": ["X"]}},
        }
        node = _resolve(recording_build_system, raw, "web")
        assert node.config["nixpkgs"]["overlays"] == ["Y", "D", "X"]

    def test_forced_default_beats_node(self, recording_build_system):
        raw = {
            "defaults": {"deployment": {"targetUser": force("deploy")}},
            "web": {"deployment": {"targetUser": "root"}},
        }
        node = _resolve(recording_build_system, raw, "web")
        assert node.deployment.target_user == "deploy"

    def test_callable_layers_receive_name_and_package_set(self, recording_build_system):
        seen: list[tuple[str, PackageSet]] = []

        def defaults(name: str, package_set: PackageSet) -> dict[str, Any]:
            seen.append((name, package_set))
            return {"deployment": {"targetHost": f"{name}.{package_set.toolchain}.lan"}}

        raw = {"meta": {"nixpkgs": {"toolchain": "gcc13"}}, "defaults": defaults, "web": {}}
        node = _resolve(recording_build_system, raw, "web")
        assert node.deployment.target_host == "web.gcc13.lan"
        assert seen[0][0] == "web"
        assert seen[0][1].toolchain == "gcc13"

    def test_node_package_set_override(self, recording_build_system):
        raw = {
            "meta": {
                "nixpkgs": {"overlays": ["shared"]},
                "nodeNixpkgs": {"special": {"overlays": ["own"]}},
            },
            "special": {},
        }
        node = _resolve(recording_build_system, raw, "special")
        assert node.config["nixpkgs"]["overlays"] == ["own"]


# ---------------------------------------------------------------------------
# Package config and warnings
# ---------------------------------------------------------------------------


class TestPackageConfig:
    def test_package_config_applies_when_node_sets_none(self, recording_build_system):
        raw = {"meta": {"nixpkgs": {"config": {"allowUnfree": True}}}, "web": {}}
        node = _resolve(recording_build_system, raw, "web")
        assert node.config["nixpkgs"]["config"] == {"allowUnfree": True}
        assert node.warnings == ()

    def test_node_config_replaces_package_config(self, recording_build_system):
        raw = {
            "meta": {"nixpkgs": {"config": {"allowUnfree": True}}},
            "web": {"nixpkgs": {"config": {"cudaSupport": True}}},
        }
        node = _resolve(recording_build_system, raw, "web")
        assert node.config["nixpkgs"]["config"] == {"cudaSupport": True}
        assert len(node.warnings) == 1
        assert "allowUnfree" in node.warnings[0]

    def test_node_warnings_are_reported(self, recording_build_system, caplog):
        raw = {"web": {"warnings": ["legacy option in use"]}}
        with caplog.at_level("WARNING"):
            node = _resolve(recording_build_system, raw, "web")
        assert node.warnings == ("legacy option in use",)
        assert "web: legacy option in use" in caplog.text


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_key_violation_prevents_build(self, recording_build_system):
        raw = {"web": {"deployment": {"keys": {"tls": {}}}}}
        with pytest.raises(ValidationFailed) as excinfo:
            _resolve(recording_build_system, raw, "web")
        assert excinfo.value.node == "web"
        assert excinfo.value.violations == [
            "web.deployment.keys.tls: exactly one of text, keyCommand, keyFile must be set"
        ]
        assert recording_build_system.calls == []

    def test_type_and_key_violations_reported_together(self, recording_build_system):
        raw = {
            "web": {
                "deployment": {
                    "targetPort": "ssh",
                    "keys": {"a": {"text": "x", "keyFile": "/y"}},
                }
            }
        }
        with pytest.raises(ValidationFailed) as excinfo:
            _resolve(recording_build_system, raw, "web")
        assert len(excinfo.value.violations) == 2

    def test_misspelled_deployment_option(self, recording_build_system):
        raw = {"web": {"deployment": {"targetHots": "10.0.0.1"}, "services": {"x": 1}}}
        with pytest.raises(ValidationFailed) as excinfo:
            _resolve(recording_build_system, raw, "web")
        assert excinfo.value.violations == [
            "The option `web.deployment.targetHots` does not exist (in `web`)"
        ]
        assert recording_build_system.calls == []

    def test_layer_function_must_return_mapping(self, recording_build_system):
        raw = {"web": lambda name, package_set: ["not", "a", "mapping"]}
        with pytest.raises(ValidationFailed, match="not a mapping"):
            _resolve(recording_build_system, raw, "web")


# ---------------------------------------------------------------------------
# Build output
# ---------------------------------------------------------------------------


class TestBuild:
    def test_keys_never_reach_the_artifact(self, artifact_store: ContentAddressedStore):
        raw = {"web": {"deployment": {"keys": {"db": {"text": "hunter2-secret"}}}}}
        node = _resolve(StoreBuildSystem(artifact_store), raw, "web")
        data = artifact_store.retrieve(node.build_artifact.content_address)
        assert b"hunter2-secret" not in data
        assert b"deployment" not in data
        assert node.deployment.keys["db"].text == "hunter2-secret"

    def test_resolution_is_idempotent(self, recording_build_system, make_hive):
        raw = make_hive()
        first = _resolve(recording_build_system, raw, "alpha")
        second = _resolve(recording_build_system, raw, "alpha")
        assert first.config_hash == second.config_hash
        assert first.build_artifact == second.build_artifact
        assert first == second

    def test_different_nodes_hash_differently(self, recording_build_system, make_hive):
        raw = make_hive()
        assert (
            _resolve(recording_build_system, raw, "alpha").config_hash
            != _resolve(recording_build_system, raw, "gamma").config_hash
        )


# ---------------------------------------------------------------------------
# resolve_all
# ---------------------------------------------------------------------------


class TestResolveAll:
    def test_failures_are_isolated(self, recording_build_system, make_hive):
        hive = load(make_hive(broken={"deployment": {"keys": {"k": {}}}}))
        results = NodeResolver(recording_build_system).resolve_all(hive, max_workers=4)

        assert set(results) == {"alpha", "beta", "broken", "gamma"}
        assert isinstance(results["broken"], ValidationFailed)
        assert all(
            isinstance(results[name], ResolvedNode) for name in ("alpha", "beta", "gamma")
        )
        assert recording_build_system.built_hosts == ["alpha", "beta.example.org", "gamma"]

    def test_package_set_errors_are_isolated(self, recording_build_system):
        hive = load(
            {
                "meta": {"nodeNixpkgs": {"broken": {"path": "/does/not/exist.json"}}},
                "broken": {},
                "fine": {},
            }
        )
        results = NodeResolver(recording_build_system).resolve_all(hive)
        assert isinstance(results["broken"], InvalidPackageSetReference)
        assert isinstance(results["fine"], ResolvedNode)

    def test_subset_of_names(self, recording_build_system, make_hive):
        hive = load(make_hive())
        results = NodeResolver(recording_build_system).resolve_all(
            hive, ["gamma", "unknown"]
        )
        assert list(results) == ["gamma"]

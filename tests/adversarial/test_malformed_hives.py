"""Adversarial tests — malformed hives and layers.

These tests verify that:
1. Conflicting meta keys abort before any package set or node work
2. Non-mapping layers and option groups are rejected, not crashed on
3. One broken node never hides the others, even when user code raises
4. Secrets never leak into build output
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from hiveforge.build.executors import StoreBuildSystem
from hiveforge.core.errors import (
    BuildFailed,
    ConflictingMetaKeys,
    HiveError,
    InvalidNodeDefinition,
    InvalidPackageSetReference,
    MetaValidationFailed,
    ValidationFailed,
)
from hiveforge.core.evaluator import HiveEvaluator
from hiveforge.core.package_sets import PackageSetResolver
from hiveforge.models.artifacts import ResolvedNode


class TestConflictingMeta:
    """``meta`` plus ``network`` is a hive-wide error raised up front."""

    def test_no_resolver_call(self, monkeypatch: pytest.MonkeyPatch, recording_build_system, test_settings):
        def explode(self, *args: Any, **kwargs: Any):
            raise AssertionError("package sets must not be resolved")

        monkeypatch.setattr(PackageSetResolver, "resolve", explode)
        with pytest.raises(ConflictingMetaKeys):
            HiveEvaluator(
                {"meta": {"nixpkgs": lambda o: {}}, "network": {}, "web": {}},
                build_system=recording_build_system,
                settings=test_settings,
            )
        assert recording_build_system.calls == []

    def test_conflict_wins_over_other_errors(self):
        with pytest.raises(ConflictingMetaKeys):
            HiveEvaluator({"meta": "garbage", "network": ["garbage"], "web": 42})


class TestMalformedLayers:
    """Malformed layers surface as typed hive errors."""

    def _evaluate(self, raw, recording_build_system, test_settings) -> HiveEvaluator:
        return HiveEvaluator(raw, build_system=recording_build_system, settings=test_settings)

    def test_list_node(self, recording_build_system, test_settings):
        with pytest.raises(InvalidNodeDefinition):
            self._evaluate({"web": ["deployment"]}, recording_build_system, test_settings)

    def test_meta_wrong_types(self, recording_build_system, test_settings):
        with pytest.raises(MetaValidationFailed) as excinfo:
            self._evaluate(
                {"meta": {"name": ["x"], "nodeNixpkgs": "all"}},
                recording_build_system,
                test_settings,
            )
        assert len(excinfo.value.violations) == 2

    def test_deployment_group_not_a_mapping(self, recording_build_system, test_settings):
        evaluator = self._evaluate(
            {"web": {"deployment": "ssh://web"}}, recording_build_system, test_settings
        )
        error = evaluator.failures["web"]
        assert isinstance(error, ValidationFailed)
        assert any("`deployment` must be a mapping" in v for v in error.violations)
        assert recording_build_system.calls == []

    def test_conflicting_dotted_definitions(self, recording_build_system, test_settings):
        evaluator = self._evaluate(
            {"web": {"deployment.targetHost": "a", "deployment": {"targetHost": "b"}}},
            recording_build_system,
            test_settings,
        )
        assert isinstance(evaluator.failures["web"], ValidationFailed)

    def test_keys_with_empty_command(self, recording_build_system, test_settings):
        evaluator = self._evaluate(
            {"web": {"deployment": {"keys": {"k": {"keyCommand": []}}}}},
            recording_build_system,
            test_settings,
        )
        assert isinstance(evaluator.failures["web"], ValidationFailed)

    def test_defaults_function_returning_garbage(self, recording_build_system, test_settings):
        evaluator = self._evaluate(
            {"defaults": lambda name, package_set: None, "a": {}, "b": {}},
            recording_build_system,
            test_settings,
        )
        assert sorted(evaluator.failures) == ["a", "b"]
        assert all(isinstance(e, HiveError) for e in evaluator.failures.values())


# ---------------------------------------------------------------------------
# User code raising
# ---------------------------------------------------------------------------


class _ExplodingBuildSystem:
    def __init__(self, victim: str, inner) -> None:
        self.victim = victim
        self.inner = inner

    def build(self, config):
        if config["deployment"]["targetHost"] == self.victim:
            raise RuntimeError("builder crashed")
        return self.inner.build(config)


class TestUserCodeRaising:
    """Exceptions from layer functions, package sets and builds stay per node."""

    def test_node_function_raising(self, recording_build_system, test_settings):
        def bad(name, package_set):
            return {"deployment": {"targetHost": {}["typo"]}}

        evaluator = HiveEvaluator(
            {"good": {}, "bad": bad}, build_system=recording_build_system, settings=test_settings
        )
        assert list(evaluator.nodes) == ["good"]
        error = evaluator.failures["bad"]
        assert isinstance(error, ValidationFailed)
        assert error.node == "bad"
        assert "KeyError" in error.violations[0]
        assert error.violations[0].startswith("bad: layer function raised")

    def test_results_are_cached_after_failure(self, recording_build_system, test_settings):
        def bad(name, package_set):
            raise RuntimeError("boom")

        evaluator = HiveEvaluator(
            {"good": {}, "bad": bad}, build_system=recording_build_system, settings=test_settings
        )
        first = evaluator.failures["bad"]
        assert evaluator.failures["bad"] is first
        assert len(recording_build_system.calls) == 1

    def test_broken_python_package_set(self, tmp_path: Path, recording_build_system, test_settings):
        broken = tmp_path / "pkgs.py"
        broken.write_text("package_set = {\n")
        evaluator = HiveEvaluator(
            {"meta": {"nodeNixpkgs": {"bad": broken}}, "good": {}, "bad": {}},
            build_system=recording_build_system,
            settings=test_settings,
        )
        assert list(evaluator.nodes) == ["good"]
        error = evaluator.failures["bad"]
        assert isinstance(error, InvalidPackageSetReference)
        assert error.context_label == "meta.nodeNixpkgs.bad"
        assert "SyntaxError" in error.message

    def test_constructor_raising_is_shared(self, recording_build_system, test_settings):
        calls = []

        def constructor(overrides):
            calls.append(overrides)
            raise ValueError("no such channel")

        evaluator = HiveEvaluator(
            {"meta": {"nixpkgs": constructor}, "a": {}, "b": {}},
            build_system=recording_build_system,
            settings=test_settings,
        )
        assert sorted(evaluator.failures) == ["a", "b"]
        assert all(
            isinstance(e, InvalidPackageSetReference) for e in evaluator.failures.values()
        )
        assert len(calls) == 1

    def test_unhashable_constructor(self, recording_build_system, test_settings):
        class Constructor:
            __hash__ = None  # type: ignore[assignment]

            def __call__(self, overrides):
                return {"toolchain": "clang"}

        evaluator = HiveEvaluator(
            {"meta": {"nixpkgs": Constructor()}, "web": {}},
            build_system=recording_build_system,
            settings=test_settings,
        )
        assert evaluator.failures == {}
        assert evaluator.introspect(lambda ps, schema, nodes: ps.toolchain) == "clang"

    def test_build_system_raising(self, recording_build_system, test_settings):
        evaluator = HiveEvaluator(
            {"good": {}, "bad": {}},
            build_system=_ExplodingBuildSystem("bad", recording_build_system),
            settings=test_settings,
        )
        assert list(evaluator.nodes) == ["good"]
        error = evaluator.failures["bad"]
        assert isinstance(error, BuildFailed)
        assert error.node == "bad"
        assert "builder crashed" in error.message


class TestIsolationAndSecrets:
    def test_many_broken_nodes_do_not_hide_good_ones(self, recording_build_system, test_settings):
        raw: dict[str, Any] = {f"bad{i}": {"deployment": {"targetPort": "x"}} for i in range(10)}
        raw.update({f"good{i}": {} for i in range(10)})
        evaluator = HiveEvaluator(raw, build_system=recording_build_system, settings=test_settings)
        results = evaluator.results()
        assert sum(isinstance(r, ResolvedNode) for r in results.values()) == 10
        assert sorted(evaluator.failures) == sorted(f"bad{i}" for i in range(10))

    def test_secret_from_defaults_never_stored(self, artifact_store, test_settings):
        raw = {
            "defaults": {"deployment": {"keys": {"api": {"text": "top-secret-token"}}}},
            "web": {},
            "db": {},
        }
        evaluator = HiveEvaluator(
            raw, build_system=StoreBuildSystem(artifact_store), settings=test_settings
        )
        evaluator.build_all()
        for path in artifact_store.base_path.rglob("*.json"):
            assert b"top-secret-token" not in path.read_bytes()
        assert evaluator.deployment_config()["web"]["keys"]["api"]["text"] == "top-secret-token"

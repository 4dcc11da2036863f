"""Key material validation — exactly one source per secret."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from hiveforge.models.deployment import KeySpec


def validate_keys(name: str, keys: Mapping[str, KeySpec | Mapping[str, Any]]) -> list[str]:
    """Return one violation per key that does not have exactly one source.

    Every key is checked; nothing is raised here so that a single pass can
    report all offending keys of a node at once.
    """
    violations: list[str] = []
    for key_name, spec in keys.items():
        if not isinstance(spec, KeySpec):
            spec = KeySpec.model_validate(spec)
        if spec.source_count != 1:
            violations.append(
                f"{name}.deployment.keys.{key_name}: "
                "exactly one of text, keyCommand, keyFile must be set"
            )
    return violations

"""Package set models and the tagged ``PackageSetRef`` union.

A package set is the toolchain a node builds against: a named toolchain,
an ordered overlay list, base configuration and pinned packages.  Hive meta
refers to package sets indirectly through one of three reference shapes:

- ``PathRef``        — a file (or directory) holding a package set value
- ``ConstructorRef`` — a callable taking an override mapping
- ``LiteralRef``     — an already-built ``PackageSet``
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hiveforge.core.errors import InvalidPackageSetReference


class PackageSet(BaseModel):
    """A resolved toolchain / build environment.

    ``overlays`` are applied in order on top of the base definitions;
    ``config`` carries package-level settings that nodes may override.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "packages"
    toolchain: str = "default"
    overlays: tuple[str, ...] = ()
    config: dict[str, Any] = Field(default_factory=dict)
    packages: dict[str, str] = Field(default_factory=dict)


class PathRef(BaseModel):
    """Reference to a package set stored on disk."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["path"] = "path"
    path: Path


class ConstructorRef(BaseModel):
    """Reference to a callable producing a package set."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["constructor"] = "constructor"
    fn: Callable[[dict[str, Any]], Any]


class LiteralRef(BaseModel):
    """An inline package set value."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["literal"] = "literal"
    package_set: PackageSet


PackageSetRef = Annotated[
    Union[PathRef, ConstructorRef, LiteralRef], Field(discriminator="kind")
]


def coerce_package_set_ref(
    value: Any, context_label: str, base_dir: Path | None = None
) -> PathRef | ConstructorRef | LiteralRef:
    """Classify a raw value into one of the three reference shapes.

    Parameters
    ----------
    value:
        The raw reference as written in the hive (or loaded from a file).
    context_label:
        Dotted field path used in error messages, e.g. ``meta.nixpkgs``.
    base_dir:
        Directory that relative paths are resolved against.

    Raises
    ------
    InvalidPackageSetReference
        If *value* has none of the accepted shapes.
    """
    if isinstance(value, (PathRef, ConstructorRef, LiteralRef)):
        return value
    if isinstance(value, PackageSet):
        return LiteralRef(package_set=value)
    if isinstance(value, Path):
        return PathRef(path=_anchor(value, base_dir))
    if isinstance(value, Mapping):
        if set(value) == {"path"} and isinstance(value["path"], (str, Path)):
            return PathRef(path=_anchor(Path(value["path"]), base_dir))
        try:
            return LiteralRef(package_set=PackageSet.model_validate(dict(value)))
        except ValidationError as exc:
            raise InvalidPackageSetReference(context_label, str(exc)) from exc
    if callable(value):
        return ConstructorRef(fn=value)
    raise InvalidPackageSetReference(
        context_label, f"Got a value of type {type(value).__name__}."
    )


def _anchor(path: Path, base_dir: Path | None) -> Path:
    if base_dir is not None and not path.is_absolute():
        return base_dir / path
    return path

"""Explicit option schema and the layered merge.

An ``OptionSchema`` maps dotted option paths to ``OptionSpec`` entries (type
constraint, default, merge strategy).  ``OptionSchema.merge_layers`` folds an
ordered sequence of ``ConfigLayer``s (lowest precedence first) into a single
configuration value and collects every violation instead of raising on the
first one.

Layer values may be wrapped to change how a definition competes:

- ``force(v)``          priority 50, beats normal definitions
- ``fallback(v)``       priority 1000, loses to normal definitions
- ``option_default(v)`` priority 1500, used only if nothing else defines it
- ``before(v)`` / ``after(v)`` position list contributions

Only the definitions with the strongest (numerically lowest) priority of an
option take part in its merge.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

FORCE_PRIORITY = 50
NORMAL_PRIORITY = 100
FALLBACK_PRIORITY = 1000
OPTION_DEFAULT_PRIORITY = 1500

BEFORE_ORDER = 500
NORMAL_ORDER = 1000
AFTER_ORDER = 1500


class MergeStrategy(str, Enum):
    """How the definitions of one option from several layers combine."""

    REPLACE = "replace"  # highest-precedence definition wins
    MERGE = "merge"  # mappings merged key-wise (deep)
    APPEND = "append"  # lists concatenated, lowest layer first
    PREPEND = "prepend"  # lists concatenated, highest layer first
    UNIQUE = "unique"  # all definitions must agree


# ---------------------------------------------------------------------------
# Definition wrappers
# ---------------------------------------------------------------------------


class Definition(BaseModel):
    """A layer value with an explicit priority and list ordering."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: Any
    priority: int = NORMAL_PRIORITY
    order: int = NORMAL_ORDER


def force(value: Any) -> Definition:
    """Make a definition win over normal ones."""
    return _rewrap(value, priority=FORCE_PRIORITY)


def fallback(value: Any) -> Definition:
    """Make a definition lose to any normal one."""
    return _rewrap(value, priority=FALLBACK_PRIORITY)


def option_default(value: Any) -> Definition:
    """Define a value that applies only when no other layer defines the option."""
    return _rewrap(value, priority=OPTION_DEFAULT_PRIORITY)


def before(value: Any) -> Definition:
    """Place a list contribution ahead of normally ordered ones."""
    return _rewrap(value, order=BEFORE_ORDER)


def after(value: Any) -> Definition:
    """Place a list contribution behind normally ordered ones."""
    return _rewrap(value, order=AFTER_ORDER)


def _rewrap(value: Any, **update: int) -> Definition:
    if isinstance(value, Definition):
        return value.model_copy(update=update)
    return Definition(value=value, **update)


def _unwrap(value: Any) -> tuple[Any, int, int]:
    priority, order = NORMAL_PRIORITY, NORMAL_ORDER
    while isinstance(value, Definition):
        priority, order, value = value.priority, value.order, value.value
    return value, priority, order


def strip_definitions(value: Any) -> Any:
    """Recursively drop priority wrappers, leaving plain data."""
    value, _, _ = _unwrap(value)
    if isinstance(value, Mapping):
        return {k: strip_definitions(v) for k, v in value.items()}
    if isinstance(value, list):
        return [strip_definitions(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Schema models
# ---------------------------------------------------------------------------


class ConfigLayer(BaseModel):
    """A named partial configuration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    values: dict[str, Any] = Field(default_factory=dict)


class OptionSpec(BaseModel):
    """Declaration of one option.

    ``default_factory`` receives the merge context (e.g. the node name) and
    takes precedence over ``default``.  ``apply`` post-processes the
    type-checked value.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: str
    annotation: Any = Field(default_factory=lambda: Any)
    default: Any = None
    default_factory: Callable[[Mapping[str, Any]], Any] | None = None
    strategy: MergeStrategy = MergeStrategy.REPLACE
    apply: Callable[[Any], Any] | None = None
    description: str = ""

    @property
    def parts(self) -> tuple[str, ...]:
        return tuple(self.path.split("."))


class MergeResult(BaseModel):
    """Outcome of ``OptionSchema.merge_layers``."""

    model_config = ConfigDict(frozen=True)

    value: dict[str, Any] = Field(default_factory=dict)
    violations: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


class OptionSchema:
    """A set of option declarations plus the merge over layers.

    Parameters
    ----------
    options:
        The declared options.  Paths must be unique and no path may be a
        prefix of another.
    freeform:
        When True, undeclared paths are merged as plain data (deep merge,
        the later layer wins); when False they are violations.
    closed_groups:
        Top-level groups whose undeclared paths are violations even in a
        freeform schema.
    """

    def __init__(
        self,
        options: Iterable[OptionSpec],
        *,
        freeform: bool = True,
        closed_groups: Iterable[str] = (),
    ) -> None:
        self._options: dict[str, OptionSpec] = {}
        for option in options:
            if option.path in self._options:
                raise ValueError(f"Option `{option.path}` is declared twice")
            self._options[option.path] = option

        paths = sorted(self._options)
        for shorter, longer in zip(paths, paths[1:]):
            if longer.startswith(shorter + "."):
                raise ValueError(
                    f"Option `{shorter}` cannot contain declared option `{longer}`"
                )

        self._adapters: dict[str, TypeAdapter[Any]] = {
            path: TypeAdapter(option.annotation) for path, option in self._options.items()
        }
        self.freeform = freeform
        self.closed_groups = frozenset(closed_groups)

    @property
    def options(self) -> dict[str, OptionSpec]:
        """Declared options keyed by path."""
        return dict(self._options)

    def __contains__(self, path: object) -> bool:
        return path in self._options

    def extend(self, options: Iterable[OptionSpec]) -> OptionSchema:
        """Return a new schema with additional declarations."""
        return OptionSchema(
            [*self._options.values(), *options],
            freeform=self.freeform,
            closed_groups=self.closed_groups,
        )

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge_layers(
        self,
        layers: Sequence[ConfigLayer],
        *,
        context: Mapping[str, Any] | None = None,
        prefix: str = "",
    ) -> MergeResult:
        """Merge *layers* (lowest precedence first) into one configuration.

        Parameters
        ----------
        layers:
            Ordered layers; later layers override earlier ones unless an
            option's strategy or a definition priority says otherwise.
        context:
            Passed to ``OptionSpec.default_factory``.
        prefix:
            Prepended to option paths in violation messages (e.g. a node
            name).
        """
        context = dict(context or {})
        violations: list[str] = []

        expanded: list[tuple[str, dict[str, Any]]] = []
        for layer in layers:
            try:
                expanded.append((layer.name, expand_dotted(layer.values)))
            except ValueError as exc:
                violations.append(f"{_label(prefix, '')}{exc} (in `{layer.name}`)")

        declared: dict[str, Any] = {}
        for path, option in self._options.items():
            definitions: list[tuple[str, Any]] = []
            for layer_name, values in expanded:
                try:
                    found, raw = _lookup(values, option.parts)
                except ValueError as exc:
                    violations.append(
                        f"{_label(prefix, path)}: {exc} (in `{layer_name}`)"
                    )
                    continue
                if found:
                    definitions.append((layer_name, raw))

            value, errors = self._merge_option(option, definitions, context, prefix)
            violations.extend(errors)
            _assign(declared, option.parts, value)

        freeform: Any = {}
        for layer_name, values in expanded:
            rest = _without_declared(values, self._options)
            undeclared = _leaf_paths(rest) if not self.freeform else []
            if self.freeform and self.closed_groups:
                for group in sorted(self.closed_groups & set(rest)):
                    leftover = rest.pop(group)
                    if isinstance(_unwrap(leftover)[0], Mapping):
                        undeclared.extend(_leaf_paths(leftover, group))
            for leaf in undeclared:
                violations.append(
                    f"The option `{_label(prefix, leaf)}` does not exist "
                    f"(in `{layer_name}`)"
                )
            if not self.freeform:
                continue
            freeform = _merge_freeform(freeform, rest)

        merged = _overlay(strip_definitions(freeform), declared)
        return MergeResult(value=merged, violations=violations)

    def _merge_option(
        self,
        option: OptionSpec,
        definitions: list[tuple[str, Any]],
        context: Mapping[str, Any],
        prefix: str,
    ) -> tuple[Any, list[str]]:
        label = _label(prefix, option.path)

        if not definitions:
            if option.default_factory is not None:
                value = option.default_factory(context)
            else:
                value = copy.deepcopy(option.default)
            return self._check(option, value, label, ["<default>"])

        unwrapped = [(name, *_unwrap(raw)) for name, raw in definitions]
        strongest = min(priority for _, _, priority, _ in unwrapped)
        active = [
            (name, strip_definitions(value), order)
            for name, value, priority, order in unwrapped
            if priority == strongest
        ]
        sources = [name for name, _, _ in active]
        errors: list[str] = []

        if option.strategy is MergeStrategy.REPLACE:
            value = active[-1][1]

        elif option.strategy is MergeStrategy.MERGE:
            value = {}
            for name, item, _ in active:
                if not isinstance(item, Mapping):
                    errors.append(f"{label}: expected a mapping (in `{name}`)")
                    continue
                value = _deep_merge(value, item)

        elif option.strategy in (MergeStrategy.APPEND, MergeStrategy.PREPEND):
            ordered = active if option.strategy is MergeStrategy.APPEND else active[::-1]
            value = []
            for name, item, _ in sorted(ordered, key=lambda entry: entry[2]):
                if not isinstance(item, (list, tuple)):
                    errors.append(f"{label}: expected a list (in `{name}`)")
                    continue
                value.extend(item)

        else:  # UNIQUE
            value = active[0][1]
            if any(item != value for _, item, _ in active[1:]):
                listing = ", ".join(f"`{item!r}` in `{name}`" for name, item, _ in active)
                errors.append(f"{label}: conflicting definition values: {listing}")

        if errors:
            return None, errors
        return self._check(option, value, label, sources)

    def _check(
        self, option: OptionSpec, value: Any, label: str, sources: list[str]
    ) -> tuple[Any, list[str]]:
        adapter = self._adapters[option.path]
        try:
            validated = adapter.validate_python(value)
        except ValidationError as exc:
            where = ", ".join(f"`{s}`" for s in sources)
            return None, [
                f"{label}{_loc(err['loc'])}: {err['msg']} (defined in {where})"
                for err in exc.errors()
            ]

        if option.annotation is not Any:
            validated = adapter.dump_python(validated, by_alias=True)
        if option.apply is not None:
            validated = option.apply(validated)
        return validated, []


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def expand_dotted(values: Mapping[str, Any]) -> dict[str, Any]:
    """Expand top-level dotted keys (``"a.b": 1``) into nested mappings.

    Only the layer's own keys are expanded; keys inside option values (such
    as key names under ``deployment.keys``) are kept verbatim.

    Raises
    ------
    ValueError
        If the same path is defined twice with non-mapping values.
    """
    result: dict[str, Any] = {}
    for key, value in values.items():
        parts = str(key).split(".")
        node = result
        for part in parts[:-1]:
            existing = node.setdefault(part, {})
            if not isinstance(existing, dict):
                raise ValueError(f"`{key}` conflicts with a non-mapping definition")
            node = existing
        leaf = parts[-1]
        if leaf in node:
            node[leaf] = _strict_merge(node[leaf], value, key)
        else:
            node[leaf] = _to_plain_dict(value)
    return result


def _to_plain_dict(value: Any) -> Any:
    if isinstance(value, Mapping) and not isinstance(value, dict):
        return dict(value)
    return value


def _strict_merge(existing: Any, value: Any, key: str) -> Any:
    if isinstance(existing, dict) and isinstance(value, Mapping):
        merged = dict(existing)
        for k, v in value.items():
            merged[k] = _strict_merge(merged[k], v, f"{key}.{k}") if k in merged else v
        return merged
    raise ValueError(f"`{key}` is defined more than once")


def _lookup(values: Mapping[str, Any], parts: tuple[str, ...]) -> tuple[bool, Any]:
    """Find the definition at *parts*, pushing group wrappers onto the leaf."""
    node: Any = values
    outer: Definition | None = None
    for depth, part in enumerate(parts):
        if isinstance(node, Definition):
            outer = node
            node, _, _ = _unwrap(node)
        if not isinstance(node, Mapping):
            group = ".".join(parts[:depth])
            raise ValueError(f"`{group}` must be a mapping, got {type(node).__name__}")
        if part not in node:
            return False, None
        node = node[part]
    if outer is not None and not isinstance(node, Definition):
        node = Definition(value=node, priority=outer.priority, order=outer.order)
    return True, node


def _assign(target: dict[str, Any], parts: tuple[str, ...], value: Any) -> None:
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def _without_declared(values: Any, options: Mapping[str, OptionSpec], path: str = "") -> Any:
    """Copy *values* minus every declared option path."""
    inner, priority, order = _unwrap(values)
    if not isinstance(inner, Mapping):
        return values

    result: dict[str, Any] = {}
    for key, child in inner.items():
        child_path = f"{path}.{key}" if path else str(key)
        if child_path in options:
            continue
        if any(p.startswith(child_path + ".") for p in options):
            child = _without_declared(child, options, child_path)
            if isinstance(child, Mapping) and not child:
                continue
        result[key] = child

    if priority != NORMAL_PRIORITY or order != NORMAL_ORDER:
        return Definition(value=result, priority=priority, order=order)
    return result


def _leaf_paths(values: Any, path: str = "") -> list[str]:
    inner, _, _ = _unwrap(values)
    if isinstance(inner, Mapping) and inner:
        leaves: list[str] = []
        for key, child in inner.items():
            leaves.extend(_leaf_paths(child, f"{path}.{key}" if path else str(key)))
        return leaves
    return [path] if path else []


def _merge_freeform(base: Any, override: Any) -> Any:
    base_value, base_priority, _ = _unwrap(base)
    over_value, over_priority, _ = _unwrap(override)
    if over_priority > base_priority:
        return base
    if over_priority < base_priority:
        return override
    if isinstance(base_value, Mapping) and isinstance(over_value, Mapping):
        merged = dict(base_value)
        for key, value in over_value.items():
            merged[key] = _merge_freeform(merged[key], value) if key in merged else value
        if base_priority != NORMAL_PRIORITY:
            return Definition(value=merged, priority=base_priority)
        return merged
    return override


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _overlay(base: Any, declared: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(base, Mapping):
        return declared
    merged = dict(base)
    for key, value in declared.items():
        if isinstance(merged.get(key), Mapping) and isinstance(value, dict):
            merged[key] = _overlay(merged[key], value)
        else:
            merged[key] = value
    return merged


def _label(prefix: str, path: str) -> str:
    if prefix and path:
        return f"{prefix}.{path}"
    if prefix:
        return f"{prefix}: "
    return path


def _loc(loc: tuple[Any, ...]) -> str:
    return "".join(f".{part}" for part in loc)

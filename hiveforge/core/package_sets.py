"""Package set resolution — path, constructor or literal to ``PackageSet``.

Resolution is memoized per distinct reference (not per node) and is
single-flight: when several node resolutions need the same reference at
once, exactly one thread resolves it and every caller receives the same
``PackageSet`` or the same error.

Path references may point to:

- a ``.json`` file holding a package set mapping, ``{"path": ...}`` or a
  bare path string
- a ``.py`` file exposing ``package_set`` (a mapping, a ``PackageSet``, a
  ``Path`` or a constructor)
- a directory containing ``default.json`` or ``default.py``

Relative paths found inside a loaded file resolve against that file's
directory.
"""

from __future__ import annotations

import importlib.util
import json
import logging
import threading
from collections.abc import Hashable, Mapping
from concurrent.futures import Future
from pathlib import Path
from typing import Any

from hiveforge.config import settings
from hiveforge.core.errors import (
    HiveError,
    InvalidPackageSetReference,
    PackageSetRedirectionError,
)
from hiveforge.core.schema import ConfigLayer, before, option_default
from hiveforge.models.hive import Hive
from hiveforge.models.package_set import (
    ConstructorRef,
    LiteralRef,
    PackageSet,
    PathRef,
    coerce_package_set_ref,
)

logger = logging.getLogger(__name__)

# Package config keys that never trigger the "ignored" warning.
EXEMPT_CONFIG_KEYS: frozenset[str] = frozenset({"doCheckByDefault", "warnings"})

_DIRECTORY_ENTRIES = ("default.json", "default.py")


class PackageSetResolver:
    """Resolves package set references, memoized and single-flight.

    Parameters
    ----------
    max_redirect_depth:
        How many chained path references are followed before giving up.
        Defaults to ``settings.max_redirect_depth``.
    """

    def __init__(self, max_redirect_depth: int | None = None) -> None:
        self.max_redirect_depth = max_redirect_depth or settings.max_redirect_depth
        self._lock = threading.Lock()
        self._cache: dict[Hashable, Future[PackageSet]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, ref: Any, context_label: str) -> PackageSet:
        """Resolve *ref* to a concrete ``PackageSet``.

        Raises
        ------
        InvalidPackageSetReference
            If *ref* (or a value loaded through it) has none of the accepted
            shapes, or if a package set file or constructor raises.  The
            message names *context_label*.
        PackageSetRedirectionError
            If path references chain beyond ``max_redirect_depth``.
        """
        ref = coerce_package_set_ref(ref, context_label)
        if isinstance(ref, LiteralRef):
            return ref.package_set

        key = self._cache_key(ref)
        with self._lock:
            future = self._cache.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._cache[key] = future

        if not owner:
            logger.debug("Package set %s: waiting on shared resolution", context_label)
            return future.result()

        try:
            package_set = self._resolve_uncached(ref, context_label)
        except HiveError as exc:
            future.set_exception(exc)
            raise
        except Exception as exc:
            error = InvalidPackageSetReference(
                context_label,
                f"Evaluating the package set raised {type(exc).__name__}: {exc}",
            )
            error.__cause__ = exc
            future.set_exception(error)
            raise error from exc
        except BaseException as exc:
            future.set_exception(exc)
            raise
        future.set_result(package_set)
        logger.info(
            "Resolved package set %s (toolchain=%s, %d overlays)",
            context_label,
            package_set.toolchain,
            len(package_set.overlays),
        )
        return package_set

    def for_node(self, hive: Hive, name: str) -> PackageSet:
        """Return the package set a node builds against.

        A node listed in ``meta.nodeNixpkgs`` gets its own package set; every
        other node shares the hive-wide one.
        """
        override = hive.meta.node_package_sets.get(name)
        if override is not None:
            return self.resolve(override, f"meta.nodeNixpkgs.{name}")
        return self.resolve(hive.meta.package_set, "meta.nixpkgs")

    @property
    def cache_size(self) -> int:
        """Number of distinct references resolved (or in flight)."""
        with self._lock:
            return len(self._cache)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve_uncached(
        self, ref: PathRef | ConstructorRef | LiteralRef, context_label: str
    ) -> PackageSet:
        chain: list[str] = []
        while isinstance(ref, PathRef):
            chain.append(str(ref.path))
            if len(chain) > self.max_redirect_depth:
                raise PackageSetRedirectionError(context_label, chain)
            value, base_dir = _load_path(ref.path, context_label)
            ref = coerce_package_set_ref(value, context_label, base_dir=base_dir)

        if isinstance(ref, ConstructorRef):
            produced = ref.fn({})
            ref = coerce_package_set_ref(produced, context_label)
            if not isinstance(ref, LiteralRef):
                raise InvalidPackageSetReference(
                    context_label, "A package set constructor must return a package set value."
                )
        return ref.package_set

    @staticmethod
    def _cache_key(ref: PathRef | ConstructorRef) -> Hashable:
        if isinstance(ref, PathRef):
            return ("path", str(ref.path.expanduser().resolve()))
        try:
            hash(ref.fn)
        except TypeError:
            return ("constructor-id", id(ref.fn))
        return ("constructor", ref.fn)


# ---------------------------------------------------------------------------
# Node layer contribution
# ---------------------------------------------------------------------------


def package_layer(package_set: PackageSet) -> ConfigLayer:
    """The configuration a package set contributes to a node.

    Overlays are placed before any node overlays; the package config only
    applies where no other layer sets ``nixpkgs.config``.
    """
    return ConfigLayer(
        name="package-set",
        values={
            "nixpkgs": {
                "overlays": before(list(package_set.overlays)),
                "config": option_default(dict(package_set.config)),
            }
        },
    )


def ignored_config_warning(
    name: str, package_set: PackageSet, effective_config: Mapping[str, Any]
) -> str | None:
    """Warn about package config keys a node's own ``nixpkgs.config`` drops."""
    node_keys = EXEMPT_CONFIG_KEYS | set(effective_config)
    remaining = [key for key in package_set.config if key not in node_keys]
    if not remaining:
        return None
    return (
        f"{name}.nixpkgs.config: the following package set configuration keys "
        f"set in meta will be ignored: {' '.join(sorted(remaining))}"
    )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _load_path(path: Path, context_label: str) -> tuple[Any, Path]:
    """Load the value stored at *path*; return it with its base directory."""
    path = path.expanduser()
    if path.is_dir():
        for entry in _DIRECTORY_ENTRIES:
            if (path / entry).is_file():
                path = path / entry
                break
        else:
            raise InvalidPackageSetReference(
                context_label,
                f"Directory {path} contains none of: {', '.join(_DIRECTORY_ENTRIES)}",
            )
    if not path.is_file():
        raise InvalidPackageSetReference(context_label, f"Path {path} does not exist.")

    base_dir = path.parent
    if path.suffix == ".py":
        return _load_python(path, context_label), base_dir

    try:
        value = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidPackageSetReference(
            context_label, f"{path} is not valid JSON: {exc}"
        ) from exc
    if isinstance(value, str):
        value = Path(value)
    return value, base_dir


def _load_python(path: Path, context_label: str) -> Any:
    module_name = f"_hiveforge_pkgs_{abs(hash(str(path.resolve())))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise InvalidPackageSetReference(context_label, f"Cannot import {path}.")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    if not hasattr(module, "package_set"):
        raise InvalidPackageSetReference(
            context_label, f"{path} does not define `package_set`."
        )
    return module.package_set

"""Build-system capability.

hiveforge resolves what each node should be; turning a resolved
configuration into an artifact is delegated to a ``BuildSystem``.
"""

from hiveforge.build.executors import BuildSystem, StoreBuildSystem

__all__ = ["BuildSystem", "StoreBuildSystem"]

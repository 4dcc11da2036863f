"""hiveforge: evaluate hive descriptions into per-node deployment configs.

A hive describes a fleet of machines: shared ``meta``, ``defaults``
applied to every node, and one entry per node.  hiveforge merges those
layers over the node's package set under an explicit option schema,
validates the result, hands it to a build system, and exports:

  - per-node deployment options (JSON) for the deployment tool
  - per-node build artifacts, plus selection bundles over any subset
  - read-only introspection of the resolved hive
"""

__version__ = "0.1.0"
__description__ = "Hive evaluation: layered node configuration, validation and builds"

from hiveforge.core.evaluator import HiveEvaluator
from hiveforge.core.hive_model import load
from hiveforge.core.schema import after, before, fallback, force, option_default
from hiveforge.models.package_set import PackageSet
from hiveforge.cli.app import app as cli

__all__ = [
    "HiveEvaluator",
    "load",
    "PackageSet",
    "force",
    "fallback",
    "option_default",
    "before",
    "after",
    "cli",
    "__version__",
]

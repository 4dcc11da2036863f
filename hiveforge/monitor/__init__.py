"""hiveforge hive monitor — read-only terminal views of an evaluated hive.

Modules
-------
renderer
    ``HiveRenderer`` turns resolved nodes, per-node failures and selection
    results into Rich renderables.
"""

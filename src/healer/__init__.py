"""
cluster-healer - self-healing supervisor for a ZooKeeper-registered worker pool.

The supervisor keeps the number of live workers registered under a parent
znode at a configured target. Workers register themselves with ephemeral
children; when one disappears, the supervisor launches a replacement.
"""

__version__ = "1.0.0"

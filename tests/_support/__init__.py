"""
Test support for cluster-healer: a fake ZooKeeper tree and test launchers.
"""

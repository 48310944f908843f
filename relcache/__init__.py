"""relcache: relationship cache for cloud resource snapshots."""

__version__ = "0.1.0"

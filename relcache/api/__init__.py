"""HTTP read API over the relationship cache."""

from relcache.api.server import create_app

__all__ = ["create_app"]

"""Cache layer: entities, stores and the agent write path."""

from relcache.cache.entity import Entity
from relcache.cache.neo4j_store import Neo4jCacheStore
from relcache.cache.provider_cache import ProviderCache
from relcache.cache.result import AgentDataType, Authority, CacheResult
from relcache.cache.store import DEFAULT_SOURCE, CacheStore, InMemoryCacheStore

__all__ = [
    "Entity",
    "AgentDataType",
    "Authority",
    "CacheResult",
    "CacheStore",
    "InMemoryCacheStore",
    "Neo4jCacheStore",
    "ProviderCache",
    "DEFAULT_SOURCE",
]

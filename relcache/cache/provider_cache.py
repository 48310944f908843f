"""Write path from caching agents into the cache store."""

from __future__ import annotations

import logging
from typing import Dict, Iterable

from relcache.cache.result import AgentDataType, CacheResult
from relcache.cache.store import CacheStore

logger = logging.getLogger(__name__)


class ProviderCache:
    """Applies agent results to a CacheStore.

    Only namespaces the agent declares are written. A full (non-incremental)
    result replaces the agent's previous contribution per namespace; an
    incremental one is unioned into it.
    """

    def __init__(self, store: CacheStore):
        self.store = store

    def put_cache_result(
        self,
        agent_type: str,
        data_types: Iterable[AgentDataType],
        result: CacheResult,
    ) -> Dict[str, int]:
        declared = {dt.namespace: dt for dt in data_types}
        for namespace in result.cache_results:
            if namespace not in declared:
                logger.warning("%s produced undeclared namespace %s; ignoring it", agent_type, namespace)

        written: Dict[str, int] = {}
        for namespace, data_type in declared.items():
            entities = result.get(namespace)
            if result.incremental:
                self.store.upsert(namespace, entities, source=agent_type, authority=data_type.authority)
            else:
                self.store.replace_source(namespace, agent_type, entities, authority=data_type.authority)
            written[namespace] = len(entities)
        logger.debug("%s wrote %s", agent_type, written)
        return written

"""Cache store interface and the in-memory implementation.

The store is partitioned by namespace and keyed by id within a namespace.
Relationship edges are tracked per contributing source (normally the
agent type), so that an agent's full-replacement write can drop what it
contributed last cycle without losing edges contributed by other agents.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Dict, Iterable, List, Optional, Set

from relcache.cache.entity import Entity
from relcache.cache.result import Authority
from relcache.cache.search import filter_glob

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "default"


class CacheStore(ABC):
    """Abstract namespace-partitioned entity store.

    Example:
        >>> store = InMemoryCacheStore()
        >>> store.upsert("application", [Entity("application", "aws:application:web")])
        >>> store.get("application", "aws:application:web").id
        'aws:application:web'
    """

    @abstractmethod
    def upsert(
        self,
        namespace: str,
        entities: Iterable[Entity],
        source: str = DEFAULT_SOURCE,
        authority: Authority = Authority.AUTHORITATIVE,
    ) -> None:
        """Write entities into a namespace.

        Authoritative writes replace attributes; informative writes only add
        attribute keys that are not present yet. Relationships are unioned
        into the contribution recorded for ``source``.
        """

    @abstractmethod
    def replace_source(
        self,
        namespace: str,
        source: str,
        entities: Iterable[Entity],
        authority: Authority = Authority.AUTHORITATIVE,
    ) -> None:
        """Atomically replace everything ``source`` contributed to a namespace.

        Entities left without any contributing source are evicted, and so are
        entities whose attributes no authoritative source vouches for anymore.
        """

    @abstractmethod
    def get(self, namespace: str, id: str) -> Optional[Entity]:
        """Get one entity, or None when absent."""

    @abstractmethod
    def get_all(self, namespace: str, ids: Iterable[str]) -> List[Entity]:
        """Get the entities for ``ids``; missing ids are silently omitted."""

    @abstractmethod
    def get_identifiers(self, namespace: str) -> Set[str]:
        """All ids currently stored in a namespace."""

    @abstractmethod
    def filter_identifiers(self, namespace: str, pattern: str) -> Set[str]:
        """Ids in a namespace matching a ``*`` glob over the full id."""

    @abstractmethod
    def evict(self, namespace: str, ids: Iterable[str]) -> int:
        """Remove entities regardless of source. Returns the number removed."""

    @abstractmethod
    def stats(self) -> Dict[str, int]:
        """Entity count per namespace."""

    def health_check(self) -> bool:
        return True


@dataclass
class _StoredEntity:
    attributes: Dict[str, Any] = field(default_factory=dict)
    contributions: Dict[str, Dict[str, Set[str]]] = field(default_factory=dict)
    # sources that wrote the attributes authoritatively
    owners: Set[str] = field(default_factory=set)

    def to_entity(self, namespace: str, id: str) -> Entity:
        relationships: Dict[str, Set[str]] = {}
        for rels in self.contributions.values():
            for ns, ids in rels.items():
                relationships.setdefault(ns, set()).update(ids)
        return Entity(
            namespace=namespace,
            id=id,
            attributes=copy.deepcopy(self.attributes),
            relationships=relationships,
        )


class InMemoryCacheStore(CacheStore):
    """Thread-safe dict-backed store.

    Each namespace has its own lock; every per-entity write (attribute
    replace plus relationship union) happens while holding it.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, _StoredEntity]] = defaultdict(dict)
        self._by_source: Dict[str, Dict[str, Set[str]]] = defaultdict(lambda: defaultdict(set))
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock(self, namespace: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(namespace)
            if lock is None:
                lock = self._locks[namespace] = threading.RLock()
            return lock

    def _write(self, namespace: str, entity: Entity, source: str, authority: Authority) -> None:
        table = self._data[namespace]
        stored = table.get(entity.id)
        if stored is None:
            stored = table[entity.id] = _StoredEntity(attributes=copy.deepcopy(entity.attributes))
        elif authority is Authority.AUTHORITATIVE:
            stored.attributes = copy.deepcopy(entity.attributes)
        else:
            for key, value in entity.attributes.items():
                stored.attributes.setdefault(key, copy.deepcopy(value))

        if authority is Authority.AUTHORITATIVE:
            stored.owners.add(source)

        contribution = stored.contributions.setdefault(source, {})
        for ns, ids in entity.relationships.items():
            contribution.setdefault(ns, set()).update(ids)
        self._by_source[namespace][source].add(entity.id)

    def _drop_source(self, namespace: str, source: str, rewritten: AbstractSet[str] = frozenset()) -> None:
        table = self._data[namespace]
        for id in self._by_source[namespace].pop(source, set()):
            stored = table.get(id)
            if stored is None:
                continue
            stored.contributions.pop(source, None)
            owned = source in stored.owners
            stored.owners.discard(source)
            if not stored.contributions or (owned and not stored.owners and id not in rewritten):
                del table[id]

    def upsert(
        self,
        namespace: str,
        entities: Iterable[Entity],
        source: str = DEFAULT_SOURCE,
        authority: Authority = Authority.AUTHORITATIVE,
    ) -> None:
        with self._lock(namespace):
            for entity in entities:
                self._write(namespace, entity, source, authority)

    def replace_source(
        self,
        namespace: str,
        source: str,
        entities: Iterable[Entity],
        authority: Authority = Authority.AUTHORITATIVE,
    ) -> None:
        entities = list(entities)
        with self._lock(namespace):
            before = len(self._data[namespace])
            self._drop_source(namespace, source, {entity.id for entity in entities})
            for entity in entities:
                self._write(namespace, entity, source, authority)
            logger.debug(
                "Replaced %s contribution to %s: %d entities written, %d before",
                source, namespace, len(entities), before,
            )

    def get(self, namespace: str, id: str) -> Optional[Entity]:
        with self._lock(namespace):
            stored = self._data[namespace].get(id)
            return stored.to_entity(namespace, id) if stored else None

    def get_all(self, namespace: str, ids: Iterable[str]) -> List[Entity]:
        result: List[Entity] = []
        seen: Set[str] = set()
        with self._lock(namespace):
            table = self._data[namespace]
            for id in ids:
                if id in seen:
                    continue
                seen.add(id)
                stored = table.get(id)
                if stored is not None:
                    result.append(stored.to_entity(namespace, id))
        return result

    def get_identifiers(self, namespace: str) -> Set[str]:
        with self._lock(namespace):
            return set(self._data[namespace])

    def filter_identifiers(self, namespace: str, pattern: str) -> Set[str]:
        return filter_glob(pattern, self.get_identifiers(namespace))

    def evict(self, namespace: str, ids: Iterable[str]) -> int:
        removed = 0
        with self._lock(namespace):
            table = self._data[namespace]
            for id in ids:
                if table.pop(id, None) is not None:
                    removed += 1
                    for owned in self._by_source[namespace].values():
                        owned.discard(id)
        return removed

    def stats(self) -> Dict[str, int]:
        return {ns: len(table) for ns, table in list(self._data.items()) if table}

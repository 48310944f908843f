"""Per-run merge accumulator.

Many primary records resolve to the same parent entity (server groups of
one application, load balancers shared by several groups). The builder
folds every contribution into one entity per (namespace, id): supplied
scalar attributes are last-write-wins and relationship sets only grow.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from relcache.cache.entity import Entity
from relcache.cache.result import AgentDataType, CacheResult


class CacheResultBuilder:
    """Accumulates entities for a single ``load_data`` call.

    A builder is owned by exactly one agent run and passed explicitly to
    the per-record handlers; it is never shared between agents.

    Example:
        >>> builder = CacheResultBuilder()
        >>> builder.merge("application", "aws:application:web", {"name": "web"},
        ...               {"serverGroup": ["sg-1"]})
        >>> builder.merge("application", "aws:application:web",
        ...               relationships={"serverGroup": ["sg-2"]})
        >>> sorted(builder.get("application", "aws:application:web").related("serverGroup"))
        ['sg-1', 'sg-2']
    """

    def __init__(self) -> None:
        self._namespaces: Dict[str, Dict[str, Entity]] = {}

    def merge(
        self,
        namespace: str,
        id: str,
        attributes: Optional[Mapping[str, Any]] = None,
        relationships: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> Entity:
        """Create the entity or fold a further contribution into it."""
        entities = self._namespaces.setdefault(namespace, {})
        entity = entities.get(id)
        if entity is None:
            entity = Entity(namespace=namespace, id=id)
            entities[id] = entity
        if attributes:
            entity.attributes.update(attributes)
        if relationships:
            entity.union_relationships(relationships)
        return entity

    def get(self, namespace: str, id: str) -> Optional[Entity]:
        return self._namespaces.get(namespace, {}).get(id)

    def __contains__(self, item) -> bool:
        namespace, id = item
        return id in self._namespaces.get(namespace, {})

    def build(self, data_types: Iterable[AgentDataType] = (), incremental: bool = False) -> CacheResult:
        """Snapshot the accumulator.

        Every namespace in ``data_types`` is present in the result, empty
        if nothing was merged into it. Entities are copied so later merges
        cannot leak into an emitted result.
        """
        results = {dt.namespace: [] for dt in data_types}
        for namespace, entities in self._namespaces.items():
            results[namespace] = [entity.copy() for entity in entities.values()]
        return CacheResult(cache_results=results, incremental=incremental)

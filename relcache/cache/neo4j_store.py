"""Neo4j implementation of the CacheStore interface.

Every entity is a ``CacheEntity`` node keyed by ``(namespace, id)``.
Attributes and per-source relationship contributions are stored as JSON
string properties, so dangling relationship ids never materialize as
placeholder nodes. Each entity write reads and rewrites the node inside a
single write transaction, after a ``SET`` that takes the node's write lock.
The ``owners`` list holds the sources that wrote the attributes
authoritatively.
"""

from __future__ import annotations

import json
import logging
from typing import AbstractSet, Any, Dict, Iterable, List, Optional, Set, Tuple

from neo4j import Driver

from relcache.cache.entity import Entity
from relcache.cache.result import Authority
from relcache.cache.search import glob_to_regex
from relcache.cache.store import DEFAULT_SOURCE, CacheStore
from relcache.constants import NEO4J_BATCH_SIZE

logger = logging.getLogger(__name__)

LOCK_ENTITY = """
MERGE (n:CacheEntity {namespace: $namespace, id: $id})
ON CREATE SET n.attributes = '{}', n.contributions = '{}', n.sources = [], n.owners = []
SET n.updated_at = timestamp()
RETURN n.attributes AS attributes, n.contributions AS contributions, n.owners AS owners
"""

WRITE_ENTITY = """
MATCH (n:CacheEntity {namespace: $namespace, id: $id})
SET n.attributes = $attributes, n.contributions = $contributions, n.sources = $sources,
    n.owners = $owners
"""

LOCK_SOURCE = """
MATCH (n:CacheEntity {namespace: $namespace})
WHERE $source IN n.sources
SET n.updated_at = timestamp()
RETURN n.id AS id, n.contributions AS contributions, n.owners AS owners
"""

DELETE_ENTITY = """
MATCH (n:CacheEntity {namespace: $namespace, id: $id})
DETACH DELETE n
"""

WRITE_CONTRIBUTIONS = """
MATCH (n:CacheEntity {namespace: $namespace, id: $id})
SET n.contributions = $contributions, n.sources = $sources, n.owners = $owners
"""

READ_COLUMNS = "RETURN n.id AS id, n.attributes AS attributes, n.contributions AS contributions"


def _chunk(seq, size: int):
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def _encode_contributions(contributions: Dict[str, Dict[str, Set[str]]]) -> str:
    return json.dumps(
        {src: {ns: sorted(ids) for ns, ids in rels.items()} for src, rels in contributions.items()},
        sort_keys=True,
    )


def _decode_contributions(raw: Optional[str]) -> Dict[str, Dict[str, Set[str]]]:
    data = json.loads(raw or "{}")
    return {src: {ns: set(ids) for ns, ids in rels.items()} for src, rels in data.items()}


def merge_entity(
    attributes: Dict[str, Any],
    contributions: Dict[str, Dict[str, Set[str]]],
    entity: Entity,
    source: str,
    authority: Authority,
) -> Tuple[Dict[str, Any], Dict[str, Dict[str, Set[str]]]]:
    """Apply one upsert to stored state and return the new state."""
    if authority is Authority.AUTHORITATIVE or not attributes:
        merged_attributes = dict(entity.attributes)
    else:
        merged_attributes = dict(attributes)
        for key, value in entity.attributes.items():
            merged_attributes.setdefault(key, value)

    merged_contributions = {src: {ns: set(ids) for ns, ids in rels.items()} for src, rels in contributions.items()}
    own = merged_contributions.setdefault(source, {})
    for ns, ids in entity.relationships.items():
        own.setdefault(ns, set()).update(ids)
    return merged_attributes, merged_contributions


class Neo4jCacheStore(CacheStore):
    """Neo4j-backed cache store.

    Attributes:
        driver: Neo4j driver instance
        batch_size: Entities written per transaction
    """

    def __init__(self, driver: Driver, batch_size: int = NEO4J_BATCH_SIZE):
        self.driver = driver
        self.batch_size = batch_size

    def ensure_indexes(self) -> None:
        with self.driver.session() as session:
            session.run(
                "CREATE INDEX cache_entity_key IF NOT EXISTS "
                "FOR (n:CacheEntity) ON (n.namespace, n.id)"
            )

    # Writes

    @staticmethod
    def _upsert_entities(
        tx, namespace: str, entities: List[Entity], source: str, authority: Authority
    ) -> None:
        for entity in entities:
            record = tx.run(LOCK_ENTITY, namespace=namespace, id=entity.id).single()
            attributes = json.loads(record["attributes"] or "{}")
            contributions = _decode_contributions(record["contributions"])
            owners = set(record["owners"] or [])
            attributes, contributions = merge_entity(attributes, contributions, entity, source, authority)
            if authority is Authority.AUTHORITATIVE:
                owners.add(source)
            tx.run(
                WRITE_ENTITY,
                namespace=namespace,
                id=entity.id,
                attributes=json.dumps(attributes, default=str, sort_keys=True),
                contributions=_encode_contributions(contributions),
                sources=sorted(contributions),
                owners=sorted(owners),
            )

    @staticmethod
    def _drop_source(tx, namespace: str, source: str, rewritten: AbstractSet[str] = frozenset()) -> int:
        dropped = 0
        for record in list(tx.run(LOCK_SOURCE, namespace=namespace, source=source)):
            contributions = _decode_contributions(record["contributions"])
            contributions.pop(source, None)
            owners = set(record["owners"] or [])
            owned = source in owners
            owners.discard(source)
            # an entity whose last authoritative source dropped it goes, whatever else links to it
            if contributions and not (owned and not owners and record["id"] not in rewritten):
                tx.run(
                    WRITE_CONTRIBUTIONS,
                    namespace=namespace,
                    id=record["id"],
                    contributions=_encode_contributions(contributions),
                    sources=sorted(contributions),
                    owners=sorted(owners),
                )
            else:
                tx.run(DELETE_ENTITY, namespace=namespace, id=record["id"])
                dropped += 1
        return dropped

    @classmethod
    def _replace_source(
        cls, tx, namespace: str, source: str, entities: List[Entity], authority: Authority
    ) -> None:
        dropped = cls._drop_source(tx, namespace, source, {entity.id for entity in entities})
        cls._upsert_entities(tx, namespace, entities, source, authority)
        logger.debug("Replaced %s in %s: dropped %d, wrote %d", source, namespace, dropped, len(entities))

    def upsert(
        self,
        namespace: str,
        entities: Iterable[Entity],
        source: str = DEFAULT_SOURCE,
        authority: Authority = Authority.AUTHORITATIVE,
    ) -> None:
        entities = list(entities)
        with self.driver.session() as session:
            for batch in _chunk(entities, self.batch_size):
                session.execute_write(self._upsert_entities, namespace, batch, source, authority)

    def replace_source(
        self,
        namespace: str,
        source: str,
        entities: Iterable[Entity],
        authority: Authority = Authority.AUTHORITATIVE,
    ) -> None:
        # one transaction: readers never see the namespace half replaced
        with self.driver.session() as session:
            session.execute_write(self._replace_source, namespace, source, list(entities), authority)

    def evict(self, namespace: str, ids: Iterable[str]) -> int:
        query = """
        MATCH (n:CacheEntity {namespace: $namespace})
        WHERE n.id IN $ids
        DETACH DELETE n
        RETURN count(*) AS removed
        """
        with self.driver.session() as session:
            record = session.run(query, {"namespace": namespace, "ids": list(ids)}).single()
            return record["removed"] if record else 0

    # Reads

    @staticmethod
    def _to_entity(namespace: str, record) -> Entity:
        relationships: Dict[str, Set[str]] = {}
        for rels in _decode_contributions(record["contributions"]).values():
            for ns, ids in rels.items():
                relationships.setdefault(ns, set()).update(ids)
        return Entity(
            namespace=namespace,
            id=record["id"],
            attributes=json.loads(record["attributes"] or "{}"),
            relationships=relationships,
        )

    def get(self, namespace: str, id: str) -> Optional[Entity]:
        query = "MATCH (n:CacheEntity {namespace: $namespace, id: $id}) " + READ_COLUMNS
        with self.driver.session() as session:
            record = session.run(query, {"namespace": namespace, "id": id}).single()
            return self._to_entity(namespace, record) if record else None

    def get_all(self, namespace: str, ids: Iterable[str]) -> List[Entity]:
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []
        query = "MATCH (n:CacheEntity {namespace: $namespace}) WHERE n.id IN $ids " + READ_COLUMNS
        with self.driver.session() as session:
            found = {
                record["id"]: self._to_entity(namespace, record)
                for record in session.run(query, {"namespace": namespace, "ids": wanted})
            }
        return [found[id] for id in wanted if id in found]

    def get_identifiers(self, namespace: str) -> Set[str]:
        query = "MATCH (n:CacheEntity {namespace: $namespace}) RETURN n.id AS id"
        with self.driver.session() as session:
            return {record["id"] for record in session.run(query, {"namespace": namespace})}

    def filter_identifiers(self, namespace: str, pattern: str) -> Set[str]:
        query = """
        MATCH (n:CacheEntity {namespace: $namespace})
        WHERE n.id =~ $regex
        RETURN n.id AS id
        """
        params = {"namespace": namespace, "regex": "(?s)" + glob_to_regex(pattern)}
        with self.driver.session() as session:
            return {record["id"] for record in session.run(query, params)}

    def stats(self) -> Dict[str, int]:
        query = "MATCH (n:CacheEntity) RETURN n.namespace AS namespace, count(n) AS count"
        with self.driver.session() as session:
            return {record["namespace"]: record["count"] for record in session.run(query)}

    def health_check(self) -> bool:
        try:
            with self.driver.session() as session:
                session.run("RETURN 1").single()
            return True
        except Exception as e:
            logger.warning(f"Neo4j health check failed: {e}")
            return False

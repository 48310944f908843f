from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set


@dataclass
class Entity:
    """A cached node: id, opaque attributes and relationship edges.

    ``relationships`` maps a target namespace to the set of target ids.
    """

    namespace: str
    id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    relationships: Dict[str, Set[str]] = field(default_factory=dict)

    def related(self, namespace: str) -> Set[str]:
        return self.relationships.get(namespace, set())

    def add_relationships(self, namespace: str, ids: Iterable[str]) -> None:
        self.relationships.setdefault(namespace, set()).update(ids)

    def union_relationships(self, relationships: Dict[str, Iterable[str]]) -> None:
        for namespace, ids in relationships.items():
            self.add_relationships(namespace, ids)

    def copy(self) -> "Entity":
        return Entity(
            namespace=self.namespace,
            id=self.id,
            attributes=copy.deepcopy(self.attributes),
            relationships={ns: set(ids) for ns, ids in self.relationships.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "id": self.id,
            "attributes": self.attributes,
            "relationships": {ns: sorted(ids) for ns, ids in sorted(self.relationships.items())},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], namespace: Optional[str] = None) -> "Entity":
        return cls(
            namespace=namespace or data["namespace"],
            id=data["id"],
            attributes=dict(data.get("attributes") or {}),
            relationships={ns: set(ids) for ns, ids in (data.get("relationships") or {}).items()},
        )

"""Agent data types and cache results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from relcache.cache.entity import Entity


class Authority(str, Enum):
    """Whether an agent owns a namespace or only contributes to it."""

    AUTHORITATIVE = "authoritative"
    INFORMATIVE = "informative"

    def for_type(self, namespace) -> "AgentDataType":
        return AgentDataType(getattr(namespace, "value", namespace), self)


@dataclass(frozen=True)
class AgentDataType:
    namespace: str
    authority: Authority

    @property
    def authoritative(self) -> bool:
        return self.authority is Authority.AUTHORITATIVE


@dataclass
class CacheResult:
    """Entities built by one agent run, keyed by namespace.

    Attributes:
        cache_results: namespace -> entities produced this run
        incremental: True when the result only adds to what the agent wrote
            before; False (default) when it fully replaces it
    """

    cache_results: Dict[str, List[Entity]] = field(default_factory=dict)
    incremental: bool = False

    def get(self, namespace) -> List[Entity]:
        return self.cache_results.get(getattr(namespace, "value", namespace), [])

    def counts(self) -> Dict[str, int]:
        return {ns: len(entities) for ns, entities in self.cache_results.items()}

    @property
    def total(self) -> int:
        return sum(len(entities) for entities in self.cache_results.values())

"""Shared caching agent contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple

from relcache.cache.result import AgentDataType, CacheResult


class CachingAgent(ABC):
    """One fetch-and-normalize unit per (account, region, resource kind).

    Subclasses declare ``provided_data_types`` and implement ``load_data``.
    ``load_data`` raises ``AgentFetchFailure`` when the primary listing
    fails; nothing is written for that run.
    """

    provided_data_types: Tuple[AgentDataType, ...] = ()

    def __init__(self, account: str, region: str):
        self.account = account
        self.region = region

    @property
    def agent_type(self) -> str:
        return f"{self.account}/{self.region}/{type(self).__name__}"

    @abstractmethod
    def load_data(self) -> CacheResult:
        """Fetch provider state and build this cycle's cache result."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.account}/{self.region}>"

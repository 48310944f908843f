"""Instance type caching agent: the instance types offered per zone."""

from __future__ import annotations

import logging

from relcache.agents.base import CachingAgent
from relcache.agents.merge import CacheResultBuilder
from relcache.cache.result import Authority, CacheResult
from relcache.constants import PROVIDER_ID
from relcache.errors import InvalidKeyError
from relcache.keys import Namespace, instance_type_key
from relcache.providers.base import InstanceTypeFetcher

logger = logging.getLogger(__name__)

INSTANCE_TYPES = Namespace.INSTANCE_TYPES.ns


class InstanceTypeCachingAgent(CachingAgent):
    provided_data_types = (Authority.AUTHORITATIVE.for_type(INSTANCE_TYPES),)

    def __init__(self, fetcher: InstanceTypeFetcher, account: str, region: str):
        super().__init__(account, region)
        self.fetcher = fetcher

    def load_data(self) -> CacheResult:
        builder = CacheResultBuilder()
        for zone in self.fetcher.iter_zone_instance_types():
            try:
                key = instance_type_key(self.account, self.region, zone.get("zoneId"))
            except InvalidKeyError as e:
                logger.warning("%s: skipping zone record: %s", self.agent_type, e)
                continue
            builder.merge(
                INSTANCE_TYPES,
                key,
                {
                    "provider": PROVIDER_ID,
                    "account": self.account,
                    "regionId": zone.get("regionId") or self.region,
                    "zoneId": zone["zoneId"],
                    "names": list(zone.get("names") or []),
                },
            )
        return builder.build(self.provided_data_types)

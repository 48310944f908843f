"""Instance caching agent."""

from __future__ import annotations

import logging

from relcache.agents.base import CachingAgent
from relcache.agents.merge import CacheResultBuilder
from relcache.cache.result import Authority, CacheResult
from relcache.errors import InvalidKeyError
from relcache.keys import Namespace, instance_key, server_group_key
from relcache.providers.base import InstanceFetcher

logger = logging.getLogger(__name__)

INSTANCES = Namespace.INSTANCES.ns
SERVER_GROUPS = Namespace.SERVER_GROUPS.ns

# Tag the Auto Scaling service puts on every instance it launches.
SCALING_GROUP_TAG = "aws:autoscaling:groupName"


class InstanceCachingAgent(CachingAgent):
    """Caches every instance of a region and links it to its scaling group."""

    provided_data_types = (
        Authority.AUTHORITATIVE.for_type(INSTANCES),
        Authority.INFORMATIVE.for_type(SERVER_GROUPS),
    )

    def __init__(self, fetcher: InstanceFetcher, account: str, region: str):
        super().__init__(account, region)
        self.fetcher = fetcher

    def load_data(self) -> CacheResult:
        builder = CacheResultBuilder()
        count = 0
        for instance in self.fetcher.iter_instances():
            try:
                key = instance_key(instance.get("instanceId"), self.account, self.region)
                group_name = (instance.get("tags") or {}).get(SCALING_GROUP_TAG)
                group = server_group_key(group_name, self.account, self.region) if group_name else None
            except InvalidKeyError as e:
                logger.warning("%s: skipping instance record: %s", self.agent_type, e)
                continue

            attributes = dict(instance, account=self.account)
            builder.merge(INSTANCES, key, attributes, {SERVER_GROUPS: [group]} if group else None)
            if group:
                builder.merge(SERVER_GROUPS, group, relationships={INSTANCES: [key]})
            count += 1

        logger.info("%s: cached %d instances", self.agent_type, count)
        return builder.build(self.provided_data_types)

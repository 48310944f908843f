"""Load balancer caching agent."""

from __future__ import annotations

import logging

from relcache.agents.base import CachingAgent
from relcache.agents.merge import CacheResultBuilder
from relcache.cache.result import Authority, CacheResult
from relcache.errors import InvalidKeyError
from relcache.keys import Namespace, instance_key, load_balancer_key
from relcache.providers.base import LoadBalancerFetcher

logger = logging.getLogger(__name__)

LOAD_BALANCERS = Namespace.LOAD_BALANCERS.ns
INSTANCES = Namespace.INSTANCES.ns


class LoadBalancerCachingAgent(CachingAgent):
    """Caches load balancers and their registered instances.

    Keys include the VPC id when the balancer has one, matching the keys
    the cluster agent derives from the same balancer.
    """

    provided_data_types = (
        Authority.AUTHORITATIVE.for_type(LOAD_BALANCERS),
        Authority.INFORMATIVE.for_type(INSTANCES),
    )

    def __init__(self, fetcher: LoadBalancerFetcher, account: str, region: str):
        super().__init__(account, region)
        self.fetcher = fetcher

    def load_data(self) -> CacheResult:
        builder = CacheResultBuilder()
        for lb in self.fetcher.iter_load_balancers():
            try:
                key = load_balancer_key(
                    lb.get("loadBalancerId") or lb.get("loadBalancerName"),
                    self.account,
                    self.region,
                    lb.get("vpcId"),
                )
                members = [instance_key(i, self.account, self.region) for i in lb.get("instances") or []]
            except InvalidKeyError as e:
                logger.warning("%s: skipping load balancer record: %s", self.agent_type, e)
                continue

            builder.merge(LOAD_BALANCERS, key, dict(lb, account=self.account), {INSTANCES: members})
            for member in members:
                builder.merge(INSTANCES, member, relationships={LOAD_BALANCERS: [key]})

        result = builder.build(self.provided_data_types)
        logger.info("%s: cached %s", self.agent_type, result.counts())
        return result

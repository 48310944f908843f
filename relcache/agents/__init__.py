"""Caching agents: one fetch-and-normalize unit per account, region and resource kind."""

from relcache.agents.base import CachingAgent
from relcache.agents.cluster import ClusterCachingAgent
from relcache.agents.image import ImageCachingAgent
from relcache.agents.instance import InstanceCachingAgent
from relcache.agents.instance_type import InstanceTypeCachingAgent
from relcache.agents.load_balancer import LoadBalancerCachingAgent
from relcache.agents.merge import CacheResultBuilder

__all__ = [
    "CachingAgent",
    "CacheResultBuilder",
    "ClusterCachingAgent",
    "ImageCachingAgent",
    "InstanceCachingAgent",
    "InstanceTypeCachingAgent",
    "LoadBalancerCachingAgent",
]

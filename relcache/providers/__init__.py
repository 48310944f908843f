"""Provider fetchers: capability protocols and the boto3 implementation."""

from relcache.providers.aws import AwsFetcher
from relcache.providers.base import (
    ImageFetcher,
    InstanceFetcher,
    InstanceTypeFetcher,
    LoadBalancerFetcher,
    Record,
    ScalingGroupFetcher,
)

__all__ = [
    "AwsFetcher",
    "ImageFetcher",
    "InstanceFetcher",
    "InstanceTypeFetcher",
    "LoadBalancerFetcher",
    "Record",
    "ScalingGroupFetcher",
]

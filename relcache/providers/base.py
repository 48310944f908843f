"""Fetcher capabilities consumed by caching agents.

Each protocol covers one provider concern. Implementations return plain
provider-shaped dicts and raise:

- ``AgentFetchFailure`` when a primary listing fails
- ``TransientFetchError`` when a single auxiliary lookup fails
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Optional, Protocol, runtime_checkable

Record = Dict[str, Any]


@runtime_checkable
class ScalingGroupFetcher(Protocol):
    def iter_scaling_groups(self) -> Iterator[Record]:
        """Yield every scaling group, paging until the provider is exhausted."""
        ...

    def describe_scaling_configuration(self, scaling_group: Record) -> Optional[Record]:
        """Active launch configuration of a group, or None if it has none."""
        ...

    def describe_load_balancer(self, load_balancer_id: str) -> Record:
        ...

    def describe_instances(self, instance_ids: Iterable[str]) -> Dict[str, Record]:
        """Instance details keyed by instance id."""
        ...


@runtime_checkable
class InstanceFetcher(Protocol):
    def iter_instances(self) -> Iterator[Record]:
        ...


@runtime_checkable
class ImageFetcher(Protocol):
    def iter_images(self, owner: str) -> Iterator[Record]:
        ...


@runtime_checkable
class InstanceTypeFetcher(Protocol):
    def iter_zone_instance_types(self) -> Iterator[Record]:
        """Yield one record per available zone: zoneId, regionId, names."""
        ...


@runtime_checkable
class LoadBalancerFetcher(Protocol):
    def iter_load_balancers(self) -> Iterator[Record]:
        ...

"""Pytest configuration and shared fixtures for relcache tests.

This module provides common fixtures used across multiple test modules,
including mock Neo4j drivers, an in-process fake provider fetcher and
record builders shaped like the boto3 fetcher's output.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import MagicMock

import pytest

from relcache.cache import InMemoryCacheStore
from relcache.errors import AgentFetchFailure, TransientFetchError


# ============================================================================
# Custom Pytest Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services (Neo4j, AWS)"
    )
    config.addinivalue_line(
        "markers", "aws: marks tests requiring AWS credentials or moto mocks"
    )


# ============================================================================
# Neo4j Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_neo4j_driver() -> MagicMock:
    """Create a mock Neo4j driver with session context manager.

    Returns:
        Mock driver with properly configured session().run() chain
    """
    driver = MagicMock()
    session = MagicMock()

    # Configure context manager for 'with driver.session() as session:'
    driver.session.return_value.__enter__ = MagicMock(return_value=session)
    driver.session.return_value.__exit__ = MagicMock(return_value=None)

    return driver


@pytest.fixture
def mock_neo4j_session(mock_neo4j_driver: MagicMock) -> MagicMock:
    """Get the mock session from a mock driver."""
    return mock_neo4j_driver.session.return_value.__enter__.return_value


def create_neo4j_record(**kwargs) -> MagicMock:
    """Helper to create a mock Neo4j record.

    Args:
        **kwargs: Key-value pairs to return from record[key]

    Returns:
        Mock record that supports both __getitem__ and .data()
    """
    record = MagicMock()
    record.__getitem__ = lambda self, key: kwargs.get(key)
    record.data.return_value = kwargs
    return record


# ============================================================================
# Provider Record Builders
# ============================================================================

def make_group(
    name: str,
    load_balancers: Iterable[str] = (),
    instances: Iterable[str] = (),
    lifecycle_state: str = "Active",
    health_status: str = "Healthy",
    launch_config: Optional[str] = "lc-1",
    min_size: Any = 1,
    max_size: Any = 4,
    creation_time: Any = "2024-01-02T03:04Z",
) -> Dict[str, Any]:
    """Build a scaling group record as the fetcher returns it."""
    return {
        "scalingGroupId": f"arn:{name}",
        "scalingGroupName": name,
        "activeScalingConfigurationId": launch_config,
        "launchConfigurationName": launch_config,
        "launchTemplate": None,
        "lifecycleState": lifecycle_state,
        "minSize": min_size,
        "maxSize": max_size,
        "desiredCapacity": len(list(instances)),
        "creationTime": creation_time,
        "loadBalancerIds": list(load_balancers),
        "instances": [
            {
                "instanceId": instance_id,
                "healthStatus": health_status,
                "lifecycleState": "InService",
                "zoneId": "us-east-1a",
            }
            for instance_id in instances
        ],
    }


def make_load_balancer(name: str, vpc_id: Optional[str] = "vpc-1", instances: Iterable[str] = ()) -> Dict[str, Any]:
    return {
        "loadBalancerId": name,
        "loadBalancerName": name,
        "regionIdAlias": "us-east-1",
        "vpcId": vpc_id,
        "dnsName": f"{name}.elb.amazonaws.com",
        "instances": list(instances),
    }


class FakeFetcher:
    """In-process stand-in for AwsFetcher.

    Args:
        groups: Scaling group records
        load_balancers: Load balancer records by name
        instances: Instance records (full listing and describe lookups)
        images: Image records by owner
        zones: Zone instance type records
        fail_listing: Raise AgentFetchFailure from every primary listing
        broken_load_balancers: Names whose describe raises a non-NotFound error
    """

    def __init__(
        self,
        groups: Optional[List[Dict[str, Any]]] = None,
        load_balancers: Optional[Dict[str, Dict[str, Any]]] = None,
        instances: Optional[List[Dict[str, Any]]] = None,
        images: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        zones: Optional[List[Dict[str, Any]]] = None,
        fail_listing: bool = False,
        broken_load_balancers: Iterable[str] = (),
    ):
        self.groups = groups or []
        self.load_balancers = load_balancers or {}
        self.instances = instances or []
        self.images = images or {}
        self.zones = zones or []
        self.fail_listing = fail_listing
        self.broken_load_balancers = set(broken_load_balancers)
        self.describe_calls: List[str] = []

    def _check(self, operation: str) -> None:
        if self.fail_listing:
            raise AgentFetchFailure("fake", f"{operation} failed: AccessDenied")

    def iter_scaling_groups(self):
        self._check("describe_auto_scaling_groups")
        yield from self.groups

    def describe_scaling_configuration(self, scaling_group):
        name = scaling_group.get("launchConfigurationName")
        if not name:
            return None
        return {"scalingConfigurationId": name, "scalingConfigurationName": name, "imageId": "ami-123"}

    def describe_load_balancer(self, load_balancer_id):
        self.describe_calls.append(load_balancer_id)
        if load_balancer_id in self.broken_load_balancers:
            raise TransientFetchError("describe_load_balancers", load_balancer_id, "Throttling")
        if load_balancer_id not in self.load_balancers:
            raise TransientFetchError("describe_load_balancers", load_balancer_id, "LoadBalancerNotFound")
        return dict(self.load_balancers[load_balancer_id], account="prod")

    def describe_instances(self, instance_ids):
        wanted = set(instance_ids)
        return {i["instanceId"]: i for i in self.instances if i["instanceId"] in wanted}

    def iter_instances(self):
        self._check("describe_instances")
        yield from self.instances

    def iter_images(self, owner):
        self._check("describe_images")
        yield from self.images.get(owner, [])

    def iter_zone_instance_types(self):
        self._check("describe_instance_type_offerings")
        yield from self.zones

    def iter_load_balancers(self):
        self._check("describe_load_balancers")
        for lb in self.load_balancers.values():
            yield dict(lb, account="prod")


@pytest.fixture
def store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def fetcher() -> FakeFetcher:
    """Two server groups of one application sharing a load balancer."""
    return FakeFetcher(
        groups=[
            make_group("web-prod-v001", load_balancers=["web-elb"], instances=["i-1", "i-2"]),
            make_group("web-prod-v002", load_balancers=["web-elb"], instances=["i-3"]),
            make_group("web-test-v001", instances=["i-4"], lifecycle_state="Inactive"),
        ],
        load_balancers={"web-elb": make_load_balancer("web-elb", instances=["i-1", "i-2", "i-3"])},
        instances=[
            {"instanceId": "i-1", "zoneId": "us-east-1a", "tags": {"aws:autoscaling:groupName": "web-prod-v001"}},
            {"instanceId": "i-2", "zoneId": "us-east-1b", "tags": {"aws:autoscaling:groupName": "web-prod-v001"}},
            {"instanceId": "i-3", "zoneId": "us-east-1a", "tags": {"aws:autoscaling:groupName": "web-prod-v002"}},
            {"instanceId": "i-9", "zoneId": "us-east-1c", "tags": {}},
        ],
    )


@pytest.fixture
def group_record():
    """Factory for scaling group records."""
    return make_group


@pytest.fixture
def lb_record():
    """Factory for load balancer records."""
    return make_load_balancer


@pytest.fixture
def fake_fetcher():
    """The FakeFetcher class, for tests that need a custom provider state."""
    return FakeFetcher


@pytest.fixture
def neo4j_record():
    """Factory for mock Neo4j records."""
    return create_neo4j_record

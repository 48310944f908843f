"""Traversal and derivation helpers shared by the view providers.

Every lookup tolerates misses: a relationship id that no longer resolves
is dropped from the result, never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from relcache.cache.attributes import (
    InstanceAttributes,
    LoadBalancerAttributes,
    ServerGroupAttributes,
)
from relcache.cache.entity import Entity
from relcache.cache.store import CacheStore
from relcache.constants import ACTIVE_LIFECYCLE_STATE, HEALTH_TYPE, HEALTHY_STATUS
from relcache.errors import KeyFormatError, ParseError
from relcache.keys import Namespace, decode
from relcache.parsing import parse_timestamp
from relcache.views.model import (
    Capacity,
    HealthState,
    Instance,
    LoadBalancer,
    LoadBalancerServerGroup,
    ServerGroup,
)

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=BaseModel)


def resolve_relationships(store: CacheStore, source: Entity, namespace: str) -> List[Entity]:
    """Fetch the entities ``source`` points to in ``namespace``."""
    ids = source.related(namespace)
    if not ids:
        return []
    return store.get_all(namespace, sorted(ids))


def resolve_for_collection(store: CacheStore, sources: Iterable[Entity], namespace: str) -> List[Entity]:
    """Fetch the union of what every source points to in ``namespace``."""
    ids = set()
    for source in sources:
        ids.update(source.related(namespace))
    if not ids:
        return []
    return store.get_all(namespace, sorted(ids))


def key_field(key: str, index: int = -1) -> Optional[str]:
    """A decoded key field, or None for ids that are not well-formed keys."""
    try:
        return decode(key).fields[index]
    except (KeyFormatError, IndexError):
        return None


def parse_attributes(model: Type[A], entity: Entity) -> Optional[A]:
    """Validate an entity's attributes, or None (with a warning) when unusable."""
    try:
        return model.model_validate(entity.attributes)
    except ValidationError as e:
        logger.warning("Dropping %s %s with unusable attributes: %s", entity.namespace, entity.id, e)
        return None


def health_state(health_status: Optional[str], lifecycle_state: Optional[str]) -> HealthState:
    """Up only for a healthy instance in an active server group."""
    if lifecycle_state != ACTIVE_LIFECYCLE_STATE:
        return HealthState.DOWN
    return HealthState.UP if health_status == HEALTHY_STATUS else HealthState.DOWN


def created_time(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ParseError as e:
        logger.warning("%s; leaving createdTime unset", e)
        return None


def build_server_group(entity: Entity) -> ServerGroup:
    """Reconstruct a server group from its cached attributes.

    Raises:
        pydantic.ValidationError: If the cached attributes are unusable
    """
    attrs = ServerGroupAttributes.model_validate(entity.attributes)
    group = attrs.scalingGroup
    lifecycle_state = group.lifecycleState

    instances = []
    for member in attrs.instances:
        if not member.instanceId:
            continue
        state = health_state(member.healthStatus, lifecycle_state)
        instances.append(
            Instance(
                name=member.instanceId,
                zone=member.zoneId,
                health_state=state,
                health=[{"type": HEALTH_TYPE, "healthClass": "platform", "state": state.value}],
            )
        )

    image_id = attrs.scalingConfiguration.get("imageId")
    return ServerGroup(
        name=attrs.name or key_field(entity.id) or entity.id,
        account=attrs.account or key_field(entity.id, 0),
        region=attrs.region or key_field(entity.id, 1),
        disabled=lifecycle_state != ACTIVE_LIFECYCLE_STATE,
        capacity=Capacity(min=group.minSize, max=group.maxSize, desired=len(instances)),
        instances=instances,
        creation_time=group.creationTime,
        created_time=created_time(group.creationTime),
        launch_config=attrs.scalingConfiguration,
        image={"name": image_id, "imageId": image_id},
        build_info={"imageId": image_id},
        load_balancers=[
            lb.get("loadBalancerName") or lb.get("loadBalancerId")
            for lb in attrs.loadBalancers
            if lb.get("loadBalancerName") or lb.get("loadBalancerId")
        ],
        attributes=entity.attributes,
    )


def _member_name(key: str, entity: Entity) -> str:
    attrs = parse_attributes(InstanceAttributes, entity)
    return (attrs and attrs.instanceId) or key_field(key) or key


def build_load_balancer_server_group(entity: Entity, instances: Mapping[str, Entity]) -> LoadBalancerServerGroup:
    lifecycle_state = (entity.attributes.get("scalingGroup") or {}).get("lifecycleState")
    members = [
        _member_name(key, instances[key])
        for key in sorted(entity.related(Namespace.INSTANCES.ns))
        if key in instances
    ]
    return LoadBalancerServerGroup(
        name=entity.attributes.get("name") or key_field(entity.id) or entity.id,
        is_disabled=lifecycle_state != ACTIVE_LIFECYCLE_STATE,
        instances=members,
    )


def build_load_balancer(
    entity: Entity, server_groups: Optional[Dict[str, LoadBalancerServerGroup]] = None
) -> Optional[LoadBalancer]:
    """Reconstruct a load balancer, or None when its attributes are unusable."""
    attrs = parse_attributes(LoadBalancerAttributes, entity)
    if attrs is None:
        return None
    server_groups = server_groups or {}
    return LoadBalancer(
        id=entity.id,
        name=attrs.loadBalancerName or key_field(entity.id, 2),
        account=attrs.account or key_field(entity.id, 0),
        region=attrs.regionIdAlias or key_field(entity.id, 1),
        vpc_id=attrs.vpcId,
        server_groups=[
            server_groups[key]
            for key in sorted(entity.related(Namespace.SERVER_GROUPS.ns))
            if key in server_groups
        ],
    )

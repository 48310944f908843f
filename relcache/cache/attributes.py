"""Schema-on-read models for entity attributes.

Agents store plain provider-shaped dicts; view providers validate them
into these models. Unknown keys pass through (``extra="allow"``), and
numeric fields that fail to parse are logged and read as None instead of
failing the whole view.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relcache.errors import ParseError
from relcache.parsing import parse_int

logger = logging.getLogger(__name__)


def _lenient_int(value: Any, field: str) -> Optional[int]:
    try:
        return parse_int(value, field)
    except ParseError as e:
        logger.warning("%s; leaving it unset", e)
        return None


class _Attributes(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ScalingInstanceAttributes(_Attributes):
    instanceId: Optional[str] = None
    healthStatus: Optional[str] = None
    lifecycleState: Optional[str] = None
    zoneId: Optional[str] = None


class ScalingGroupAttributes(_Attributes):
    scalingGroupId: Optional[str] = None
    scalingGroupName: Optional[str] = None
    lifecycleState: Optional[str] = None
    minSize: Optional[int] = None
    maxSize: Optional[int] = None
    desiredCapacity: Optional[int] = None
    creationTime: Any = None
    loadBalancerIds: List[str] = Field(default_factory=list)

    @field_validator("minSize", "maxSize", "desiredCapacity", mode="before")
    @classmethod
    def parse_sizes(cls, v: Any, info) -> Optional[int]:
        return _lenient_int(v, info.field_name)


class ServerGroupAttributes(_Attributes):
    name: Optional[str] = None
    application: Optional[str] = None
    account: Optional[str] = None
    region: Optional[str] = None
    launchConfigName: Optional[str] = None
    scalingGroup: ScalingGroupAttributes = Field(default_factory=ScalingGroupAttributes)
    scalingConfiguration: Dict[str, Any] = Field(default_factory=dict)
    instances: List[ScalingInstanceAttributes] = Field(default_factory=list)
    loadBalancers: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("scalingGroup", "scalingConfiguration", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("instances", "loadBalancers", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v


class InstanceAttributes(_Attributes):
    instanceId: Optional[str] = None
    instanceType: Optional[str] = None
    zoneId: Optional[str] = None
    state: Optional[str] = None
    privateIpAddress: Optional[str] = None
    launchTime: Any = None


class LoadBalancerAttributes(_Attributes):
    loadBalancerId: Optional[str] = None
    loadBalancerName: Optional[str] = None
    account: Optional[str] = None
    regionIdAlias: Optional[str] = None
    vpcId: Optional[str] = None
    dnsName: Optional[str] = None


class ImageAttributes(_Attributes):
    imageId: Optional[str] = None
    imageName: Optional[str] = None

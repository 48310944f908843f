"""Domain objects assembled by the view providers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from relcache.constants import PROVIDER_ID


class HealthState(str, Enum):
    UP = "Up"
    DOWN = "Down"
    UNKNOWN = "Unknown"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


@dataclass
class Instance:
    name: str
    zone: Optional[str] = None
    health_state: HealthState = HealthState.UNKNOWN
    health: List[Dict[str, Any]] = field(default_factory=list)
    provider: str = PROVIDER_ID

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class Capacity:
    min: Optional[int] = None
    max: Optional[int] = None
    desired: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ServerGroup:
    name: str
    account: Optional[str]
    region: Optional[str]
    disabled: bool
    capacity: Capacity
    instances: List[Instance] = field(default_factory=list)
    creation_time: Optional[str] = None
    created_time: Optional[int] = None
    launch_config: Dict[str, Any] = field(default_factory=dict)
    image: Dict[str, Any] = field(default_factory=dict)
    build_info: Dict[str, Any] = field(default_factory=dict)
    load_balancers: List[str] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)
    cloud_provider: str = PROVIDER_ID

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class LoadBalancerServerGroup:
    name: str
    is_disabled: bool
    instances: List[str] = field(default_factory=list)
    cloud_provider: str = PROVIDER_ID

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoadBalancer:
    id: str
    name: Optional[str]
    account: Optional[str]
    region: Optional[str]
    vpc_id: Optional[str] = None
    server_groups: List[LoadBalancerServerGroup] = field(default_factory=list)
    cloud_provider: str = PROVIDER_ID

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Cluster:
    name: str
    account: str
    application: str
    server_groups: List[ServerGroup] = field(default_factory=list)
    load_balancers: List[LoadBalancer] = field(default_factory=list)
    cloud_provider: str = PROVIDER_ID

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class ImageResult:
    image_name: Optional[str]
    attributes: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

"""Cache key codec.

Keys have the shape ``aws:<namespace>:<field>:<field>...``. Field values
are escaped so that neither the ``:`` delimiter nor the ``*`` wildcard ever
appears raw inside a field, which keeps decode an exact inverse of encode
and makes keys safe to glob over.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple

from relcache.constants import KEY_DELIMITER, KEY_WILDCARD, PROVIDER_ID
from relcache.errors import InvalidKeyError, KeyFormatError


class Namespace(str, Enum):
    APPLICATIONS = "application"
    CLUSTERS = "cluster"
    SERVER_GROUPS = "serverGroup"
    INSTANCES = "instance"
    LOAD_BALANCERS = "loadBalancer"
    LAUNCH_CONFIGS = "launchConfig"
    IMAGES = "image"
    NAMED_IMAGES = "namedImage"
    INSTANCE_TYPES = "instanceType"

    @property
    def ns(self) -> str:
        return self.value

    @classmethod
    def values(cls) -> list[str]:
        return [n.value for n in cls]


# Field names per namespace, in key order. OPTIONAL_TRAILING_FIELDS marks how many may be omitted.
KEY_FIELDS: Dict[Namespace, Tuple[str, ...]] = {
    Namespace.APPLICATIONS: ("application",),
    Namespace.CLUSTERS: ("account", "application", "cluster"),
    Namespace.SERVER_GROUPS: ("account", "region", "serverGroup"),
    Namespace.LAUNCH_CONFIGS: ("account", "region", "launchConfig"),
    Namespace.INSTANCES: ("account", "region", "instanceId"),
    Namespace.LOAD_BALANCERS: ("account", "region", "loadBalancer", "vpcId"),
    Namespace.IMAGES: ("account", "region", "imageId"),
    Namespace.NAMED_IMAGES: ("account", "imageName"),
    Namespace.INSTANCE_TYPES: ("account", "region", "zoneId"),
}

OPTIONAL_TRAILING_FIELDS: Dict[Namespace, int] = {
    Namespace.LOAD_BALANCERS: 1,
}

_ESCAPES = (("%", "%25"), (":", "%3A"), ("*", "%2A"))


class Key(NamedTuple):
    """A decoded cache key."""

    namespace: Namespace
    fields: Tuple[str, ...]

    def as_dict(self) -> Dict[str, str]:
        return dict(zip(KEY_FIELDS[self.namespace], self.fields))


def _escape(value: str) -> str:
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def _unescape(value: str) -> str:
    for raw, escaped in reversed(_ESCAPES):
        value = value.replace(escaped, raw)
    return value


def _escape_glob(value: str) -> str:
    return KEY_WILDCARD.join(_escape(part) for part in value.split(KEY_WILDCARD))


def _coerce_namespace(namespace) -> Namespace:
    try:
        return Namespace(namespace)
    except ValueError as exc:
        raise InvalidKeyError(f"Unknown namespace: {namespace!r}") from exc


def _arity(namespace: Namespace) -> Tuple[int, int]:
    total = len(KEY_FIELDS[namespace])
    return total - OPTIONAL_TRAILING_FIELDS.get(namespace, 0), total


def encode(namespace, *fields: Optional[str]) -> str:
    """Build the key for an entity.

    Args:
        namespace: Namespace (enum member or its string value)
        *fields: Field values in the order given by KEY_FIELDS; optional
            trailing fields may be omitted or passed as None

    Returns:
        Deterministic key string

    Raises:
        InvalidKeyError: If a required field is missing or empty, or the
            number of fields does not match the namespace
    """
    ns = _coerce_namespace(namespace)
    required, total = _arity(ns)

    values = list(fields)
    while len(values) > required and values[-1] is None:
        values.pop()
    if len(values) < required or len(values) > total:
        raise InvalidKeyError(
            f"{ns.value} keys take {required}..{total} fields, got {len(fields)}"
        )
    for name, value in zip(KEY_FIELDS[ns], values):
        if value is None or value == "":
            raise InvalidKeyError(f"{ns.value} key requires a non-empty {name}")

    parts = [PROVIDER_ID, ns.value] + [_escape(str(v)) for v in values]
    return KEY_DELIMITER.join(parts)


def decode(key: str) -> Key:
    """Parse a key produced by encode.

    Raises:
        KeyFormatError: If the string is not a well-formed key
    """
    if not isinstance(key, str) or not key:
        raise KeyFormatError(str(key), "empty key")
    parts = key.split(KEY_DELIMITER)
    if len(parts) < 3:
        raise KeyFormatError(key, "too few segments")
    if parts[0] != PROVIDER_ID:
        raise KeyFormatError(key, f"unexpected provider {parts[0]!r}")
    try:
        ns = Namespace(parts[1])
    except ValueError:
        raise KeyFormatError(key, f"unknown namespace {parts[1]!r}")

    raw_fields = parts[2:]
    required, total = _arity(ns)
    if not required <= len(raw_fields) <= total:
        raise KeyFormatError(key, f"expected {required}..{total} fields, got {len(raw_fields)}")
    if any(not f for f in raw_fields) or any(KEY_WILDCARD in f for f in raw_fields):
        raise KeyFormatError(key, "empty or wildcard field")
    return Key(ns, tuple(_unescape(f) for f in raw_fields))


def search_pattern(namespace, *fields: Optional[str]) -> str:
    """Build a glob pattern for filter_identifiers.

    Unspecified (missing or None) fields match anything. A ``*`` inside a
    supplied field is kept as a wildcard; everything else is escaped the
    same way encode escapes it.

    Example:
        >>> search_pattern(Namespace.SERVER_GROUPS, "prod", "us-east-1")
        'aws:serverGroup:prod:us-east-1:*'
    """
    ns = _coerce_namespace(namespace)
    required, total = _arity(ns)
    if len(fields) > total:
        raise InvalidKeyError(f"{ns.value} keys take at most {total} fields")

    parts = [PROVIDER_ID, ns.value]
    specified = list(fields)
    while specified and specified[-1] is None:
        specified.pop()
    for value in specified:
        parts.append(KEY_WILDCARD if value is None or value == "" else _escape_glob(str(value)))

    pattern = KEY_DELIMITER.join(parts)
    if len(specified) < required:
        pattern += KEY_DELIMITER + KEY_WILDCARD
    elif len(specified) < total:
        # optional trailing fields may be absent entirely
        pattern += KEY_WILDCARD
    return pattern


def application_key(application: str) -> str:
    return encode(Namespace.APPLICATIONS, application)


def cluster_key(cluster: str, application: str, account: str) -> str:
    return encode(Namespace.CLUSTERS, account, application, cluster)


def server_group_key(server_group: str, account: str, region: str) -> str:
    return encode(Namespace.SERVER_GROUPS, account, region, server_group)


def launch_config_key(launch_config: str, account: str, region: str) -> str:
    return encode(Namespace.LAUNCH_CONFIGS, account, region, launch_config)


def instance_key(instance_id: str, account: str, region: str) -> str:
    return encode(Namespace.INSTANCES, account, region, instance_id)


def load_balancer_key(
    load_balancer: str, account: str, region: str, vpc_id: Optional[str] = None
) -> str:
    return encode(Namespace.LOAD_BALANCERS, account, region, load_balancer, vpc_id)


def image_key(image_id: str, account: str, region: str) -> str:
    return encode(Namespace.IMAGES, account, region, image_id)


def named_image_key(account: str, image_name: str) -> str:
    return encode(Namespace.NAMED_IMAGES, account, image_name)


def instance_type_key(account: str, region: str, zone_id: str) -> str:
    return encode(Namespace.INSTANCE_TYPES, account, region, zone_id)

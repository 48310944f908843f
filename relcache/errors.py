"""Error taxonomy for the relationship cache.

Errors local to one record or relationship never abort an agent run;
errors in an agent's primary listing always do.
"""

from __future__ import annotations

from typing import Optional


class RelCacheError(Exception):
    """Base class for all relcache errors."""


class InvalidKeyError(RelCacheError, ValueError):
    """Raised when a key cannot be built from the supplied fields."""


class KeyFormatError(RelCacheError, ValueError):
    """Raised when a string is not a well-formed cache key."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Malformed cache key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class TransientFetchError(RelCacheError):
    """A single auxiliary provider call failed.

    The caller logs it and caches the primary record without the
    missing piece.

    Attributes:
        operation: Provider operation that failed (e.g. 'describe_load_balancers')
        resource_id: Identifier of the auxiliary resource
        code: Provider error code, if any
    """

    def __init__(
        self,
        operation: str,
        resource_id: Optional[str] = None,
        code: Optional[str] = None,
    ):
        message = f"{operation} failed"
        if resource_id:
            message += f" for {resource_id}"
        if code:
            message += f": {code}"
        super().__init__(message)
        self.operation = operation
        self.resource_id = resource_id
        self.code = code

    @property
    def not_found(self) -> bool:
        """True when the provider reported the resource as missing."""
        return bool(self.code) and "NotFound" in self.code


class AgentFetchFailure(RelCacheError):
    """The primary listing of an agent failed; the whole run is aborted."""

    def __init__(self, agent_type: str, cause: str):
        super().__init__(f"{agent_type}: {cause}")
        self.agent_type = agent_type
        self.cause = cause


class ParseError(RelCacheError, ValueError):
    """A provider value (timestamp, number) could not be parsed."""

    def __init__(self, field: str, value: object):
        super().__init__(f"Cannot parse {field}: {value!r}")
        self.field = field
        self.value = value

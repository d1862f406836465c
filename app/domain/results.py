"""Typed outcomes returned by the resource handlers.

Handlers never raise for caller-correctable conditions. They return one of
these values and the HTTP layer decides how to present it.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Ok:
    """Operation succeeded; ``value`` is the resulting record(s)."""
    value: Any


@dataclass(frozen=True)
class Created:
    """A new record was created and can be fetched again by ``location_id``."""
    value: Any
    location_id: int


@dataclass(frozen=True)
class NotFound:
    resource: str
    resource_id: int

    @property
    def message(self) -> str:
        return f"{self.resource} {self.resource_id} not found"


@dataclass(frozen=True)
class ValidationFailed:
    """Caller-correctable rejection, e.g. ``id-mismatch``."""
    reason: str
    message: str


@dataclass(frozen=True)
class ConcurrencyConflict:
    """The record was modified by another writer since ``version`` was read."""
    resource: str
    resource_id: int
    version: Optional[int] = None

    @property
    def message(self) -> str:
        return (
            f"{self.resource} {self.resource_id} was modified by another request; "
            "fetch it again and retry"
        )


Outcome = Union[Ok, Created, NotFound, ValidationFailed, ConcurrencyConflict]

"""Error hierarchy and collaborator protocols for the resolution engine.

Error Handling Contract:
- EntityValidationError: the request is unusable. Raised before any scoring,
  so callers never see partial output for an invalid request.
- EntityProcessingError: one entity (or one pair) failed while scoring or
  merging. The engine isolates it, excludes the entity from matching and
  surfaces the message on the result. The rest of the run proceeds.
"""

from typing import Protocol, runtime_checkable
from uuid import uuid4


@runtime_checkable
class IdGenerator(Protocol):
    """Callable producing a fresh unique entity id."""

    def __call__(self) -> str: ...


def uuid_id_generator() -> str:
    """Default id generator backed by uuid4."""
    return f"entity-{uuid4().hex}"


class ResolutionError(Exception):
    """Base exception for all resolution errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EntityValidationError(ResolutionError):
    """Raised when a request fails validation.

    No merging is attempted for an invalid request.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class EntityProcessingError(ResolutionError):
    """Raised when a single entity cannot be scored or merged.

    Attributes:
        entity_id: Id of the offending entity, if known.
    """

    def __init__(self, message: str, entity_id: str | None = None) -> None:
        if entity_id:
            message = f"[{entity_id}] {message}"
        super().__init__(message)
        self.entity_id = entity_id


__all__ = [
    "IdGenerator",
    "uuid_id_generator",
    "ResolutionError",
    "EntityValidationError",
    "EntityProcessingError",
]

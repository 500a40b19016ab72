"""Entity resolution entry point.

Runs the pipeline over one request:

    validate -> normalize (+ confidence boost) -> find matches
    -> plan merges -> detect conflicts -> apply resolution -> statistics

Every stage is a pure function over the candidate list. The engine holds no
mutable state between runs, so separate runs can execute in parallel.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from entres.config import Settings, get_settings
from entres.models import (
    Entity,
    EntityResolutionOptions,
    EntityResolutionRequest,
    ResolutionResult,
)
from entres.resolution.applier import apply_resolution
from entres.resolution.base import (
    EntityProcessingError,
    EntityValidationError,
    IdGenerator,
    uuid_id_generator,
)
from entres.resolution.conflicts import detect_conflicts
from entres.resolution.matcher import find_matches
from entres.resolution.normalizer import boost_confidence, normalize
from entres.resolution.planner import plan_merges
from entres.resolution.statistics import calculate_statistics
from entres.resolution.temporal import detect_temporal_relationships

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_validation_error(error: ValidationError) -> str:
    """Condense a pydantic ValidationError into one readable line."""
    parts = []
    for detail in error.errors():
        location = ".".join(str(p) for p in detail.get("loc", ()))
        parts.append(f"{location}: {detail.get('msg', 'invalid value')}")
    return "; ".join(parts) or str(error)


def _metadata_error_fields(error: ValidationError) -> set[str] | None:
    """Metadata fields named by a validation error.

    Returns None when any error lies outside ``metadata``. An empty string in
    the result means the metadata value as a whole was rejected.
    """
    fields: set[str] = set()
    for detail in error.errors():
        loc = detail.get("loc", ())
        if not loc or loc[0] != "metadata":
            return None
        fields.add(str(loc[1]) if len(loc) > 1 else "")
    return fields


def _strip_metadata(metadata: Any, fields: set[str]) -> dict[str, Any]:
    """Drop the rejected fields from a raw metadata mapping."""
    if "" in fields or not isinstance(metadata, dict):
        return {}
    return {key: value for key, value in metadata.items() if key not in fields}


class EntityResolutionEngine:
    """Deduplicates and merges candidate entities.

    Attributes:
        settings: Source of default options and input limits.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        id_generator: IdGenerator = uuid_id_generator,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Optional Settings instance (defaults to global settings).
            id_generator: Produces ids for entities that arrive without one.
            clock: Produces the ``resolved_at`` timestamp of merged entities.
        """
        self.settings = settings or get_settings()
        self._id_generator = id_generator
        self._clock = clock

    def default_options(self) -> EntityResolutionOptions:
        """Options used when a request carries none."""
        return EntityResolutionOptions.from_settings(self.settings)

    def _parse_entity(
        self, raw: Any, index: int, malformed: dict[int, str]
    ) -> Entity:
        """Parse one raw entity.

        Malformed metadata does not reject the request: the offending fields
        are dropped and the entity is marked in ``malformed`` so it can be
        excluded from matching.

        Raises:
            EntityValidationError: If anything other than metadata is invalid.
        """
        try:
            return Entity.model_validate(raw)
        except ValidationError as e:
            fields = _metadata_error_fields(e)
            if fields is None:
                raise EntityValidationError(
                    f"Entity {index} is invalid: {_format_validation_error(e)}",
                    field=f"entities.{index}",
                ) from e
            malformed[index] = f"Malformed metadata: {_format_validation_error(e)}"
            return Entity.model_validate(
                {**raw, "metadata": _strip_metadata(raw.get("metadata"), fields)}
            )

    def _parse_request(
        self, request: EntityResolutionRequest | dict[str, Any] | None
    ) -> tuple[EntityResolutionRequest, dict[int, str]]:
        """Coerce a request into its model, entity by entity.

        Returns:
            Tuple of (request, malformed) where malformed maps entity
            positions to the reason they must be excluded from matching.
        """
        if request is None:
            raise EntityValidationError("Request is required", field="request")

        malformed: dict[int, str] = {}
        if isinstance(request, dict):
            raw_entities = request.get("entities")
            if not isinstance(raw_entities, (list, tuple)):
                raise EntityValidationError(
                    "Request must include a list of entities", field="entities"
                )
            try:
                shell = EntityResolutionRequest.model_validate({**request, "entities": []})
            except ValidationError as e:
                raise EntityValidationError(
                    f"Invalid request: {_format_validation_error(e)}"
                ) from e
            entities = [
                self._parse_entity(raw, index, malformed)
                for index, raw in enumerate(raw_entities)
            ]
            request = EntityResolutionRequest(entities=entities, options=shell.options)

        if not isinstance(request, EntityResolutionRequest):
            raise EntityValidationError(
                f"Unsupported request type: {type(request).__name__}", field="request"
            )
        return request, malformed

    def _check_limits(self, request: EntityResolutionRequest) -> None:
        """Enforce names, length caps and unique ids."""
        max_length = self.settings.max_field_length
        seen_ids: set[str] = set()
        for index, entity in enumerate(request.entities):
            if not isinstance(entity.name, str) or not entity.name.strip():
                raise EntityValidationError(
                    f"Entity {index} has an empty name", field=f"entities.{index}.name"
                )
            if len(entity.name) > max_length:
                raise EntityValidationError(
                    f"Entity {index} name exceeds {max_length} characters",
                    field=f"entities.{index}.name",
                )
            if any(len(alias) > max_length for alias in entity.aliases):
                raise EntityValidationError(
                    f"Entity {index} has an alias exceeding {max_length} characters",
                    field=f"entities.{index}.aliases",
                )
            context = entity.metadata.context
            if context is not None and len(context) > max_length:
                raise EntityValidationError(
                    f"Entity {index} context exceeds {max_length} characters",
                    field=f"entities.{index}.metadata.context",
                )
            # Blank ids are replaced during normalization
            if entity.id:
                if entity.id in seen_ids:
                    raise EntityValidationError(
                        f"Duplicate entity id: {entity.id}", field=f"entities.{index}.id"
                    )
                seen_ids.add(entity.id)

    def validate_request(
        self, request: EntityResolutionRequest | dict[str, Any] | None
    ) -> EntityResolutionRequest:
        """Validate a request before any scoring happens.

        Args:
            request: Request model or its raw dictionary form.

        Returns:
            The validated request model. Entities with malformed metadata
            carry only their valid metadata fields.

        Raises:
            EntityValidationError: If the request is missing or malformed, a
                name/alias/context exceeds the length cap, or ids repeat.
        """
        request, _ = self._parse_request(request)
        self._check_limits(request)
        return request

    def _prepare(
        self,
        entities: list[Entity],
        options: EntityResolutionOptions,
        errors: list[EntityProcessingError],
        malformed: dict[int, str],
    ) -> tuple[list[Entity], list[Entity]]:
        """Normalize every entity, isolating failures.

        Returns:
            Tuple of (candidates, excluded). Excluded entities had malformed
            metadata or failed to normalize, and pass through unresolved.
        """
        candidates: list[Entity] = []
        excluded: list[Entity] = []
        for index, entity in enumerate(entities):
            if index in malformed:
                error = EntityProcessingError(
                    f"Cannot match '{entity.name}': {malformed[index]}", entity_id=entity.id
                )
                logger.warning(f"Excluding entity from matching: {error.message}")
                errors.append(error)
                excluded.append(entity)
                continue
            try:
                prepared = normalize(entity, self._id_generator)
                if options.enable_confidence_boost:
                    prepared = boost_confidence(prepared)
            except Exception as e:
                error = EntityProcessingError(
                    f"Failed to normalize '{entity.name}': {e}", entity_id=entity.id
                )
                logger.warning(f"Excluding entity from matching: {error.message}")
                errors.append(error)
                excluded.append(entity)
                continue
            candidates.append(prepared)
        return candidates, excluded

    def resolve(
        self, request: EntityResolutionRequest | dict[str, Any] | None
    ) -> ResolutionResult:
        """Resolve a set of candidate entities.

        Args:
            request: Entities plus optional options.

        Returns:
            ResolutionResult with resolved entities, merge log, conflicts
            and statistics.

        Raises:
            EntityValidationError: If the request is invalid. Nothing is
                merged in that case.
        """
        start = time.perf_counter()
        request, malformed = self._parse_request(request)
        self._check_limits(request)
        options = request.options or self.default_options()

        logger.info(f"Resolving {len(request.entities)} entities")
        if options.enable_semantic_matching:
            logger.debug("Semantic matching requested but not available; ignoring")

        errors: list[EntityProcessingError] = []
        candidates, excluded = self._prepare(
            request.entities, options, errors, malformed
        )

        matches = find_matches(candidates, options, errors)
        merge_operations = plan_merges(matches, options)
        conflicts = detect_conflicts(matches, options)
        resolved = apply_resolution(
            candidates,
            merge_operations,
            merge_confidence_boost=options.merge_confidence_boost,
            clock=self._clock,
        )
        resolved.extend(excluded)

        temporal = (
            detect_temporal_relationships(candidates)
            if options.detect_temporal_relationships
            else []
        )

        elapsed_ms = (time.perf_counter() - start) * 1000
        statistics = calculate_statistics(
            request.entities,
            resolved,
            merge_operations,
            conflicts,
            processing_time_ms=elapsed_ms,
            matches_found=len(matches),
            excluded_entities=len(excluded),
        )

        logger.info(
            f"Resolved {statistics.total_entities} entities into "
            f"{statistics.resolved_entities} ({len(merge_operations)} merges, "
            f"{len(conflicts)} conflicts) in {elapsed_ms:.1f}ms"
        )
        if errors:
            logger.warning(f"Resolution finished with {len(errors)} processing errors")

        return ResolutionResult(
            resolved_entities=resolved,
            merge_operations=merge_operations,
            conflicts=conflicts,
            statistics=statistics,
            matches=matches,
            temporal_relationships=temporal,
            errors=[e.message for e in errors],
        )


def resolve_entities(
    request: EntityResolutionRequest | dict[str, Any] | None,
    settings: Settings | None = None,
    id_generator: IdGenerator = uuid_id_generator,
) -> ResolutionResult:
    """Resolve a request with a fresh engine.

    Args:
        request: Entities plus optional options.
        settings: Optional Settings instance.
        id_generator: Produces ids for entities that arrive without one.

    Returns:
        ResolutionResult for the request.

    Raises:
        EntityValidationError: If the request is invalid.
    """
    engine = EntityResolutionEngine(settings=settings, id_generator=id_generator)
    return engine.resolve(request)


__all__ = ["EntityResolutionEngine", "resolve_entities"]

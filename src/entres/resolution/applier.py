"""Apply merge operations to produce the final resolved entity list."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from entres.models import Entity, MergeOperation, clamp_confidence
from entres.text import normalize_text

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def union_aliases(primary: Entity, merged: list[Entity]) -> list[str]:
    """Union of every merged entity's name and aliases, minus the primary's name.

    Names that normalize to the same text are kept once (first spelling wins).
    """
    seen = {primary.normalized_name}
    aliases: list[str] = []
    for entity in [primary, *merged]:
        for name in entity.all_names:
            key = normalize_text(name)
            if key in seen:
                continue
            seen.add(key)
            aliases.append(name)
    return aliases


def merge_entity(
    operation: MergeOperation,
    resolved_at: datetime,
    merge_confidence_boost: float = 0.0,
) -> Entity:
    """Build the canonical entity for one merge operation."""
    primary = operation.primary_entity
    metadata = primary.metadata.model_copy(
        update={
            "merge_operation": True,
            "merged_count": len(operation.merged_entities),
            "merge_strategy": operation.strategy,
            "merged_from": operation.merged_ids,
        }
    )
    return primary.model_copy(
        update={
            "aliases": union_aliases(primary, operation.merged_entities),
            "confidence": clamp_confidence(primary.confidence + merge_confidence_boost),
            "metadata": metadata,
            "resolved": True,
            "resolved_at": resolved_at,
        }
    )


def apply_resolution(
    entities: list[Entity],
    merge_operations: list[MergeOperation],
    merge_confidence_boost: float = 0.0,
    clock: Callable[[], datetime] = _utcnow,
) -> list[Entity]:
    """Replace merged entities with one canonical entity per operation.

    Entities not referenced by any operation pass through unchanged, in
    input order; canonical entities follow in operation order.

    Args:
        entities: Normalized candidate entities.
        merge_operations: Exclusive merge operations.
        merge_confidence_boost: Added to each canonical entity's confidence.
        clock: Source of the ``resolved_at`` timestamp.

    Returns:
        The resolved entity list.
    """
    merged_ids = {entity_id for op in merge_operations for entity_id in op.merged_ids}
    resolved = [e for e in entities if e.id not in merged_ids]

    resolved_at = clock()
    for operation in merge_operations:
        entity = merge_entity(operation, resolved_at, merge_confidence_boost)
        logger.debug(
            f"Resolved {len(operation.merged_entities)} entities into '{entity.name}' "
            f"with aliases {entity.aliases}"
        )
        resolved.append(entity)

    return resolved


__all__ = ["apply_resolution", "merge_entity", "union_aliases"]

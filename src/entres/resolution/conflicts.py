"""Conflict detection over scored matches.

Conflicts are informational. They never block the merge planner, which may
still merge one side of an ambiguous group; downstream consumers decide what
to do with them.
"""

import logging
from collections import defaultdict

from entres.models import (
    ConflictType,
    Entity,
    EntityMatch,
    EntityResolutionOptions,
    EntityType,
    ResolutionConflict,
)

logger = logging.getLogger(__name__)

# Matches within this distance of an entity's best match count as tied
AMBIGUITY_MARGIN = 0.1
_EPSILON = 1e-9


def _unique_entities(matches: list[EntityMatch]) -> list[Entity]:
    """Entities of the given matches, deduplicated by id in first-seen order."""
    seen: dict[str, Entity] = {}
    for match in matches:
        for entity in (match.source_entity, match.target_entity):
            seen.setdefault(str(entity.id), entity)
    return list(seen.values())


def find_ambiguous_matches(
    matches: list[EntityMatch],
    options: EntityResolutionOptions,
) -> list[ResolutionConflict]:
    """Flag entities matched by several others with near-equal confidence."""
    by_entity: dict[str, list[EntityMatch]] = defaultdict(list)
    for match in matches:
        for entity_id in match.entity_ids:
            by_entity[entity_id].append(match)

    conflicts: list[ResolutionConflict] = []
    for entity_id, entity_matches in by_entity.items():
        if len(entity_matches) < 2:
            continue

        best = max(m.confidence for m in entity_matches)
        margin = AMBIGUITY_MARGIN + _EPSILON
        tied = [m for m in entity_matches if best - m.confidence <= margin]
        if len(tied) < 2:
            continue

        conflicts.append(
            ResolutionConflict(
                entities=_unique_entities(tied),
                conflict_type=ConflictType.AMBIGUOUS_MATCH,
                description=(
                    f"Entity {entity_id} has {len(tied)} matches with similar "
                    f"confidence (best {best:.2f})"
                ),
                resolution_strategy=options.conflict_resolution,
            )
        )

    return conflicts


def find_type_mismatches(
    matches: list[EntityMatch],
    options: EntityResolutionOptions,
) -> list[ResolutionConflict]:
    """Flag matches between entities of different known types."""
    conflicts: list[ResolutionConflict] = []
    for match in matches:
        type_a, type_b = match.source_entity.type, match.target_entity.type
        if EntityType.UNKNOWN in (type_a, type_b) or type_a == type_b:
            continue
        conflicts.append(
            ResolutionConflict(
                entities=[match.source_entity, match.target_entity],
                conflict_type=ConflictType.TYPE_MISMATCH,
                description=(
                    f"'{match.source_entity.name}' ({type_a.value}) matches "
                    f"'{match.target_entity.name}' ({type_b.value}) despite differing types"
                ),
                resolution_strategy=options.conflict_resolution,
            )
        )
    return conflicts


def find_low_confidence_matches(
    matches: list[EntityMatch],
    options: EntityResolutionOptions,
) -> list[ResolutionConflict]:
    """Flag matches similar enough to pair but not confident enough to merge."""
    conflicts: list[ResolutionConflict] = []
    for match in matches:
        if match.confidence >= options.confidence_threshold:
            continue
        conflicts.append(
            ResolutionConflict(
                entities=[match.source_entity, match.target_entity],
                conflict_type=ConflictType.LOW_CONFIDENCE,
                description=(
                    f"'{match.source_entity.name}' and '{match.target_entity.name}' are "
                    f"{match.similarity_score * 100:.0f}% similar but match confidence "
                    f"{match.confidence:.2f} is below {options.confidence_threshold:.2f}"
                ),
                resolution_strategy=options.conflict_resolution,
            )
        )
    return conflicts


def detect_conflicts(
    matches: list[EntityMatch],
    options: EntityResolutionOptions | None = None,
) -> list[ResolutionConflict]:
    """Detect ambiguous, type-mismatched and low-confidence matches.

    Conflicts of the same type covering the same set of entities are
    reported once.

    Args:
        matches: Retained matches of the run.
        options: Resolution options (defaults when None).

    Returns:
        Conflicts in detection order: ambiguous, type mismatch, low confidence.
    """
    options = options or EntityResolutionOptions()

    found = (
        find_ambiguous_matches(matches, options)
        + find_type_mismatches(matches, options)
        + find_low_confidence_matches(matches, options)
    )

    conflicts: list[ResolutionConflict] = []
    seen: set[tuple[ConflictType, frozenset[str]]] = set()
    for conflict in found:
        key = (conflict.conflict_type, frozenset(str(e.id) for e in conflict.entities))
        if key in seen:
            continue
        seen.add(key)
        conflicts.append(conflict)

    if conflicts:
        logger.info(f"Detected {len(conflicts)} resolution conflicts")
    return conflicts


__all__ = [
    "AMBIGUITY_MARGIN",
    "detect_conflicts",
    "find_ambiguous_matches",
    "find_low_confidence_matches",
    "find_type_mismatches",
]

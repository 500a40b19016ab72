"""Greedy merge planning.

Matches are visited highest score first. The first confident match to claim
an entity wins it; later matches touching a claimed entity are skipped. This
yields a deterministic partial matching rather than a transitive clustering:
A~B and B~C do not imply that A, B and C end up together.
"""

import logging

from entres.models import EntityMatch, EntityResolutionOptions, MergeOperation

logger = logging.getLogger(__name__)


def plan_merges(
    matches: list[EntityMatch],
    options: EntityResolutionOptions | None = None,
) -> list[MergeOperation]:
    """Turn scored matches into exclusive merge operations.

    Args:
        matches: Matches, expected sorted by similarity score descending.
        options: Resolution options (defaults when None).

    Returns:
        Merge operations; no entity id appears in more than one.
    """
    options = options or EntityResolutionOptions()
    ordered = sorted(matches, key=lambda m: m.similarity_score, reverse=True)

    operations: list[MergeOperation] = []
    claimed: set[str] = set()

    for match in ordered:
        source_id, target_id = match.entity_ids
        if source_id in claimed or target_id in claimed:
            continue

        if match.confidence < options.confidence_threshold:
            logger.debug(
                f"Not merging '{match.source_entity.name}' and "
                f"'{match.target_entity.name}' (confidence {match.confidence:.2f})"
            )
            continue

        # Ties keep the earlier entity as primary
        source, target = match.source_entity, match.target_entity
        primary = target if target.confidence > source.confidence else source

        operations.append(
            MergeOperation(
                primary_entity=primary,
                merged_entities=[source, target],
                confidence=match.confidence,
                strategy=options.merge_strategy,
            )
        )
        claimed.update((source_id, target_id))
        logger.debug(
            f"Merging '{source.name}' and '{target.name}' into '{primary.name}' "
            f"(score {match.similarity_score:.2f})"
        )

    return operations


__all__ = ["plan_merges"]

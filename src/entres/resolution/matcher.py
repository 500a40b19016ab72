"""Pairwise multi-factor entity matching.

Every unordered pair (i < j) of candidate entities is scored on up to four
factors. The final score is the weighted sum divided by the sum of weights
that actually contributed, so a pair is not penalized for a missing factor.

| Factor                | Weight | Contributes when        |
|-----------------------|--------|-------------------------|
| Name similarity       | 0.4    | score > 0               |
| Exact type match      | 0.3    | types equal             |
| Best alias-pair score | 0.2    | score > 0               |
| Phonetic match        | 0.1    | enabled and score > 0.5 |

A pair with no name or alias similarity at all scores 0.
"""

import logging

from pydantic import BaseModel, ConfigDict

from entres.models import (
    Entity,
    EntityMatch,
    EntityResolutionOptions,
    MatchReason,
    MatchType,
    ReasonType,
)
from entres.resolution.base import EntityProcessingError
from entres.resolution.similarity import name_similarity, phonetic_similarity

logger = logging.getLogger(__name__)

W_NAME = 0.4
W_TYPE = 0.3
W_ALIAS = 0.2
W_PHONETIC = 0.1

PHONETIC_MIN_SCORE = 0.5

# Match type classification thresholds
EXACT_THRESHOLD = 0.95
FUZZY_THRESHOLD = 0.8
PARTIAL_THRESHOLD = 0.6


class MatchScore(BaseModel):
    """Raw score of one pair before thresholding."""

    model_config = ConfigDict(frozen=True)

    score: float
    reasons: list[MatchReason]


def alias_similarity(entity_a: Entity, entity_b: Entity) -> float:
    """Best name similarity over the cross product of both name sets."""
    best = 0.0
    for name_a in entity_a.all_names:
        for name_b in entity_b.all_names:
            best = max(best, name_similarity(name_a, name_b))
            if best == 1.0:
                return best
    return best


def score_pair(
    entity_a: Entity,
    entity_b: Entity,
    enable_phonetic_matching: bool = True,
) -> MatchScore:
    """Compute the weighted multi-factor score of two entities.

    Args:
        entity_a: First entity.
        entity_b: Second entity.
        enable_phonetic_matching: Include the phonetic factor.

    Returns:
        MatchScore with the final score and the contributing reasons.
    """
    reasons: list[MatchReason] = []
    total = 0.0
    weight_sum = 0.0

    name_score = name_similarity(entity_a.name, entity_b.name)
    if name_score > 0:
        reasons.append(
            MatchReason(
                type=ReasonType.NAME_SIMILARITY,
                score=name_score,
                description=f"Name similarity: {name_score * 100:.1f}%",
            )
        )
        total += name_score * W_NAME
        weight_sum += W_NAME

    if entity_a.type == entity_b.type:
        reasons.append(
            MatchReason(
                type=ReasonType.TYPE_MATCH,
                score=1.0,
                description=f"Exact type match: {entity_a.type.value}",
            )
        )
        total += W_TYPE
        weight_sum += W_TYPE

    alias_score = alias_similarity(entity_a, entity_b)
    if alias_score > 0:
        reasons.append(
            MatchReason(
                type=ReasonType.ALIAS_MATCH,
                score=alias_score,
                description=f"Alias match found with score {alias_score * 100:.1f}%",
            )
        )
        total += alias_score * W_ALIAS
        weight_sum += W_ALIAS

    if enable_phonetic_matching:
        phonetic_score = phonetic_similarity(entity_a.name, entity_b.name)
        if phonetic_score > PHONETIC_MIN_SCORE:
            reasons.append(
                MatchReason(
                    type=ReasonType.PHONETIC_MATCH,
                    score=phonetic_score,
                    description=f"Phonetic similarity: {phonetic_score * 100:.1f}%",
                )
            )
            total += phonetic_score * W_PHONETIC
            weight_sum += W_PHONETIC

    # Type and phonetic agreement alone never make a match
    if name_score == 0 and alias_score == 0:
        return MatchScore(score=0.0, reasons=reasons)

    score = min(1.0, total / weight_sum) if weight_sum > 0 else 0.0
    return MatchScore(score=score, reasons=reasons)


def classify_match(score: float, reasons: list[MatchReason]) -> MatchType:
    """Map a score and its reasons to a discrete match type.

    Checked in order: exact (>= 0.95), fuzzy (>= 0.8), alias (any alias
    reason), partial (>= 0.6), phonetic (any phonetic reason), else partial.
    """
    if score >= EXACT_THRESHOLD:
        return MatchType.EXACT
    if score >= FUZZY_THRESHOLD:
        return MatchType.FUZZY
    if any(r.type == ReasonType.ALIAS_MATCH for r in reasons):
        return MatchType.ALIAS
    if score >= PARTIAL_THRESHOLD:
        return MatchType.PARTIAL
    if any(r.type == ReasonType.PHONETIC_MATCH for r in reasons):
        return MatchType.PHONETIC
    return MatchType.PARTIAL


def calculate_match(
    entity_a: Entity,
    entity_b: Entity,
    options: EntityResolutionOptions,
) -> EntityMatch:
    """Score a pair and wrap it as an EntityMatch (no thresholding)."""
    result = score_pair(entity_a, entity_b, options.enable_phonetic_matching)
    return EntityMatch(
        source_entity=entity_a,
        target_entity=entity_b,
        similarity_score=result.score,
        match_type=classify_match(result.score, result.reasons),
        confidence=min(result.score, entity_a.confidence, entity_b.confidence),
        reasons=result.reasons,
    )


def _faulty_entity(
    entity_a: Entity, entity_b: Entity, options: EntityResolutionOptions
) -> Entity:
    """Pick the entity to blame for a pair that failed to score.

    An entity that cannot be scored against itself is at fault. When both
    score fine alone, the later entity of the pair is blamed.
    """
    for entity in (entity_a, entity_b):
        try:
            calculate_match(entity, entity, options)
        except Exception:
            return entity
    return entity_b


def find_matches(
    entities: list[Entity],
    options: EntityResolutionOptions | None = None,
    errors: list[EntityProcessingError] | None = None,
) -> list[EntityMatch]:
    """Find all pairs scoring at or above the similarity threshold.

    When a pair fails to score, the entity at fault is excluded from every
    later pair and its failure recorded.

    Args:
        entities: Normalized candidate entities.
        options: Resolution options (defaults when None).
        errors: Optional list that collects per-entity failures.

    Returns:
        Matches sorted by similarity score, highest first.
    """
    options = options or EntityResolutionOptions()
    matches: list[EntityMatch] = []
    failed: set[int] = set()

    for i in range(len(entities)):
        for j in range(i + 1, len(entities)):
            if i in failed:
                break
            if j in failed:
                continue

            entity_a, entity_b = entities[i], entities[j]
            try:
                match = calculate_match(entity_a, entity_b, options)
            except Exception as e:
                faulty = _faulty_entity(entity_a, entity_b, options)
                partner = entity_b if faulty is entity_a else entity_a
                failed.add(i if faulty is entity_a else j)
                error = EntityProcessingError(
                    f"Failed to score '{faulty.name}' against {partner.id}: {e}",
                    entity_id=faulty.id,
                )
                logger.warning(f"Excluding entity from matching: {error.message}")
                if errors is not None:
                    errors.append(error)
                continue

            if match.similarity_score >= options.similarity_threshold:
                matches.append(match)

    # Stable sort keeps input order among equal scores
    matches.sort(key=lambda m: m.similarity_score, reverse=True)
    logger.debug(f"Found {len(matches)} matches among {len(entities)} entities")
    return matches


__all__ = [
    "MatchScore",
    "alias_similarity",
    "calculate_match",
    "classify_match",
    "find_matches",
    "score_pair",
]

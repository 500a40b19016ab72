"""Temporal relationships inferred from extraction context.

Only entities whose ``metadata.context`` mentions a temporal indicator are
considered. The analysis is keyword based: "before"/"after" contexts give a
sequence, two "during" contexts give an overlap.
"""

import re

from entres.models import Entity, TemporalRelationship, TemporalRelationType

TEMPORAL_INDICATORS = (
    "before",
    "after",
    "during",
    "since",
    "until",
    "while",
    "when",
    "first",
    "second",
    "next",
    "then",
    "later",
    "earlier",
    "previously",
    "yesterday",
    "today",
    "tomorrow",
    "last week",
    "next month",
)

SEQUENCE_CONFIDENCE = 0.7
OVERLAP_CONFIDENCE = 0.6

_INDICATOR_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in TEMPORAL_INDICATORS) + r")\b"
)


def _mentions(context: str, word: str) -> bool:
    return re.search(rf"\b{word}\b", context) is not None


def has_temporal_context(entity: Entity) -> bool:
    """Check whether an entity's context mentions any temporal indicator."""
    context = entity.metadata.context
    if not context:
        return False
    return _INDICATOR_PATTERN.search(context.lower()) is not None


def analyze_pair(entity_a: Entity, entity_b: Entity) -> TemporalRelationship | None:
    """Infer the temporal relationship of two entities, if any."""
    context_a = (entity_a.metadata.context or "").lower()
    context_b = (entity_b.metadata.context or "").lower()

    if _mentions(context_a, "before") and _mentions(context_b, "after"):
        return TemporalRelationship(
            source_entity=entity_a,
            target_entity=entity_b,
            type=TemporalRelationType.TEMPORAL_SEQUENCE,
            relationship="precedes",
            confidence=SEQUENCE_CONFIDENCE,
        )

    if _mentions(context_a, "during") and _mentions(context_b, "during"):
        return TemporalRelationship(
            source_entity=entity_a,
            target_entity=entity_b,
            type=TemporalRelationType.TEMPORAL_OVERLAP,
            relationship="concurrent",
            confidence=OVERLAP_CONFIDENCE,
        )

    return None


def detect_temporal_relationships(entities: list[Entity]) -> list[TemporalRelationship]:
    """Pairwise temporal relationships among entities with temporal context."""
    temporal = [e for e in entities if has_temporal_context(e)]
    relationships: list[TemporalRelationship] = []
    for i in range(len(temporal)):
        for j in range(i + 1, len(temporal)):
            relationship = analyze_pair(temporal[i], temporal[j])
            if relationship is not None:
                relationships.append(relationship)
    return relationships


__all__ = [
    "TEMPORAL_INDICATORS",
    "analyze_pair",
    "detect_temporal_relationships",
    "has_temporal_context",
]

"""Aggregate statistics for a resolution run."""

from entres.models import (
    HIGH_CONFIDENCE,
    MEDIUM_CONFIDENCE,
    ConfidenceDistribution,
    Entity,
    MergeOperation,
    ResolutionConflict,
    ResolutionStatistics,
)


def confidence_bucket(confidence: float) -> str:
    """Bucket name for a confidence: high (>= 0.8), medium (>= 0.5) or low."""
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def confidence_distribution(entities: list[Entity]) -> ConfidenceDistribution:
    """Count entities per confidence bucket."""
    counts = {"high": 0, "medium": 0, "low": 0}
    for entity in entities:
        counts[confidence_bucket(entity.confidence)] += 1
    return ConfidenceDistribution(**counts)


def calculate_statistics(
    original_entities: list[Entity],
    resolved_entities: list[Entity],
    merge_operations: list[MergeOperation],
    conflicts: list[ResolutionConflict],
    processing_time_ms: float,
    matches_found: int = 0,
    excluded_entities: int = 0,
) -> ResolutionStatistics:
    """Summarize a resolution run.

    ``merged_entities`` counts every entity consumed by a merge, primaries
    included.
    """
    return ResolutionStatistics(
        total_entities=len(original_entities),
        resolved_entities=len(resolved_entities),
        merged_entities=sum(len(op.merged_entities) for op in merge_operations),
        conflicts_found=len(conflicts),
        matches_found=matches_found,
        excluded_entities=excluded_entities,
        processing_time_ms=processing_time_ms,
        confidence_distribution=confidence_distribution(resolved_entities),
    )


__all__ = ["calculate_statistics", "confidence_bucket", "confidence_distribution"]

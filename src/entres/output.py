"""Text reports for resolution results."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum

from entres.models import Entity, MergeOperation, ResolutionConflict, ResolutionResult
from entres.resolution.similarity import SimilarityBreakdown
from entres.resolution.statistics import confidence_bucket

logger = logging.getLogger(__name__)

# Visual formatting constants
DIVIDER_PRIMARY = "═" * 55
DIVIDER_SECONDARY = "─" * 55

# Confidence indicators
CONF_HIGH = "◉"
CONF_MEDIUM = "◐"
CONF_LOW = "◯"

_INDICATORS = {"high": CONF_HIGH, "medium": CONF_MEDIUM, "low": CONF_LOW}

# Entities listed before the report truncates
MAX_LISTED_ENTITIES = 50


class OutputMode(Enum):
    """Output verbosity modes."""

    SUMMARY = "summary"  # Entities, merges and conflicts
    DETAILED = "detailed"  # Adds every match with its reasons


def confidence_indicator(confidence: float) -> str:
    """Indicator glyph for a confidence value."""
    return _INDICATORS[confidence_bucket(confidence)]


class OutputFormatter:
    """Formats resolution results into readable Markdown reports."""

    def __init__(self, mode: OutputMode = OutputMode.SUMMARY) -> None:
        self.mode = mode

    def format_resolution(self, result: ResolutionResult) -> str:
        """Format a full resolution report.

        Args:
            result: Result of a resolution run.

        Returns:
            Report with statistics, resolved entities, merges and conflicts.
        """
        stats = result.statistics
        dist = stats.confidence_distribution
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

        lines = ["```", DIVIDER_PRIMARY, f"{'ENTITY RESOLUTION REPORT':^55}", DIVIDER_PRIMARY]
        lines.append(f"DATE: {timestamp}")
        lines.append(DIVIDER_SECONDARY)
        lines.append(f"  Input Entities:     {stats.total_entities}")
        lines.append(f"  Resolved Entities:  {stats.resolved_entities}")
        lines.append(f"  Merged Entities:    {stats.merged_entities}")
        lines.append(f"  Matches Found:      {stats.matches_found}")
        lines.append(f"  Conflicts Found:    {stats.conflicts_found}")
        lines.append(f"  Processing Time:    {stats.processing_time_ms:.1f} ms")
        lines.append(
            f"  Confidence:         {CONF_HIGH} {dist.high} high  "
            f"{CONF_MEDIUM} {dist.medium} medium  {CONF_LOW} {dist.low} low"
        )
        lines.append(DIVIDER_SECONDARY)
        lines.append("```")
        lines.append("")

        lines.append(self.format_entities(result.resolved_entities, "RESOLVED ENTITIES"))

        if result.merge_operations:
            lines.append("### MERGE OPERATIONS")
            lines.append("")
            for operation in result.merge_operations:
                lines.append(self._format_merge(operation))
            lines.append("")

        if result.conflicts:
            lines.append("### CONFLICTS")
            lines.append("")
            for conflict in result.conflicts:
                lines.append(self._format_conflict(conflict))
            lines.append("")

        if result.temporal_relationships:
            lines.append("### TEMPORAL RELATIONSHIPS")
            lines.append("")
            for rel in result.temporal_relationships:
                lines.append(
                    f"- {rel.source_entity.name} {rel.relationship} "
                    f"{rel.target_entity.name} ({rel.confidence:.2f})"
                )
            lines.append("")

        if self.mode == OutputMode.DETAILED and result.matches:
            lines.append("### MATCHES")
            lines.append("")
            for match in result.matches:
                lines.append(
                    f"- {match.source_entity.name} ~ {match.target_entity.name}: "
                    f"{match.similarity_score:.2f} ({match.match_type.value}, "
                    f"confidence {match.confidence:.2f})"
                )
                for reason in match.reasons:
                    lines.append(f"  - {reason.description}")
            lines.append("")

        if result.errors:
            lines.append("### PROCESSING ERRORS")
            lines.append("")
            for error in result.errors:
                lines.append(f"- {error}")
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"

    def format_entities(self, entities: list[Entity], title: str = "ENTITIES") -> str:
        """Format an entity list, one line per entity."""
        lines = [f"### {title}", ""]
        if not entities:
            lines.append("*No entities.*")
            lines.append("")
            return "\n".join(lines)

        for entity in entities[:MAX_LISTED_ENTITIES]:
            indicator = confidence_indicator(entity.confidence)
            line = (
                f"{indicator} **{entity.name}** ({entity.type.value}, "
                f"confidence {entity.confidence:.2f})"
            )
            if entity.resolved:
                line += " [merged]"
            lines.append(line)
            if entity.aliases:
                lines.append(f"   aka {', '.join(entity.aliases)}")

        remaining = len(entities) - MAX_LISTED_ENTITIES
        if remaining > 0:
            lines.append(f"*...and {remaining} more entities*")
        lines.append("")
        return "\n".join(lines)

    def format_similarity(self, breakdown: SimilarityBreakdown) -> str:
        """Format a per-scorer name comparison."""
        lines = ["```", DIVIDER_SECONDARY, f"{'NAME COMPARISON':^55}", DIVIDER_SECONDARY]
        lines.append(f"  A: {breakdown.name_a}  ->  '{breakdown.normalized_a}'")
        lines.append(f"  B: {breakdown.name_b}  ->  '{breakdown.normalized_b}'")
        lines.append(DIVIDER_SECONDARY)
        lines.append(f"  Edit Distance:      {breakdown.edit_distance:.3f}")
        lines.append(f"  Token Jaccard:      {breakdown.token_jaccard:.3f}")
        lines.append(f"  Containment:        {breakdown.containment:.3f}")
        lines.append(f"  Semantic:           {breakdown.semantic:.3f}")
        lines.append(
            f"  Phonetic:           {breakdown.phonetic:.3f} "
            f"({breakdown.soundex_a} / {breakdown.soundex_b})"
        )
        lines.append(DIVIDER_SECONDARY)
        lines.append(f"  SCORE: {breakdown.score:.3f} (decided by {breakdown.rule})")
        lines.append("```")
        return "\n".join(lines) + "\n"

    def _format_merge(self, operation: MergeOperation) -> str:
        names = ", ".join(e.name for e in operation.merged_entities)
        return (
            f"- **{operation.primary_entity.name}** <- {names} "
            f"({operation.strategy.value}, confidence {operation.confidence:.2f})"
        )

    def _format_conflict(self, conflict: ResolutionConflict) -> str:
        names = ", ".join(e.name for e in conflict.entities)
        return (
            f"- `{conflict.conflict_type.value}`: {names}\n"
            f"  {conflict.description} -> recommend {conflict.resolution_strategy.value}"
        )


__all__ = [
    "OutputFormatter",
    "OutputMode",
    "CONF_HIGH",
    "CONF_MEDIUM",
    "CONF_LOW",
    "confidence_indicator",
]

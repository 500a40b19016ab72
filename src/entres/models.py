"""Pydantic models for entity resolution."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
)

from entres.text import normalize_text

if TYPE_CHECKING:
    from entres.config import Settings

DEFAULT_CONFIDENCE = 0.5

# Confidence distribution bucket boundaries
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into [0.0, 1.0].

    Rounded to 6 places so repeated +0.1 boosts land on the expected bucket
    boundaries (0.7 + 0.1 is 0.7999999999999999 in binary floating point).
    """
    return round(max(0.0, min(1.0, value)), 6)


class EntityType(str, Enum):
    """Closed set of entity kinds."""

    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    EVENT = "event"
    PRODUCT = "product"
    CONCEPT = "concept"
    UNKNOWN = "unknown"


class MatchType(str, Enum):
    """Discrete classification of an entity match."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    ALIAS = "alias"
    PARTIAL = "partial"
    PHONETIC = "phonetic"


class ReasonType(str, Enum):
    """Factor that contributed to a match score."""

    NAME_SIMILARITY = "name_similarity"
    TYPE_MATCH = "type_match"
    ALIAS_MATCH = "alias_match"
    PHONETIC_MATCH = "phonetic_match"


class MergeStrategy(str, Enum):
    """Strategy recorded on a merge operation."""

    HIGHEST_CONFIDENCE = "highest_confidence"
    MOST_RECENT = "most_recent"
    COMPOSITE = "composite"
    MANUAL_REVIEW = "manual_review"


class ConflictType(str, Enum):
    """Kind of ambiguity the planner declined to resolve."""

    AMBIGUOUS_MATCH = "ambiguous_match"
    TYPE_MISMATCH = "type_mismatch"
    CONFLICTING_METADATA = "conflicting_metadata"
    LOW_CONFIDENCE = "low_confidence"


class ConflictResolutionStrategy(str, Enum):
    """Recommended disposition for a conflict. Never applied automatically."""

    PREFER_HIGHER_CONFIDENCE = "prefer_higher_confidence"
    MANUAL_REVIEW = "manual_review"
    KEEP_SEPARATE = "keep_separate"
    MERGE_WITH_WARNING = "merge_with_warning"


class TemporalRelationType(str, Enum):
    """Temporal relation between two entities inferred from their context."""

    TEMPORAL_SEQUENCE = "temporal_sequence"
    TEMPORAL_OVERLAP = "temporal_overlap"


class EntityMetadata(BaseModel):
    """Metadata attached to an entity.

    The recognized fields are typed; anything else a caller supplies is kept
    as an extra field and carried through untouched.

    Attributes:
        source: Where the entity came from ("verified" earns a confidence boost).
        context: Surrounding text the entity was extracted from.
        verified: True when an upstream check confirmed the entity.
        confidence_boosted: Set once the evidence boost has been applied.
        merge_operation: True on entities produced by a merge.
        merged_count: Number of entities collapsed into this one.
        merge_strategy: Strategy of the merge that produced this entity.
        merged_from: Ids of the entities collapsed into this one.
    """

    model_config = ConfigDict(
        extra="allow",
        validate_assignment=True,
    )

    source: str | None = None
    context: str | None = None
    verified: bool | None = None
    confidence_boosted: bool = False
    merge_operation: bool | None = None
    merged_count: int | None = None
    merge_strategy: MergeStrategy | None = None
    merged_from: list[str] | None = None


class Entity(BaseModel):
    """A candidate or resolved real-world reference."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str | None = None
    name: str = Field(min_length=1)
    type: EntityType = EntityType.UNKNOWN
    confidence: float = DEFAULT_CONFIDENCE
    aliases: list[str] = Field(default_factory=list)
    metadata: EntityMetadata = Field(default_factory=EntityMetadata)
    resolved: bool = False
    resolved_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def normalized_name(self) -> str:
        """Comparison form of the name, always derived from the current name."""
        return normalize_text(self.name)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Any:
        """Map missing or unrecognized type labels to UNKNOWN."""
        if v is None:
            return EntityType.UNKNOWN
        if isinstance(v, str) and not isinstance(v, EntityType):
            label = v.strip().lower()
            if label not in {t.value for t in EntityType}:
                return EntityType.UNKNOWN
            return label
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def default_confidence(cls, v: Any) -> Any:
        """Treat a missing confidence as the default."""
        return DEFAULT_CONFIDENCE if v is None else v

    @field_validator("confidence")
    @classmethod
    def clamp(cls, v: float) -> float:
        """Keep confidence inside [0, 1]."""
        if math.isnan(v):
            return DEFAULT_CONFIDENCE
        return clamp_confidence(v)

    @field_validator("aliases", mode="before")
    @classmethod
    def dedupe_aliases(cls, v: Any) -> Any:
        """Drop blank aliases and duplicates, keeping first occurrence."""
        if v is None:
            return []
        if isinstance(v, (list, tuple, set, frozenset)):
            seen: list[Any] = []
            for alias in v:
                if isinstance(alias, str):
                    alias = alias.strip()
                    if not alias:
                        continue
                if alias not in seen:
                    seen.append(alias)
            return seen
        return v

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v: Any) -> Any:
        """Treat a null metadata map as empty."""
        return EntityMetadata() if v is None else v

    @field_serializer("resolved_at")
    def serialize_dt(self, dt: datetime | None) -> str | None:
        """Serialize datetime to ISO 8601 format with timezone."""
        return dt.isoformat() if dt is not None else None

    @property
    def all_names(self) -> list[str]:
        """Name followed by every alias."""
        return [self.name, *self.aliases]


class MatchReason(BaseModel):
    """One factor contributing to a match score."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: ReasonType
    score: float = Field(ge=0.0, le=1.0)
    description: str


class EntityMatch(BaseModel):
    """A scored candidate relationship between two entities.

    Attributes:
        source_entity: Earlier entity of the pair (by input position).
        target_entity: Later entity of the pair.
        similarity_score: Weighted multi-factor score (0.0 to 1.0).
        match_type: Discrete classification of the score.
        confidence: Never higher than the score or either entity's confidence.
        reasons: Factors that contributed, for debugging only.
    """

    source_entity: Entity
    target_entity: Entity
    similarity_score: float = Field(ge=0.0, le=1.0)
    match_type: MatchType
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: list[MatchReason] = Field(default_factory=list)

    @property
    def entity_ids(self) -> tuple[str, str]:
        """Ids of both sides of the match."""
        return (str(self.source_entity.id), str(self.target_entity.id))


class MergeOperation(BaseModel):
    """Decision to collapse two or more entities into one."""

    primary_entity: Entity
    merged_entities: list[Entity] = Field(min_length=2)
    confidence: float = Field(ge=0.0, le=1.0)
    strategy: MergeStrategy = MergeStrategy.HIGHEST_CONFIDENCE

    @property
    def merged_ids(self) -> list[str]:
        return [str(e.id) for e in self.merged_entities]


class ResolutionConflict(BaseModel):
    """Ambiguity flagged for downstream review."""

    model_config = ConfigDict(str_strip_whitespace=True)

    entities: list[Entity]
    conflict_type: ConflictType
    description: str
    resolution_strategy: ConflictResolutionStrategy = (
        ConflictResolutionStrategy.PREFER_HIGHER_CONFIDENCE
    )


class TemporalRelationship(BaseModel):
    """Temporal ordering or overlap between two entities."""

    source_entity: Entity
    target_entity: Entity
    type: TemporalRelationType
    relationship: str
    confidence: float = Field(ge=0.0, le=1.0)


class ConfidenceDistribution(BaseModel):
    """Entity counts per confidence bucket."""

    high: int = 0  # >= 0.8
    medium: int = 0  # 0.5 - 0.79
    low: int = 0  # < 0.5


class ResolutionStatistics(BaseModel):
    """Read-only summary of a resolution run."""

    model_config = ConfigDict(frozen=True)

    total_entities: int
    resolved_entities: int
    merged_entities: int
    conflicts_found: int
    matches_found: int = 0
    excluded_entities: int = 0
    processing_time_ms: float = 0.0
    confidence_distribution: ConfidenceDistribution = Field(
        default_factory=ConfidenceDistribution
    )


class EntityResolutionOptions(BaseModel):
    """Tuning knobs for a resolution run.

    Attributes:
        similarity_threshold: Minimum score to form a candidate match.
        confidence_threshold: Minimum match confidence to actually merge.
        max_merge_candidates: Advisory cap for callers pre-filtering candidates.
        enable_phonetic_matching: Include the Soundex scorer.
        enable_semantic_matching: Reserved; has no effect.
        merge_strategy: Recorded on each merge operation.
        conflict_resolution: Recorded on each conflict.
        enable_confidence_boost: Apply the evidence boost after normalization.
        merge_confidence_boost: Added to the primary's confidence on merge.
        detect_temporal_relationships: Report temporal relations from context.
    """

    model_config = ConfigDict(validate_assignment=True)

    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_merge_candidates: int = Field(default=5, ge=1)
    enable_phonetic_matching: bool = True
    enable_semantic_matching: bool = False
    merge_strategy: MergeStrategy = MergeStrategy.HIGHEST_CONFIDENCE
    conflict_resolution: ConflictResolutionStrategy = (
        ConflictResolutionStrategy.PREFER_HIGHER_CONFIDENCE
    )
    enable_confidence_boost: bool = True
    merge_confidence_boost: float = Field(default=0.1, ge=0.0, le=1.0)
    detect_temporal_relationships: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> EntityResolutionOptions:
        """Build options from configured defaults."""
        return cls(
            similarity_threshold=settings.similarity_threshold,
            confidence_threshold=settings.confidence_threshold,
            max_merge_candidates=settings.max_merge_candidates,
            enable_phonetic_matching=settings.enable_phonetic_matching,
            enable_semantic_matching=settings.enable_semantic_matching,
            merge_strategy=settings.merge_strategy,
            conflict_resolution=settings.conflict_resolution,
            enable_confidence_boost=settings.enable_confidence_boost,
            merge_confidence_boost=settings.merge_confidence_boost,
            detect_temporal_relationships=settings.detect_temporal_relationships,
        )


class EntityResolutionRequest(BaseModel):
    """Input to a resolution run."""

    entities: list[Entity]
    options: EntityResolutionOptions | None = None


class ResolutionResult(BaseModel):
    """Output of a resolution run."""

    resolved_entities: list[Entity] = Field(default_factory=list)
    merge_operations: list[MergeOperation] = Field(default_factory=list)
    conflicts: list[ResolutionConflict] = Field(default_factory=list)
    statistics: ResolutionStatistics
    matches: list[EntityMatch] = Field(default_factory=list)
    temporal_relationships: list[TemporalRelationship] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")


__all__ = [
    "DEFAULT_CONFIDENCE",
    "HIGH_CONFIDENCE",
    "MEDIUM_CONFIDENCE",
    "clamp_confidence",
    "ConfidenceDistribution",
    "ConflictResolutionStrategy",
    "ConflictType",
    "Entity",
    "EntityMatch",
    "EntityMetadata",
    "EntityResolutionOptions",
    "EntityResolutionRequest",
    "EntityType",
    "MatchReason",
    "MatchType",
    "MergeOperation",
    "MergeStrategy",
    "ReasonType",
    "ResolutionConflict",
    "ResolutionResult",
    "ResolutionStatistics",
    "TemporalRelationType",
    "TemporalRelationship",
]

"""Entity resolution pipeline.

Provides normalization, similarity scoring, pairwise matching, greedy merge
planning, conflict detection and resolution of candidate entities.
"""

from entres.resolution.applier import apply_resolution
from entres.resolution.base import (
    EntityProcessingError,
    EntityValidationError,
    IdGenerator,
    ResolutionError,
    uuid_id_generator,
)
from entres.resolution.conflicts import detect_conflicts
from entres.resolution.engine import EntityResolutionEngine, resolve_entities
from entres.resolution.matcher import find_matches
from entres.resolution.normalizer import boost_confidence, normalize
from entres.resolution.planner import plan_merges
from entres.resolution.similarity import (
    name_similarity,
    phonetic_similarity,
    similarity_breakdown,
    soundex,
)
from entres.resolution.statistics import calculate_statistics
from entres.resolution.temporal import detect_temporal_relationships

__all__ = [
    # Engine exports
    "EntityResolutionEngine",
    "resolve_entities",
    # Pipeline stages
    "apply_resolution",
    "boost_confidence",
    "calculate_statistics",
    "detect_conflicts",
    "detect_temporal_relationships",
    "find_matches",
    "normalize",
    "plan_merges",
    # Scorers
    "name_similarity",
    "phonetic_similarity",
    "similarity_breakdown",
    "soundex",
    # Errors
    "EntityProcessingError",
    "EntityValidationError",
    "IdGenerator",
    "ResolutionError",
    "uuid_id_generator",
]

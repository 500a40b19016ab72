"""Pattern-based candidate extraction from free text.

A best-effort heuristic, not NLP: capitalized word pairs become people,
names ending in a corporate or institutional suffix become organizations,
and "City, ST" becomes a location. Each text span yields at most one
candidate; organizations win over locations, which win over people.
"""

import logging
import re

from entres.config import Settings, get_settings
from entres.models import (
    Entity,
    EntityMetadata,
    EntityResolutionOptions,
    EntityResolutionRequest,
    EntityType,
)
from entres.resolution.base import EntityValidationError, IdGenerator, uuid_id_generator
from entres.resolution.engine import EntityResolutionEngine
from entres.resolution.normalizer import normalize

logger = logging.getLogger(__name__)

EXTRACTION_SOURCE = "pattern_extraction"
CONTEXT_WINDOW = 80  # characters kept on each side of a match

PERSON_CONFIDENCE = 0.8
ORGANIZATION_CONFIDENCE = 0.85
LOCATION_CONFIDENCE = 0.75

_CAP_WORDS = r"[A-Z][a-zA-Z&]*(?: [A-Z][a-zA-Z&]*)*"

ORGANIZATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b{_CAP_WORDS} (?:Inc\.?|Corporation|Corp\.?|LLC|Ltd\.?|Company|Co\.)(?!\w)"),
    re.compile(rf"\b{_CAP_WORDS} (?:University|College|Institute)\b"),
    re.compile(rf"\b(?:University|College|Institute) of {_CAP_WORDS}\b"),
    re.compile(rf"\b{_CAP_WORDS} (?:Bank|Hospital|School)\b"),
)

LOCATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b[A-Z][a-z]+(?: [A-Z][a-z]+)*, [A-Z]{2}\b"),
)

# Capitalized sentence openers that are never part of a person's name
_LEADING_STOPWORDS = (
    "The", "A", "An", "In", "On", "At", "This", "That", "Yesterday", "Today", "Tomorrow",
)
_NOT_OPENER = r"(?!(?:" + "|".join(_LEADING_STOPWORDS) + r")\b)"

PERSON_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:Dr|Mr|Ms|Mrs|Prof)\. [A-Z][a-z]+ [A-Z][a-z]+\b"),
    re.compile(rf"\b{_NOT_OPENER}[A-Z][a-z]+ [A-Z]\. [A-Z][a-z]+\b"),
    re.compile(rf"\b{_NOT_OPENER}[A-Z][a-z]+ [A-Z][a-z]+\b"),
)


def validate_text(text: object, max_length: int) -> str:
    """Validate raw text for extraction.

    Raises:
        EntityValidationError: If text is missing, not a string, blank, or
            longer than ``max_length``.
    """
    if text is None:
        raise EntityValidationError("Text is required", field="text")
    if not isinstance(text, str):
        raise EntityValidationError(
            f"Text must be a string, got {type(text).__name__}", field="text"
        )
    if not text.strip():
        raise EntityValidationError("Text is empty", field="text")
    if len(text) > max_length:
        raise EntityValidationError(f"Text exceeds {max_length} characters", field="text")
    return text


def _context(text: str, start: int, end: int) -> str:
    return text[max(0, start - CONTEXT_WINDOW) : end + CONTEXT_WINDOW].strip()


def extract_entities(
    text: str,
    id_generator: IdGenerator = uuid_id_generator,
) -> list[Entity]:
    """Extract normalized candidate entities from text.

    Args:
        text: Free text.
        id_generator: Produces ids for the extracted entities.

    Returns:
        Candidates in order of appearance.
    """
    passes: list[tuple[EntityType, float, tuple[re.Pattern[str], ...]]] = [
        (EntityType.ORGANIZATION, ORGANIZATION_CONFIDENCE, ORGANIZATION_PATTERNS),
        (EntityType.LOCATION, LOCATION_CONFIDENCE, LOCATION_PATTERNS),
        (EntityType.PERSON, PERSON_CONFIDENCE, PERSON_PATTERNS),
    ]

    taken: list[tuple[int, int]] = []
    found: list[tuple[int, Entity]] = []

    for entity_type, confidence, patterns in passes:
        for pattern in patterns:
            for m in pattern.finditer(text):
                start, end = m.span()
                if any(start < t_end and t_start < end for t_start, t_end in taken):
                    continue
                name = m.group(0).strip()
                taken.append((start, end))
                entity = Entity(
                    name=name,
                    type=entity_type,
                    confidence=confidence,
                    metadata=EntityMetadata(
                        source=EXTRACTION_SOURCE,
                        context=_context(text, start, end),
                        extraction_method="pattern_based",
                        pattern=entity_type.value,
                    ),
                )
                found.append((start, normalize(entity, id_generator)))

    found.sort(key=lambda item: item[0])
    entities = [entity for _, entity in found]
    logger.debug(f"Extracted {len(entities)} candidate entities")
    return entities


def extract_and_resolve(
    raw_text: str,
    options: EntityResolutionOptions | None = None,
    settings: Settings | None = None,
    id_generator: IdGenerator = uuid_id_generator,
) -> list[Entity]:
    """Extract candidates from text and resolve them.

    Args:
        raw_text: Free text.
        options: Resolution options (configured defaults when None).
        settings: Optional Settings instance.
        id_generator: Produces ids for the extracted entities.

    Returns:
        Resolved entities; empty when nothing was extracted.

    Raises:
        EntityValidationError: If the text is invalid.
    """
    settings = settings or get_settings()
    text = validate_text(raw_text, settings.max_field_length)

    candidates = extract_entities(text, id_generator)
    if not candidates:
        logger.info("No entities found in text")
        return []

    engine = EntityResolutionEngine(settings=settings, id_generator=id_generator)
    result = engine.resolve(EntityResolutionRequest(entities=candidates, options=options))
    return result.resolved_entities


__all__ = [
    "extract_and_resolve",
    "extract_entities",
    "validate_text",
]

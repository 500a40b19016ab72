"""FastMCP server for entres entity resolution tools."""

import logging
from typing import Any

from fastmcp import FastMCP

from entres.config import configure_logging, get_settings
from entres.extraction import extract_entities as extract_candidates
from entres.extraction import validate_text
from entres.models import (
    EntityResolutionOptions,
    EntityResolutionRequest,
    MergeStrategy,
)
from entres.output import OutputFormatter, OutputMode
from entres.resolution import EntityResolutionEngine, EntityValidationError, similarity_breakdown

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("entres")

# Global instances (initialized on first use)
_engine: EntityResolutionEngine | None = None
_formatter: OutputFormatter | None = None


def _get_engine() -> EntityResolutionEngine:
    global _engine
    if _engine is None:
        _engine = EntityResolutionEngine()
    return _engine


def _get_formatter() -> OutputFormatter:
    global _formatter
    if _formatter is None:
        _formatter = OutputFormatter()
    return _formatter


def _invalid_request(e: EntityValidationError) -> str:
    field = f"\n\n**Field:** `{e.field}`" if e.field else ""
    return (
        f"## Invalid Request\n\n"
        f"**What happened:** {e.message}{field}\n\n"
        f"**Suggestions:**\n"
        f"- Give every entity a non-empty `name`\n"
        f"- Use unique `id` values or omit them"
    )


def _build_options(
    similarity_threshold: float | None,
    confidence_threshold: float | None,
    enable_phonetic_matching: bool | None,
    merge_strategy: str | None,
) -> EntityResolutionOptions:
    """Configured defaults with any per-call overrides applied."""
    options = _get_engine().default_options()
    overrides: dict[str, Any] = {}
    if similarity_threshold is not None:
        overrides["similarity_threshold"] = similarity_threshold
    if confidence_threshold is not None:
        overrides["confidence_threshold"] = confidence_threshold
    if enable_phonetic_matching is not None:
        overrides["enable_phonetic_matching"] = enable_phonetic_matching
    if merge_strategy is not None:
        overrides["merge_strategy"] = MergeStrategy(merge_strategy.strip().lower())
    if not overrides:
        return options
    return EntityResolutionOptions.model_validate({**options.model_dump(), **overrides})


@mcp.tool()
async def resolve_entities(
    entities: list[dict[str, Any]],
    similarity_threshold: float | None = None,
    confidence_threshold: float | None = None,
    enable_phonetic_matching: bool | None = None,
    merge_strategy: str | None = None,
    detailed: bool = False,
) -> str:
    """Deduplicate and merge candidate entities.

    Each entity is an object with a required `name` and optional `id`,
    `type` (person, organization, location, event, product, concept),
    `confidence` (0-1), `aliases` and `metadata`.

    Args:
        entities: Candidate entities to resolve.
        similarity_threshold: Minimum score (0-1) to consider two entities a match.
        confidence_threshold: Minimum match confidence (0-1) to merge.
        enable_phonetic_matching: Include sound-alike name matching.
        merge_strategy: highest_confidence, most_recent, composite or manual_review.
        detailed: Include every scored match with its reasons.

    Returns:
        Resolution report with merged entities, conflicts and statistics.
    """
    settings = get_settings()
    logger.info(f"resolve_entities called with {len(entities)} entities")

    if len(entities) > settings.max_entities_per_request:
        return (
            f"## Too Many Entities\n\n"
            f"Received {len(entities)} entities; the limit is "
            f"{settings.max_entities_per_request} per request.\n\n"
            f"Split the input into smaller batches."
        )

    try:
        options = _build_options(
            similarity_threshold,
            confidence_threshold,
            enable_phonetic_matching,
            merge_strategy,
        )
        result = _get_engine().resolve(
            {"entities": entities, "options": options.model_dump()}
        )
    except EntityValidationError as e:
        logger.warning(f"Invalid resolution request: {e.message}")
        return _invalid_request(e)
    except ValueError as e:
        logger.warning(f"Invalid resolution options: {e}")
        return (
            f"## Invalid Options\n\n"
            f"**What happened:** {e}\n\n"
            f"Thresholds must be between 0 and 1 and merge_strategy must be one of "
            f"{', '.join(s.value for s in MergeStrategy)}."
        )
    except Exception as e:
        logger.exception(f"Unexpected error resolving entities: {e}")
        return (
            "## Error\n\n"
            "An unexpected error occurred while resolving entities.\n\n"
            "Please try again later."
        )

    mode = OutputMode.DETAILED if detailed else OutputMode.SUMMARY
    return OutputFormatter(mode).format_resolution(result)


@mcp.tool()
async def extract_entities(text: str, resolve: bool = True) -> str:
    """Extract people, organizations and locations from free text.

    Extraction is pattern based: capitalized names, company and institution
    suffixes, and "City, ST" locations.

    Args:
        text: Text to scan.
        resolve: Deduplicate the extracted entities before reporting.

    Returns:
        Extracted (and optionally resolved) entities.
    """
    settings = get_settings()
    formatter = _get_formatter()

    try:
        text = validate_text(text, settings.max_field_length)
        candidates = extract_candidates(text)
        logger.info(f"Extracted {len(candidates)} candidates from {len(text)} chars")

        if not candidates:
            return "## No Entities Found\n\nNo names, organizations or locations were recognized."

        if not resolve:
            return formatter.format_entities(candidates, "EXTRACTED ENTITIES")

        result = _get_engine().resolve(EntityResolutionRequest(entities=candidates))
        return formatter.format_resolution(result)

    except EntityValidationError as e:
        logger.warning(f"Invalid extraction request: {e.message}")
        return f"## Invalid Request\n\n**What happened:** {e.message}"
    except Exception as e:
        logger.exception(f"Unexpected error extracting entities: {e}")
        return (
            "## Error\n\n"
            "An unexpected error occurred while extracting entities.\n\n"
            "Please try again later."
        )


@mcp.tool()
async def compare_names(name_a: str, name_b: str) -> str:
    """Show how similar two names are and which rule decided the score.

    Args:
        name_a: First name.
        name_b: Second name.

    Returns:
        Per-scorer breakdown (edit distance, tokens, semantic, phonetic).
    """
    logger.info(f"Comparing names: {name_a!r} vs {name_b!r}")
    breakdown = similarity_breakdown(name_a, name_b)
    return _get_formatter().format_similarity(breakdown)


def main() -> None:
    """Run the entres MCP server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting entres MCP server")
    mcp.run()


if __name__ == "__main__":
    main()

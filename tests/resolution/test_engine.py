"""Tests for the EntityResolutionEngine."""

import logging
from collections.abc import Callable
from datetime import datetime

import pytest

from entres.config import Settings
from entres.models import (
    ConflictType,
    Entity,
    EntityResolutionOptions,
    EntityResolutionRequest,
    EntityType,
)
from entres.resolution.base import EntityValidationError
from entres.resolution.engine import EntityResolutionEngine, resolve_entities


@pytest.fixture
def engine(
    settings: Settings,
    id_generator: Callable[[], str],
    fixed_clock: Callable[[], datetime],
) -> EntityResolutionEngine:
    return EntityResolutionEngine(settings=settings, id_generator=id_generator, clock=fixed_clock)


class TestResolutionProperties:
    """End-to-end properties of a resolution run."""

    def test_exact_match_merge(self, engine: EntityResolutionEngine) -> None:
        """Two identical names collapse into one entity."""
        result = engine.resolve({"entities": [{"name": "John Smith"}, {"name": "John Smith"}]})

        assert len(result.resolved_entities) == 1
        (entity,) = result.resolved_entities
        assert entity.name == "John Smith"
        assert entity.aliases == []
        assert entity.metadata.merged_count == 2
        assert entity.resolved is True
        assert result.statistics.merged_entities == 2

    def test_abbreviation_merge(self, engine: EntityResolutionEngine) -> None:
        """An abbreviation merges into its expansion with high confidence."""
        result = engine.resolve(
            {
                "entities": [
                    {"name": "AI", "type": "concept"},
                    {"name": "Artificial Intelligence", "type": "concept"},
                ]
            }
        )

        (entity,) = result.resolved_entities
        assert entity.name == "Artificial Intelligence"
        assert entity.aliases == ["AI"]
        assert entity.confidence >= 0.8
        assert result.statistics.confidence_distribution.high == 1

    def test_no_spurious_merge(self, engine: EntityResolutionEngine) -> None:
        """Different types and names never match."""
        result = engine.resolve(
            {
                "entities": [
                    {"name": "Apple Inc", "type": "organization"},
                    {"name": "John Apple", "type": "person"},
                ]
            }
        )

        assert result.matches == []
        assert result.merge_operations == []
        assert len(result.resolved_entities) == 2

    def test_ambiguity_surfaced(self, engine: EntityResolutionEngine) -> None:
        """An entity matched twice with equal confidence yields a conflict."""
        result = engine.resolve(
            {
                "entities": [
                    {"id": "a", "name": "John Smith"},
                    {"id": "b", "name": "John Smith"},
                    {"id": "c", "name": "John Smith"},
                ]
            }
        )

        assert any(c.conflict_type == ConflictType.AMBIGUOUS_MATCH for c in result.conflicts)
        assert len(result.merge_operations) == 1
        assert [e.id for e in result.resolved_entities] == ["c", "a"]

    def test_invariants_on_mixed_input(self, engine: EntityResolutionEngine) -> None:
        """Monotonicity, exclusivity and confidence bounds hold together."""
        names = [
            "John Smith",
            "Jon Smith",
            "J. Smith",
            "Acme Corp",
            "Acme Corporation",
            "AI",
            "Artificial Intelligence",
            "Paris",
            "Microsoft",
        ]
        result = engine.resolve({"entities": [{"name": n, "confidence": 0.9} for n in names]})

        assert len(result.resolved_entities) <= len(names)
        merged_ids = [i for op in result.merge_operations for i in op.merged_ids]
        assert len(merged_ids) == len(set(merged_ids))
        for entity in result.resolved_entities:
            assert 0.0 <= entity.confidence <= 1.0
        for match in result.matches:
            assert 0.0 <= match.confidence <= 1.0
            assert match.similarity_score >= 0.7
        assert result.statistics.resolved_entities == len(result.resolved_entities)

    def test_input_not_mutated(self, engine: EntityResolutionEngine) -> None:
        """Callers' entities are left untouched."""
        entities = [Entity(name="John Smith"), Entity(name="John Smith")]

        engine.resolve(EntityResolutionRequest(entities=entities))

        assert all(e.id is None and e.confidence == 0.5 for e in entities)

    def test_deterministic_ids_and_timestamps(
        self, engine: EntityResolutionEngine, fixed_clock: Callable[[], datetime]
    ) -> None:
        """Injected collaborators make output reproducible."""
        result = engine.resolve({"entities": [{"name": "John Smith"}, {"name": "John Smith"}]})

        (entity,) = result.resolved_entities
        assert entity.id == "e1"
        assert entity.metadata.merged_from == ["e1", "e2"]
        assert entity.resolved_at == fixed_clock()

    def test_empty_request(self, engine: EntityResolutionEngine) -> None:
        """An empty list resolves to an empty result."""
        result = engine.resolve({"entities": []})

        assert result.resolved_entities == []
        assert result.statistics.total_entities == 0
        assert result.errors == []


class TestOptions:
    """Tests for option handling."""

    def test_request_options_override_defaults(self, engine: EntityResolutionEngine) -> None:
        """A strict threshold prevents the initials merge."""
        entities = [{"name": "J. Smith"}, {"name": "John Smith"}]

        default = engine.resolve({"entities": entities})
        strict = engine.resolve(
            {"entities": entities, "options": {"similarity_threshold": 0.95}}
        )

        assert len(default.resolved_entities) == 1
        assert len(strict.resolved_entities) == 2

    def test_settings_supply_defaults(self, id_generator: Callable[[], str]) -> None:
        """Without request options the engine uses its settings."""
        engine = EntityResolutionEngine(
            settings=Settings(enable_confidence_boost=False, merge_confidence_boost=0.0),
            id_generator=id_generator,
        )

        result = engine.resolve({"entities": [{"name": "John Smith"}, {"name": "John Smith"}]})

        (entity,) = result.resolved_entities
        assert entity.confidence == 0.5

    def test_default_options(self, engine: EntityResolutionEngine) -> None:
        """default_options mirrors settings."""
        assert engine.default_options() == EntityResolutionOptions()

    def test_temporal_relationships(self, engine: EntityResolutionEngine) -> None:
        """Temporal relationships are reported unless disabled."""
        entities = [
            {"name": "Acme Corp", "metadata": {"context": "before the merger"}},
            {"name": "Globex", "metadata": {"context": "after the merger"}},
        ]

        enabled = engine.resolve({"entities": entities})
        disabled = engine.resolve(
            {"entities": entities, "options": {"detect_temporal_relationships": False}}
        )

        assert [r.relationship for r in enabled.temporal_relationships] == ["precedes"]
        assert disabled.temporal_relationships == []


class TestValidation:
    """Tests for request validation."""

    def test_missing_request(self, engine: EntityResolutionEngine) -> None:
        """A null request is rejected."""
        with pytest.raises(EntityValidationError, match="required"):
            engine.resolve(None)

    def test_empty_name(self, engine: EntityResolutionEngine) -> None:
        """Blank names are rejected before any scoring."""
        with pytest.raises(EntityValidationError, match="name"):
            engine.resolve({"entities": [{"name": "Acme"}, {"name": "   "}]})

    def test_non_string_name(self, engine: EntityResolutionEngine) -> None:
        """Names must be strings."""
        with pytest.raises(EntityValidationError):
            engine.resolve({"entities": [{"name": 42}]})

    def test_unsupported_request_type(self, engine: EntityResolutionEngine) -> None:
        """Only models and dictionaries are accepted."""
        with pytest.raises(EntityValidationError, match="Unsupported"):
            engine.resolve("John Smith")  # type: ignore[arg-type]

    def test_length_caps(self, id_generator: Callable[[], str]) -> None:
        """Names, aliases and context are capped."""
        engine = EntityResolutionEngine(
            settings=Settings(max_field_length=10), id_generator=id_generator
        )

        with pytest.raises(EntityValidationError) as exc_info:
            engine.resolve({"entities": [{"name": "x" * 11}]})
        assert exc_info.value.field == "entities.0.name"

        with pytest.raises(EntityValidationError):
            engine.resolve({"entities": [{"name": "x", "aliases": ["y" * 11]}]})

        with pytest.raises(EntityValidationError):
            engine.resolve({"entities": [{"name": "x", "metadata": {"context": "z" * 11}}]})

    def test_duplicate_ids(self, engine: EntityResolutionEngine) -> None:
        """Ids must be unique within a request."""
        with pytest.raises(EntityValidationError, match="Duplicate"):
            engine.resolve(
                {"entities": [{"id": "a", "name": "Acme"}, {"id": "a", "name": "Globex"}]}
            )

    def test_blank_ids_are_not_duplicates(self, engine: EntityResolutionEngine) -> None:
        """Blank ids are treated as missing and replaced."""
        result = engine.resolve(
            {"entities": [{"id": "", "name": "Acme"}, {"id": "", "name": "Globex"}]}
        )

        assert [e.id for e in result.resolved_entities] == ["e1", "e2"]
        assert result.errors == []

    def test_invalid_options_rejected(self, engine: EntityResolutionEngine) -> None:
        """Out-of-range options reject the request."""
        with pytest.raises(EntityValidationError, match="similarity_threshold"):
            engine.resolve(
                {"entities": [{"name": "Acme"}], "options": {"similarity_threshold": 2}}
            )

    def test_missing_entities_list(self, engine: EntityResolutionEngine) -> None:
        """A request without an entity list is rejected."""
        with pytest.raises(EntityValidationError, match="list of entities"):
            engine.resolve({"options": {}})

    def test_validate_request_returns_model(self, engine: EntityResolutionEngine) -> None:
        """Raw dictionaries are coerced into the request model."""
        request = engine.validate_request(
            {"entities": [{"name": "Acme", "metadata": {"source": 5, "context": "ok"}}]}
        )

        assert isinstance(request, EntityResolutionRequest)
        assert request.entities[0].metadata.source is None
        assert request.entities[0].metadata.context == "ok"


class TestProcessingErrors:
    def test_bad_entity_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failing entity is excluded and reported; the rest still merge."""

        def broken_generator() -> str:
            raise RuntimeError("id service unavailable")

        engine = EntityResolutionEngine(settings=Settings(), id_generator=broken_generator)

        with caplog.at_level(logging.WARNING):
            result = engine.resolve(
                {
                    "entities": [
                        {"id": "a", "name": "John Smith"},
                        {"id": "b", "name": "John Smith"},
                        {"name": "Orphan"},
                    ]
                }
            )

        assert [e.name for e in result.resolved_entities] == ["John Smith", "Orphan"]
        assert result.resolved_entities[1].id is None
        assert len(result.errors) == 1
        assert "Orphan" in result.errors[0]
        assert result.statistics.excluded_entities == 1
        assert any("Excluding entity" in r.message for r in caplog.records)

    @pytest.mark.parametrize(
        "metadata",
        [
            {"context": {"nested": 1}},
            {"source": 5},
            {"verified": "maybe"},
            "not a mapping",
        ],
    )
    def test_malformed_metadata_isolated(
        self, engine: EntityResolutionEngine, metadata: object
    ) -> None:
        """Bad metadata excludes only its entity; the rest still merge."""
        result = engine.resolve(
            {
                "entities": [
                    {"name": "John Smith"},
                    {"name": "John Smith"},
                    {"id": "x", "name": "Bad", "metadata": metadata},
                ]
            }
        )

        assert len(result.merge_operations) == 1
        assert [e.name for e in result.resolved_entities] == ["John Smith", "Bad"]
        assert result.resolved_entities[1].resolved is False
        (error,) = result.errors
        assert error.startswith("[x]")
        assert "metadata" in error
        assert result.statistics.excluded_entities == 1
        assert all("x" not in m.entity_ids for m in result.matches)

    def test_malformed_metadata_keeps_valid_fields(
        self, engine: EntityResolutionEngine
    ) -> None:
        """Only the rejected metadata fields are dropped from the pass-through."""
        result = engine.resolve(
            {
                "entities": [
                    {
                        "name": "Bad",
                        "metadata": {"source": "crm", "verified": "maybe", "crm_id": 7},
                    }
                ]
            }
        )

        (entity,) = result.resolved_entities
        assert entity.metadata.source == "crm"
        assert entity.metadata.verified is None
        assert entity.metadata.model_dump()["crm_id"] == 7


class TestResolveEntitiesFunction:
    def test_uses_fresh_engine(self, id_generator: Callable[[], str]) -> None:
        """The module-level helper resolves a request."""
        result = resolve_entities(
            {"entities": [{"name": "Acme"}, {"name": "ACME"}]},
            settings=Settings(),
            id_generator=id_generator,
        )

        assert len(result.resolved_entities) == 1
        assert result.to_dict()["statistics"]["merged_entities"] == 2

    def test_logs_summary(self, caplog: pytest.LogCaptureFixture) -> None:
        """Runs are logged at INFO."""
        with caplog.at_level(logging.INFO):
            resolve_entities({"entities": [{"name": "Acme"}]}, settings=Settings())

        assert any("Resolving 1 entities" in r.message for r in caplog.records)

"""Tests for entity normalization and confidence boosting."""

from collections.abc import Callable

from entres.models import Entity, EntityType
from entres.resolution.normalizer import boost_confidence, is_verified, normalize


class TestNormalize:
    """Tests for normalize()."""

    def test_assigns_missing_id(self, id_generator: Callable[[], str]) -> None:
        """Entities without an id get one from the generator."""
        normalized = normalize(Entity(name="Acme"), id_generator)
        assert normalized.id == "e1"

    def test_keeps_existing_id(self, id_generator: Callable[[], str]) -> None:
        """Existing ids are never replaced."""
        normalized = normalize(Entity(id="acme-1", name="Acme"), id_generator)
        assert normalized.id == "acme-1"

    def test_does_not_mutate_input(self, id_generator: Callable[[], str]) -> None:
        """normalize returns a copy."""
        entity = Entity(name="Acme", aliases=["ACME Co"])
        normalized = normalize(entity, id_generator)
        normalized.aliases.append("Other")

        assert entity.id is None
        assert entity.aliases == ["ACME Co"]

    def test_idempotent(self, id_generator: Callable[[], str]) -> None:
        """Normalizing twice changes nothing."""
        entity = Entity(name="  Dr. John Smith ", confidence=0.7, aliases=["J. Smith"])
        once = normalize(entity, id_generator)

        assert normalize(once, id_generator) == once

    def test_normalized_name(self, id_generator: Callable[[], str]) -> None:
        """The comparison form of the name is exposed."""
        normalized = normalize(Entity(name="Acme, Inc."), id_generator)
        assert normalized.normalized_name == "acme inc"


class TestBoostConfidence:
    """Tests for the evidence boost."""

    def test_full_evidence_boost(self) -> None:
        """Every piece of evidence adds to confidence, capped at 1."""
        entity = Entity(
            name="Acme Corp",
            type=EntityType.ORGANIZATION,
            confidence=0.5,
            aliases=["Acme"],
            metadata={"verified": True},
        )

        boosted = boost_confidence(entity)

        assert boosted.confidence == 1.0
        assert boosted.metadata.confidence_boosted is True

    def test_partial_evidence_boost(self) -> None:
        """A descriptive name of known type adds 0.2."""
        entity = Entity(name="Artificial Intelligence", type="concept", confidence=0.5)
        assert boost_confidence(entity).confidence == 0.7

    def test_no_evidence_no_boost(self) -> None:
        """Short unknown names keep their confidence."""
        boosted = boost_confidence(Entity(name="AI", confidence=0.5))

        assert boosted.confidence == 0.5
        assert boosted.metadata.confidence_boosted is True

    def test_applied_once(self) -> None:
        """Boosting an already boosted entity is a no-op."""
        entity = Entity(name="Acme Corp", type="organization", confidence=0.5)
        once = boost_confidence(entity)

        assert boost_confidence(once) == once
        assert once.confidence == 0.7

    def test_verified_source(self) -> None:
        """A 'verified' source counts as verification."""
        entity = Entity(name="AI", metadata={"source": "verified"})

        assert is_verified(entity) is True
        assert boost_confidence(entity).confidence == 0.7

    def test_input_untouched(self) -> None:
        """The original entity keeps its confidence."""
        entity = Entity(name="Acme Corp", type="organization", confidence=0.5)
        boost_confidence(entity)

        assert entity.confidence == 0.5
        assert entity.metadata.confidence_boosted is False

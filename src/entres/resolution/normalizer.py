"""Entity normalization and evidence-based confidence boosting."""

import logging

from entres.models import Entity, EntityType, clamp_confidence
from entres.resolution.base import IdGenerator, uuid_id_generator

logger = logging.getLogger(__name__)

# Evidence boost increments
BOOST_DESCRIPTIVE_NAME = 0.1
BOOST_KNOWN_TYPE = 0.1
BOOST_HAS_ALIASES = 0.1
BOOST_VERIFIED = 0.2

# Names longer than this count as descriptive
DESCRIPTIVE_NAME_LENGTH = 3


def normalize(entity: Entity, id_generator: IdGenerator = uuid_id_generator) -> Entity:
    """Return a normalized copy of an entity.

    Assigns an id when missing and clamps confidence into [0, 1] (missing
    confidence defaults to 0.5). ``normalized_name`` is derived from the name
    on the model itself, so it is always current. The input entity is left
    untouched. Idempotent.

    Args:
        entity: Entity to normalize.
        id_generator: Source of ids for entities that lack one.

    Returns:
        A new Entity.
    """
    return entity.model_copy(
        update={
            "id": entity.id or id_generator(),
            "confidence": clamp_confidence(entity.confidence),
            "aliases": list(entity.aliases),
            "metadata": entity.metadata.model_copy(),
        }
    )


def is_verified(entity: Entity) -> bool:
    """Check whether upstream metadata marks the entity as verified."""
    return entity.metadata.verified is True or entity.metadata.source == "verified"


def boost_confidence(entity: Entity) -> Entity:
    """Return a copy of the entity with its evidence boost applied.

    Boosts:
    - +0.1 for a name longer than 3 characters
    - +0.1 for a known type
    - +0.1 for having aliases
    - +0.2 for verified metadata

    The boost is applied at most once per entity; already boosted entities
    are returned unchanged.
    """
    if entity.metadata.confidence_boosted:
        return entity

    boost = 0.0
    if len(entity.name) > DESCRIPTIVE_NAME_LENGTH:
        boost += BOOST_DESCRIPTIVE_NAME
    if entity.type != EntityType.UNKNOWN:
        boost += BOOST_KNOWN_TYPE
    if entity.aliases:
        boost += BOOST_HAS_ALIASES
    if is_verified(entity):
        boost += BOOST_VERIFIED

    boosted = clamp_confidence(entity.confidence + boost)
    if boost:
        logger.debug(
            f"Boosted confidence of '{entity.name}' {entity.confidence:.2f} -> {boosted:.2f}"
        )

    metadata = entity.metadata.model_copy(update={"confidence_boosted": True})
    return entity.model_copy(update={"confidence": boosted, "metadata": metadata})


__all__ = ["normalize", "boost_confidence", "is_verified"]

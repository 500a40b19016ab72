"""Tests for greedy merge planning."""

from entres.models import (
    Entity,
    EntityMatch,
    EntityResolutionOptions,
    MatchType,
    MergeStrategy,
)
from entres.resolution.planner import plan_merges


def _match(a: Entity, b: Entity, score: float, confidence: float | None = None) -> EntityMatch:
    return EntityMatch(
        source_entity=a,
        target_entity=b,
        similarity_score=score,
        match_type=MatchType.FUZZY,
        confidence=score if confidence is None else confidence,
    )


class TestPlanMerges:
    """Tests for plan_merges()."""

    def test_exclusive_claims(self) -> None:
        """An entity is merged at most once per run."""
        a, b, c, d = (Entity(id=i, name=i.upper()) for i in "abcd")
        matches = [_match(a, b, 0.9), _match(b, c, 0.85), _match(c, d, 0.8)]

        operations = plan_merges(matches)

        assert [op.merged_ids for op in operations] == [["a", "b"], ["c", "d"]]
        ids = [i for op in operations for i in op.merged_ids]
        assert len(ids) == len(set(ids))

    def test_not_transitive(self) -> None:
        """A~B and B~C do not merge all three."""
        a, b, c = (Entity(id=i, name=i.upper()) for i in "abc")

        operations = plan_merges([_match(a, b, 0.9), _match(b, c, 0.95)])

        assert len(operations) == 1
        assert operations[0].merged_ids == ["b", "c"]

    def test_processes_highest_score_first(self) -> None:
        """Unsorted input is visited best first."""
        a, b, c = (Entity(id=i, name=i.upper()) for i in "abc")

        operations = plan_merges([_match(a, b, 0.75), _match(a, c, 0.9)])

        assert operations[0].merged_ids == ["a", "c"]

    def test_skips_low_confidence(self) -> None:
        """Matches below the confidence threshold are not merged."""
        a, b = Entity(id="a", name="A"), Entity(id="b", name="B")

        operations = plan_merges(
            [_match(a, b, 0.9, confidence=0.4)],
            EntityResolutionOptions(confidence_threshold=0.5),
        )

        assert operations == []

    def test_low_confidence_match_does_not_claim(self) -> None:
        """A skipped match leaves both entities free for later matches."""
        a, b, c = (Entity(id=i, name=i.upper()) for i in "abc")

        operations = plan_merges([_match(a, b, 0.95, confidence=0.1), _match(a, c, 0.8)])

        assert [op.merged_ids for op in operations] == [["a", "c"]]

    def test_primary_is_higher_confidence(self) -> None:
        """The more confident side becomes primary."""
        a = Entity(id="a", name="AI", confidence=0.6)
        b = Entity(id="b", name="Artificial Intelligence", confidence=0.7)

        (operation,) = plan_merges([_match(a, b, 0.9, confidence=0.6)])

        assert operation.primary_entity.id == "b"

    def test_tie_keeps_source_as_primary(self) -> None:
        """Equal confidence keeps the earlier entity."""
        a = Entity(id="a", name="John Smith", confidence=0.6)
        b = Entity(id="b", name="John Smith", confidence=0.6)

        (operation,) = plan_merges([_match(a, b, 0.98, confidence=0.6)])

        assert operation.primary_entity.id == "a"

    def test_strategy_recorded(self) -> None:
        """The configured merge strategy is attached to every operation."""
        a, b = Entity(id="a", name="A"), Entity(id="b", name="B")

        (operation,) = plan_merges(
            [_match(a, b, 0.9)],
            EntityResolutionOptions(merge_strategy=MergeStrategy.COMPOSITE),
        )

        assert operation.strategy == MergeStrategy.COMPOSITE
        assert operation.confidence == 0.9

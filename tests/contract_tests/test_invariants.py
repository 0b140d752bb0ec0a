"""
Property Tests for Manuscript Engine Invariants

Universally quantified guarantees of the validator, diff engine and
version graph, checked over generated chapter tables.
"""

import pytest
from hypothesis import given, settings, strategies as st
from hypothesis.strategies import composite

from manuscript_engine.contracts.base import DependencyCycle, InvalidOrder
from manuscript_engine.contracts.chapters import (
    Chapter, ChapterMetadata, ChapterReference, DependencyDescriptor,
    PlotRole, ReferenceKind
)
from manuscript_engine.contracts.analysis import ConsistencyIssue
from manuscript_engine.diff import DiffEngine
from manuscript_engine.graph import VersionGraph
from manuscript_engine.topology import DependencyTopology
from manuscript_engine.validation import validate

from tests.fixtures import make_version

FACTS = ("secret", "weapon", "betrayal", "map")

# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

@composite
def references(draw, ids):
    return ChapterReference(
        target_chapter_id=draw(st.sampled_from(ids + ["ghost"])),
        kind=draw(st.sampled_from(ReferenceKind)),
        is_hard_requirement=draw(st.booleans()),
    )


@composite
def chapter_tables(draw, min_size=2, max_size=7):
    """Generates chapter tables with arbitrary (possibly broken) dependencies."""
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    ids = [f"ch{i}" for i in range(size)]
    chapters = {}
    for cid in ids:
        chapters[cid] = Chapter(
            chapter_id=cid,
            title=cid.upper(),
            dependencies=DependencyDescriptor.of(
                requires=draw(st.sets(st.sampled_from(FACTS), max_size=2)),
                introduces=draw(st.sets(st.sampled_from(FACTS), max_size=2)),
                references=draw(st.lists(references([i for i in ids if i != cid]), max_size=2)),
            ),
            metadata=ChapterMetadata(
                tension_level=draw(st.integers(min_value=1, max_value=10)),
                plot_role=draw(st.sampled_from(PlotRole)),
                act_number=draw(st.integers(min_value=1, max_value=3)),
                word_count=draw(st.integers(min_value=0, max_value=5000)),
            ),
            content_hash=f"hash_{cid}",
        )
    return chapters


@composite
def table_and_order(draw):
    chapters = draw(chapter_tables())
    order = draw(st.permutations(list(chapters)))
    return chapters, tuple(order)


@composite
def table_and_two_orders(draw):
    chapters = draw(chapter_tables())
    first = draw(st.permutations(list(chapters)))
    second = draw(st.permutations(list(chapters)))
    return chapters, tuple(first), tuple(second)


# =============================================================================
# VALIDATOR
# =============================================================================

class TestValidatorProperties:

    @given(table_and_order())
    def test_validate_is_deterministic(self, data):
        """Identical inputs yield identical, identically-ordered issues."""
        chapters, order = data
        assert validate(order, chapters) == validate(order, chapters)

    @given(table_and_order())
    def test_issues_are_sorted_and_unique(self, data):
        chapters, order = data
        issues = validate(order, chapters)

        keys = [ConsistencyIssue.sort_key(i) for i in issues]
        assert keys == sorted(keys)
        assert len({i.identity for i in issues}) == len(issues)

    @given(table_and_order())
    def test_positions_match_order(self, data):
        chapters, order = data
        for issue in validate(order, chapters):
            assert order[issue.position] == issue.chapter_id


# =============================================================================
# DIFF
# =============================================================================

class TestDiffProperties:

    @given(table_and_order())
    def test_diff_against_self_is_empty(self, data):
        chapters, order = data
        version = make_version("v", order, chapters)
        diff = DiffEngine().diff(version, version, chapters)

        assert diff.chapter_moves == ()
        assert diff.content_changes == ()
        assert diff.new_consistency_issues == ()
        assert diff.impact_score == 0

    @given(table_and_two_orders())
    def test_new_and_resolved_are_disjoint(self, data):
        chapters, first, second = data
        diff = DiffEngine().diff(
            make_version("v1", first, chapters),
            make_version("v2", second, chapters),
            chapters,
        )

        new_ids = {i.identity for i in diff.new_consistency_issues}
        resolved_ids = {i.identity for i in diff.resolved_consistency_issues}
        assert not new_ids & resolved_ids
        assert 0 <= diff.impact_score <= 100
        assert diff.impact_score == min(100, 10 * len(diff.chapter_moves))


# =============================================================================
# VERSION GRAPH
# =============================================================================

class TestGraphProperties:

    @given(table_and_order())
    def test_any_permutation_commits(self, data):
        chapters, order = data
        graph = VersionGraph(chapters.values())

        commit = graph.create_version(order, "Draft")

        assert graph.current_branch.head_version_id == commit.version.version_id
        assert commit.version.chapter_order == order

    @given(table_and_order(), st.data())
    def test_non_permutation_rejected(self, data, extra):
        chapters, order = data
        graph = VersionGraph(chapters.values())
        head = graph.create_version(order, "Draft").version.version_id

        mutation = extra.draw(st.sampled_from(["drop", "duplicate", "foreign"]))
        if mutation == "drop":
            bad = order[1:]
        elif mutation == "duplicate":
            bad = order + (order[0],)
        else:
            bad = order + ("stranger",)

        with pytest.raises(InvalidOrder):
            graph.create_version(bad, "Bad")
        assert graph.current_branch.head_version_id == head

    @given(table_and_two_orders())
    def test_preview_round_trip(self, data):
        chapters, first, second = data
        graph = VersionGraph(chapters.values())
        graph.create_version(first, "First")

        preview = graph.preview_reorder(second)
        commit = graph.create_version(second, "Second")

        assert preview.new_consistency_issues == commit.new_consistency_issues

    @settings(max_examples=50)
    @given(chapter_tables(), st.lists(st.integers(min_value=0, max_value=1000), min_size=1, max_size=6))
    def test_history_is_monotonic(self, chapters, steps):
        graph = VersionGraph(chapters.values())
        ids = list(chapters)
        created = []

        for step in steps:
            if created and step % 3 == 0:
                target = created[step % len(created)]
                created.append(graph.rollback(target.version_id).version)
            else:
                rotated = tuple(ids[step % len(ids):] + ids[:step % len(ids)])
                created.append(graph.create_version(rotated, f"Step {step}").version)

        for version in created:
            assert graph.get_version(version.version_id) == version
        assert graph.versions() == tuple(created)


# =============================================================================
# TOPOLOGY
# =============================================================================

class TestTopologyProperties:

    @given(table_and_order())
    def test_suggested_order_respects_every_edge(self, data):
        chapters, order = data
        topology = DependencyTopology(chapters)
        try:
            suggested = topology.suggest_order(order)
        except DependencyCycle:
            assert topology.find_cycles()
            return

        assert sorted(suggested) == sorted(chapters)
        position = {cid: i for i, cid in enumerate(suggested)}
        for before, after in topology.graph.edges:
            assert position[before] < position[after]

"""
Pacing Analyzer Tests
=====================

Pacing output is derived purely from chapter metadata in order.
The tension curve is the raw signal; no smoothing.
"""

from manuscript_engine.config import PacingConfig
from manuscript_engine.contracts.analysis import ActSpan, PaceAnalysis, PacingWarningKind
from manuscript_engine.contracts.chapters import PlotRole
from manuscript_engine.pacing import PacingAnalyzer, analyze

from tests.fixtures import THREE_ACT_ORDER, chapter, hard, table, three_act_table


class TestStructure:

    def test_three_act_shape(self):
        pace = analyze(THREE_ACT_ORDER, three_act_table())

        assert pace.tension_curve == (3, 4, 6, 7, 10, 4)
        assert pace.act1_end == 1
        assert pace.act3_start == 4
        assert pace.act2_midpoint == 2
        assert pace.exposition_load == 2 / 6

    def test_act_spans_follow_act_numbers(self):
        pace = analyze(THREE_ACT_ORDER, three_act_table())

        assert pace.act_spans == (
            ActSpan(1, 0, 1),
            ActSpan(2, 2, 3),
            ActSpan(3, 4, 5),
        )

    def test_empty_order(self):
        assert analyze((), {}) == PaceAnalysis.empty()

    def test_no_setup_opening_and_no_climax(self):
        chapters = table(chapter("a"), chapter("b"), chapter("c"), chapter("d"))
        pace = analyze(("a", "b", "c", "d"), chapters)

        assert pace.act1_end is None
        assert pace.act3_start is None
        assert pace.act2_midpoint == 2

    def test_reordering_moves_climax(self):
        chapters = three_act_table()
        pace = analyze(("c5", "c1", "c2", "c3", "c4", "c6"), chapters)

        assert pace.act3_start == 0
        assert pace.act1_end is None
        assert pace.hook_strength == 10


class TestHookStrength:

    def test_hook_is_opening_tension(self):
        pace = analyze(THREE_ACT_ORDER, three_act_table())
        assert pace.hook_strength == 3

    def test_hard_setup_reference_adds_bonus(self):
        chapters = table(chapter("o", tension=5, references=[hard("p")]), chapter("p"))
        assert analyze(("o", "p"), chapters).hook_strength == 7

    def test_hook_is_clamped(self):
        chapters = table(chapter("o", tension=9, references=[hard("p")]), chapter("p"))
        assert analyze(("o", "p"), chapters).hook_strength == 10

    def test_bonus_is_configurable(self):
        chapters = table(chapter("o", tension=5, references=[hard("p")]), chapter("p"))
        analyzer = PacingAnalyzer(PacingConfig(hook_setup_bonus=0))
        assert analyzer.analyze(("o", "p"), chapters).hook_strength == 5


class TestWarnings:

    def test_steep_tension_drop(self):
        pace = analyze(THREE_ACT_ORDER, three_act_table())

        assert len(pace.warnings) == 1
        warning = pace.warnings[0]
        assert warning.kind is PacingWarningKind.TENSION_DROP
        assert warning.position == 5
        assert warning.chapter_ids == ("c5", "c6")

    def test_sustained_low_tension(self):
        chapters = table(
            chapter("a", tension=2, role=PlotRole.SETUP),
            chapter("b", tension=1),
        )
        pace = analyze(("a", "b"), chapters)

        assert [w.kind for w in pace.warnings] == [PacingWarningKind.SUSTAINED_LOW_TENSION]

    def test_gentle_curve_has_no_warnings(self):
        chapters = table(chapter("a", tension=4), chapter("b", tension=6), chapter("c", tension=5))
        assert analyze(("a", "b", "c"), chapters).warnings == ()

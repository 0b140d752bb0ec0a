"""
Pacing Analyzer
===============

RESPONSIBILITY: Tension curve and act-structure landmarks for an order
ALLOWED INPUTS: A chapter order and the chapter table
OUTPUTS: PaceAnalysis

Pacing is ADVISORY, not load-bearing:
- An empty order yields an empty analysis, never an error
- The tension curve is the raw signal; no smoothing is applied
- act2_midpoint always has a value so callers never special-case "unknown"
"""

from __future__ import annotations
from typing import List, Mapping, Optional, Sequence, Tuple

from ..config import PacingConfig
from ..contracts.base import ChapterId
from ..contracts.chapters import Chapter, PlotRole
from ..contracts.analysis import (
    ActSpan, PaceAnalysis, PacingWarning, PacingWarningKind
)


class PacingAnalyzer:
    """Derives structure metrics from per-chapter metadata."""

    def __init__(self, config: Optional[PacingConfig] = None):
        self._config = config or PacingConfig()

    def analyze(
        self,
        order: Sequence[ChapterId],
        chapters: Mapping[ChapterId, Chapter]
    ) -> PaceAnalysis:
        if not order:
            return PaceAnalysis.empty()

        ordered = [chapters[cid] for cid in order]
        tension_curve = tuple(c.metadata.tension_level for c in ordered)

        act1_end = self._find_act1_end(ordered)
        act3_start = self._find_act3_start(ordered)
        if act1_end is not None and act3_start is not None:
            act2_midpoint = (act1_end + act3_start) // 2
        else:
            act2_midpoint = len(order) // 2

        expository = sum(
            1 for c in ordered
            if c.metadata.plot_role is PlotRole.SETUP or c.metadata.is_exposition
        )

        return PaceAnalysis(
            tension_curve=tension_curve,
            act1_end=act1_end,
            act2_midpoint=act2_midpoint,
            act3_start=act3_start,
            exposition_load=expository / len(order),
            hook_strength=self._hook_strength(ordered[0]),
            act_spans=self._act_spans(ordered),
            warnings=self._warnings(ordered),
        )

    @staticmethod
    def _find_act1_end(ordered: Sequence[Chapter]) -> Optional[int]:
        """Last index of the leading run of setup chapters."""
        act1_end = None
        for index, chapter in enumerate(ordered):
            if chapter.metadata.plot_role is not PlotRole.SETUP:
                break
            act1_end = index
        return act1_end

    @staticmethod
    def _find_act3_start(ordered: Sequence[Chapter]) -> Optional[int]:
        for index, chapter in enumerate(ordered):
            if chapter.metadata.plot_role is PlotRole.CLIMAX:
                return index
        return None

    def _hook_strength(self, opening: Chapter) -> int:
        # An opening that owes the reader a hard setup payoff is a hook
        strength = opening.metadata.tension_level
        if opening.hard_setup_references():
            strength += self._config.hook_setup_bonus
        return max(self._config.tension_min, min(self._config.tension_max, strength))

    @staticmethod
    def _act_spans(ordered: Sequence[Chapter]) -> Tuple[ActSpan, ...]:
        spans: List[ActSpan] = []
        start = 0
        for index in range(1, len(ordered) + 1):
            if (
                index == len(ordered)
                or ordered[index].metadata.act_number != ordered[start].metadata.act_number
            ):
                spans.append(ActSpan(
                    act_number=ordered[start].metadata.act_number,
                    first_index=start,
                    last_index=index - 1,
                ))
                start = index
        return tuple(spans)

    def _warnings(self, ordered: Sequence[Chapter]) -> Tuple[PacingWarning, ...]:
        warnings: List[PacingWarning] = []
        for index in range(1, len(ordered)):
            previous, current = ordered[index - 1], ordered[index]
            before = previous.metadata.tension_level
            after = current.metadata.tension_level
            pair = (previous.chapter_id, current.chapter_id)

            if before - after > self._config.tension_drop_threshold:
                warnings.append(PacingWarning(
                    kind=PacingWarningKind.TENSION_DROP,
                    position=index,
                    chapter_ids=pair,
                    description=(
                        f"Tension drops from {before} to {after} between "
                        f"'{previous.title}' and '{current.title}'"
                    ),
                ))

            low = self._config.low_tension_below
            if before < low and after < low:
                warnings.append(PacingWarning(
                    kind=PacingWarningKind.SUSTAINED_LOW_TENSION,
                    position=index,
                    chapter_ids=pair,
                    description=(
                        f"'{previous.title}' and '{current.title}' are both "
                        f"low-tension chapters"
                    ),
                ))
        return tuple(warnings)


def analyze(
    order: Sequence[ChapterId],
    chapters: Mapping[ChapterId, Chapter]
) -> PaceAnalysis:
    """Module-level convenience wrapper using the default pacing config."""
    return PacingAnalyzer().analyze(order, chapters)

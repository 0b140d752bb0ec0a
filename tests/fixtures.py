"""
Manuscript Fixtures

Explicit chapter tables for engine tests.

RULES:
======
1. All fixtures are EXPLICIT, not random
2. Each table documents the dependency it exists to exercise
3. Clocks are deterministic
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional

from manuscript_engine.contracts.base import ContentSignature
from manuscript_engine.contracts.chapters import (
    Chapter, ChapterMetadata, ChapterReference, DependencyDescriptor,
    PlotRole, ReferenceKind
)
from manuscript_engine.contracts.analysis import AnalysisResult
from manuscript_engine.contracts.versions import ChapterSnapshot, Version
from manuscript_engine.pacing import analyze
from manuscript_engine.validation import validate


# =============================================================================
# BUILDERS
# =============================================================================

def chapter(
    chapter_id: str,
    requires: Iterable[str] = (),
    introduces: Iterable[str] = (),
    references: Iterable[ChapterReference] = (),
    tension: int = 5,
    role: PlotRole = PlotRole.RISING,
    act: int = 1,
    words: int = 1000,
    exposition: bool = False,
    content_hash: Optional[str] = None,
) -> Chapter:
    return Chapter(
        chapter_id=chapter_id,
        title=f"Chapter {chapter_id}",
        dependencies=DependencyDescriptor.of(
            requires=requires, introduces=introduces, references=references
        ),
        metadata=ChapterMetadata(
            tension_level=tension,
            plot_role=role,
            act_number=act,
            word_count=words,
            is_exposition=exposition,
        ),
        content_hash=content_hash if content_hash is not None else f"hash_{chapter_id}",
    )


def hard(target: str, kind: ReferenceKind = ReferenceKind.SETUP) -> ChapterReference:
    return ChapterReference(target_chapter_id=target, kind=kind, is_hard_requirement=True)


def soft(target: str, kind: ReferenceKind = ReferenceKind.CALLBACK) -> ChapterReference:
    return ChapterReference(target_chapter_id=target, kind=kind)


def table(*chapters: Chapter) -> Dict[str, Chapter]:
    return {c.chapter_id: c for c in chapters}


def edited(base: Chapter, text: str) -> Chapter:
    """The same chapter after a prose edit."""
    return base.with_content(ContentSignature.compute(text))


# =============================================================================
# TABLES
# =============================================================================

def reveal_table(hard_link: bool = True) -> Dict[str, Chapter]:
    """
    A introduces X; B requires X (and optionally hard-references A); C is free.

    [A, B, C] is clean. [B, A, C] breaks exactly one dependency.
    """
    refs = (hard("A"),) if hard_link else ()
    return table(
        chapter("A", introduces=["X"]),
        chapter("B", requires=["X"], references=refs),
        chapter("C"),
    )


def three_act_table() -> Dict[str, Chapter]:
    """Six chapters with a clear three-act shape and a callback."""
    return table(
        chapter("c1", role=PlotRole.SETUP, tension=3, introduces=["hero"], exposition=True),
        chapter("c2", role=PlotRole.SETUP, tension=4, introduces=["mentor"]),
        chapter("c3", role=PlotRole.RISING, tension=6, act=2, requires=["mentor"]),
        chapter("c4", role=PlotRole.RISING, tension=7, act=2, references=[soft("c2")]),
        chapter("c5", role=PlotRole.CLIMAX, tension=10, act=3, requires=["hero"]),
        chapter("c6", role=PlotRole.RESOLUTION, tension=4, act=3, references=[soft("c1")]),
    )


THREE_ACT_ORDER = ("c1", "c2", "c3", "c4", "c5", "c6")


def make_version(version_id: str, order, chapters: Dict[str, Chapter], parent: Optional[str] = None) -> Version:
    """A standalone Version with analysis computed the way the graph computes it."""
    order = tuple(order)
    return Version(
        version_id=version_id,
        name=version_id,
        description="",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        parent_version_id=parent,
        branch_id="b_test",
        chapter_order=order,
        content=tuple(
            ChapterSnapshot(cid, chapters[cid].content_hash, chapters[cid].word_count)
            for cid in order
        ),
        analysis=AnalysisResult(
            consistency_issues=validate(order, chapters),
            pace=analyze(order, chapters),
        ),
    )


# =============================================================================
# CLOCK
# =============================================================================

class SteppingClock:
    """Deterministic clock: each call advances one second."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self._now
        self._now = current + timedelta(seconds=1)
        return current

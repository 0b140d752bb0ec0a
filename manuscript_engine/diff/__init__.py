"""
Diff Engine
===========

RESPONSIBILITY: Structural comparison of two version snapshots
ALLOWED INPUTS: Two Versions and the chapter table
OUTPUTS: VersionDiff (moves, membership, content deltas, issue deltas, impact)

WHAT THIS LAYER MUST NOT DO:
============================
- Diff prose (the editor owns text; only hash and word count are compared)
- Mutate either version
- Resolve conflicts

The headline signal for a reordering UI is new_consistency_issues:
issues present for the target order that were absent for the source order.
"""

from __future__ import annotations
from typing import List, Mapping, Optional, Sequence, Tuple

from ..config import DiffConfig
from ..contracts.base import ChapterId
from ..contracts.chapters import Chapter
from ..contracts.analysis import (
    ChangeType, ChapterMove, ConsistencyIssue, ContentChange, DependencyChange,
    DependencyStatus, PaceImpact, RiskLevel, VersionDiff
)
from ..contracts.versions import Version
from ..validation import DependencyValidator


class DiffEngine:
    """
    Computes VersionDiff records.

    Impact score = min(max, move_weight * moves + content_weight * edits).
    Moves weigh double because they can break dependency assumptions
    that a same-position edit cannot.
    """

    def __init__(
        self,
        validator: Optional[DependencyValidator] = None,
        config: Optional[DiffConfig] = None
    ):
        self._validator = validator or DependencyValidator()
        self._config = config or DiffConfig()

    def diff(
        self,
        from_version: Version,
        to_version: Version,
        chapters: Mapping[ChapterId, Chapter]
    ) -> VersionDiff:
        moves = self.chapter_moves(from_version.chapter_order, to_version.chapter_order)
        to_members = set(to_version.chapter_order)
        from_members = set(from_version.chapter_order)
        added = tuple(c for c in to_version.chapter_order if c not in from_members)
        removed = tuple(c for c in from_version.chapter_order if c not in to_members)
        content_changes = self.content_changes(from_version, to_version)

        new_issues, resolved_issues = self.issue_delta(
            from_version.chapter_order, to_version.chapter_order, chapters
        )

        score = min(
            self._config.max_impact_score,
            self._config.move_weight * len(moves)
            + self._config.content_weight * len(content_changes)
        )
        opening_delta = (
            to_version.analysis.pace.hook_strength
            - from_version.analysis.pace.hook_strength
        )

        return VersionDiff(
            from_version_id=from_version.version_id,
            to_version_id=to_version.version_id,
            chapter_moves=moves,
            added=added,
            removed=removed,
            content_changes=content_changes,
            new_consistency_issues=new_issues,
            resolved_consistency_issues=resolved_issues,
            dependency_changes=self._dependency_changes(new_issues, resolved_issues),
            impact_score=score,
            risk_level=self.risk_level(score),
            opening_strength_delta=opening_delta,
            pace_impact=_pace_impact(opening_delta),
        )

    @staticmethod
    def chapter_moves(
        from_order: Sequence[ChapterId],
        to_order: Sequence[ChapterId]
    ) -> Tuple[ChapterMove, ...]:
        """Chapters present in both orders whose index changed, in source order."""
        to_index = {cid: i for i, cid in enumerate(to_order)}
        return tuple(
            ChapterMove(chapter_id=cid, from_index=i, to_index=to_index[cid])
            for i, cid in enumerate(from_order)
            if cid in to_index and to_index[cid] != i
        )

    def content_changes(
        self,
        from_version: Version,
        to_version: Version
    ) -> Tuple[ContentChange, ...]:
        before_hashes = from_version.content_hashes
        before_words = from_version.word_counts
        changes: List[ContentChange] = []

        for snapshot in to_version.content:
            cid = snapshot.chapter_id
            if cid not in before_hashes or before_hashes[cid] == snapshot.content_hash:
                continue
            delta = snapshot.word_count - before_words[cid]
            change_type = (
                ChangeType.MAJOR_EDIT
                if abs(delta) > self._config.major_edit_threshold
                else ChangeType.MINOR_EDIT
            )
            changes.append(ContentChange(
                chapter_id=cid,
                change_type=change_type,
                word_count_before=before_words[cid],
                word_count_after=snapshot.word_count,
            ))

        return tuple(changes)

    def issue_delta(
        self,
        from_order: Sequence[ChapterId],
        to_order: Sequence[ChapterId],
        chapters: Mapping[ChapterId, Chapter]
    ) -> Tuple[Tuple[ConsistencyIssue, ...], Tuple[ConsistencyIssue, ...]]:
        """(issues introduced by to_order, issues resolved by to_order)."""
        before = self._validator.validate(from_order, chapters)
        after = self._validator.validate(to_order, chapters)
        before_ids = {i.identity for i in before}
        after_ids = {i.identity for i in after}
        new_issues = tuple(i for i in after if i.identity not in before_ids)
        resolved = tuple(i for i in before if i.identity not in after_ids)
        return new_issues, resolved

    def risk_level(self, score: int) -> RiskLevel:
        if score > self._config.high_risk_above:
            return RiskLevel.HIGH
        if score >= self._config.medium_risk_from:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @staticmethod
    def _dependency_changes(
        new_issues: Sequence[ConsistencyIssue],
        resolved: Sequence[ConsistencyIssue]
    ) -> Tuple[DependencyChange, ...]:
        changes = [
            DependencyChange(i.chapter_id, i.depends_on, DependencyStatus.BROKEN, i.issue_type)
            for i in new_issues if i.depends_on is not None
        ]
        changes.extend(
            DependencyChange(i.chapter_id, i.depends_on, DependencyStatus.RESTORED, i.issue_type)
            for i in resolved if i.depends_on is not None
        )
        return tuple(changes)


def _pace_impact(opening_delta: int) -> PaceImpact:
    if opening_delta > 0:
        return PaceImpact.IMPROVED
    if opening_delta < 0:
        return PaceImpact.DEGRADED
    return PaceImpact.NEUTRAL

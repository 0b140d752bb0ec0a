"""
Dependency Validator
====================

RESPONSIBILITY: Detect ordering violations against the dependency model
ALLOWED INPUTS: A chapter order and the chapter table
OUTPUTS: Sorted tuple of ConsistencyIssue

WHAT THIS LAYER MUST NOT DO:
============================
- Mutate chapters or orders
- Drop or merge issues silently (except exact duplicates of one dependency)
- Reorder anything to "fix" an issue

INVARIANT: validate(order, chapters) is a PURE FUNCTION.
Identical inputs produce identical, identically-ordered issue lists.
"""

from __future__ import annotations
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from ..contracts.base import ChapterId, InvalidOrder
from ..contracts.chapters import Chapter, ChapterReference, ReferenceKind
from ..contracts.analysis import ConsistencyIssue, IssueType, Severity


_SOFT_INVERSION_KINDS = frozenset((ReferenceKind.CALLBACK, ReferenceKind.PAYOFF))


def position_map(order: Sequence[ChapterId]) -> Dict[ChapterId, int]:
    """
    Build chapter_id -> index.

    Raises InvalidOrder on a duplicate; a chapter appearing twice is a
    caller contract violation, never validated silently.
    """
    positions: Dict[ChapterId, int] = {}
    for index, chapter_id in enumerate(order):
        if chapter_id in positions:
            raise InvalidOrder(
                f"Chapter {chapter_id} appears more than once in order",
                chapter_id=chapter_id
            )
        positions[chapter_id] = index
    return positions


class DependencyValidator:
    """
    Produces consistency issues for a chapter order.

    Checks, per chapter in order:
    1. References: orphaned target, hard requirement not strictly
       earlier, soft callback/payoff pointing forward
    2. Required knowledge: each fact must be introduced by an
       earlier chapter
    """

    def validate(
        self,
        order: Sequence[ChapterId],
        chapters: Mapping[ChapterId, Chapter]
    ) -> Tuple[ConsistencyIssue, ...]:
        positions = position_map(order)
        unknown = [cid for cid in order if cid not in chapters]
        if unknown:
            raise InvalidOrder(
                f"Order references unknown chapters: {', '.join(unknown)}",
                chapter_ids=",".join(unknown)
            )

        introducers = self._index_introductions(order, chapters)
        issues: List[ConsistencyIssue] = []

        for position, chapter_id in enumerate(order):
            chapter = chapters[chapter_id]
            reference_issues = self._check_references(chapter, position, positions, chapters)
            issues.extend(reference_issues)

            covered = {
                i.depends_on for i in reference_issues
                if i.issue_type is IssueType.HARD_DEPENDENCY_VIOLATION
            }
            issues.extend(
                self._check_knowledge(chapter, position, order, introducers, covered)
            )

        return tuple(sorted(issues, key=ConsistencyIssue.sort_key))

    # -------------------------------------------------------------------------
    # REFERENCE CHECKS
    # -------------------------------------------------------------------------

    def _check_references(
        self,
        chapter: Chapter,
        position: int,
        positions: Mapping[ChapterId, int],
        chapters: Mapping[ChapterId, Chapter]
    ) -> List[ConsistencyIssue]:
        # One issue per (target, type); the most severe reference wins
        strongest: Dict[Tuple[ChapterId, IssueType], ConsistencyIssue] = {}

        for ref in chapter.dependencies.references:
            issue = self._check_reference(chapter, position, ref, positions, chapters)
            if issue is None:
                continue
            key = (ref.target_chapter_id, issue.issue_type)
            kept = strongest.get(key)
            if kept is None or issue.severity.rank > kept.severity.rank:
                strongest[key] = issue

        return list(strongest.values())

    def _check_reference(
        self,
        chapter: Chapter,
        position: int,
        ref: ChapterReference,
        positions: Mapping[ChapterId, int],
        chapters: Mapping[ChapterId, Chapter]
    ) -> Optional[ConsistencyIssue]:
        target = ref.target_chapter_id

        if target not in chapters:
            return ConsistencyIssue(
                issue_type=IssueType.ORPHANED_REFERENCE,
                severity=Severity.MAJOR,
                chapter_id=chapter.chapter_id,
                position=position,
                depends_on=target,
                description=(
                    f"'{chapter.title}' references chapter {target}, "
                    f"which does not exist"
                ),
            )

        target_position = positions.get(target)
        target_title = chapters[target].title

        if ref.is_hard_requirement:
            if target_position is not None and target_position < position:
                return None
            severity = Severity.CRITICAL if ref.kind is ReferenceKind.SETUP else Severity.MAJOR
            where = "is missing from this order" if target_position is None else "comes later"
            return ConsistencyIssue(
                issue_type=IssueType.HARD_DEPENDENCY_VIOLATION,
                severity=severity,
                chapter_id=chapter.chapter_id,
                position=position,
                depends_on=target,
                description=(
                    f"'{chapter.title}' requires {ref.kind.value} from "
                    f"'{target_title}', which {where}"
                ),
            )

        if (
            ref.kind in _SOFT_INVERSION_KINDS
            and target_position is not None
            and target_position > position
        ):
            return ConsistencyIssue(
                issue_type=IssueType.SOFT_REFERENCE_INVERSION,
                severity=Severity.MINOR,
                chapter_id=chapter.chapter_id,
                position=position,
                depends_on=target,
                description=(
                    f"'{chapter.title}' has a {ref.kind.value} to "
                    f"'{target_title}', which now comes later"
                ),
            )

        return None

    # -------------------------------------------------------------------------
    # KNOWLEDGE CHECKS
    # -------------------------------------------------------------------------

    @staticmethod
    def _index_introductions(
        order: Sequence[ChapterId],
        chapters: Mapping[ChapterId, Chapter]
    ) -> Dict[str, List[int]]:
        """fact -> ascending positions of the chapters that introduce it."""
        introducers: Dict[str, List[int]] = {}
        for position, chapter_id in enumerate(order):
            for fact in chapters[chapter_id].dependencies.introduces:
                introducers.setdefault(fact, []).append(position)
        return introducers

    def _check_knowledge(
        self,
        chapter: Chapter,
        position: int,
        order: Sequence[ChapterId],
        introducers: Mapping[str, List[int]],
        covered: Set[Optional[ChapterId]]
    ) -> List[ConsistencyIssue]:
        issues: List[ConsistencyIssue] = []

        for fact in sorted(chapter.dependencies.required_knowledge):
            fact_positions = introducers.get(fact, [])
            if any(p < position for p in fact_positions):
                continue

            later = [p for p in fact_positions if p > position]
            if later:
                introducer = order[later[0]]
                if introducer in covered:
                    continue
                issues.append(ConsistencyIssue(
                    issue_type=IssueType.HARD_DEPENDENCY_VIOLATION,
                    severity=Severity.MAJOR,
                    chapter_id=chapter.chapter_id,
                    position=position,
                    depends_on=introducer,
                    fact=fact,
                    description=(
                        f"'{chapter.title}' requires knowledge of '{fact}', "
                        f"which is only introduced later"
                    ),
                ))
            else:
                issues.append(ConsistencyIssue(
                    issue_type=IssueType.HARD_DEPENDENCY_VIOLATION,
                    severity=Severity.CRITICAL,
                    chapter_id=chapter.chapter_id,
                    position=position,
                    fact=fact,
                    description=(
                        f"'{chapter.title}' requires knowledge of '{fact}', "
                        f"which no earlier chapter introduces"
                    ),
                ))

        return issues


_DEFAULT_VALIDATOR = DependencyValidator()


def validate(
    order: Sequence[ChapterId],
    chapters: Mapping[ChapterId, Chapter]
) -> Tuple[ConsistencyIssue, ...]:
    """Module-level convenience wrapper around DependencyValidator."""
    return _DEFAULT_VALIDATOR.validate(order, chapters)

"""
Analysis Contracts

Output of the validator, pacing analyzer and diff engine.

Consistency issues and pacing warnings are ADVISORY data,
never exceptions. They are recomputed fresh for every version
and every preview; nothing here is persisted on its own.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .base import ChapterId


# =============================================================================
# CONSISTENCY
# =============================================================================

class IssueType(Enum):
    HARD_DEPENDENCY_VIOLATION = "hard-dependency-violation"
    SOFT_REFERENCE_INVERSION = "soft-reference-inversion"
    ORPHANED_REFERENCE = "orphaned-reference"


class Severity(Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"

    @property
    def rank(self) -> int:
        """Higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 3,
    Severity.MAJOR: 2,
    Severity.MINOR: 1,
}


@dataclass(frozen=True)
class ConsistencyIssue:
    """
    A detected ordering violation against the dependency model.

    depends_on is None for global continuity gaps (a required fact
    that no chapter in the order introduces).
    """
    issue_type: IssueType
    severity: Severity
    chapter_id: ChapterId
    position: int
    description: str
    depends_on: Optional[ChapterId] = None
    fact: Optional[str] = None

    @property
    def identity(self) -> Tuple[str, str, str, str]:
        """Order-independent identity used to compare issue sets across orders."""
        return (
            self.issue_type.value,
            self.chapter_id,
            self.depends_on or "",
            self.fact or "",
        )

    def sort_key(self) -> Tuple[int, int, str, str, str]:
        return (
            self.position,
            -self.severity.rank,
            self.issue_type.value,
            self.depends_on or "",
            self.fact or "",
        )


# =============================================================================
# PACING
# =============================================================================

class PacingWarningKind(Enum):
    TENSION_DROP = "tension-drop"
    SUSTAINED_LOW_TENSION = "sustained-low-tension"


@dataclass(frozen=True)
class PacingWarning:
    """Advisory pacing observation between two adjacent chapters."""
    kind: PacingWarningKind
    position: int
    chapter_ids: Tuple[ChapterId, ...]
    description: str


@dataclass(frozen=True)
class ActSpan:
    """Contiguous run of chapters sharing one act number."""
    act_number: int
    first_index: int
    last_index: int


@dataclass(frozen=True)
class PaceAnalysis:
    """
    Derived tension/structure metrics for one chapter order.

    The tension curve is the raw per-chapter signal, unsmoothed.
    act1_end / act3_start are None when not detected in a non-empty
    order; act2_midpoint always holds a value.
    """
    tension_curve: Tuple[int, ...]
    act1_end: Optional[int]
    act2_midpoint: int
    act3_start: Optional[int]
    exposition_load: float
    hook_strength: int
    act_spans: Tuple[ActSpan, ...] = field(default_factory=tuple)
    warnings: Tuple[PacingWarning, ...] = field(default_factory=tuple)

    @staticmethod
    def empty() -> PaceAnalysis:
        return PaceAnalysis(
            tension_curve=(),
            act1_end=0,
            act2_midpoint=0,
            act3_start=0,
            exposition_load=0.0,
            hook_strength=0,
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Cached analysis attached to every version at creation time."""
    consistency_issues: Tuple[ConsistencyIssue, ...]
    pace: PaceAnalysis

    @property
    def has_critical_issues(self) -> bool:
        return any(i.severity is Severity.CRITICAL for i in self.consistency_issues)


# =============================================================================
# DIFF
# =============================================================================

class ChangeType(Enum):
    MAJOR_EDIT = "major-edit"
    MINOR_EDIT = "minor-edit"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PaceImpact(Enum):
    IMPROVED = "improved"
    DEGRADED = "degraded"
    NEUTRAL = "neutral"


class DependencyStatus(Enum):
    BROKEN = "broken"
    RESTORED = "restored"


@dataclass(frozen=True)
class ChapterMove:
    chapter_id: ChapterId
    from_index: int
    to_index: int

    @property
    def position_change(self) -> int:
        """Positive = moved later, negative = moved earlier."""
        return self.to_index - self.from_index


@dataclass(frozen=True)
class ContentChange:
    chapter_id: ChapterId
    change_type: ChangeType
    word_count_before: int
    word_count_after: int

    @property
    def word_count_delta(self) -> int:
        return self.word_count_after - self.word_count_before


@dataclass(frozen=True)
class DependencyChange:
    """A chapter-to-chapter dependency whose satisfaction flipped between two orders."""
    chapter_id: ChapterId
    depends_on: ChapterId
    status: DependencyStatus
    issue_type: IssueType


@dataclass(frozen=True)
class VersionDiff:
    """Structured comparison of two version snapshots."""
    from_version_id: str
    to_version_id: str
    chapter_moves: Tuple[ChapterMove, ...]
    added: Tuple[ChapterId, ...]
    removed: Tuple[ChapterId, ...]
    content_changes: Tuple[ContentChange, ...]
    new_consistency_issues: Tuple[ConsistencyIssue, ...]
    resolved_consistency_issues: Tuple[ConsistencyIssue, ...]
    dependency_changes: Tuple[DependencyChange, ...]
    impact_score: int
    risk_level: RiskLevel
    opening_strength_delta: int
    pace_impact: PaceImpact

    @property
    def total_changes(self) -> int:
        return (
            len(self.chapter_moves) + len(self.added) + len(self.removed)
            + len(self.content_changes)
        )

    @property
    def is_empty(self) -> bool:
        return self.total_changes == 0 and not self.new_consistency_issues


# =============================================================================
# MERGE PREVIEW (manual resolution only)
# =============================================================================

class ConflictType(Enum):
    CHAPTER_ORDER = "chapter-order"
    CONTENT_CHANGE = "content-change"


@dataclass(frozen=True)
class MergeConflict:
    """Both branches changed the same chapter in incompatible ways since the ancestor."""
    conflict_type: ConflictType
    chapter_id: ChapterId
    description: str


@dataclass(frozen=True)
class MergePreview:
    """
    Impact report for bringing a source branch into the current branch.

    There is no automatic merge; the author resolves conflicts
    by committing a chosen order.
    """
    source_branch_id: str
    target_branch_id: str
    common_ancestor_id: Optional[str]
    diff: Optional[VersionDiff]
    conflicts: Tuple[MergeConflict, ...]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

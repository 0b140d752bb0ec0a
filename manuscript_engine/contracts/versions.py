"""
Version Graph Contracts

Immutable version snapshots and the branch pointers into them.

INVARIANT: A Version is never mutated after creation.
"Editing" a version always produces a new version whose parent
is the edited one. Versions reference chapters by ID; they never
own chapter data beyond a per-chapter content signature.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from .base import ChapterId, Error
from .analysis import AnalysisResult, ConsistencyIssue


@dataclass(frozen=True)
class ChapterSnapshot:
    """Content signature of one chapter as captured by a version."""
    chapter_id: ChapterId
    content_hash: str
    word_count: int


@dataclass(frozen=True)
class Version:
    """
    Immutable snapshot of one chapter arrangement plus cached analysis.

    parent_version_id is None only for a root of the version forest.
    content is aligned with chapter_order.
    """
    version_id: str
    name: str
    description: str
    created_at: datetime
    parent_version_id: Optional[str]
    branch_id: str
    chapter_order: Tuple[ChapterId, ...]
    content: Tuple[ChapterSnapshot, ...]
    analysis: AnalysisResult
    sequence: int = 0

    @property
    def content_hashes(self) -> Dict[ChapterId, str]:
        return {c.chapter_id: c.content_hash for c in self.content}

    @property
    def word_counts(self) -> Dict[ChapterId, int]:
        return {c.chapter_id: c.word_count for c in self.content}

    @property
    def total_word_count(self) -> int:
        return sum(c.word_count for c in self.content)

    @property
    def is_root(self) -> bool:
        return self.parent_version_id is None


class BranchState(Enum):
    """Detached: no versions yet. Active: has a head version."""
    DETACHED = "detached"
    ACTIVE = "active"


@dataclass(frozen=True)
class Branch:
    """
    Named pointer into the version graph.

    Branches share history by reference: a fork starts with the
    head of the branch it was forked from.
    """
    branch_id: str
    name: str
    description: str
    created_at: datetime
    last_modified: datetime
    purpose: str
    parent_branch_id: Optional[str] = None
    head_version_id: Optional[str] = None
    is_active: bool = False
    version_count: int = 0

    @property
    def state(self) -> BranchState:
        if self.head_version_id is None:
            return BranchState.DETACHED
        return BranchState.ACTIVE


@dataclass(frozen=True)
class VersionCommit:
    """
    Outcome of a successful version-creating operation.

    Always carries the full analysis so the caller can warn without
    a second round trip. persist_error is set when the in-memory
    commit succeeded but the persistence collaborator did not.
    """
    version: Version
    new_consistency_issues: Tuple[ConsistencyIssue, ...] = field(default_factory=tuple)
    persist_error: Optional[Error] = None

    @property
    def analysis(self) -> AnalysisResult:
        return self.version.analysis

    @property
    def persisted(self) -> bool:
        return self.persist_error is None

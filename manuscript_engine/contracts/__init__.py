"""
Contracts Module

Explicit types shared by every layer of the manuscript engine.
All inter-layer communication MUST use these contracts.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses)
2. Category fields are closed enums, never free strings
3. All failures carry an explicit ErrorCode
4. All timestamps use UTC and are never mutated
5. Versions reference chapters by ID (structural sharing, no deep copies)
"""

from .base import (
    ChapterId, ErrorCode, Error, EngineError, InvalidOrder, UnknownVersion,
    UnknownBranch, UnknownChapter, ConcurrentModification, DependencyCycle,
    PersistError, StorageWriteResult, ContentSignature,
)
from .chapters import (
    ReferenceKind, PlotRole, ChapterReference, DependencyDescriptor,
    ChapterMetadata, Chapter,
)
from .analysis import (
    IssueType, Severity, ConsistencyIssue, PacingWarningKind, PacingWarning,
    ActSpan, PaceAnalysis, AnalysisResult, ChangeType, RiskLevel, PaceImpact,
    DependencyStatus, ChapterMove, ContentChange, DependencyChange,
    VersionDiff, ConflictType, MergeConflict, MergePreview,
)
from .versions import (
    ChapterSnapshot, Version, BranchState, Branch, VersionCommit,
)

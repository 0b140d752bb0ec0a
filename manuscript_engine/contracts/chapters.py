"""
Chapter Contracts

The dependency model: what a chapter requires, introduces and references.
Pure data; no behavior beyond construction checks.

INVARIANT: chapter identity is immutable once created.
Only position (per version) and content hash change over time.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, Tuple

from .base import ChapterId, ContentSignature


class ReferenceKind(Enum):
    """Closed set of narrative reference kinds."""
    SETUP = "setup"
    PAYOFF = "payoff"
    CALLBACK = "callback"
    FORESHADOWING = "foreshadowing"


class PlotRole(Enum):
    """Structural function of a chapter in the story arc."""
    SETUP = "setup"
    RISING = "rising"
    CLIMAX = "climax"
    FALLING = "falling"
    RESOLUTION = "resolution"


@dataclass(frozen=True)
class ChapterReference:
    """
    Directed link from the owning chapter to a target chapter.

    A hard requirement means the target must come strictly earlier.
    """
    target_chapter_id: ChapterId
    kind: ReferenceKind
    is_hard_requirement: bool = False
    description: str = ""


@dataclass(frozen=True)
class DependencyDescriptor:
    """What the reader must know, what the chapter establishes, what it links to."""
    required_knowledge: FrozenSet[str] = field(default_factory=frozenset)
    introduces: FrozenSet[str] = field(default_factory=frozenset)
    references: Tuple[ChapterReference, ...] = field(default_factory=tuple)

    @staticmethod
    def of(
        requires: Iterable[str] = (),
        introduces: Iterable[str] = (),
        references: Iterable[ChapterReference] = ()
    ) -> DependencyDescriptor:
        return DependencyDescriptor(
            required_knowledge=frozenset(requires),
            introduces=frozenset(introduces),
            references=tuple(references)
        )


@dataclass(frozen=True)
class ChapterMetadata:
    """Per-chapter metadata consumed by the pacing analyzer."""
    tension_level: int = 5
    plot_role: PlotRole = PlotRole.RISING
    act_number: int = 1
    word_count: int = 0
    is_exposition: bool = False

    def __post_init__(self):
        if not 1 <= self.tension_level <= 10:
            raise ValueError("tension_level must be between 1 and 10")
        if self.act_number < 1:
            raise ValueError("act_number must be positive")
        if self.word_count < 0:
            raise ValueError("word_count must be non-negative")


@dataclass(frozen=True)
class Chapter:
    """
    A narrative unit.

    The body text lives in the editor subsystem; here only its
    content hash and word count are tracked for change detection.
    """
    chapter_id: ChapterId
    title: str
    dependencies: DependencyDescriptor = field(default_factory=DependencyDescriptor)
    metadata: ChapterMetadata = field(default_factory=ChapterMetadata)
    content_hash: str = ""

    def __post_init__(self):
        if not self.chapter_id or not isinstance(self.chapter_id, str):
            raise ValueError("chapter_id must be a non-empty string")

    @property
    def word_count(self) -> int:
        return self.metadata.word_count

    @property
    def signature(self) -> ContentSignature:
        return ContentSignature(content_hash=self.content_hash, word_count=self.word_count)

    def with_content(self, signature: ContentSignature) -> Chapter:
        """Return a copy carrying a new content hash and word count."""
        return replace(
            self,
            content_hash=signature.content_hash,
            metadata=replace(self.metadata, word_count=signature.word_count)
        )

    def hard_setup_references(self) -> Tuple[ChapterReference, ...]:
        return tuple(
            r for r in self.dependencies.references
            if r.is_hard_requirement and r.kind is ReferenceKind.SETUP
        )

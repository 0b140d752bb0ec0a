"""
Editor Collaborator
===================

The editor subsystem owns chapter prose. The version graph only asks it
for a content signature (hash + word count) per chapter.
"""

from __future__ import annotations
from typing import Dict, Optional

from ..contracts.base import ChapterId, ContentSignature, UnknownChapter


class ContentSource:
    """Abstract editor query: chapter_id -> ContentSignature."""

    def content_signature(self, chapter_id: ChapterId) -> ContentSignature:
        raise NotImplementedError


class InMemoryTextSource(ContentSource):
    """Holds chapter prose in memory and hashes it on demand."""

    def __init__(self, texts: Optional[Dict[ChapterId, str]] = None):
        self._texts: Dict[ChapterId, str] = dict(texts or {})

    def set_text(self, chapter_id: ChapterId, text: str) -> None:
        self._texts[chapter_id] = text

    def content_signature(self, chapter_id: ChapterId) -> ContentSignature:
        if chapter_id not in self._texts:
            raise UnknownChapter(f"No text for chapter {chapter_id}", chapter_id=chapter_id)
        return ContentSignature.compute(self._texts[chapter_id])

"""
JSON Serialization
==================

One record per Version, one per Branch, chapters referenced by ID.

RULES:
1. Datetimes are ISO 8601 strings (UTC).
2. Enums use their .value.
3. Sets become sorted lists (determinism).
4. Cached analysis is NOT part of a stored version record; it is
   derived state and is recomputed from the chapter table on load.
"""

from __future__ import annotations
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping
import json

from .base import from_iso, to_iso
from .chapters import (
    Chapter, ChapterMetadata, ChapterReference, DependencyDescriptor,
    PlotRole, ReferenceKind
)
from .analysis import AnalysisResult
from .versions import Branch, ChapterSnapshot, Version


class ManuscriptJSONEncoder(json.JSONEncoder):
    """JSON encoder for contract dataclasses."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return to_iso(obj)
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)
        return super().default(obj)


def dumps(obj: Any) -> str:
    return json.dumps(obj, cls=ManuscriptJSONEncoder, sort_keys=True)


def to_jsonable(obj: Any) -> Any:
    """Plain dict/list/str/number structure for any contract object."""
    return json.loads(dumps(obj))


# =============================================================================
# CHAPTERS
# =============================================================================

def chapter_from_dict(data: Mapping[str, Any]) -> Chapter:
    deps = data.get('dependencies', {})
    meta = data.get('metadata', {})
    return Chapter(
        chapter_id=data['chapter_id'],
        title=data.get('title', ''),
        dependencies=DependencyDescriptor(
            required_knowledge=frozenset(deps.get('required_knowledge', ())),
            introduces=frozenset(deps.get('introduces', ())),
            references=tuple(
                ChapterReference(
                    target_chapter_id=r['target_chapter_id'],
                    kind=ReferenceKind(r['kind']),
                    is_hard_requirement=bool(r.get('is_hard_requirement', False)),
                    description=r.get('description', ''),
                )
                for r in deps.get('references', ())
            ),
        ),
        metadata=ChapterMetadata(
            tension_level=int(meta.get('tension_level', 5)),
            plot_role=PlotRole(meta.get('plot_role', PlotRole.RISING.value)),
            act_number=int(meta.get('act_number', 1)),
            word_count=int(meta.get('word_count', 0)),
            is_exposition=bool(meta.get('is_exposition', False)),
        ),
        content_hash=data.get('content_hash', ''),
    )


def load_chapter_catalog(path: str) -> Dict[str, Chapter]:
    """Read a JSON list of chapter records, preserving file order."""
    with open(path, 'r', encoding='utf-8') as f:
        records = json.load(f)
    chapters = [chapter_from_dict(r) for r in records]
    return {c.chapter_id: c for c in chapters}


# =============================================================================
# VERSIONS AND BRANCHES
# =============================================================================

def version_to_record(version: Version) -> Dict[str, Any]:
    """Storage record: everything except the derived analysis."""
    return {
        'version_id': version.version_id,
        'name': version.name,
        'description': version.description,
        'created_at': to_iso(version.created_at),
        'parent_version_id': version.parent_version_id,
        'branch_id': version.branch_id,
        'sequence': version.sequence,
        'chapter_order': list(version.chapter_order),
        'content': [
            {
                'chapter_id': c.chapter_id,
                'content_hash': c.content_hash,
                'word_count': c.word_count,
            }
            for c in version.content
        ],
    }


def version_from_record(data: Mapping[str, Any], analysis: AnalysisResult) -> Version:
    return Version(
        version_id=data['version_id'],
        name=data['name'],
        description=data.get('description', ''),
        created_at=from_iso(data['created_at']),
        parent_version_id=data.get('parent_version_id'),
        branch_id=data['branch_id'],
        sequence=int(data.get('sequence', 0)),
        chapter_order=tuple(data['chapter_order']),
        content=tuple(
            ChapterSnapshot(
                chapter_id=c['chapter_id'],
                content_hash=c['content_hash'],
                word_count=int(c['word_count']),
            )
            for c in data['content']
        ),
        analysis=analysis,
    )


def branch_to_record(branch: Branch) -> Dict[str, Any]:
    return {
        'branch_id': branch.branch_id,
        'name': branch.name,
        'description': branch.description,
        'created_at': to_iso(branch.created_at),
        'last_modified': to_iso(branch.last_modified),
        'purpose': branch.purpose,
        'parent_branch_id': branch.parent_branch_id,
        'head_version_id': branch.head_version_id,
        'is_active': branch.is_active,
        'version_count': branch.version_count,
    }


def branch_from_record(data: Mapping[str, Any]) -> Branch:
    return Branch(
        branch_id=data['branch_id'],
        name=data['name'],
        description=data.get('description', ''),
        created_at=from_iso(data['created_at']),
        last_modified=from_iso(data['last_modified']),
        purpose=data.get('purpose', ''),
        parent_branch_id=data.get('parent_branch_id'),
        head_version_id=data.get('head_version_id'),
        is_active=bool(data.get('is_active', False)),
        version_count=int(data.get('version_count', 0)),
    )

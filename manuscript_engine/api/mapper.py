"""
API Mapper
==========

Transforms engine contracts into response DTOs.
Exposes analysis results as computed; no smoothing or re-ranking.
"""

from typing import Any, Dict, Optional

from ..contracts.base import Error
from ..contracts.serialization import branch_to_record, to_jsonable, version_to_record
from ..contracts.versions import Branch, Version, VersionCommit


def map_version(version: Version) -> Dict[str, Any]:
    """Stored record plus the cached analysis."""
    dto = version_to_record(version)
    dto["total_word_count"] = version.total_word_count
    dto["analysis"] = to_jsonable(version.analysis)
    return dto


def map_version_summary(version: Version) -> Dict[str, Any]:
    issues = version.analysis.consistency_issues
    return {
        "version_id": version.version_id,
        "name": version.name,
        "branch_id": version.branch_id,
        "parent_version_id": version.parent_version_id,
        "created_at": to_jsonable(version.created_at),
        "issue_count": len(issues),
        "has_critical_issues": version.analysis.has_critical_issues,
    }


def map_branch(branch: Branch) -> Dict[str, Any]:
    dto = branch_to_record(branch)
    dto["state"] = branch.state.value
    return dto


def map_commit(commit: VersionCommit) -> Dict[str, Any]:
    return {
        "version": map_version(commit.version),
        "new_consistency_issues": to_jsonable(commit.new_consistency_issues),
        "persisted": commit.persisted,
        "persist_error": map_error(commit.persist_error),
    }


def map_error(error: Optional[Error]) -> Optional[Dict[str, Any]]:
    if error is None:
        return None
    return {
        "code": error.code.name,
        "message": error.message,
        "context": dict(error.context),
    }

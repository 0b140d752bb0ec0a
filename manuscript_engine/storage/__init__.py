"""
Persistence Layer
=================

RESPONSIBILITY: Durable, append-only records of versions and branches
ALLOWED INPUTS: Immutable Version and Branch contracts
OUTPUTS: StorageWriteResult, loaded (branches, versions)

WHAT THIS LAYER MUST NOT DO:
============================
- Transform or interpret data
- Delete or modify existing records (append-only)
- Raise on write failure (failures are returned as data)

The in-memory version graph is the source of truth for a session.
Writes happen after the graph has committed; a failed write is
reported to the caller and never unwinds the in-memory commit.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple
import json
import logging
import os

from ..config import StorageConfig
from ..contracts.base import PersistError, StorageWriteResult
from ..contracts.versions import Branch, Version
from ..contracts.serialization import (
    branch_from_record, branch_to_record, version_to_record
)

logger = logging.getLogger(__name__)

# Raw version records; the graph re-derives analysis before building Versions
VersionRecord = Dict[str, object]


# =============================================================================
# PERSISTENCE INTERFACE (Dependency Inversion)
# =============================================================================

class PersistenceBackend:
    """
    Abstract persistence collaborator.

    Implementations keep append-only semantics: a branch record is
    re-appended when its pointer moves; the last record wins on load.
    """

    def save_version(self, version: Version) -> StorageWriteResult:
        """Append a version record."""
        raise NotImplementedError

    def save_branch(self, branch: Branch) -> StorageWriteResult:
        """Append a branch record."""
        raise NotImplementedError

    def load_all(self) -> Tuple[List[Branch], List[VersionRecord]]:
        """Return (branches, version records) in write order."""
        raise NotImplementedError


# =============================================================================
# IN-MEMORY BACKEND (Reference Implementation)
# =============================================================================

class InMemoryPersistence(PersistenceBackend):
    """Append-only lists. Suitable for tests and ephemeral sessions."""

    def __init__(self):
        self._version_records: List[VersionRecord] = []
        self._branch_records: List[Dict[str, object]] = []

    def save_version(self, version: Version) -> StorageWriteResult:
        self._version_records.append(version_to_record(version))
        return StorageWriteResult.ok(version.version_id)

    def save_branch(self, branch: Branch) -> StorageWriteResult:
        self._branch_records.append(branch_to_record(branch))
        return StorageWriteResult.ok(branch.branch_id)

    def load_all(self) -> Tuple[List[Branch], List[VersionRecord]]:
        return _latest_branches(self._branch_records), list(self._version_records)

    @property
    def version_record_count(self) -> int:
        return len(self._version_records)


# =============================================================================
# FILE-BASED BACKEND
# =============================================================================

class FileStorageBackend(PersistenceBackend):
    """
    Append-only JSON Lines files.

    versions.jsonl - one record per version, never rewritten
    branches.jsonl - one record per branch pointer move
    """

    def __init__(self, storage_dir: str):
        self._storage_dir = storage_dir
        self._versions_file = os.path.join(storage_dir, "versions.jsonl")
        self._branches_file = os.path.join(storage_dir, "branches.jsonl")
        os.makedirs(storage_dir, exist_ok=True)

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    def save_version(self, version: Version) -> StorageWriteResult:
        return self._append(self._versions_file, version.version_id, version_to_record(version))

    def save_branch(self, branch: Branch) -> StorageWriteResult:
        return self._append(self._branches_file, branch.branch_id, branch_to_record(branch))

    def _append(self, path: str, record_id: str, record: Dict[str, object]) -> StorageWriteResult:
        try:
            with open(path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(record, sort_keys=True) + '\n')
        except OSError as e:
            logger.warning("Failed to append %s to %s: %s", record_id, path, e)
            return StorageWriteResult.failed(record_id, f"Failed to write {record_id}: {e}")
        return StorageWriteResult.ok(record_id)

    def load_all(self) -> Tuple[List[Branch], List[VersionRecord]]:
        branch_records = self._read_lines(self._branches_file)
        version_records = self._read_lines(self._versions_file)
        return _latest_branches(branch_records), version_records

    @staticmethod
    def _read_lines(path: str) -> List[Dict[str, object]]:
        if not os.path.exists(path):
            return []
        records = []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                for line_number, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        records.append(json.loads(line))
                    except json.JSONDecodeError as e:
                        raise PersistError(
                            f"Corrupt record at {path}:{line_number}: {e.msg}",
                            path=path, line=str(line_number)
                        ) from e
        except OSError as e:
            raise PersistError(f"Cannot read {path}: {e}", path=path) from e
        return records


def _latest_branches(records: List[Dict[str, object]]) -> List[Branch]:
    """Collapse pointer-move records: last record per branch wins, first-seen order kept."""
    latest: Dict[str, Dict[str, object]] = {}
    for record in records:
        latest[record['branch_id']] = record
    return [branch_from_record(r) for r in latest.values()]


def create_backend(config: Optional[StorageConfig] = None) -> PersistenceBackend:
    config = config or StorageConfig()
    if config.backend_type == "file":
        return FileStorageBackend(config.storage_dir)
    return InMemoryPersistence()

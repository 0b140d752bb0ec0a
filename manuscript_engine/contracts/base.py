"""
Base Contracts and Shared Types

Foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- Error states are enumerated; every failure carries an ErrorCode
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto
import hashlib


ChapterId = str


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent repair - every error state is enumerated.
    """
    # Structural errors (abort the operation, graph untouched)
    INVALID_ORDER = auto()
    UNKNOWN_VERSION = auto()
    UNKNOWN_BRANCH = auto()
    UNKNOWN_CHAPTER = auto()
    CONCURRENT_MODIFICATION = auto()
    DEPENDENCY_CYCLE = auto()

    # External errors (non-fatal to in-memory state)
    PERSIST_FAILED = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data - they can be returned, stored and logged.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )

    @staticmethod
    def create(code: ErrorCode, message: str, **context: str) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple(sorted((k, str(v)) for k, v in context.items()))
        )


class EngineError(Exception):
    """
    Base exception for operations that cannot complete.

    Carries the Error record so callers can surface the code
    without parsing the message.
    """
    code: ErrorCode = ErrorCode.INVALID_ORDER

    def __init__(self, message: str, **context: str):
        super().__init__(message)
        self.error = Error.create(self.code, message, **context)


class InvalidOrder(EngineError):
    """Order is not a valid arrangement of the known chapters."""
    code = ErrorCode.INVALID_ORDER


class UnknownVersion(EngineError):
    """Version ID lookup failed."""
    code = ErrorCode.UNKNOWN_VERSION


class UnknownBranch(EngineError):
    """Branch ID lookup failed."""
    code = ErrorCode.UNKNOWN_BRANCH


class UnknownChapter(EngineError):
    """Chapter ID lookup failed."""
    code = ErrorCode.UNKNOWN_CHAPTER


class ConcurrentModification(EngineError):
    """A mutating operation was attempted while another was in flight."""
    code = ErrorCode.CONCURRENT_MODIFICATION


class DependencyCycle(EngineError):
    """Hard dependencies form a cycle; no order can satisfy them all."""
    code = ErrorCode.DEPENDENCY_CYCLE


class PersistError(EngineError):
    """Persistence collaborator failed. Never unwinds in-memory state."""
    code = ErrorCode.PERSIST_FAILED


@dataclass(frozen=True)
class StorageWriteResult:
    """Outcome of a persistence write. Either success OR error, never both."""
    success: bool
    record_id: Optional[str] = None
    error: Optional[Error] = None

    @staticmethod
    def ok(record_id: str) -> StorageWriteResult:
        return StorageWriteResult(success=True, record_id=record_id)

    @staticmethod
    def failed(record_id: str, message: str) -> StorageWriteResult:
        return StorageWriteResult(
            success=False,
            record_id=record_id,
            error=Error.create(ErrorCode.PERSIST_FAILED, message, record_id=record_id)
        )


# =============================================================================
# TEMPORAL TYPES
# =============================================================================

def utc_now() -> datetime:
    """Default clock. All timestamps are UTC, never local time."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def from_iso(iso_string: str) -> datetime:
    dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# IDENTITY (Deterministic, hash-derived)
# =============================================================================

def generate_version_id(branch_id: str, sequence: int, parent: Optional[str]) -> str:
    """Generate deterministic version ID from its position in the graph."""
    seed = f"{branch_id}|{sequence}|{parent or 'root'}"
    return f"v_{hashlib.sha256(seed.encode('utf-8')).hexdigest()[:12]}"


def generate_branch_id(name: str, sequence: int) -> str:
    """Generate deterministic branch ID from name and creation sequence."""
    seed = f"{name}|{sequence}"
    return f"b_{hashlib.sha256(seed.encode('utf-8')).hexdigest()[:12]}"


@dataclass(frozen=True)
class ContentSignature:
    """
    Change-detection signature for a chapter body.

    The prose itself is owned by the editor; only its hash and
    word count cross into this package.
    """
    content_hash: str
    word_count: int

    @staticmethod
    def compute(text: str) -> ContentSignature:
        """Compute signature from chapter prose."""
        return ContentSignature(
            content_hash=hashlib.sha256(text.encode('utf-8')).hexdigest(),
            word_count=len(text.split())
        )

"""
Operation Guard
===============

Serializes mutating operations on a version graph.

Mutations are non-reentrant transactions: a second mutation attempted
while one is in flight is REJECTED with ConcurrentModification, never
queued or interleaved. Read-only operations do not take the guard.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator, Optional
import logging
import threading

from ..contracts.base import ConcurrentModification, EngineError

logger = logging.getLogger(__name__)


class OperationGuard:
    """Non-blocking "operation in progress" flag."""

    def __init__(self):
        self._lock = threading.Lock()
        self._operation: Optional[str] = None

    @property
    def in_progress(self) -> Optional[str]:
        """Name of the mutation currently running, if any."""
        return self._operation

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            running = self._operation or "another operation"
            logger.info("%s rejected: %s in progress", operation, running)
            raise ConcurrentModification(
                f"Cannot run {operation} while {running} is in progress",
                operation=operation, running=running
            )
        self._operation = operation
        try:
            yield
        except EngineError as e:
            logger.info("%s rejected: %s", operation, e.error.code.name)
            raise
        finally:
            self._operation = None
            self._lock.release()

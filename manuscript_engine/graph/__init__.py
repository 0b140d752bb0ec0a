"""
Version Graph Module

The top-level store the UI talks to: versions, branches, and the
orchestration of validation, pacing and diffing around them.
"""

from .content import ContentSource, InMemoryTextSource
from .guard import OperationGuard
from .manager import VersionGraph

__all__ = [
    'ContentSource',
    'InMemoryTextSource',
    'OperationGuard',
    'VersionGraph',
]

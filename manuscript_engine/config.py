"""
Engine Configuration
====================

Frozen configuration records, one per layer, aggregated by EngineConfig.

WHY FROZEN:
Config must not change while an operation runs.
Changes require a new config instance.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import os


STORAGE_DIR_ENV = "MANUSCRIPT_ENGINE_STORAGE_DIR"
CHAPTERS_FILE_ENV = "MANUSCRIPT_ENGINE_CHAPTERS"


@dataclass(frozen=True)
class DiffConfig:
    """Weights for the diff engine's impact score."""
    major_edit_threshold: int = 100
    # Reordering counts twice as much as an in-place edit
    move_weight: int = 10
    content_weight: int = 5
    max_impact_score: int = 100
    high_risk_above: int = 50
    # score == 20 is MEDIUM (the reversed three-chapter diff), not "> 20"
    medium_risk_from: int = 20


@dataclass(frozen=True)
class PacingConfig:
    hook_setup_bonus: int = 2
    tension_min: int = 1
    tension_max: int = 10
    tension_drop_threshold: int = 4
    low_tension_below: int = 3


@dataclass(frozen=True)
class GraphConfig:
    default_branch_name: str = "main"
    default_branch_purpose: str = "mainline"


@dataclass(frozen=True)
class StorageConfig:
    """
    Persistence backend selection.

    backend_type: "memory" | "file"
    """
    backend_type: str = "memory"
    storage_dir: Optional[str] = None

    def __post_init__(self):
        if self.backend_type not in ("memory", "file"):
            raise ValueError(f"Unknown storage backend: {self.backend_type}")
        if self.backend_type == "file" and not self.storage_dir:
            raise ValueError("File storage requires storage_dir")

    @staticmethod
    def from_env() -> StorageConfig:
        storage_dir = os.environ.get(STORAGE_DIR_ENV)
        if storage_dir:
            return StorageConfig(backend_type="file", storage_dir=storage_dir)
        return StorageConfig()


@dataclass
class EngineConfig:
    """Unified configuration for the whole engine."""
    diff: DiffConfig = None
    pacing: PacingConfig = None
    graph: GraphConfig = None
    storage: StorageConfig = None

    def __post_init__(self):
        self.diff = self.diff or DiffConfig()
        self.pacing = self.pacing or PacingConfig()
        self.graph = self.graph or GraphConfig()
        self.storage = self.storage or StorageConfig()

"""
Manuscript Engine

Version control and consistency analysis for chapter orderings.
An author keeps several competing arrangements ("versions") of one
manuscript, branches and compares them, and is warned when a reorder
breaks a narrative dependency a later chapter relies on.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Responsibility: Immutable data types, error taxonomy, JSON shape
   - MUST NOT: Contain behavior beyond construction checks

2. DEPENDENCY VALIDATOR (validation/)
   - Responsibility: Consistency issues for one order
   - MUST NOT: Mutate or repair orders

3. PACING ANALYZER (pacing/)
   - Responsibility: Tension curve, act structure, hook strength
   - MUST NOT: Look at prose

4. DIFF ENGINE (diff/)
   - Responsibility: Structural comparison of two versions, impact score
   - MUST NOT: Diff prose or resolve conflicts

5. VERSION GRAPH (graph/)
   - Responsibility: Append-only versions, branches, orchestration
   - MUST NOT: Rewrite history or unwind commits on persistence failure

6. PERSISTENCE (storage/)
   - Responsibility: Append-only records, session restore
   - MUST NOT: Interpret data

Outer layers (api/, forensic.py) depend on the engine; the engine
never imports them.

CONSTRAINTS ENFORCED:
=====================
- Immutability-first: Versions and Branches are frozen dataclasses
- Deterministic: validate() and diff() are pure functions
- Explicit errors: every failure carries an ErrorCode
- Advisory analysis: consistency issues never block a commit
"""

from .config import EngineConfig
from .graph import VersionGraph

__version__ = "0.1.0"

__all__ = ['EngineConfig', 'VersionGraph', '__version__']

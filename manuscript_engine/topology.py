"""
Topology
========

Graph views over the dependency model and the version forest.

ALLOWED:
- Cycle detection over hard dependencies
- Dependency-respecting order suggestions (topological sort)
- Ancestor queries over version lineage

FORBIDDEN:
- Scoring or ranking chapters
- Mutating chapters or versions
"""

from __future__ import annotations
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple
import networkx as nx

from .contracts.base import ChapterId, DependencyCycle
from .contracts.chapters import Chapter
from .contracts.versions import Version


class DependencyTopology:
    """
    Directed dependency graph: edge u -> v means u must come before v.

    Edges come from hard references and from required knowledge that
    exactly one chapter introduces. A fact introduced by several
    chapters is satisfiable by any of them, which a single edge
    cannot express, so it adds no edge.
    """

    def __init__(self, chapters: Mapping[ChapterId, Chapter]):
        self._graph = nx.DiGraph()
        self._build(chapters)

    def _build(self, chapters: Mapping[ChapterId, Chapter]) -> None:
        for chapter_id in chapters:
            self._graph.add_node(chapter_id)

        introducers = {}
        for chapter in chapters.values():
            for fact in chapter.dependencies.introduces:
                introducers.setdefault(fact, []).append(chapter.chapter_id)

        for chapter in chapters.values():
            for ref in chapter.dependencies.references:
                if ref.is_hard_requirement and ref.target_chapter_id in chapters:
                    self._graph.add_edge(
                        ref.target_chapter_id, chapter.chapter_id,
                        reason=ref.kind.value
                    )
            for fact in chapter.dependencies.required_knowledge:
                sources = introducers.get(fact, [])
                if len(sources) == 1 and sources[0] != chapter.chapter_id:
                    self._graph.add_edge(sources[0], chapter.chapter_id, reason=fact)

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    def find_cycles(self) -> List[List[ChapterId]]:
        """All elementary dependency cycles, each rotated to start at its smallest ID."""
        cycles = []
        for cycle in nx.simple_cycles(self._graph):
            pivot = cycle.index(min(cycle))
            cycles.append(cycle[pivot:] + cycle[:pivot])
        return sorted(cycles)

    def suggest_order(self, current_order: Sequence[ChapterId] = ()) -> Tuple[ChapterId, ...]:
        """
        Dependency-respecting order closest to current_order.

        Ties are broken by current position, then chapter ID, so the
        result is deterministic and moves as little as possible.
        """
        if not nx.is_directed_acyclic_graph(self._graph):
            cycles = self.find_cycles()
            raise DependencyCycle(
                f"Hard dependencies form {len(cycles)} cycle(s); no order satisfies them",
                cycle=" -> ".join(cycles[0]) if cycles else ""
            )
        positions = {cid: i for i, cid in enumerate(current_order)}
        fallback = len(positions)
        return tuple(nx.lexicographical_topological_sort(
            self._graph,
            key=lambda cid: (positions.get(cid, fallback), cid)
        ))


# =============================================================================
# VERSION LINEAGE
# =============================================================================

def lineage_graph(versions: Iterable[Version]) -> nx.DiGraph:
    """Parent -> child DAG over every version ever created (a forest)."""
    graph = nx.DiGraph()
    for version in versions:
        graph.add_node(version.version_id, branch_id=version.branch_id)
        if version.parent_version_id is not None:
            graph.add_edge(version.parent_version_id, version.version_id)
    return graph


def common_ancestor(graph: nx.DiGraph, first: str, second: str) -> Optional[str]:
    """Nearest shared ancestor of two versions, or None when they share no root."""
    return nx.lowest_common_ancestor(graph, first, second, default=None)

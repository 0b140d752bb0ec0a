"""
Version Graph & Branch Manager
==============================

RESPONSIBILITY: The only mutable store in the engine
ALLOWED INPUTS: Chapter orders, branch/version IDs, chapter table updates
OUTPUTS: Immutable Versions, Branches, VersionCommits, VersionDiffs

WHAT THIS LAYER MUST NOT DO:
============================
- Mutate a published Version (append-only)
- Partially apply an operation (new objects are fully built before linking)
- Unwind an in-memory commit because persistence failed
- Interleave two mutations (see OperationGuard)

Branch lifecycle: DETACHED (no versions yet) -> ACTIVE (has a head).
The current version is always the head of the current branch.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from ..config import EngineConfig
from ..contracts.base import (
    ChapterId, ContentSignature, Error, ErrorCode, InvalidOrder, PersistError,
    UnknownBranch, UnknownChapter, UnknownVersion,
    generate_branch_id, generate_version_id, utc_now
)
from ..contracts.chapters import Chapter, ChapterMetadata, DependencyDescriptor
from ..contracts.analysis import (
    AnalysisResult, ConflictType, ConsistencyIssue, MergeConflict, MergePreview,
    PaceAnalysis, VersionDiff
)
from ..contracts.versions import Branch, ChapterSnapshot, Version, VersionCommit
from ..contracts.serialization import version_from_record
from ..diff import DiffEngine
from ..pacing import PacingAnalyzer
from ..storage import PersistenceBackend
from ..topology import DependencyTopology, common_ancestor, lineage_graph
from ..validation import DependencyValidator
from .content import ContentSource
from .guard import OperationGuard

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

PREVIEW_VERSION_ID = "preview"
EMPTY_VERSION_ID = "empty"


class VersionGraph:
    """
    Append-only forest of versions grouped into branches.

    Chapters live in one table (the arena). Versions hold chapter IDs
    and content signatures only, so a new version shares every
    unchanged chapter with its parent by reference.
    """

    def __init__(
        self,
        chapters: Iterable[Chapter],
        config: Optional[EngineConfig] = None,
        persistence: Optional[PersistenceBackend] = None,
        content_source: Optional[ContentSource] = None,
        clock: Optional[Clock] = None
    ):
        self._config = config or EngineConfig()
        self._validator = DependencyValidator()
        self._pacing = PacingAnalyzer(self._config.pacing)
        self._differ = DiffEngine(self._validator, self._config.diff)
        self._persistence = persistence
        self._content_source = content_source
        self._clock = clock or utc_now
        self._guard = OperationGuard()

        self._chapters: Dict[ChapterId, Chapter] = {}
        # Known set, in registration order; retired chapters stay in _chapters
        self._known: Dict[ChapterId, None] = {}
        for chapter in chapters:
            if chapter.chapter_id in self._chapters:
                raise ValueError(f"Duplicate chapter id: {chapter.chapter_id}")
            self._chapters[chapter.chapter_id] = chapter
            self._known[chapter.chapter_id] = None

        self._versions: Dict[str, Version] = {}
        self._branches: Dict[str, Branch] = {}
        self._version_sequence = 0
        self._branch_sequence = 0
        self._persist_failures: List[Error] = []

        now = self._clock()
        main = Branch(
            branch_id=self._next_branch_id(self._config.graph.default_branch_name),
            name=self._config.graph.default_branch_name,
            description="Main manuscript line",
            created_at=now,
            last_modified=now,
            purpose=self._config.graph.default_branch_purpose,
            is_active=True,
        )
        self._branches[main.branch_id] = main
        self._current_branch_id = main.branch_id
        self._persist_branch(main)

    # =========================================================================
    # RESTORE
    # =========================================================================

    @classmethod
    def restore(
        cls,
        chapters: Iterable[Chapter],
        persistence: PersistenceBackend,
        config: Optional[EngineConfig] = None,
        content_source: Optional[ContentSource] = None,
        clock: Optional[Clock] = None
    ) -> VersionGraph:
        """
        Rebuild a graph from persisted records.

        Cached analysis is recomputed against the given chapter table.
        An empty backend yields a fresh graph whose main branch is saved.
        """
        branches, records = persistence.load_all()
        if not branches:
            return cls(chapters, config, persistence, content_source, clock)

        graph = cls(chapters, config, None, content_source, clock)
        graph._load_state(branches, records)
        graph._persistence = persistence
        logger.info(
            "Restored %d version(s) on %d branch(es)",
            len(graph._versions), len(graph._branches)
        )
        return graph

    def _load_state(self, branches: Sequence[Branch], records: Sequence[Dict[str, object]]) -> None:
        versions: Dict[str, Version] = {}
        for record in records:
            order = tuple(record['chapter_order'])
            try:
                analysis = self._analyze(order)
            except InvalidOrder as e:
                raise PersistError(
                    f"Stored version {record['version_id']} cannot be analyzed: {e}",
                    version_id=str(record['version_id'])
                ) from e
            version = version_from_record(record, analysis)
            versions[version.version_id] = version

        for version in versions.values():
            if version.parent_version_id is not None and version.parent_version_id not in versions:
                raise PersistError(
                    f"Version {version.version_id} has missing parent {version.parent_version_id}",
                    version_id=version.version_id
                )
        for branch in branches:
            if branch.head_version_id is not None and branch.head_version_id not in versions:
                raise PersistError(
                    f"Branch {branch.name} points at missing version {branch.head_version_id}",
                    branch_id=branch.branch_id
                )

        active = [b for b in branches if b.is_active]
        current = active[-1] if active else branches[0]
        self._versions = versions
        self._branches = {
            b.branch_id: replace(b, is_active=b.branch_id == current.branch_id)
            for b in branches
        }
        self._current_branch_id = current.branch_id
        self._version_sequence = max((v.sequence for v in versions.values()), default=0)
        self._branch_sequence = len(branches)

    # =========================================================================
    # MUTATIONS (serialized by the guard)
    # =========================================================================

    def create_version(
        self,
        order: Sequence[ChapterId],
        name: str,
        description: str = ""
    ) -> VersionCommit:
        """
        Snapshot `order` on the current branch and advance its head.

        Raises InvalidOrder unless `order` is a permutation of the known
        chapters. Consistency issues never block the commit.
        """
        with self._guard.hold("create_version"):
            order = tuple(order)
            self._require_permutation(order)
            return self._commit(order, self._snapshot_content(order), name, description)

    def commit_reorder(
        self,
        order: Sequence[ChapterId],
        name: str,
        description: str = ""
    ) -> VersionCommit:
        """Commit a previously previewed order."""
        return self.create_version(order, name, description)

    def create_branch(self, name: str, description: str = "", purpose: str = "experiment") -> Branch:
        """Fork from the current branch head. The new branch is not switched to."""
        with self._guard.hold("create_branch"):
            source = self.current_branch
            now = self._clock()
            branch = Branch(
                branch_id=self._peek_branch_id(name),
                name=name,
                description=description,
                created_at=now,
                last_modified=now,
                purpose=purpose,
                parent_branch_id=source.branch_id,
                head_version_id=source.head_version_id,
                is_active=False,
            )
            self._branch_sequence += 1
            self._branches[branch.branch_id] = branch
            logger.info(
                "Created branch %s (%s) from %s at %s",
                branch.name, branch.branch_id, source.name, branch.head_version_id
            )
            self._persist_branch(branch)
            return branch

    def switch_branch(self, branch_id: str) -> Branch:
        """Pointer move; no analysis is re-run."""
        with self._guard.hold("switch_branch"):
            target = self._require_branch(branch_id)
            if target.branch_id == self._current_branch_id:
                return target
            previous = replace(self.current_branch, is_active=False)
            activated = replace(target, is_active=True)
            self._branches[previous.branch_id] = previous
            self._branches[activated.branch_id] = activated
            self._current_branch_id = activated.branch_id
            logger.info("Switched branch %s -> %s", previous.name, activated.name)
            self._persist_branch(previous)
            self._persist_branch(activated)
            return activated

    def rollback(self, version_id: str) -> VersionCommit:
        """
        Re-commit an earlier version's order and content as a new version.

        History is never rewritten; the target stays reachable.
        """
        with self._guard.hold("rollback"):
            target = self._require_version(version_id)
            logger.info("Rolling back %s to %s", self.current_branch.name, target.version_id)
            return self._commit(
                target.chapter_order,
                target.content,
                name=f"Rollback to {target.name}",
                description=f"Rollback to '{target.name}' ({target.version_id})",
            )

    def add_chapter(self, chapter: Chapter) -> Chapter:
        """Register a chapter, or bring a retired one back into the known set."""
        with self._guard.hold("add_chapter"):
            if chapter.chapter_id in self._known:
                raise ValueError(f"Chapter already registered: {chapter.chapter_id}")
            self._chapters[chapter.chapter_id] = chapter
            self._known[chapter.chapter_id] = None
            logger.info("Added chapter %s", chapter.chapter_id)
            return chapter

    def retire_chapter(self, chapter_id: ChapterId) -> Chapter:
        """Drop a chapter from the known set. Old versions still reference it."""
        with self._guard.hold("retire_chapter"):
            if chapter_id not in self._known:
                raise UnknownChapter(f"No active chapter {chapter_id}", chapter_id=chapter_id)
            del self._known[chapter_id]
            logger.info("Retired chapter %s", chapter_id)
            return self._chapters[chapter_id]

    def update_chapter(
        self,
        chapter_id: ChapterId,
        title: Optional[str] = None,
        dependencies: Optional[DependencyDescriptor] = None,
        metadata: Optional[ChapterMetadata] = None,
        signature: Optional[ContentSignature] = None
    ) -> Chapter:
        """
        The update path for chapter data.

        Published versions keep their cached analysis; the next commit
        recomputes everything against the updated table.
        """
        with self._guard.hold("update_chapter"):
            if chapter_id not in self._chapters:
                raise UnknownChapter(f"No chapter {chapter_id}", chapter_id=chapter_id)
            chapter = self._chapters[chapter_id]
            if title is not None:
                chapter = replace(chapter, title=title)
            if dependencies is not None:
                chapter = replace(chapter, dependencies=dependencies)
            if metadata is not None:
                chapter = replace(chapter, metadata=metadata)
            if signature is not None:
                chapter = chapter.with_content(signature)
            self._chapters[chapter_id] = chapter
            logger.info("Updated chapter %s", chapter_id)
            return chapter

    # =========================================================================
    # READ-ONLY OPERATIONS
    # =========================================================================

    def preview_reorder(self, candidate_order: Sequence[ChapterId]) -> VersionDiff:
        """
        Impact of committing candidate_order, without committing it.

        On a detached branch the diff is taken against an empty version,
        so every issue of the candidate is reported as new.
        """
        order = tuple(candidate_order)
        self._require_permutation(order)
        logger.debug("Previewing order %s", ",".join(order))
        current = self.current_version or self._empty_version()
        synthetic = Version(
            version_id=PREVIEW_VERSION_ID,
            name="Preview",
            description="",
            created_at=self._clock(),
            parent_version_id=self.current_branch.head_version_id,
            branch_id=self._current_branch_id,
            chapter_order=order,
            content=self._snapshot_content(order),
            analysis=self._analyze(order),
        )
        return self._differ.diff(current, synthetic, self._chapters)

    def get_consistency_issues(self, version_id: str) -> Tuple[ConsistencyIssue, ...]:
        return self._require_version(version_id).analysis.consistency_issues

    def get_pace_analysis(self, version_id: str) -> PaceAnalysis:
        return self._require_version(version_id).analysis.pace

    def diff(self, from_version_id: str, to_version_id: str) -> VersionDiff:
        logger.debug("Diffing %s -> %s", from_version_id, to_version_id)
        return self._differ.diff(
            self._require_version(from_version_id),
            self._require_version(to_version_id),
            self._chapters
        )

    def preview_merge(self, source_branch_id: str) -> MergePreview:
        """
        Impact report for bringing source_branch into the current branch.

        Conflicts are judged against the nearest common ancestor. Nothing
        is merged; resolution is left to the author.
        """
        source = self._require_branch(source_branch_id)
        target = self.current_branch
        if source.head_version_id is None or target.head_version_id is None:
            return MergePreview(source.branch_id, target.branch_id, None, None, ())

        ours = self._versions[target.head_version_id]
        theirs = self._versions[source.head_version_id]
        ancestor_id = common_ancestor(
            lineage_graph(self._versions.values()), ours.version_id, theirs.version_id
        )
        conflicts: Tuple[MergeConflict, ...] = ()
        if ancestor_id is not None:
            conflicts = _merge_conflicts(self._versions[ancestor_id], ours, theirs)

        return MergePreview(
            source_branch_id=source.branch_id,
            target_branch_id=target.branch_id,
            common_ancestor_id=ancestor_id,
            diff=self._differ.diff(ours, theirs, self._chapters),
            conflicts=conflicts,
        )

    def suggest_order(self) -> Tuple[ChapterId, ...]:
        """Dependency-respecting order of the known chapters, closest to the current one."""
        known = {cid: self._chapters[cid] for cid in self._known}
        current = self.current_version
        baseline = current.chapter_order if current else tuple(self._known)
        return DependencyTopology(known).suggest_order(baseline)

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def current_branch(self) -> Branch:
        return self._branches[self._current_branch_id]

    @property
    def current_version(self) -> Optional[Version]:
        head = self.current_branch.head_version_id
        return self._versions[head] if head is not None else None

    @property
    def known_chapter_ids(self) -> Tuple[ChapterId, ...]:
        return tuple(self._known)

    @property
    def chapters(self) -> Dict[ChapterId, Chapter]:
        """Copy of the chapter table, retired chapters included."""
        return dict(self._chapters)

    @property
    def persist_failures(self) -> Tuple[Error, ...]:
        """Every persistence failure reported during this session."""
        return tuple(self._persist_failures)

    def get_version(self, version_id: str) -> Version:
        return self._require_version(version_id)

    def get_branch(self, branch_id: str) -> Branch:
        return self._require_branch(branch_id)

    def branches(self) -> Tuple[Branch, ...]:
        return tuple(self._branches.values())

    def versions(self) -> Tuple[Version, ...]:
        """All versions, in creation order."""
        return tuple(self._versions.values())

    def history(self, version_id: str) -> Tuple[Version, ...]:
        """The version and its ancestors, newest first."""
        chain = []
        version: Optional[Version] = self._require_version(version_id)
        while version is not None:
            chain.append(version)
            parent = version.parent_version_id
            version = self._versions[parent] if parent is not None else None
        return tuple(chain)

    def branch_history(self, branch_id: str) -> Tuple[Version, ...]:
        head = self._require_branch(branch_id).head_version_id
        return self.history(head) if head is not None else ()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _commit(
        self,
        order: Tuple[ChapterId, ...],
        content: Tuple[ChapterSnapshot, ...],
        name: str,
        description: str
    ) -> VersionCommit:
        branch = self.current_branch
        parent = self.current_version
        parent_id = parent.version_id if parent else None
        sequence = self._version_sequence + 1
        analysis = self._analyze(order)

        version = Version(
            version_id=generate_version_id(branch.branch_id, sequence, parent_id),
            name=name,
            description=description,
            created_at=self._clock(),
            parent_version_id=parent_id,
            branch_id=branch.branch_id,
            chapter_order=order,
            content=content,
            analysis=analysis,
            sequence=sequence,
        )
        if parent is None:
            new_issues = analysis.consistency_issues
        else:
            new_issues, _ = self._differ.issue_delta(parent.chapter_order, order, self._chapters)
        advanced = replace(
            branch,
            head_version_id=version.version_id,
            version_count=branch.version_count + 1,
            last_modified=version.created_at,
        )

        # Link in; nothing below can fail
        self._versions[version.version_id] = version
        self._branches[advanced.branch_id] = advanced
        self._version_sequence = sequence
        logger.info(
            "Created version %s '%s' on %s (%d issue(s), %d new)",
            version.version_id, name, branch.name,
            len(analysis.consistency_issues), len(new_issues)
        )

        persist_error = self._persist_version(version)
        branch_error = self._persist_branch(advanced)
        return VersionCommit(
            version=version,
            new_consistency_issues=new_issues,
            persist_error=persist_error or branch_error,
        )

    def _analyze(self, order: Sequence[ChapterId]) -> AnalysisResult:
        return AnalysisResult(
            consistency_issues=self._validator.validate(order, self._chapters),
            pace=self._pacing.analyze(order, self._chapters),
        )

    def _snapshot_content(self, order: Sequence[ChapterId]) -> Tuple[ChapterSnapshot, ...]:
        snapshots = []
        for cid in order:
            if self._content_source is not None:
                signature = self._content_source.content_signature(cid)
            else:
                signature = self._chapters[cid].signature
            snapshots.append(ChapterSnapshot(cid, signature.content_hash, signature.word_count))
        return tuple(snapshots)

    def _require_permutation(self, order: Tuple[ChapterId, ...]) -> None:
        seen = set()
        repeated = set()
        for cid in order:
            if cid in seen:
                repeated.add(cid)
            seen.add(cid)
        duplicates = sorted(repeated)
        foreign = sorted(seen - set(self._known))
        missing = [cid for cid in self._known if cid not in seen]
        if duplicates or foreign or missing:
            raise InvalidOrder(
                "Order is not a permutation of the known chapters",
                duplicates=",".join(duplicates),
                foreign=",".join(foreign),
                missing=",".join(missing),
            )

    def _require_version(self, version_id: str) -> Version:
        if version_id not in self._versions:
            raise UnknownVersion(f"No version {version_id}", version_id=version_id)
        return self._versions[version_id]

    def _require_branch(self, branch_id: str) -> Branch:
        if branch_id not in self._branches:
            raise UnknownBranch(f"No branch {branch_id}", branch_id=branch_id)
        return self._branches[branch_id]

    def _empty_version(self) -> Version:
        return Version(
            version_id=EMPTY_VERSION_ID,
            name="Empty",
            description="",
            created_at=self._clock(),
            parent_version_id=None,
            branch_id=self._current_branch_id,
            chapter_order=(),
            content=(),
            analysis=AnalysisResult(consistency_issues=(), pace=PaceAnalysis.empty()),
        )

    def _peek_branch_id(self, name: str) -> str:
        return generate_branch_id(name, self._branch_sequence + 1)

    def _next_branch_id(self, name: str) -> str:
        branch_id = self._peek_branch_id(name)
        self._branch_sequence += 1
        return branch_id

    def _persist_version(self, version: Version) -> Optional[Error]:
        if self._persistence is None:
            return None
        try:
            result = self._persistence.save_version(version)
        except PersistError as e:
            return self._record_persist_failure(e.error)
        except Exception as e:
            return self._record_persist_failure(
                Error.create(ErrorCode.PERSIST_FAILED, str(e), record_id=version.version_id)
            )
        return None if result.success else self._record_persist_failure(result.error)

    def _persist_branch(self, branch: Branch) -> Optional[Error]:
        if self._persistence is None:
            return None
        try:
            result = self._persistence.save_branch(branch)
        except PersistError as e:
            return self._record_persist_failure(e.error)
        except Exception as e:
            return self._record_persist_failure(
                Error.create(ErrorCode.PERSIST_FAILED, str(e), record_id=branch.branch_id)
            )
        return None if result.success else self._record_persist_failure(result.error)

    def _record_persist_failure(self, error: Error) -> Error:
        logger.warning("Persistence failed (in-memory state kept): %s", error.message)
        self._persist_failures.append(error)
        return error


def _merge_conflicts(base: Version, ours: Version, theirs: Version) -> Tuple[MergeConflict, ...]:
    """Chapters both sides changed differently since base."""
    conflicts = []
    base_pos = {cid: i for i, cid in enumerate(base.chapter_order)}
    our_pos = {cid: i for i, cid in enumerate(ours.chapter_order)}
    their_pos = {cid: i for i, cid in enumerate(theirs.chapter_order)}
    for cid, position in base_pos.items():
        if cid not in our_pos or cid not in their_pos:
            continue
        if our_pos[cid] != position and their_pos[cid] != position and our_pos[cid] != their_pos[cid]:
            conflicts.append(MergeConflict(
                ConflictType.CHAPTER_ORDER, cid,
                f"Moved to {our_pos[cid]} here and to {their_pos[cid]} on the other branch"
            ))

    base_hash = base.content_hashes
    our_hash = ours.content_hashes
    their_hash = theirs.content_hashes
    for cid, digest in base_hash.items():
        mine, other = our_hash.get(cid), their_hash.get(cid)
        if mine is None or other is None:
            continue
        if mine != digest and other != digest and mine != other:
            conflicts.append(MergeConflict(
                ConflictType.CONTENT_CHANGE, cid, "Edited differently on both branches"
            ))
    return tuple(conflicts)

"""
Forensic Reporter CLI
=====================

Inspects persisted version/branch records directly, bypassing the API.

COMMANDS:
- verify:   Check parent links, branch heads and chapter orders
- versions: Visualize the version lineage tree
- issues:   Consistency issues of one version (needs --chapters)
- diff:     Structural diff between two versions (needs --chapters)

USAGE:
    python -m manuscript_engine.forensic --storage-dir DIR [--chapters FILE] COMMAND
"""

import argparse
import os
import sys
from typing import Dict, List, Optional, Sequence

from .config import CHAPTERS_FILE_ENV, STORAGE_DIR_ENV
from .contracts.base import EngineError
from .contracts.serialization import load_chapter_catalog
from .contracts.versions import Branch
from .graph import VersionGraph
from .observability import init_logging
from .storage import FileStorageBackend, VersionRecord


def find_problems(branches: Sequence[Branch], records: Sequence[VersionRecord]) -> List[str]:
    """Structural problems in persisted records. Empty list means intact."""
    problems = []
    by_id: Dict[str, VersionRecord] = {}
    for record in records:
        vid = record['version_id']
        if vid in by_id:
            problems.append(f"Version {vid} recorded more than once")
        by_id[vid] = record

    for vid, record in by_id.items():
        parent = record.get('parent_version_id')
        if parent is not None and parent not in by_id:
            problems.append(f"Version {vid}: parent {parent} missing")
        order = record['chapter_order']
        if len(set(order)) != len(order):
            problems.append(f"Version {vid}: chapter order has duplicates")
        content_ids = [c['chapter_id'] for c in record['content']]
        if content_ids != list(order):
            problems.append(f"Version {vid}: content does not match chapter order")

    active = [b for b in branches if b.is_active]
    if len(active) > 1:
        problems.append(f"{len(active)} branches marked active")
    for branch in branches:
        if branch.head_version_id is not None and branch.head_version_id not in by_id:
            problems.append(f"Branch {branch.name}: head {branch.head_version_id} missing")
    return problems


def render_lineage(branches: Sequence[Branch], records: Sequence[VersionRecord]) -> List[str]:
    """ASCII tree of versions, heads tagged with their branch names."""
    heads: Dict[str, List[str]] = {}
    for branch in branches:
        if branch.head_version_id is not None:
            heads.setdefault(branch.head_version_id, []).append(branch.name)

    children: Dict[str, List[VersionRecord]] = {}
    roots = []
    for record in records:
        parent = record.get('parent_version_id')
        if parent is None:
            roots.append(record)
        else:
            children.setdefault(parent, []).append(record)

    lines = []

    def walk(record: VersionRecord, prefix: str, is_last: bool) -> None:
        vid = record['version_id']
        connector = "`-- " if is_last else "|-- "
        tags = "".join(f" [{name}]" for name in heads.get(vid, []))
        lines.append(f"{prefix}{connector}{vid} {record['name']} ({record['created_at'][:19]}){tags}")
        kids = children.get(vid, [])
        for i, kid in enumerate(kids):
            walk(kid, prefix + ("    " if is_last else "|   "), i == len(kids) - 1)

    for root in roots:
        walk(root, "", True)
    return lines


def cmd_verify(args) -> int:
    print(f"[*] Verifying storage at: {args.storage_dir}")
    branches, records = FileStorageBackend(args.storage_dir).load_all()
    print(f"    Loaded {len(records)} versions, {len(branches)} branches.")
    problems = find_problems(branches, records)
    for problem in problems:
        print(f"[FAIL] {problem}")
    if problems:
        print(f"[FAIL] Found {len(problems)} problems.")
        return 1
    print("[PASS] Version graph intact.")
    return 0


def cmd_versions(args) -> int:
    branches, records = FileStorageBackend(args.storage_dir).load_all()
    if not records:
        print("[!] No versions found.")
        return 0
    print("VERSION LINEAGE")
    print("===============")
    for line in render_lineage(branches, records):
        print(line)
    return 0


def _restore(args) -> VersionGraph:
    if not args.chapters:
        raise SystemExit(f"--chapters (or {CHAPTERS_FILE_ENV}) is required for this command")
    chapters = load_chapter_catalog(args.chapters)
    return VersionGraph.restore(chapters.values(), FileStorageBackend(args.storage_dir))


def cmd_issues(args) -> int:
    graph = _restore(args)
    issues = graph.get_consistency_issues(args.version_id)
    if not issues:
        print("[PASS] No consistency issues.")
        return 0
    for issue in issues:
        print(f"{issue.position:<4} {issue.severity.value:<8} {issue.issue_type.value:<28} {issue.description}")
    return 0


def cmd_diff(args) -> int:
    graph = _restore(args)
    diff = graph.diff(args.from_id, args.to_id)
    print(f"Impact: {diff.impact_score} ({diff.risk_level.value})")
    for move in diff.chapter_moves:
        print(f"  moved   {move.chapter_id}: {move.from_index} -> {move.to_index}")
    for cid in diff.added:
        print(f"  added   {cid}")
    for cid in diff.removed:
        print(f"  removed {cid}")
    for change in diff.content_changes:
        print(f"  edited  {change.chapter_id} ({change.change_type.value}, {change.word_count_delta:+d} words)")
    for issue in diff.new_consistency_issues:
        print(f"  [NEW]      {issue.description}")
    for issue in diff.resolved_consistency_issues:
        print(f"  [RESOLVED] {issue.description}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Manuscript forensic reporter")
    parser.add_argument(
        "--storage-dir",
        default=os.environ.get(STORAGE_DIR_ENV, "./data/manuscript"),
        help="Path to storage directory"
    )
    parser.add_argument(
        "--chapters",
        default=os.environ.get(CHAPTERS_FILE_ENV),
        help="Chapter catalog (JSON)"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("verify", help="Verify integrity")
    subparsers.add_parser("versions", help="Show version lineage")
    issues_parser = subparsers.add_parser("issues", help="Consistency issues of a version")
    issues_parser.add_argument("version_id")
    diff_parser = subparsers.add_parser("diff", help="Diff two versions")
    diff_parser.add_argument("from_id")
    diff_parser.add_argument("to_id")

    args = parser.parse_args(argv)
    init_logging()

    commands = {
        "verify": cmd_verify,
        "versions": cmd_versions,
        "issues": cmd_issues,
        "diff": cmd_diff,
    }
    if args.command not in commands:
        parser.print_help()
        return 2
    try:
        return commands[args.command](args)
    except EngineError as e:
        print(f"[FAIL] {e.error.code.name}: {e.error.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

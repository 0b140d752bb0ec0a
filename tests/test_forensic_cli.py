"""
Forensic CLI Tests
==================

The reporter reads storage directly and exits non-zero on damage.
"""

import json
import os

import pytest

from manuscript_engine.forensic import find_problems, main, render_lineage
from manuscript_engine.graph import VersionGraph
from manuscript_engine.storage import FileStorageBackend

from tests.fixtures import SteppingClock, reveal_table


@pytest.fixture
def storage_dir(tmp_path):
    backend = FileStorageBackend(str(tmp_path))
    g = VersionGraph(reveal_table().values(), persistence=backend, clock=SteppingClock())
    g.create_version(("A", "B", "C"), "Draft 1")
    g.create_branch("experiment")
    g.create_version(("B", "A", "C"), "Draft 2")
    return str(tmp_path)


@pytest.fixture
def catalog(tmp_path):
    path = tmp_path / "chapters.json"
    path.write_text(json.dumps([
        {"chapter_id": "A", "title": "A", "dependencies": {"introduces": ["X"]}},
        {
            "chapter_id": "B", "title": "B",
            "dependencies": {
                "required_knowledge": ["X"],
                "references": [{"target_chapter_id": "A", "kind": "setup", "is_hard_requirement": True}],
            },
        },
        {"chapter_id": "C", "title": "C"},
    ]))
    return str(path)


class TestVerify:

    def test_intact_storage_passes(self, storage_dir, capsys):
        assert main(["--storage-dir", storage_dir, "verify"]) == 0
        assert "[PASS]" in capsys.readouterr().out

    def test_missing_parent_fails(self, storage_dir, capsys):
        path = os.path.join(storage_dir, "versions.jsonl")
        with open(path) as f:
            lines = f.readlines()
        with open(path, "w") as f:
            f.writelines(lines[1:])

        assert main(["--storage-dir", storage_dir, "verify"]) == 1
        assert "parent" in capsys.readouterr().out

    def test_find_problems_flags_duplicate_chapters(self, storage_dir):
        branches, records = FileStorageBackend(storage_dir).load_all()
        records[0]['chapter_order'] = ["A", "A", "C"]

        problems = find_problems(branches, records)

        assert any("duplicates" in p for p in problems)


class TestReports:

    def test_lineage_tags_branch_heads(self, storage_dir):
        branches, records = FileStorageBackend(storage_dir).load_all()
        lines = render_lineage(branches, records)

        assert len(lines) == 2
        assert "[experiment]" in lines[0]
        assert "[main]" in lines[1]

    def test_issues_command(self, storage_dir, catalog, capsys):
        branches, records = FileStorageBackend(storage_dir).load_all()
        version_id = records[1]['version_id']

        code = main(["--storage-dir", storage_dir, "--chapters", catalog, "issues", version_id])

        assert code == 0
        assert "hard-dependency-violation" in capsys.readouterr().out

    def test_diff_command(self, storage_dir, catalog, capsys):
        _, records = FileStorageBackend(storage_dir).load_all()
        first, second = records[0]['version_id'], records[1]['version_id']

        assert main(["--storage-dir", storage_dir, "--chapters", catalog, "diff", first, second]) == 0
        out = capsys.readouterr().out
        assert "Impact: 20 (medium)" in out
        assert "[NEW]" in out

    def test_unknown_version_exits_nonzero(self, storage_dir, catalog):
        assert main(["--storage-dir", storage_dir, "--chapters", catalog, "issues", "v_missing"]) == 1

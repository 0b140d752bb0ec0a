"""
Logging Tests
=============
"""

import json
import logging

from manuscript_engine.observability import JsonFormatter


class TestJsonFormatter:

    def test_extra_fields_are_kept(self):
        record = logging.LogRecord(
            "manuscript_engine.graph", logging.INFO, __file__, 1,
            "Created version %s", ("v_1",), None
        )
        record.branch = "main"

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "Created version v_1"
        assert data["level"] == "INFO"
        assert data["branch"] == "main"

    def test_unserializable_extra_is_stringified(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "msg", (), None)
        record.payload = object()

        data = json.loads(JsonFormatter().format(record))

        assert data["payload"].startswith("<object")


class TestEngineLogging:

    def test_mutations_log_at_info(self, caplog):
        from manuscript_engine.graph import VersionGraph
        from tests.fixtures import reveal_table

        g = VersionGraph(reveal_table().values())
        with caplog.at_level(logging.INFO, logger="manuscript_engine"):
            g.create_version(("A", "B", "C"), "Draft 1")

        assert any("Created version" in r.getMessage() for r in caplog.records)

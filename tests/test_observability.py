"""
Tests for the observer port and the JSONL session logger.
"""

import json
import logging
from unittest.mock import MagicMock

from sita.observability import LoggingObserver, MultiObserver, SessionLogger
from sita.observability.session_logger import MAX_LIST_ITEMS, MAX_STRING_LEN, _truncate_value

from onboarding.steps import SetupMode

from conftest import RecordingObserver


class TestLoggingObserver:

    def test_levels(self, caplog):
        observer = LoggingObserver(logging.getLogger("test.onboarding"))
        with caplog.at_level(logging.INFO, logger="test.onboarding"):
            observer.event("step_changed", to_step="name")
            observer.event("remote_save_failed", kind="network")

        levels = {r.getMessage().split()[0]: r.levelno for r in caplog.records}
        assert levels["step_changed"] == logging.INFO
        assert levels["remote_save_failed"] == logging.WARNING
        assert "to_step=name" in caplog.records[0].getMessage()


class TestMultiObserver:

    def test_fans_out(self):
        a, b = RecordingObserver(), RecordingObserver()
        MultiObserver(a, b).event("session_started", mode="quick")
        assert a.names() == b.names() == ["session_started"]

    def test_failing_observer_does_not_block_others(self):
        broken = MagicMock()
        broken.event.side_effect = RuntimeError("nope")
        ok = RecordingObserver()
        MultiObserver(broken, ok).event("session_started")
        assert ok.names() == ["session_started"]

    def test_close_closes_session_log(self, tmp_path):
        session_log = SessionLogger(session_id="abc", log_dir=tmp_path)
        MultiObserver(LoggingObserver(), session_log, RecordingObserver()).close()
        assert session_log.log_file is None
        lines = (tmp_path / "onboarding_abc.jsonl").read_text().splitlines()
        assert json.loads(lines[-1])["event"] == "session_end"


class TestSessionLogger:

    def test_writes_jsonl(self, tmp_path):
        logger = SessionLogger(session_id="abc", log_dir=tmp_path)
        logger.event("mode_chosen", to_mode=SetupMode.DEEP, step_index=2)
        path = logger.close()

        lines = [json.loads(line) for line in open(path, encoding="utf-8")]
        assert [line["event"] for line in lines] == ["session_start", "mode_chosen", "session_end"]
        assert lines[1]["to_mode"] == "deep"
        assert lines[1]["seq"] == 1
        assert lines[2]["total_events"] == 1

    def test_disabled_is_noop(self, tmp_path):
        logger = SessionLogger(log_dir=tmp_path / "logs", enabled=False)
        logger.event("anything")
        assert logger.close() is None
        assert not (tmp_path / "logs").exists()


class TestTruncation:

    def test_long_string(self):
        result = _truncate_value("x" * (MAX_STRING_LEN + 10))
        assert result.endswith(f"({MAX_STRING_LEN + 10} chars)")

    def test_long_list(self):
        result = _truncate_value(list(range(MAX_LIST_ITEMS + 3)))
        assert result[-1] == "... +3 more"

    def test_to_dict_objects(self):
        class Thing:
            def to_dict(self):
                return {"a": 1}

        assert _truncate_value(Thing()) == {"a": 1}

    def test_enums_log_by_value(self):
        assert _truncate_value({"mode": SetupMode.QUICK}) == {"mode": "quick"}

    def test_heavy_fields_collapse(self):
        result = _truncate_value({"record": {"name": "Ada", "theme": "dark"}, "data": "y" * 80})
        assert result["record"] == "<dict len=2>"
        assert result["data"] == "y" * 50 + "... (80 chars)"

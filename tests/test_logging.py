"""Tests for the JSON log formatter and logger hierarchy."""

import json
import logging

from storyline.core.logging import JSONFormatter, ROOT_LOGGER, configure_logging, get_logger


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("storyline.test", logging.WARNING, __file__, 1, "queued %s", ("e1",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_formats_message_and_sdk_fields(self):
        line = JSONFormatter().format(_record(event_type="viewed", pending_count=3, unrelated="x"))
        entry = json.loads(line)

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "storyline.test"
        assert entry["message"] == "queued e1"
        assert entry["event_type"] == "viewed"
        assert entry["pending_count"] == 3
        assert "unrelated" not in entry

    def test_custom_field_list(self):
        entry = json.loads(JSONFormatter(fields=("unrelated",)).format(_record(unrelated="x")))

        assert entry["unrelated"] == "x"

    def test_non_json_values_are_stringified(self):
        entry = json.loads(JSONFormatter().format(_record(campaign_id=object())))

        assert isinstance(entry["campaign_id"], str)


class TestLoggerHierarchy:
    def test_children_share_one_root_handler(self):
        first = get_logger("alpha")
        second = get_logger("beta")
        root = logging.getLogger(ROOT_LOGGER)

        assert first.name == "storyline.alpha"
        assert not first.handlers and not second.handlers
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_configure_logging_sets_level(self):
        try:
            assert configure_logging("debug").level == logging.DEBUG
        finally:
            configure_logging()

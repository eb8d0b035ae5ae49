from __future__ import annotations

import logging

from anchorlink.engine.events import LoggingEventSink, RecordingEventSink


def test_logging_sink_renders_fields_and_levels(caplog):
    sink = LoggingEventSink(logging.getLogger("tests.events"))

    with caplog.at_level(logging.INFO, logger="tests.events"):
        sink.emit("sync.batch_written", operation="insert", rows=500)
        sink.emit("sync.batch_failed", operation="update", size=200)

    written, failed = caplog.records
    assert written.getMessage() == "sync.batch_written operation=insert rows=500"
    assert written.levelno == logging.INFO
    assert written.event_fields == {"operation": "insert", "rows": 500}
    assert failed.levelno == logging.WARNING


def test_recording_sink_filters_by_name():
    sink = RecordingEventSink()
    sink.emit("a", value=1)
    sink.emit("b")
    sink.emit("a", value=2)

    assert sink.names == ["a", "b", "a"]
    assert sink.named("a") == [{"value": 1}, {"value": 2}]

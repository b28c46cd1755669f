import json
import logging

import pytest

from qrembed.errors import CapacityExceeded
from qrembed.logging import AUDIT, JsonFormatter, audit, get_logger, redact, trace
from qrembed.pipeline import generate_image_qr, generate_text_qr

SECRET = "card=4111-1111-1111-1111"


def _dump(records):
    out = []
    for r in records:
        out.append(r.getMessage())
        out.append(repr(getattr(r, "ctx", "")))
    return "\n".join(out)


def test_redact():
    assert redact(SECRET) == f"<str len={len(SECRET)}>"
    assert redact(b"\x00" * 5) == "<bytes len=5>"
    assert redact(12) == "12"


def test_pipeline_never_logs_payload(caplog, logo_png):
    caplog.set_level(logging.DEBUG, logger="qrembed")
    generate_text_qr(SECRET)
    generate_image_qr(SECRET, logo_png)
    assert caplog.records
    assert SECRET not in _dump(caplog.records)


def test_failures_never_log_payload(caplog):
    caplog.set_level(logging.DEBUG, logger="qrembed")
    with pytest.raises(CapacityExceeded):
        generate_text_qr(SECRET * 200, {"errorCorrectionLevel": "H"})
    assert "4111" not in _dump(caplog.records)


def test_audit_records_event_and_context(caplog):
    caplog.set_level(AUDIT, logger="qrembed")
    audit("unit.event", logger=get_logger("unit"), answer=42)
    record = caplog.records[-1]
    assert record.levelname == "AUDIT"
    assert record.event == "unit.event"
    assert record.ctx == {"answer": 42}

    line = json.loads(JsonFormatter().format(record))
    assert line["event"] == "unit.event"
    assert line["src"] == "qrembed.unit"


def test_audit_respects_level(caplog):
    caplog.set_level(logging.ERROR, logger="qrembed")
    audit("quiet.event", logger=get_logger("unit"))
    assert not [r for r in caplog.records if getattr(r, "event", "") == "quiet.event"]


def test_trace_logs_errors_and_reraises(caplog):
    caplog.set_level(logging.DEBUG, logger="qrembed")

    @trace(logger_name="unit")
    def boom(text):
        raise RuntimeError("fixed message")

    with pytest.raises(RuntimeError):
        boom(SECRET)

    events = [getattr(r, "event", None) for r in caplog.records]
    assert "boom.enter" in events
    assert "boom.error" in events
    assert SECRET not in _dump(caplog.records)

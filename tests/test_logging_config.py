import io
import json
import logging

import pytest

from veil.logging_config import REDACTED, operation_context, redact_secrets, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_redact_secrets():
    event = {"event": "bound", "keypair": b"\x01\x02", "public_key": "abc"}

    redacted = redact_secrets(None, "info", event)

    assert redacted["keypair"] == REDACTED
    assert redacted["public_key"] == "abc"


def test_json_lines_carry_operation_context(restore_root_logger):
    stream = io.StringIO()
    setup_logging("INFO", json_output=True, stream=stream)

    with operation_context(operation="deposit", public_key="abc"):
        logging.getLogger("veil.test").info("attempt %d", 2)
    logging.getLogger("veil.test").info("outside")

    first, second = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert first["event"] == "attempt 2"
    assert first["operation"] == "deposit"
    assert first["public_key"] == "abc"
    assert first["level"] == "info"
    assert "operation" not in second


def test_transport_loggers_are_quieted(restore_root_logger):
    setup_logging("DEBUG", stream=io.StringIO())

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING

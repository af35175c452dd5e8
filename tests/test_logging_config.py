import json
import logging

import pytest

from flashbundle.logging_config import bind_run_id, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_stdlib_records_carry_run_id(capsys, restore_root_logger):
    setup_logging("INFO")

    with bind_run_id("run-123"):
        logging.getLogger("flashbundle.pipeline").info("Bundle submitted")
    logging.getLogger("flashbundle.pipeline").info("after run")

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines[0]["event"] == "Bundle submitted"
    assert lines[0]["run_id"] == "run-123"
    assert lines[0]["level"] == "info"
    assert lines[0]["logger"] == "flashbundle.pipeline"
    assert "run_id" not in lines[1]


def test_transport_loggers_are_quieted(restore_root_logger):
    setup_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING

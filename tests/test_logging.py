"""Tests for log formatting and setup."""

import json
import logging
from pathlib import Path

import pytest

from natgw_lifecycle.utils.logging import ConsoleFormatter, JSONFormatter, setup_logging


def make_record(message: str = "Deleted NAT gateway", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "natgw_lifecycle.test", logging.INFO, __file__, 1, message, None, None
    )
    record.__dict__.update(extra)
    return record


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_context_fields(self) -> None:
        line = JSONFormatter().format(
            make_record(nat_gateway_id="nat-1", operation="delete", state=None)
        )

        entry = json.loads(line)
        assert entry["message"] == "Deleted NAT gateway"
        assert entry["nat_gateway_id"] == "nat-1"
        assert entry["operation"] == "delete"
        assert "state" not in entry
        assert entry["timestamp"].endswith("Z")


class TestConsoleFormatter:
    """Tests for ConsoleFormatter."""

    def test_prefix_with_gateway(self) -> None:
        line = ConsoleFormatter(use_color=False).format(
            make_record(gateway_name="egress-a", nat_gateway_id="nat-1")
        )

        assert line.endswith("INFO     [egress-a nat-1] Deleted NAT gateway")

    def test_plain_message(self) -> None:
        line = ConsoleFormatter(use_color=False).format(make_record())

        assert line.endswith("INFO     Deleted NAT gateway")
        assert "\033[" not in line


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_json_lines_file(self, tmp_path: Path, restore_root) -> None:
        setup_logging("warning", log_dir=str(tmp_path / "logs"))

        logging.getLogger("natgw_lifecycle.test").debug("probe", extra={"nat_gateway_id": "nat-1"})
        for handler in restore_root.handlers:
            handler.flush()

        [log_file] = (tmp_path / "logs").iterdir()
        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["level"] == "DEBUG"
        assert entry["nat_gateway_id"] == "nat-1"

    def test_console_only(self, restore_root) -> None:
        setup_logging("error", log_dir=None)

        assert len(restore_root.handlers) == 1
        assert restore_root.level == logging.ERROR
        assert logging.getLogger("botocore").level == logging.WARNING

"""
Tests for logging setup and password redaction.

Run: python3 -m pytest tests/test_logging_config.py -v
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from utils.logging_config import (
    RedactingFilter,
    enable_debug,
    get_logger,
    redact,
    reset_logging,
    setup_logging,
    suppress_logger,
)


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()
    logging.getLogger().setLevel(logging.WARNING)


class TestRedact:
    """Tests for the redact helper."""

    def test_key_value(self):
        """Test KEY=VALUE assignments are masked."""
        assert redact("password=hunter2 user=bob") == "password=******** user=bob"

    def test_nmcli_passwd_file_line(self):
        """Test the nmcli secrets line is masked."""
        assert redact("pppoe.password:TopSecret!") == "pppoe.password:********"

    def test_quoted_value(self):
        """Test quoted values are masked whole."""
        assert redact('Passwd: "two words"') == "Passwd: ********"

    def test_unrelated_text_untouched(self):
        """Test text without an assignment is unchanged."""
        text = "nmcli --wait 45 connection up id DSL passwd-file /tmp/x"
        assert redact(text) == text
        assert redact("Secrets were required, but not provided") == \
            "Secrets were required, but not provided"

    def test_word_boundary(self):
        """Test keys embedded in longer words are not treated as assignments."""
        assert redact("bypass=1") == "bypass=1"


class TestRedactingFilter:
    """Tests for the handler filter."""

    def test_filter_rewrites_record(self):
        """Test a record with a password argument is rewritten."""
        record = logging.LogRecord("test", logging.INFO, __file__, 1,
                                   "dialing with %s", ("password=abc",), None)
        assert RedactingFilter().filter(record) is True
        assert record.getMessage() == "dialing with password=********"

    def test_filter_leaves_clean_record(self):
        """Test a clean record keeps its args."""
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "%d checks", (5,), None)
        RedactingFilter().filter(record)
        assert record.args == (5,)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_transcript_is_redacted(self, tmp_path):
        """Test the file transcript captures debug lines with secrets masked."""
        log_file = tmp_path / "logs" / "diag.log"
        setup_logging(level=logging.WARNING, log_file=str(log_file), use_colors=False)

        log = logging.getLogger("pppoe.test")
        log.debug("debug detail")
        log.info("secret=abc123")
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = log_file.read_text()
        assert "debug detail" in text
        assert "abc123" not in text
        assert "secret=********" in text

    def test_setup_runs_once(self, tmp_path):
        """Test a second call does not add handlers."""
        setup_logging(level=logging.INFO, use_colors=False)
        count = len(logging.getLogger().handlers)
        setup_logging(level=logging.DEBUG, log_file=str(tmp_path / "x.log"))
        assert len(logging.getLogger().handlers) == count
        assert not (tmp_path / "x.log").exists()

    def test_level_helpers(self):
        """Test enable_debug and suppress_logger."""
        enable_debug("pppoe.helpers")
        assert logging.getLogger("pppoe.helpers").level == logging.DEBUG
        suppress_logger("pppoe.helpers")
        assert logging.getLogger("pppoe.helpers").level == logging.WARNING

    def test_get_logger_initializes(self):
        """Test get_logger sets up logging on first use."""
        log = get_logger("pppoe.lazy")
        assert log.name == "pppoe.lazy"
        assert logging.getLogger().handlers

"""
Tests for logging configuration and secret redaction.
"""

import logging

from iacrunner.logging_config import (
    REDACTED,
    SecretRedactionFilter,
    get_logging_config,
    redact,
    register_secret,
)


def make_record(msg, args=()):
    return logging.LogRecord(
        name="iacrunner.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )


class TestRedaction:
    def test_registered_secret_masked(self):
        register_secret("s3cr3t")

        assert redact("password=s3cr3t;") == f"password={REDACTED};"

    def test_longest_secret_masked_first(self):
        register_secret("abc")
        register_secret("abcdef")

        assert redact("value abcdef") == f"value {REDACTED}"

    def test_empty_and_non_string_ignored(self):
        register_secret("")
        register_secret(None)
        register_secret(42)

        assert redact("nothing 42 here") == "nothing 42 here"

    def test_filter_rewrites_formatted_message(self):
        register_secret("tok-123")
        record = make_record("Authorization: Bearer %s", ("tok-123",))

        assert SecretRedactionFilter().filter(record) is True
        assert record.getMessage() == f"Authorization: Bearer {REDACTED}"

    def test_filter_leaves_clean_records(self):
        record = make_record("Run phase: %s", ("executing",))

        assert SecretRedactionFilter().filter(record) is True
        assert record.args == ("executing",)


class TestLoggingConfig:
    def test_handler_writes_to_stderr(self):
        config = get_logging_config("debug")

        handler = config["handlers"]["default"]
        assert handler["stream"] == "ext://sys.stderr"
        assert handler["filters"] == ["secret_redaction"]
        assert config["loggers"]["iacrunner"]["level"] == "DEBUG"
        assert config["loggers"]["urllib3"]["level"] == "WARNING"

    def test_filter_factory(self):
        config = get_logging_config()

        assert config["filters"]["secret_redaction"]["()"] is SecretRedactionFilter

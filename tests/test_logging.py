"""
Tests for logging setup and sensitive data masking
"""
import json
import logging
import sys

import pytest

from mailpipe.utils.logging import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    LogManager,
    SensitiveDataFilter,
    SensitiveDataMasker,
    async_log_call,
    get_logger,
)


def make_record(msg, **extra):
    record = logging.LogRecord("mailpipe.test", logging.WARNING, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSensitiveDataMasker:
    """Tests for masking strategies"""

    def test_password_masked(self):
        masked = SensitiveDataMasker().mask_string("login with password=hunter2 now")

        assert "hunter2" not in masked
        assert "password=[REDACTED]" in masked

    def test_email_partially_masked(self):
        masked = SensitiveDataMasker().mask_string("sent to user@example.com")

        assert masked == "sent to u***@e***"

    def test_partial_strategy(self):
        masked = SensitiveDataMasker("partial").mask_string("token: abcdefghij")

        assert masked == "token: abc****hij"

    def test_mask_dict(self):
        masked = SensitiveDataMasker().mask_dict(
            {"password": "x", "nested": {"secret": "y"}, "count": 3}
        )

        assert masked == {"password": "[REDACTED]", "nested": {"secret": "[REDACTED]"}, "count": 3}


class TestSensitiveDataFilter:
    """Tests for the logging filter"""

    def test_masks_message_and_fields(self):
        record = make_record("auth failed, password=abc", password="abc", server="mx@host.io")

        assert SensitiveDataFilter().filter(record) is True
        assert "abc" not in record.msg
        assert record.password == "[REDACTED]"
        assert record.server == "m***@h***"

    def test_non_string_message_untouched(self):
        error = ValueError("boom")
        record = make_record(error)

        SensitiveDataFilter().filter(record)

        assert record.msg is error


class TestLogManager:
    """Tests for handler setup"""

    def test_console_handler_only_by_default(self):
        manager = LogManager("DEBUG")

        assert len(manager.root_logger.handlers) == 1
        assert manager.root_logger.handlers[0].level == logging.WARNING

    def test_file_handler_writes_json(self, tmp_path):
        manager = LogManager("INFO", log_to_file=True, log_dir=tmp_path)
        logger = manager.get_logger("tests")

        logger.info("hello password=topsecret")
        for handler in manager.root_logger.handlers:
            handler.flush()

        entry = json.loads((tmp_path / "app.log").read_text().splitlines()[-1])
        assert entry["level"] == "INFO"
        assert entry["logger"] == f"{ROOT_LOGGER_NAME}.tests"
        assert "topsecret" not in entry["message"]

        for handler in manager.root_logger.handlers:
            handler.close()
        manager.root_logger.handlers.clear()

    def test_get_logger_prefixes_name(self):
        assert get_logger("core.thing").name == "mailpipe.core.thing"
        assert get_logger("mailpipe.x").name == "mailpipe.x"

    def test_context_adapter(self):
        adapter = get_logger("ctx", request_id="abc")

        assert isinstance(adapter, logging.LoggerAdapter)
        assert adapter.extra == {"request_id": "abc"}

    def test_set_level_rejects_unknown(self):
        with pytest.raises(ValueError):
            LogManager().set_level("LOUD")

    def test_json_formatter_includes_exception(self):
        try:
            raise RuntimeError("bad")
        except RuntimeError:
            record = logging.LogRecord("mailpipe", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: bad" in entry["exception"]


class TestAsyncLogCall:
    """Tests for the async_log_call decorator"""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        @async_log_call
        async def add(a, b):
            return a + b

        assert await add(1, 2) == 3
        assert add.__name__ == "add"

    @pytest.mark.asyncio
    async def test_reraises(self):
        @async_log_call
        async def fail():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            await fail()

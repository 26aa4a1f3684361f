import json
import logging

from core.logging import JsonFormatter, get_logger


def test_get_logger_idempotent() -> None:
    logger1 = get_logger("test.logger")
    handlers_before = list(logger1.handlers)
    logger2 = get_logger("test.logger")
    assert logger1 is logger2
    assert len(logger1.handlers) == len(handlers_before)


def test_json_formatter_whitelisted_extras() -> None:
    record = logging.LogRecord("ingestion.test", logging.INFO, __file__, 1, "dataset_written", None, None)
    record.count = 12
    record.dataset_type = "opening"
    record.secret = "x"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "dataset_written"
    assert payload["count"] == 12
    assert payload["dataset_type"] == "opening"
    assert "secret" not in payload

import json
import logging

import pytest

from crawlindex.utils.config import LoggingConfig
from crawlindex.utils.logger import JSONFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_log_and_error_files(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "crawler.log"
    setup_logging(LoggingConfig(level="DEBUG", file=str(log_file)))

    logging.getLogger("crawlindex.test").error("Failed to store https://x.test/")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "Failed to store https://x.test/" in log_file.read_text()
    assert "Failed to store https://x.test/" in (tmp_path / "logs" / "errors.log").read_text()
    assert logging.getLogger("aiohttp").level == logging.WARNING


def test_json_formatter():
    record = logging.LogRecord(
        "crawlindex.crawler.pipeline", logging.WARNING, __file__, 10,
        "Failed to fetch %s", ("https://x.test/",), None
    )
    entry = json.loads(JSONFormatter().format(record))

    assert entry['level'] == "WARNING"
    assert entry['logger'] == "crawlindex.crawler.pipeline"
    assert entry['message'] == "Failed to fetch https://x.test/"

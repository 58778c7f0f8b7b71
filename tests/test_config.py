from pathlib import Path

import pytest

from crawlindex.utils.config import load_config


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


def test_defaults_fill_missing_sections(tmp_path):
    config = load_config(_write(tmp_path, "crawler:\n  seed_urls: ['https://x.test/']\n"))

    assert config.crawler.seed_urls == ["https://x.test/"]
    assert config.crawler.visited_capacity == 10000
    assert config.crawler.request_timeout == 30
    assert config.frontier.type == "file"
    assert config.database.type == "sqlite"
    assert config.monitoring.metrics_enabled is False


def test_null_timeout_means_unbounded(tmp_path):
    config = load_config(_write(tmp_path, "crawler:\n  request_timeout: null\n"))
    assert config.crawler.request_timeout is None


def test_shipped_config_file_loads():
    config = load_config(str(Path(__file__).resolve().parent.parent / "config.yaml"))
    assert config.frontier.redis['queue_key'] == "crawlindex:frontier"


@pytest.mark.parametrize("text", [
    "crawler:\n  visited_capacity: 0\n",
    "crawler:\n  request_timeout: -1\n",
    "frontier:\n  type: kafka\n",
    "database:\n  type: cassandra\n",
])
def test_invalid_values_are_rejected(tmp_path, text):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, text))


def test_unknown_key_is_rejected(tmp_path):
    with pytest.raises(TypeError):
        load_config(_write(tmp_path, "crawler:\n  max_depth: 3\n"))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "absent.yaml"))

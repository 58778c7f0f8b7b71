"""
Configuration management for the crawl-and-index pipeline.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    visited_capacity: int = 10000
    # Seconds; None leaves the fetch unbounded.
    request_timeout: Optional[float] = 30
    user_agent: str = "crawlindex/1.0"
    max_content_bytes: int = 10 * 1024 * 1024
    stats_interval: int = 100


@dataclass
class FrontierConfig:
    """Configuration for the durable URL queue."""
    type: str = "file"
    path: str = "data/frontier.log"
    redis: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DatabaseConfig:
    """Configuration for page and index storage."""
    type: str = "sqlite"
    path: str = "data/crawl.db"


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    frontier: FrontierConfig = field(default_factory=FrontierConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        self._config = parse_config(config_data)
        validate_config(self._config)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def parse_config(config_data: Dict[str, Any]) -> Config:
    """Build a Config from a parsed YAML mapping. Missing sections use defaults."""
    return Config(
        crawler=CrawlerConfig(**(config_data.get('crawler') or {})),
        frontier=FrontierConfig(**(config_data.get('frontier') or {})),
        database=DatabaseConfig(**(config_data.get('database') or {})),
        logging=LoggingConfig(**(config_data.get('logging') or {})),
        monitoring=MonitoringConfig(**(config_data.get('monitoring') or {}))
    )


def validate_config(config: Config):
    """Validate configuration values."""
    crawler = config.crawler

    if crawler.visited_capacity < 1:
        raise ValueError("visited_capacity must be at least 1")

    if crawler.request_timeout is not None and crawler.request_timeout <= 0:
        raise ValueError("request_timeout must be positive (or null for no timeout)")

    if crawler.max_content_bytes < 1:
        raise ValueError("max_content_bytes must be at least 1")

    if crawler.stats_interval < 1:
        raise ValueError("stats_interval must be at least 1")

    if config.frontier.type not in ['file', 'redis']:
        raise ValueError("Frontier type must be 'file' or 'redis'")

    if config.database.type != 'sqlite':
        raise ValueError("Database type must be 'sqlite'")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()

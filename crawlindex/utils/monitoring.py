"""
Monitoring and metrics collection for the crawler.
"""

import time
import logging
from typing import Dict, Optional, Any

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
from prometheus_client import start_http_server


class MetricsCollector:
    """Owns the Prometheus metrics for one crawler instance."""

    def __init__(self, enable_server: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_server = enable_server
        self.prometheus_port = prometheus_port

        # Private registry so independent crawler instances (and tests) do not
        # collide on metric names.
        self.registry = CollectorRegistry()

        self.urls_processed = Counter(
            'crawler_urls_processed_total',
            'URLs taken from the frontier, by pipeline outcome',
            ['outcome'],
            registry=self.registry
        )
        self.pages_stored = Counter(
            'crawler_pages_stored_total',
            'Pages written to the content store',
            registry=self.registry
        )
        self.links_enqueued = Counter(
            'crawler_links_enqueued_total',
            'Discovered links added to the frontier',
            registry=self.registry
        )
        self.terms_indexed = Counter(
            'crawler_terms_indexed_total',
            'Term-frequency rows written',
            registry=self.registry
        )
        self.response_time = Histogram(
            'crawler_response_time_seconds',
            'Response time for HTTP requests',
            registry=self.registry
        )
        self.queue_size = Gauge(
            'crawler_queue_size',
            'Number of URLs waiting in the frontier',
            registry=self.registry
        )

    def start_server(self):
        """Start the Prometheus metrics HTTP server if enabled."""
        if not self.enable_server:
            return

        start_http_server(self.prometheus_port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def export_text(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)


class CrawlerMonitor:
    """High-level monitoring interface for the crawl pipeline."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()
        self.outcomes: Dict[str, int] = {}

    def record_outcome(self, outcome: str):
        """Record how the pipeline finished with one URL."""
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1
        self.metrics.urls_processed.labels(outcome=outcome).inc()

    def record_fetch(self, response_time: float):
        self.metrics.response_time.observe(response_time)

    def record_page_stored(self):
        self.metrics.pages_stored.inc()

    def record_links_enqueued(self, count: int):
        if count:
            self.metrics.links_enqueued.inc(count)

    def record_terms_indexed(self, count: int):
        if count:
            self.metrics.terms_indexed.inc(count)

    def update_queue_size(self, size: int):
        self.metrics.queue_size.set(size)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the recorded outcomes."""
        runtime = time.time() - self.start_time
        processed = sum(self.outcomes.values())

        return {
            'runtime_seconds': runtime,
            'outcomes': dict(self.outcomes),
            'urls_per_second': processed / runtime if runtime > 0 else 0
        }

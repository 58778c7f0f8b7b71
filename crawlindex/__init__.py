"""
crawlindex

A single-node crawl-and-index pipeline: durable frontier, bounded visited
cache, fetch/parse/store/index stages and a SQLite-backed inverted index.
"""

__version__ = "1.0.0"
__description__ = "A single-node web crawler that stores and indexes pages reachable from a seed URL"

"""
Web crawler core components.
"""

from .url_frontier import (
    URLFrontier, FileURLFrontier, RedisURLFrontier, FrontierError, EmptyFrontier, create_frontier
)
from .visited import VisitedSet
from .normalizer import normalize_url
from .fetcher import WebFetcher, FetchResult, FetchError
from .parser import ContentParser, ParsedContent, ParseError
from .pipeline import CrawlPipeline, CrawlOutcome

__all__ = [
    'URLFrontier', 'FileURLFrontier', 'RedisURLFrontier', 'FrontierError', 'EmptyFrontier',
    'create_frontier',
    'VisitedSet',
    'normalize_url',
    'WebFetcher', 'FetchResult', 'FetchError',
    'ContentParser', 'ParsedContent', 'ParseError',
    'CrawlPipeline', 'CrawlOutcome'
]

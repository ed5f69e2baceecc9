"""
Crawl frontier management.

Provides the append-only, file-persisted queue of links to explore.
"""

from .url_frontier import CrawlFrontier

__all__ = [
    "CrawlFrontier",
]

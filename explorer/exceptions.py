"""
Error taxonomy of the exploration pipeline.

- PageAnomaly: the page does not look like what we expect, but an operator can
  wave it through (skip it or force the extraction).
- ExtractionFatalError: a structural invariant is broken (markup drift, codec
  mismatch, unresolved origin); the crawl must stop after checkpointing.
- RecordStoreError / RecordConflictError: persistence failures; a conflict
  (product already stored) is not fatal.

Provider-transient failures never leave the completion clients: they are
retried and then reported as "no answer".
"""

from typing import Optional


class ExplorerError(Exception):
    """Base exception for the explorer application."""


class PageAnomaly(ExplorerError):
    """Unexpected page shape that the disambiguation callback must rule on."""

    def __init__(self, reason: str, url: Optional[str] = None):
        self.reason = reason
        self.url = url
        super().__init__(reason)


class ExtractionFatalError(ExplorerError):
    """Broken structural invariant on a page; the crawl must stop."""

    def __init__(self, message: str, stage: str = "extract", url: Optional[str] = None):
        self.stage = stage
        self.url = url
        super().__init__(message)


class CompressionError(ExtractionFatalError):
    """gzip/base64 codec failure or round-trip mismatch."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, stage="compress", url=url)


class CountryResolutionError(ExtractionFatalError):
    """No unambiguous country/region could be resolved for a product."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, stage="resolve-country", url=url)


class RecordStoreError(ExplorerError):
    """Persisting a product failed."""


class RecordConflictError(RecordStoreError):
    """A product with the same external id already exists."""


class ReferenceDataError(ExplorerError):
    """Gazetteer or mapping file missing or malformed."""

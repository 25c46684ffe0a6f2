"""
Custom exception classes and error handling utilities.
"""

from typing import Optional, Dict, Any


class TextbookCatalogError(Exception):
    """Base exception for all textbook catalog errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CrawlerError(TextbookCatalogError):
    """Exception raised during crawling operations."""
    pass


class FetchError(CrawlerError):
    """A single URL could not be fetched or decoded."""
    
    def __init__(self, url: str, cause: Optional[BaseException] = None,
                 status_code: Optional[int] = None):
        message = f"Failed to get document from: {url}"
        details: Dict[str, Any] = {"url": url}
        if status_code is not None:
            details["status_code"] = status_code
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.url = url
        self.cause = cause
        self.status_code = status_code


class FatalRootError(CrawlerError):
    """The root catalog page is unreachable, nothing can be crawled."""
    pass


class ExtractionWarning(TextbookCatalogError):
    """An expected structural element is missing from a page."""
    pass


class RecordError(TextbookCatalogError):
    """A single leaf item is malformed."""
    pass


class SinkError(TextbookCatalogError):
    """Exception raised while writing an export or the error side log."""
    pass


class ConfigurationError(TextbookCatalogError):
    """Exception raised for configuration-related issues."""
    pass


class ValidationError(TextbookCatalogError):
    """Exception raised for data validation failures."""
    pass



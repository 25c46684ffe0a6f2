"""
HTTP page fetcher returning parsed documents.
"""

from typing import Dict, Optional, Union

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter

from textbook_catalog.utils.logging import get_logger
from textbook_catalog.utils.errors import FetchError


logger = get_logger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"
DEFAULT_POOL_SIZE = 10

Document = BeautifulSoup


class PageFetcher:
    """Issues one GET per URL with a fixed identifying header."""
    
    def __init__(self,
                 user_agent: str = DEFAULT_USER_AGENT,
                 timeout: Optional[float] = 30.0,
                 session: Optional[requests.Session] = None,
                 pool_maxsize: int = DEFAULT_POOL_SIZE):
        """
        Initialize page fetcher.
        
        Args:
            user_agent: Value of the User-Agent header sent with every request
            timeout: Request timeout in seconds
            session: Optional pre-built session (mostly for tests)
            pool_maxsize: Connections kept per host, at least the worker count
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.pool_maxsize = max(pool_maxsize, 1)
        self.session = session or self._create_session()
        self.logger = get_logger(__name__)
    
    def _create_session(self) -> requests.Session:
        """Create requests session without transport-level retries."""
        session = requests.Session()
        
        adapter = HTTPAdapter(max_retries=0, pool_maxsize=self.pool_maxsize)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        
        return session
    
    def _headers(self) -> Dict[str, str]:
        return {'User-Agent': self.user_agent}
    
    def fetch(self, url: str) -> Union[Document, FetchError]:
        """
        Fetch and parse one page.
        
        Never raises: connection failures, non-200 statuses and decode
        failures are returned as a FetchError carrying the url and cause.
        
        Args:
            url: Page URL
            
        Returns:
            Parsed document, or the FetchError describing the failure
        """
        try:
            self.logger.debug(f"Fetching {url}")
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.logger.warning(f"HTTP request failed: GET {url} ({e})")
            return FetchError(url, e)
        
        if response.status_code != 200:
            self.logger.warning(f"Unexpected status for {url}: {response.status_code}")
            return FetchError(
                url,
                requests.exceptions.HTTPError(f"HTTP {response.status_code}", response=response),
                status_code=response.status_code
            )
        
        try:
            # Let BeautifulSoup sniff the charset from the raw bytes
            return BeautifulSoup(response.content, 'html.parser')
        except Exception as e:
            self.logger.warning(f"Failed to decode document from {url}: {e}")
            return FetchError(url, e)
    
    def get_document(self, url: str) -> Document:
        """
        Fetch and parse one page, raising on failure.
        
        Raises:
            FetchError: If the page could not be fetched or decoded
        """
        result = self.fetch(url)
        if isinstance(result, FetchError):
            raise result from result.cause
        return result
    
    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()
    
    def __enter__(self):
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

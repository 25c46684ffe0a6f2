"""
Concurrent crawl framework.

Main Components:
- ConcurrentCrawlCoordinator: Root fetch, per-city fan-out and join
- ThreadPoolManager: Bounded worker pool lifecycle
- ResultAggregator: Thread-safe shared record collection
"""

from .models import (
    ConcurrentConfig,
    CrawlState,
    CrawlSummary
)

from .thread_safe import (
    ThreadSafeCounter,
    CountDownLatch,
    ResultAggregator
)

from .thread_pool import ThreadPoolManager
from .coordinator import ConcurrentCrawlCoordinator

__all__ = [
    # Core models
    'ConcurrentConfig',
    'CrawlState',
    'CrawlSummary',
    
    # Thread-safe utilities
    'ThreadSafeCounter',
    'CountDownLatch',
    'ResultAggregator',
    
    # Main components
    'ThreadPoolManager',
    'ConcurrentCrawlCoordinator'
]

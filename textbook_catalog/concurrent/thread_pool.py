"""
Thread pool manager for the per-city crawl tasks.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, Future, wait
from typing import Any, Callable, List

from textbook_catalog.utils.logging import get_logger
from textbook_catalog.utils.errors import CrawlerError
from .models import ConcurrentConfig


logger = get_logger(__name__)


class ThreadPoolManager:
    """
    Fixed-size worker pool with a one-shot lifecycle.

    The executor is created on construction and shut down exactly once;
    submitting after shutdown raises CrawlerError.
    """

    def __init__(self, config: ConcurrentConfig):
        """
        Initialize thread pool manager.

        Args:
            config: Concurrent crawl configuration
        """
        self.config = config
        self.logger = get_logger(__name__)

        self._executor = ThreadPoolExecutor(
            max_workers=config.max_workers,
            thread_name_prefix="CityWorker"
        )
        self._futures: List[Future] = []
        self._shutdown = False
        self._lock = threading.Lock()

        self.logger.debug(f"ThreadPoolManager initialized with {config.max_workers} workers")

    @property
    def is_shutdown(self) -> bool:
        with self._lock:
            return self._shutdown

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        """
        Schedule a task on the pool.

        Raises:
            CrawlerError: If the pool has already been shut down
        """
        with self._lock:
            if self._shutdown:
                raise CrawlerError("Thread pool has been shut down")
            future = self._executor.submit(fn, *args, **kwargs)
            self._futures.append(future)
            return future

    def shutdown(self) -> bool:
        """
        Shut the pool down.

        Waits ``shutdown_timeout`` for running tasks, then cancels tasks
        that have not started and waits ``shutdown_grace`` more. Tasks
        still running after that are abandoned.

        Returns:
            True if every task finished before the pool was abandoned
        """
        with self._lock:
            if self._shutdown:
                return True
            self._shutdown = True
            futures = list(self._futures)

        self._executor.shutdown(wait=False)

        _, pending = wait(futures, timeout=self.config.shutdown_timeout)
        if pending:
            self.logger.warning(f"{len(pending)} tasks still running, cancelling queued tasks")
            self._executor.shutdown(wait=False, cancel_futures=True)

            _, pending = wait(pending, timeout=self.config.shutdown_grace)
            if pending:
                self.logger.error("线程池未能正常关闭")
                return False

        self.logger.info("线程池已关闭")
        return True

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()

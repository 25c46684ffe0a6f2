"""
Concurrent crawl coordinator.

Fetches the root catalog page, fans out one task per city onto a bounded
thread pool, walks each city's districts sequentially inside its task and
collects leaf records into a shared ResultAggregator.
"""

import threading
import time
from datetime import datetime
from typing import List, Optional

from textbook_catalog.crawlers.extractors import (
    extract_cities,
    extract_districts,
    extract_leaf_records
)
from textbook_catalog.crawlers.http_client import PageFetcher
from textbook_catalog.data.models import CityDescriptor, DistrictDescriptor, TextbookRecord
from textbook_catalog.export.csv_exporter import CsvExporter
from textbook_catalog.utils.errors import FetchError, FatalRootError
from textbook_catalog.utils.logging import get_logger, ErrorReporter, get_error_reporter
from .models import ConcurrentConfig, CrawlState, CrawlSummary
from .thread_pool import ThreadPoolManager
from .thread_safe import CountDownLatch, ResultAggregator, ThreadSafeCounter


logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://www.dzkbw.com"
DEFAULT_CITY_LIST_URL = "http://www.dzkbw.com/city/"
DEFAULT_RAW_CSV_PATH = "全国中小学教材版本.csv"


class ConcurrentCrawlCoordinator:
    """Drives the province → city → district crawl."""

    def __init__(self,
                 fetcher: PageFetcher,
                 config: Optional[ConcurrentConfig] = None,
                 base_url: str = DEFAULT_BASE_URL,
                 city_list_url: str = DEFAULT_CITY_LIST_URL,
                 raw_csv_path: Optional[str] = DEFAULT_RAW_CSV_PATH,
                 exporter: Optional[CsvExporter] = None,
                 error_reporter: Optional[ErrorReporter] = None,
                 aggregator: Optional[ResultAggregator] = None):
        """
        Initialize the coordinator and its worker pool.

        Args:
            fetcher: Page fetcher shared by all workers
            config: Pool width, politeness delay and shutdown timeouts
            base_url: Site base URL for relative city/district links
            city_list_url: Root catalog page
            raw_csv_path: Where the raw aggregate is exported, None to skip
            exporter: CSV exporter
            error_reporter: Sink for caught exceptions
            aggregator: Shared result collection
        """
        self.fetcher = fetcher
        self.config = config or ConcurrentConfig()
        self.base_url = base_url
        self.city_list_url = city_list_url
        self.raw_csv_path = raw_csv_path
        self.error_reporter = error_reporter or get_error_reporter()
        self.exporter = exporter or CsvExporter(self.error_reporter)
        self.aggregator = aggregator or ResultAggregator()
        self.logger = get_logger(__name__)

        self._pool = ThreadPoolManager(self.config)
        self._state = CrawlState.IDLE
        self._state_lock = threading.Lock()

        self._cities_failed = ThreadSafeCounter()
        self._districts_processed = ThreadSafeCounter()
        self._districts_failed = ThreadSafeCounter()

    @property
    def state(self) -> CrawlState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: CrawlState) -> None:
        with self._state_lock:
            self.logger.debug(f"Crawl state {self._state.value} -> {state.value}")
            self._state = state

    def get_all_data(self) -> List[TextbookRecord]:
        """Raw aggregate in append order."""
        return self.aggregator.snapshot()

    def crawl(self) -> CrawlSummary:
        """
        Run the whole crawl and export the raw aggregate.

        Returns:
            Summary of the run

        Raises:
            FatalRootError: If the root catalog page cannot be fetched
        """
        summary = CrawlSummary(state=CrawlState.IDLE, started_at=datetime.now())

        self._set_state(CrawlState.FETCHING_ROOT)
        root = self.fetcher.fetch(self.city_list_url)
        if isinstance(root, FetchError):
            self._set_state(CrawlState.FAILED)
            self.error_reporter.report("爬虫主流程异常", root)
            raise FatalRootError(
                "Root catalog page is unreachable",
                {"url": self.city_list_url}
            ) from root

        cities = extract_cities(root, self.base_url)
        summary.cities_found = len(cities)
        self.logger.info(f"找到 {len(cities)} 个城市")

        self._set_state(CrawlState.DISPATCHING)
        latch = CountDownLatch(len(cities))
        for city in cities:
            self._pool.submit(self._run_city_task, city, latch)

        self._set_state(CrawlState.AWAITING_WORKERS)
        latch.wait()

        self._set_state(CrawlState.EXPORTING)
        summary.records_collected = len(self.aggregator)
        if self.raw_csv_path:
            summary.raw_export_path = self.raw_csv_path
            summary.raw_export_ok = self.exporter.export(self.aggregator.snapshot(), self.raw_csv_path)

        self._set_state(CrawlState.DONE)
        summary.state = CrawlState.DONE
        summary.cities_failed = self._cities_failed.get_value()
        summary.districts_processed = self._districts_processed.get_value()
        summary.districts_failed = self._districts_failed.get_value()
        summary.completed_at = datetime.now()
        return summary

    def _run_city_task(self, city: CityDescriptor, latch: CountDownLatch) -> None:
        try:
            self.process_city(city)
        finally:
            latch.count_down()

    def process_city(self, city: CityDescriptor) -> None:
        """
        Crawl one city subtree.

        A failed city page abandons only this city; a failed district is
        reported and the walk moves on to the next district.
        """
        try:
            self.logger.info(f"处理城市: {city.province}-{city.name}")

            city_doc = self.fetcher.get_document(city.url)
            districts = extract_districts(city_doc, self.base_url)

            for district in districts:
                try:
                    self.process_district(district, city)
                except Exception as e:
                    self._districts_failed.increment()
                    self.error_reporter.report(f"处理区县失败: {district.name}", e)
                else:
                    self._districts_processed.increment()

                time.sleep(self.config.district_delay)

        except Exception as e:
            self._cities_failed.increment()
            self.error_reporter.report(f"处理城市失败: {city.name}", e)

    def process_district(self, district: DistrictDescriptor, city: CityDescriptor) -> int:
        """
        Fetch one district page and append its records as a single batch.

        Returns:
            Number of records appended

        Raises:
            FetchError: If the district page cannot be fetched
        """
        district_doc = self.fetcher.get_document(district.url)
        textbooks = extract_leaf_records(district_doc, city, district)
        return self.aggregator.append_batch(textbooks)

    def shutdown(self) -> bool:
        """Shut the worker pool down; the coordinator cannot crawl again."""
        return self._pool.shutdown()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()

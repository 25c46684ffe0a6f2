"""
Integration tests for the concurrent crawl against an in-memory site.
"""

import csv
import json
import pytest
from unittest.mock import call, patch
from pathlib import Path
import sys

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from textbook_catalog.concurrent.coordinator import ConcurrentCrawlCoordinator
from textbook_catalog.concurrent.models import ConcurrentConfig, CrawlState
from textbook_catalog.data.models import CSV_HEADER, TextbookRecord
from textbook_catalog.processing.pipeline import DataProcessor
from textbook_catalog.utils.errors import FatalRootError
from tests.fake_site import (
    BASE_URL,
    ROOT_URL,
    FakeFetcher,
    root_page,
    city_page,
    district_page
)


FAST = ConcurrentConfig(max_workers=4, district_delay=0.0, shutdown_timeout=5.0, shutdown_grace=1.0)


def build_site():
    """Two provinces, three cities, a handful of districts."""
    return {
        ROOT_URL: root_page({
            "北京": [("北京", "/bj/")],
            "河北": [("石家庄", "/sjz/"), ("保定", "/bd/")],
        }),
        BASE_URL + "/bj/": city_page([("海淀区", "/bj/hd/"), ("小学", "/bj/xx/")]),
        BASE_URL + "/bj/hd/": district_page({"一年级": [("人教版", "语文", "/book/1")]}),
        BASE_URL + "/sjz/": city_page([("长安区", "/sjz/ca/"), ("桥西区", "/sjz/qx/")]),
        BASE_URL + "/sjz/ca/": district_page({
            "高一": [("人教版", "物理", "/book/2")],
            "一年级": [("北师大版", "数学", "/book/3")],
        }),
        BASE_URL + "/sjz/qx/": district_page({"二年级": [(None, "英语", "/book/4")]}),
        BASE_URL + "/bd/": city_page([("莲池区", "/bd/lc/")]),
        BASE_URL + "/bd/lc/": district_page({"三年级": [("人教版", "科学", "/book/5")]}),
    }


def make_coordinator(fetcher, tmp_path, error_reporter, **kwargs):
    return ConcurrentCrawlCoordinator(
        fetcher=fetcher,
        config=kwargs.pop("config", FAST),
        base_url=BASE_URL,
        city_list_url=ROOT_URL,
        raw_csv_path=str(tmp_path / "raw.csv"),
        error_reporter=error_reporter,
        **kwargs
    )


def read_error_log(path: Path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


class TestSingleCityCrawl:
    """One province, one city, one district, one item."""

    def test_single_record_end_to_end(self, tmp_path, error_reporter):
        pages = {
            ROOT_URL: root_page({"北京": [("北京", "/bj/")]}),
            BASE_URL + "/bj/": city_page([("海淀区", "/bj/hd/")]),
            BASE_URL + "/bj/hd/": district_page({"一年级": [("人教版", "语文", "/book/1")]}),
        }
        coordinator = make_coordinator(FakeFetcher(pages), tmp_path, error_reporter)

        with coordinator:
            summary = coordinator.crawl()
        raw = coordinator.get_all_data()
        processed = DataProcessor(error_reporter).process_data(raw)

        expected = TextbookRecord(
            "北京", "北京", "海淀区", "一年级", "语文", "人教版", BASE_URL + "/bj//book/1"
        )
        assert raw == [expected]
        assert processed == [expected]
        assert summary.state == CrawlState.DONE
        assert summary.cities_found == 1
        assert summary.records_collected == 1


class TestFullCrawl:
    """Multi-city crawl through the worker pool."""

    def test_collects_every_district(self, tmp_path, error_reporter):
        fetcher = FakeFetcher(build_site())
        coordinator = make_coordinator(fetcher, tmp_path, error_reporter)

        with coordinator:
            summary = coordinator.crawl()

        records = coordinator.get_all_data()
        assert len(records) == 5
        assert {r.city for r in records} == {"北京", "石家庄", "保定"}
        assert summary.districts_processed == 4
        assert summary.districts_failed == 0
        assert summary.cities_failed == 0
        assert coordinator.state == CrawlState.DONE
        # filtered navigation label is never requested
        assert BASE_URL + "/bj/xx/" not in fetcher.requested

    def test_districts_walked_in_order_with_delay(self, tmp_path, error_reporter):
        config = ConcurrentConfig(max_workers=4, district_delay=0.25,
                                  shutdown_timeout=5.0, shutdown_grace=1.0)
        fetcher = FakeFetcher(build_site())
        coordinator = make_coordinator(fetcher, tmp_path, error_reporter, config=config)

        with patch("textbook_catalog.concurrent.coordinator.time.sleep") as sleep:
            with coordinator:
                summary = coordinator.crawl()

        assert sleep.call_count == summary.districts_processed == 4
        assert all(c == call(config.district_delay) for c in sleep.call_args_list)

        city_url = BASE_URL + "/sjz/"
        district_urls = [BASE_URL + "/sjz/ca/", BASE_URL + "/sjz/qx/"]
        positions = [fetcher.requested.index(url) for url in [city_url] + district_urls]
        assert positions == sorted(positions)
        assert {fetcher.fetched_by[url] for url in [city_url] + district_urls} == {
            fetcher.fetched_by[city_url]
        }

    def test_delay_follows_failed_district_too(self, tmp_path, error_reporter):
        config = ConcurrentConfig(max_workers=1, district_delay=0.5,
                                  shutdown_timeout=5.0, shutdown_grace=1.0)
        fetcher = FakeFetcher(build_site(), failing={BASE_URL + "/sjz/ca/"})
        coordinator = make_coordinator(fetcher, tmp_path, error_reporter, config=config)

        with patch("textbook_catalog.concurrent.coordinator.time.sleep") as sleep:
            with coordinator:
                summary = coordinator.crawl()

        assert summary.districts_failed == 1
        assert sleep.call_count == 4

    def test_district_batches_stay_contiguous(self, tmp_path, error_reporter):
        coordinator = make_coordinator(FakeFetcher(build_site()), tmp_path, error_reporter)

        with coordinator:
            coordinator.crawl()

        records = coordinator.get_all_data()
        changhan = [i for i, r in enumerate(records) if r.district == "长安区"]
        assert changhan == list(range(changhan[0], changhan[0] + 2))

    def test_raw_csv_is_written(self, tmp_path, error_reporter):
        coordinator = make_coordinator(FakeFetcher(build_site()), tmp_path, error_reporter)

        with coordinator:
            summary = coordinator.crawl()

        assert summary.raw_export_ok is True
        with open(tmp_path / "raw.csv", encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0] == CSV_HEADER
        assert len(rows) == 6

    def test_empty_root_completes_with_no_records(self, tmp_path, error_reporter):
        pages = {ROOT_URL: "<html><body><p>维护中</p></body></html>"}
        coordinator = make_coordinator(FakeFetcher(pages), tmp_path, error_reporter)

        with coordinator:
            summary = coordinator.crawl()

        assert summary.cities_found == 0
        assert coordinator.get_all_data() == []
        assert summary.state == CrawlState.DONE


class TestFailureIsolation:
    """Failures stay inside their own subtree."""

    def test_failing_city_does_not_stop_others(self, tmp_path, error_reporter, error_log_path):
        fetcher = FakeFetcher(build_site(), failing={BASE_URL + "/bd/"})
        coordinator = make_coordinator(fetcher, tmp_path, error_reporter)

        with coordinator:
            summary = coordinator.crawl()

        records = coordinator.get_all_data()
        assert {r.city for r in records} == {"北京", "石家庄"}
        assert summary.cities_failed == 1
        assert summary.state == CrawlState.DONE

        entries = read_error_log(error_log_path)
        assert any(e["message"] == "处理城市失败: 保定" for e in entries)

    def test_failing_district_moves_on_to_next(self, tmp_path, error_reporter, error_log_path):
        fetcher = FakeFetcher(build_site(), failing={BASE_URL + "/sjz/ca/"})
        coordinator = make_coordinator(fetcher, tmp_path, error_reporter)

        with coordinator:
            summary = coordinator.crawl()

        records = coordinator.get_all_data()
        assert [r.district for r in records if r.city == "石家庄"] == ["桥西区"]
        assert summary.districts_failed == 1
        assert summary.cities_failed == 0

        entry = next(e for e in read_error_log(error_log_path) if e["message"] == "处理区县失败: 长安区")
        assert set(entry) == {"timestamp", "message", "exception", "errorMessage", "stackTrace"}
        assert entry["exception"].endswith("FetchError")

    def test_root_failure_is_fatal(self, tmp_path, error_reporter, error_log_path):
        coordinator = make_coordinator(FakeFetcher({}), tmp_path, error_reporter)

        with coordinator:
            with pytest.raises(FatalRootError):
                coordinator.crawl()

        assert coordinator.state == CrawlState.FAILED
        assert coordinator.get_all_data() == []
        assert not (tmp_path / "raw.csv").exists()
        assert read_error_log(error_log_path)[0]["message"] == "爬虫主流程异常"

    def test_every_city_failing_still_finishes(self, tmp_path, error_reporter):
        site = build_site()
        failing = {BASE_URL + "/bj/", BASE_URL + "/sjz/", BASE_URL + "/bd/"}
        coordinator = make_coordinator(FakeFetcher(site, failing=failing), tmp_path, error_reporter)

        with coordinator:
            summary = coordinator.crawl()

        assert summary.cities_failed == 3
        assert summary.records_collected == 0
        assert summary.state == CrawlState.DONE

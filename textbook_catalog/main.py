"""
Main application entry point for the textbook catalog crawler.
"""

import sys
import time
import json
import argparse
from pathlib import Path
from typing import Optional, Dict, Any, List

from textbook_catalog.utils.logging import get_logger, setup_logging, ErrorReporter
from textbook_catalog.utils.errors import FatalRootError, ConfigurationError, ValidationError
from textbook_catalog.crawlers.http_client import PageFetcher
from textbook_catalog.concurrent.coordinator import ConcurrentCrawlCoordinator
from textbook_catalog.concurrent.models import ConcurrentConfig, CrawlSummary
from textbook_catalog.data.models import TextbookRecord, CatalogStatistics
from textbook_catalog.export.csv_exporter import CsvExporter
from textbook_catalog.processing.pipeline import DataProcessor
from config import SystemConfig, get_config


logger = get_logger(__name__)


class TextbookCatalogApp:
    """Wires fetcher, coordinator, pipeline and exporter for one run."""

    def __init__(self,
                 config: SystemConfig,
                 fetcher: Optional[PageFetcher] = None,
                 error_reporter: Optional[ErrorReporter] = None):
        """
        Args:
            config: System configuration
            fetcher: Optional page fetcher (built from config otherwise)
            error_reporter: Optional error sink (built from config otherwise)
        """
        self.config = config
        crawler_cfg = config.crawler
        output_cfg = config.output

        self.error_reporter = error_reporter or ErrorReporter(
            output_cfg.resolve(output_cfg.error_log_path)
        )
        self.fetcher = fetcher or PageFetcher(
            user_agent=crawler_cfg.user_agent,
            timeout=crawler_cfg.request_timeout,
            pool_maxsize=crawler_cfg.max_workers
        )
        self.exporter = CsvExporter(self.error_reporter)
        self.processor = DataProcessor(self.error_reporter)
        self.coordinator = ConcurrentCrawlCoordinator(
            fetcher=self.fetcher,
            config=ConcurrentConfig(
                max_workers=crawler_cfg.max_workers,
                district_delay=crawler_cfg.district_delay,
                shutdown_timeout=crawler_cfg.shutdown_timeout,
                shutdown_grace=crawler_cfg.shutdown_grace
            ),
            base_url=crawler_cfg.base_url,
            city_list_url=crawler_cfg.city_list_url,
            raw_csv_path=output_cfg.resolve(output_cfg.raw_csv_path),
            exporter=self.exporter,
            error_reporter=self.error_reporter
        )

        self.summary: Optional[CrawlSummary] = None
        self.processed: List[TextbookRecord] = []
        self.statistics: Optional[CatalogStatistics] = None

    def run(self, process: bool = True) -> Dict[str, Any]:
        """
        Crawl, process, export and report.

        The worker pool and HTTP session are always released, and the
        total duration is logged, whatever the outcome.

        Raises:
            FatalRootError: If the root catalog page cannot be fetched
        """
        start_time = time.time()

        try:
            logger.info("开始爬取中小学教材信息...")

            self.summary = self.coordinator.crawl()
            raw_data = self.coordinator.get_all_data()

            if not raw_data:
                logger.warning("未能爬取到数据")
            elif process:
                self.processed = self.processor.process_data(raw_data)
                output_cfg = self.config.output
                self.exporter.export(
                    self.processed,
                    output_cfg.resolve(output_cfg.processed_csv_path)
                )
                self.statistics = self.processor.print_statistics(self.processed)
                logger.info("爬虫任务完成！")

            return self.build_report()

        finally:
            self.close()
            duration = time.time() - start_time
            logger.info(f"总耗时: {int(duration // 60)} 分钟 ({duration:.1f} 秒)")

    def build_report(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "crawl": self.summary.to_dict() if self.summary else None,
            "processed_records": len(self.processed),
            "errors_reported": self.error_reporter.reported_count,
        }
        if self.statistics is not None:
            report["statistics"] = self.statistics.to_dict()
        return report

    def close(self) -> None:
        try:
            self.coordinator.shutdown()
        except Exception as e:
            logger.error(f"关闭爬虫资源时出错: {e}")
        self.fetcher.close()


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line interface parser."""
    parser = argparse.ArgumentParser(
        description='Textbook Catalog - 全国中小学教材版本爬虫',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Crawl with default settings
  %(prog)s --config custom.json     # Use custom configuration file
  %(prog)s --workers 4 --delay 0.5  # Narrower pool, slower districts
  %(prog)s --no-process             # Only export the raw aggregate
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config.json',
        help='Path to configuration file (default: config.json)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        help='Number of concurrent city workers (default: 10)'
    )

    parser.add_argument(
        '--delay',
        type=float,
        help='Pause in seconds between district pages of one city (default: 0.1)'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Directory for CSV and error log files'
    )

    parser.add_argument(
        '--no-process',
        action='store_true',
        help='Skip dedupe/clean/sort and statistics'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        choices=['json', 'text'],
        default='text',
        help='Output format for the final run report (default: text)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Override log level from configuration'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output (equivalent to --log-level DEBUG)'
    )

    return parser


def format_output(data: Any, format_type: str) -> str:
    """Format output data according to specified format."""
    if format_type == 'json':
        return json.dumps(data, indent=2, default=str, ensure_ascii=False)

    if isinstance(data, dict):
        lines = []
        for key, value in data.items():
            if isinstance(value, dict):
                lines.append(f"{key}:")
                for sub_key, sub_value in value.items():
                    lines.append(f"  {sub_key}: {sub_value}")
            elif isinstance(value, list):
                lines.append(f"{key}: {', '.join(map(str, value))}")
            else:
                lines.append(f"{key}: {value}")
        return '\n'.join(lines)
    return str(data)


def apply_cli_overrides(config: SystemConfig, args: argparse.Namespace) -> SystemConfig:
    if args.workers is not None:
        config.crawler.max_workers = args.workers
    if args.delay is not None:
        config.crawler.district_delay = args.delay
    if args.output_dir:
        config.output.output_dir = args.output_dir
    if args.verbose:
        config.log_level = 'DEBUG'
    elif args.log_level:
        config.log_level = args.log_level
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with command-line interface."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)

    try:
        config = apply_cli_overrides(get_config(args.config), args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    Path(config.output.output_dir).mkdir(parents=True, exist_ok=True)
    log_file = config.output.resolve(config.output.log_file) if config.output.log_file else None
    setup_logging(config.log_level, log_file)

    try:
        app = TextbookCatalogApp(config)
        report = app.run(process=not args.no_process)
    except FatalRootError as e:
        logger.error(f"爬虫运行出错: {e}")
        print(format_output({'error': str(e)}, args.output))
        return 1
    except ValidationError as e:
        logger.error(f"Invalid settings: {e.details.get('errors', e)}")
        return 1
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return 0

    print(format_output(report, args.output))
    return 0


if __name__ == "__main__":
    sys.exit(main())

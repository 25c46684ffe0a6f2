"""
Post-crawl data processing: dedupe, clean, sort and statistics.
"""

from collections import Counter
from typing import List, Optional, Sequence

from textbook_catalog.data.models import TextbookRecord, CatalogStatistics
from textbook_catalog.utils.logging import get_logger, ErrorReporter, get_error_reporter


logger = get_logger(__name__)

GRADE_ORDER = (
    "一年级", "二年级", "三年级", "四年级", "五年级", "六年级",
    "七年级", "八年级", "九年级", "高一", "高二", "高三"
)
_GRADE_RANK = {grade: index for index, grade in enumerate(GRADE_ORDER)}
_UNKNOWN_GRADE_RANK = len(GRADE_ORDER)


def grade_rank(grade: Optional[str]) -> int:
    """Position of a grade in GRADE_ORDER; unknown grades rank last."""
    return _GRADE_RANK.get(grade, _UNKNOWN_GRADE_RANK)


def sort_key(record: TextbookRecord):
    return (record.province or "", record.city or "", grade_rank(record.grade))


class DataProcessor:
    """
    Deterministic, single-threaded pipeline run after the crawl.

    A failure on one record is reported and that record skipped; a
    failure of the sort as a whole keeps the input order.
    """

    def __init__(self, error_reporter: Optional[ErrorReporter] = None):
        self.error_reporter = error_reporter or get_error_reporter()
        self.logger = get_logger(__name__)

    def process_data(self, raw_data: Optional[Sequence[TextbookRecord]]) -> List[TextbookRecord]:
        """
        Dedupe, clean and sort the raw aggregate.

        Args:
            raw_data: Records in crawl order

        Returns:
            Processed collection
        """
        if not raw_data:
            self.logger.warning("原始数据为空")
            return []

        self.logger.info("开始处理数据...")
        self.logger.info(f"原始数据量: {len(raw_data)}")

        deduplicated = self.deduplicate(raw_data)
        self.logger.info(f"去重后数据量: {len(deduplicated)}")

        cleaned = self.clean(deduplicated)
        sorted_data = self.sort(cleaned)

        self.logger.info("数据处理完成")
        return sorted_data

    def deduplicate(self, data: Sequence[Optional[TextbookRecord]]) -> List[TextbookRecord]:
        """Keep the first record for each identity key, in input order."""
        seen = set()
        deduplicated: List[TextbookRecord] = []

        for textbook in data:
            if textbook is None:
                self.logger.warning("发现空的教材信息对象，跳过处理")
                continue
            try:
                key = textbook.identity_key()
            except Exception as e:
                self.error_reporter.report("处理单个教材信息时出错", e)
                continue

            if key not in seen:
                seen.add(key)
                deduplicated.append(textbook)

        return deduplicated

    def clean(self, data: Sequence[Optional[TextbookRecord]]) -> List[TextbookRecord]:
        """Drop records without a province, city or subject."""
        cleaned: List[TextbookRecord] = []

        for textbook in data:
            try:
                if textbook is not None and textbook.province and textbook.city and textbook.subject:
                    cleaned.append(textbook)
            except Exception as e:
                self.error_reporter.report("数据清洗过程出错", e)

        removed = len(data) - len(cleaned)
        if removed:
            self.logger.info(
                f"数据清洗: 清洗前 {len(data)} 条，清洗后 {len(cleaned)} 条，移除了 {removed} 条无效数据"
            )
        return cleaned

    def sort(self, data: Sequence[TextbookRecord]) -> List[TextbookRecord]:
        """
        Stable sort by province, city and canonical grade order.

        Records whose key cannot be computed are reported and skipped.
        Any other failure returns the input order unchanged.
        """
        try:
            keyed = []
            for index, textbook in enumerate(data):
                try:
                    keyed.append((sort_key(textbook), index, textbook))
                except Exception as e:
                    self.error_reporter.report("数据排序过程出错", e)

            keyed.sort(key=lambda item: (item[0], item[1]))
            return [textbook for _, _, textbook in keyed]
        except Exception as e:
            self.error_reporter.report("数据排序过程出错", e)
            return list(data)

    def compute_statistics(self, data: Optional[Sequence[TextbookRecord]]) -> CatalogStatistics:
        """
        Totals for a processed collection.

        Grade counts are ordered by descending count; equal counts keep
        first-seen order.
        """
        if not data:
            return CatalogStatistics()

        records = [t for t in data if t is not None]
        provinces = {t.province for t in records}
        grade_counts = Counter(t.grade for t in records)

        return CatalogStatistics(
            total_records=len(records),
            province_count=len(provinces),
            grade_counts=grade_counts.most_common()
        )

    def format_statistics(self, stats: CatalogStatistics) -> str:
        """Console report block for the statistics."""
        if stats.total_records == 0:
            return "没有数据可统计"

        lines = [
            "=" * 60,
            "数据统计信息",
            "=" * 60,
            f"总记录数: {stats.total_records}",
            f"涉及省份: {stats.province_count} 个",
            "",
            "年级分布:",
        ]
        for grade, count in stats.grade_counts:
            lines.append(f"  {grade}: {count} 条")
        lines.append("=" * 60)
        return "\n".join(lines)

    def print_statistics(self, data: Optional[Sequence[TextbookRecord]]) -> CatalogStatistics:
        """Compute, log and print the statistics report."""
        stats = self.compute_statistics(data)

        if stats.total_records == 0:
            self.logger.warning("没有数据可统计")
        else:
            self.logger.info(f"总记录数: {stats.total_records}")
            self.logger.info(f"涉及省份: {stats.province_count} 个")
            for grade, count in stats.grade_counts:
                self.logger.info(f"年级 {grade}: {count} 条")

        print(self.format_statistics(stats))
        return stats

"""
CSV export of textbook records.
"""

import csv
from pathlib import Path
from typing import Iterable, Optional, Union

from textbook_catalog.data.models import TextbookRecord, CSV_HEADER
from textbook_catalog.utils.errors import SinkError
from textbook_catalog.utils.logging import get_logger, ErrorReporter, get_error_reporter


logger = get_logger(__name__)


class CsvExporter:
    """Writes records to a UTF-8, comma-delimited file with a fixed header."""
    
    def __init__(self, error_reporter: Optional[ErrorReporter] = None):
        self.error_reporter = error_reporter or get_error_reporter()
        self.logger = get_logger(__name__)
    
    def export(self, records: Iterable[TextbookRecord], path: Union[str, Path]) -> bool:
        """
        Write records to ``path``.
        
        A write failure is reported as a SinkError and does not propagate;
        the file handle is closed on every exit path.
        
        Args:
            records: Records in output order
            path: Destination file
            
        Returns:
            True if the file was written completely
        """
        path = Path(path)

        try:
            rows = self._write(records, path)
        except SinkError as e:
            self.error_reporter.report(e.message, e)
            return False

        self.logger.info(f"数据已保存到: {path} ({rows} 条)")
        return True

    def _write(self, records: Iterable[TextbookRecord], path: Path) -> int:
        rows = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            with open(path, 'w', encoding='utf-8', newline='') as f:
                writer = csv.writer(f)
                writer.writerow(CSV_HEADER)

                for record in records:
                    writer.writerow(record.to_row())
                    rows += 1
        except (OSError, csv.Error) as e:
            raise SinkError(
                f"Failed to save CSV file: {path}",
                {"path": str(path), "rows_written": rows}
            ) from e

        return rows

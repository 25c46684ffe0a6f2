"""
Tabular export of the collected catalog.
"""

from .csv_exporter import CsvExporter

__all__ = ['CsvExporter']

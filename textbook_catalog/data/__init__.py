"""
Catalog data models.
"""

from .models import (
    CityDescriptor,
    DistrictDescriptor,
    TextbookRecord,
    SkippedItem,
    CatalogStatistics,
    CSV_HEADER,
    UNKNOWN_VERSION
)

__all__ = [
    'CityDescriptor',
    'DistrictDescriptor',
    'TextbookRecord',
    'SkippedItem',
    'CatalogStatistics',
    'CSV_HEADER',
    'UNKNOWN_VERSION'
]

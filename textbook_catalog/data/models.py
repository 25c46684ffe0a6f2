"""
Data models for the textbook catalog hierarchy.
"""

from dataclasses import dataclass, field, astuple
from typing import Dict, Any, List, Optional, Tuple


UNKNOWN_VERSION = "未知版本"

CSV_HEADER = ["省", "市", "区/县", "年级", "科目", "版本", "课本链接"]


@dataclass(frozen=True)
class CityDescriptor:
    """A city link found on the root catalog page."""
    province: Optional[str]
    name: str
    url: str


@dataclass(frozen=True)
class DistrictDescriptor:
    """A district (区/县) link found on a city page."""
    name: str
    url: str


@dataclass(frozen=True)
class TextbookRecord:
    """Single textbook entry, the leaf of the catalog."""
    province: Optional[str]
    city: Optional[str]
    district: Optional[str]
    grade: Optional[str]
    subject: Optional[str]    # Book title (科目)
    version: Optional[str]    # Publisher edition, e.g. "人教版"
    book_url: Optional[str]
    
    def identity_key(self) -> Tuple[Optional[str], ...]:
        """Dedup key; book_url is not part of a record's identity."""
        return (
            self.province, self.city, self.district,
            self.grade, self.subject, self.version
        )
    
    def to_row(self) -> List[str]:
        """Row in CSV_HEADER column order."""
        return ["" if value is None else value for value in astuple(self)]


@dataclass(frozen=True)
class SkippedItem:
    """An extraction item that did not yield a record."""
    reason: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CatalogStatistics:
    """Summary of a processed collection."""
    total_records: int = 0
    province_count: int = 0
    grade_counts: List[Tuple[Optional[str], int]] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "province_count": self.province_count,
            "grade_counts": {grade: count for grade, count in self.grade_counts},
        }

"""
Page extractors for the three catalog levels.

Each extractor is a pure function of a parsed document. Structural drift
on the source site degrades to empty (or partial) results instead of
raising.
"""

from typing import Iterator, List, Optional, Union

from bs4 import BeautifulSoup, Tag

from textbook_catalog.data.models import (
    CityDescriptor,
    DistrictDescriptor,
    TextbookRecord,
    SkippedItem,
    UNKNOWN_VERSION
)
from textbook_catalog.utils.errors import ExtractionWarning, RecordError
from textbook_catalog.utils.logging import get_logger


logger = get_logger(__name__)

# 页面结构约定
CITY_LIST_ID = "citylist"
DISTRICT_LIST_SELECTOR = "div.Districtlist"
DISTRICT_LINK_SELECTOR = "li a[href]"
GRADE_GROUP_SELECTOR = "div.i_d"
GRADE_TITLE_SELECTOR = "h3"
BOOK_LIST_SELECTOR = "div.divlist"
VERSION_SELECTOR = "i"
TITLE_LINK_SELECTOR = "a.ih3"

DISTRICT_EXCLUDED_LABELS = frozenset({"小学", "初中", "高中", "所有", "更多"})
ADMINISTRATIVE_MARKERS = ("区", "县", "市", "旗")

LeafResult = Union[TextbookRecord, SkippedItem]


def _text(tag: Tag) -> str:
    """Element text with whitespace collapsed and trimmed."""
    return " ".join(tag.get_text().split())


def extract_cities(root_doc: BeautifulSoup, base_url: str) -> List[CityDescriptor]:
    """
    Extract city links from the root catalog page.

    The container's direct children alternate between ``<b>`` province
    labels and ``<a>`` city links; every link belongs to the most recent
    label seen before it.

    Args:
        root_doc: Parsed root page
        base_url: Site base URL, prefixed to each relative href

    Returns:
        Cities in document order, empty if the container is missing
    """
    cities: List[CityDescriptor] = []

    container = root_doc.find(id=CITY_LIST_ID)
    if container is None:
        logger.error("城市列表div元素未找到")
        return cities

    current_province: Optional[str] = None

    for element in container.find_all(recursive=False):
        if element.name == "b":
            current_province = _text(element)
        elif element.name == "a":
            href = element.get("href", "")
            cities.append(CityDescriptor(
                province=current_province,
                name=_text(element),
                url=base_url + href
            ))

    return cities


def _district_list(city_doc: BeautifulSoup) -> Tag:
    district_div = city_doc.select_one(DISTRICT_LIST_SELECTOR)
    if district_div is None:
        raise ExtractionWarning("区县列表div元素未找到")

    ul_element = district_div.select_one("ul")
    if ul_element is None:
        raise ExtractionWarning("区县列表中的ul元素未找到")

    return ul_element


def extract_districts(city_doc: BeautifulSoup, base_url: str) -> List[DistrictDescriptor]:
    """
    Extract district links from a city page.

    Navigation labels (小学, 更多, ...) are dropped, and only links whose
    text names an administrative unit (区/县/市/旗) are kept.
    """
    districts: List[DistrictDescriptor] = []

    try:
        ul_element = _district_list(city_doc)
    except ExtractionWarning as e:
        logger.warning(e.message)
        return districts

    for link in ul_element.select(DISTRICT_LINK_SELECTOR):
        text = _text(link)

        if text in DISTRICT_EXCLUDED_LABELS:
            continue

        if any(marker in text for marker in ADMINISTRATIVE_MARKERS):
            districts.append(DistrictDescriptor(name=text, url=base_url + link.get("href", "")))

    return districts


def resolve_book_url(href: str, city_url: str) -> str:
    """Absolute hrefs are kept verbatim, others are joined to the city URL."""
    if href.startswith("http"):
        return href
    return city_url + href


def _parse_item(li: Tag, grade_name: str,
                city: CityDescriptor, district: DistrictDescriptor) -> TextbookRecord:
    version_tag = li.select_one(VERSION_SELECTOR)
    version = _text(version_tag) if version_tag is not None else UNKNOWN_VERSION

    title_link = li.select_one(TITLE_LINK_SELECTOR)
    if title_link is None:
        raise RecordError("Title link not found", {"grade": grade_name})

    return TextbookRecord(
        province=city.province,
        city=city.name,
        district=district.name,
        grade=grade_name,
        subject=_text(title_link),
        version=version,
        book_url=resolve_book_url(title_link.get("href", ""), city.url)
    )


def iter_leaf_results(district_doc: BeautifulSoup,
                      city: CityDescriptor,
                      district: DistrictDescriptor) -> Iterator[LeafResult]:
    """
    Yield one result per book list item of a district page.

    Every ``li`` under a grade group yields either a TextbookRecord or a
    SkippedItem, so a malformed item never stops the items after it.
    Grade groups without a title are skipped with a warning; groups
    without a book list are skipped silently.
    """
    for grade_div in district_doc.select(GRADE_GROUP_SELECTOR):
        grade_h3 = grade_div.select_one(GRADE_TITLE_SELECTOR)
        if grade_h3 is None:
            logger.warning("年级标题未找到")
            continue
        grade_name = _text(grade_h3)

        divlist = grade_div.select_one(BOOK_LIST_SELECTOR)
        if divlist is None:
            continue

        for li in divlist.select("li"):
            try:
                yield _parse_item(li, grade_name, city, district)
            except RecordError as e:
                yield SkippedItem(reason=e.message, context={
                    "district": district.name, **e.details
                })
            except Exception as e:
                yield SkippedItem(reason=f"{type(e).__name__}: {e}", context={
                    "district": district.name, "grade": grade_name
                })


def extract_leaf_records(district_doc: BeautifulSoup,
                         city: CityDescriptor,
                         district: DistrictDescriptor) -> List[TextbookRecord]:
    """
    Extract textbook records from a district page.

    Skipped items are logged at debug level and dropped.

    Returns:
        Records in document order
    """
    records: List[TextbookRecord] = []

    for result in iter_leaf_results(district_doc, city, district):
        if isinstance(result, SkippedItem):
            logger.debug(f"Skipped item: {result.reason} {result.context}")
            continue
        records.append(result)

    return records

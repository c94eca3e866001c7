"""Pure normalizers for MacauTicket date, price and description fields."""
import logging
import re
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from bs4 import BeautifulSoup

from processor.models import DateInfo, PriceInfo

logger = logging.getLogger(__name__)

# Macau is UTC+8 and observes no daylight saving.
SOURCE_TZ = timezone(timedelta(hours=8))

_PLACEHOLDER_RE = re.compile(
    r'please|see\s+(?:the\s+)?below|\btbd\b|^\s*--\s*$',
    re.IGNORECASE
)
_SHOWINGS_SPLIT_RE = re.compile(r'\s+&\s+')
_DATETIME_RE = re.compile(r'(?<!\d)(\d{4})/(\d{2})/(\d{2})\s+(\d{2}):(\d{2})')
_DATE_RE = re.compile(r'(?<!\d)(\d{4})/(\d{2})/(\d{2})')

_FREE_RE = re.compile(r'\bfree\b', re.IGNORECASE)
_PRICE_RE = re.compile(r'(?:HK\$|MOP\$?|\$)\s*(\d[\d,]*(?:\.\d+)?)', re.IGNORECASE)

_BLOCK_TAGS = [
    'address', 'article', 'aside', 'blockquote', 'br', 'dd', 'div', 'dl', 'dt',
    'figcaption', 'figure', 'footer', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'header', 'hr', 'li', 'main', 'ol', 'p', 'pre', 'section', 'table', 'td',
    'th', 'tr', 'ul',
]


def parse_source_date(date_str: Optional[str], tz: tzinfo = SOURCE_TZ) -> DateInfo:
    """
    Convert a MacauTicket date string to UTC start/end instants.

    Shapes seen on the site:
        "2026/02/25 19:45"                     single showing
        "2026/02/25 19:45 & 2026/02/26 15:00"  several showings, first kept
        "2026/02/19 - 2026/02/24"              run of days, first day, all day
        "2026/02/19"                           all day
        "Please See The Below", "TBD", "--"    no date

    Args:
        date_str: Free-text date from the listing
        tz: Timezone the wall-clock values are expressed in

    Returns:
        DateInfo with aware UTC datetimes, or all nulls when unparseable
    """
    if not date_str or _PLACEHOLDER_RE.search(date_str):
        return DateInfo()

    first = _SHOWINGS_SPLIT_RE.split(date_str.strip())[0]
    is_range = ' - ' in first
    first = first.split(' - ')[0].strip()

    try:
        match = _DATETIME_RE.search(first)
        if match and not is_range:
            year, month, day, hour, minute = (int(part) for part in match.groups())
            local = datetime(year, month, day, hour, minute, tzinfo=tz)
            return DateInfo(start_at=local.astimezone(timezone.utc))

        match = _DATE_RE.search(first)
        if match:
            year, month, day = (int(part) for part in match.groups())
            start = datetime(year, month, day, tzinfo=tz).astimezone(timezone.utc)
            return DateInfo(
                start_at=start,
                end_at=start + timedelta(days=1),
                all_day=True
            )
    except ValueError:
        # Matched the shape but not a real calendar value (e.g. 2026/02/30)
        logger.debug(f"Impossible date value in {date_str!r}")

    return DateInfo()


def parse_price(price_str: Optional[str]) -> PriceInfo:
    """
    Parse a price description into a numeric range.

    Examples: "$150,$180", "$696, $576, $456", "Free", "Please see below".

    Args:
        price_str: Free-text price from the listing

    Returns:
        PriceInfo; all fields None when no amount can be found
    """
    if not price_str:
        return PriceInfo()

    if _FREE_RE.search(price_str):
        return PriceInfo(price_min=Decimal(0), price_max=Decimal(0), is_free=True)

    amounts: List[Decimal] = []
    for raw_amount in _PRICE_RE.findall(price_str):
        try:
            amounts.append(Decimal(raw_amount.replace(',', '')))
        except InvalidOperation:
            continue

    if not amounts:
        return PriceInfo()

    return PriceInfo(price_min=min(amounts), price_max=max(amounts), is_free=False)


def strip_html(markup: Optional[str]) -> Optional[str]:
    """Reduce an HTML fragment to its visible text, or None if nothing is left."""
    if not markup:
        return None

    soup = BeautifulSoup(markup, 'html.parser')
    for element in soup(['script', 'style']):
        element.decompose()

    # Inline tags join their text directly; block boundaries become spaces
    for element in soup(_BLOCK_TAGS):
        element.insert_before(' ')
        element.insert_after(' ')

    text = ' '.join(soup.get_text().split())
    return text or None


def format_instant(value: Optional[datetime]) -> Optional[str]:
    """Render an aware datetime as an ISO-8601 UTC string ending in 'Z'."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')

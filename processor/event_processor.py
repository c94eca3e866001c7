"""Event processor mapping MacauTicket records to the canonical event shape."""
import logging
from datetime import timedelta, timezone, tzinfo
from typing import Any, Dict, Optional

from processor.models import (
    CanonicalEvent,
    DetailPayload,
    EventStatus,
    RawListingItem,
)
from processor.normalizers import (
    SOURCE_TZ,
    format_instant,
    parse_price,
    parse_source_date,
    strip_html,
)

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor normalizing raw listing items into CanonicalEvent objects."""

    DEFAULT_DETAIL_BASE_URL = 'https://www.macauticket.com/TicketWeb2023/en/programme'
    TIMEZONE_NAME = 'Asia/Macau'
    CITY = 'Macau'
    COUNTRY = 'MO'
    CURRENCY = 'HKD'
    UNTITLED = '(untitled)'
    REMOVED_STATUS_CODE = '0'

    # Source fields kept verbatim in raw_data for auditing and replay
    RAW_DATA_FIELDS = (
        'ProCode',
        'ProType',
        'ShowDate',
        'SPID',
        'WEBStatus',
        'WEBStatusStr',
        'OpenFrom',
        'OpenTo',
    )

    def __init__(
        self,
        detail_base_url: str = DEFAULT_DETAIL_BASE_URL,
        source_tz: tzinfo = SOURCE_TZ,
        timezone_name: str = TIMEZONE_NAME
    ):
        """
        Initialize the processor.

        Args:
            detail_base_url: Base path that programme codes are appended to
            source_tz: Timezone of the wall-clock values in the listing
            timezone_name: IANA name stored on each event
        """
        self.detail_base_url = detail_base_url.rstrip('/')
        self.source_tz = source_tz
        self.timezone_name = timezone_name

    @classmethod
    def from_offset(cls, detail_base_url: str, offset_hours: float,
                    timezone_name: str = TIMEZONE_NAME) -> 'EventProcessor':
        """Build a processor for a fixed UTC offset given in hours."""
        return cls(
            detail_base_url=detail_base_url,
            source_tz=timezone(timedelta(hours=offset_hours)),
            timezone_name=timezone_name
        )

    def detail_url(self, code: str) -> str:
        return f"{self.detail_base_url}/{code}"

    def normalize(
        self,
        raw: RawListingItem,
        detail: Optional[DetailPayload],
        source_id: str
    ) -> CanonicalEvent:
        """
        Map one listing item and its optional detail payload to an event.

        The result depends only on the arguments, so re-ingesting the same
        listing produces an identical record.

        Args:
            raw: Listing item from the source
            detail: Detail payload, or None when the detail fetch failed
            source_id: Identifier of the owning source

        Returns:
            CanonicalEvent; start_at is None when the date is unparseable
        """
        date_info = parse_source_date(raw.show_date, self.source_tz)
        price_info = parse_price(raw.price_text)

        venue_name = detail.venue_name if detail else None
        organizer_name = detail.organizer_name if detail else None
        description = strip_html(detail.description_html) if detail else None

        # Thumbnail is landscape and fits hero slots better, so it goes first
        images = [url for url in (raw.thumbnail_url, raw.portrait_url) if url]
        categories = [raw.type_tag] if raw.type_tag else []

        status = EventStatus.ACTIVE
        if raw.status == self.REMOVED_STATUS_CODE:
            status = EventStatus.INVALID

        ticket_url = self.detail_url(raw.code)
        title = (raw.name or '').strip() or self.UNTITLED

        return CanonicalEvent(
            source_id=source_id,
            source_event_id=raw.code,
            title=title,
            description=description,
            start_at=date_info.start_at,
            end_at=date_info.end_at,
            all_day=date_info.all_day,
            timezone=self.timezone_name,
            venue_name=venue_name,
            city=self.CITY,
            country=self.COUNTRY,
            url=ticket_url,
            ticket_url=ticket_url,
            organizer_name=organizer_name,
            price_min=price_info.price_min,
            price_max=price_info.price_max,
            is_free=price_info.is_free,
            currency=self.CURRENCY,
            categories=categories,
            images=images,
            status=status,
            raw_data={key: raw.raw.get(key) for key in self.RAW_DATA_FIELDS}
        )

    @staticmethod
    def to_record(event: CanonicalEvent) -> Dict[str, Any]:
        """
        Convert a CanonicalEvent to a plain dictionary.

        Instants become ISO-8601 UTC strings and enums their values; prices
        stay Decimal so the record can be written to DynamoDB as-is.

        Args:
            event: CanonicalEvent object

        Returns:
            Dictionary with one key per event attribute
        """
        return {
            'source_id': event.source_id,
            'source_event_id': event.source_event_id,
            'title': event.title,
            'description': event.description,
            'start_at': format_instant(event.start_at),
            'end_at': format_instant(event.end_at),
            'all_day': event.all_day,
            'timezone': event.timezone,
            'venue_name': event.venue_name,
            'city': event.city,
            'country': event.country,
            'url': event.url,
            'ticket_url': event.ticket_url,
            'organizer_name': event.organizer_name,
            'price_min': event.price_min,
            'price_max': event.price_max,
            'is_free': event.is_free,
            'currency': event.currency,
            'categories': list(event.categories),
            'images': list(event.images),
            'status': event.status.value,
            'raw_data': dict(event.raw_data),
        }

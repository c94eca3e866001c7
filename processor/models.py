"""Data models for event ingestion."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class EventStatus(str, Enum):
    ACTIVE = 'active'
    INVALID = 'invalid'


class RunStatus(str, Enum):
    SUCCESS = 'success'
    PARTIAL = 'partial'
    FAILED = 'failed'


class ErrorType(str, Enum):
    FETCH_ERROR = 'fetch_error'
    UPSERT_ERROR = 'upsert_error'


@dataclass
class RawListingItem:
    """One event as found in the listing page's showListData."""
    code: str
    name: Optional[str]
    show_date: Optional[str]
    price_text: Optional[str]
    type_tag: Optional[str]
    thumbnail_url: Optional[str]
    portrait_url: Optional[str]
    status: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_source(cls, data: Dict[str, Any]) -> 'RawListingItem':
        """
        Build a listing item from a showListData entry.

        Args:
            data: Entry as decoded from the embedded JSON

        Returns:
            RawListingItem keeping the untouched entry in ``raw``
        """
        return cls(
            code=str(data.get('ProCode') or ''),
            name=data.get('ProName1'),
            show_date=data.get('ShowDate'),
            price_text=data.get('PriceDesc') or data.get('Price'),
            type_tag=data.get('ProType'),
            thumbnail_url=data.get('PictureS'),
            portrait_url=data.get('PictureP'),
            status=data.get('Status'),
            raw=dict(data)
        )


@dataclass
class DetailPayload:
    """Richer per-item data taken from a programme detail page."""
    venue_name: Optional[str]
    organizer_name: Optional[str]
    description_html: Optional[str]

    @classmethod
    def from_page_props(cls, page_props: Dict[str, Any]) -> 'DetailPayload':
        """
        Build a detail payload from a programme page's pageProps.

        Every level is optional; anything missing or of the wrong type
        leaves the corresponding field as None.
        """
        pro_list = _nested_dict(page_props, 'proList')
        venue = _nested_dict(pro_list, 'ProListData')
        info = _nested_dict(page_props, 'proInfo')
        return cls(
            venue_name=venue.get('VenueName'),
            organizer_name=pro_list.get('SPName'),
            description_html=info.get('Content')
        )


def _nested_dict(container: Any, key: str) -> Dict[str, Any]:
    """Return container[key] (or its first element for lists) if it is a dict, else {}."""
    if not isinstance(container, dict):
        return {}
    value = container.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


@dataclass
class DetailResult:
    """Outcome of a best-effort detail fetch: a payload or the error."""
    detail: Optional[DetailPayload] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DateInfo:
    """Normalized start/end instants (UTC) and all-day flag."""
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    all_day: bool = False


@dataclass(frozen=True)
class PriceInfo:
    """Normalized price range."""
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None
    is_free: Optional[bool] = None


@dataclass
class CanonicalEvent:
    """Event in the shape written to the events store."""
    source_id: str
    source_event_id: str
    title: str
    description: Optional[str]
    start_at: Optional[datetime]
    end_at: Optional[datetime]
    all_day: bool
    timezone: str
    venue_name: Optional[str]
    city: str
    country: str
    url: str
    ticket_url: str
    organizer_name: Optional[str]
    price_min: Optional[Decimal]
    price_max: Optional[Decimal]
    is_free: Optional[bool]
    currency: str
    categories: List[str]
    images: List[str]
    status: EventStatus
    raw_data: Dict[str, Any]


@dataclass
class ErrorRecord:
    """Per-item failure recorded against a run."""
    source_id: str
    run_id: str
    url: str
    error_type: ErrorType
    message: str


@dataclass
class UpsertResult:
    """Result of a single store write; failures are values, not exceptions."""
    ok: bool
    error: Optional[str] = None


@dataclass
class RunStats:
    """Counters accumulated over one run."""
    found: int = 0
    upserted: int = 0
    errors: int = 0
    skipped: int = 0

    def status(self) -> RunStatus:
        if self.errors == 0:
            return RunStatus.SUCCESS
        if self.upserted > 0:
            return RunStatus.PARTIAL
        return RunStatus.FAILED


@dataclass
class RunRecord:
    """Provenance row for one invocation of the worker."""
    run_id: str
    source_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: Optional[RunStatus] = None
    events_found: int = 0
    events_upserted: int = 0
    errors_count: int = 0
    notes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RunSummary:
    """What a finished run reports back to its caller."""
    run_id: str
    status: RunStatus
    stats: RunStats
    notes: Dict[str, Any] = field(default_factory=dict)

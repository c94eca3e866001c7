"""Runtime configuration for the ingestion worker."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from scraper.payload_extractor import DEFAULT_USER_AGENT


@dataclass
class IngestConfig:
    """Settings passed explicitly to the runner and its collaborators."""
    source_name: str = 'MacauTicket.com (Kong Seng)'
    listing_url: str = 'https://www.macauticket.com/TicketWeb2023/en'
    detail_base_url: str = 'https://www.macauticket.com/TicketWeb2023/en/programme'
    request_delay_ms: int = 1200
    max_items_per_run: int = 60
    timezone_offset: float = 8
    timezone_name: str = 'Asia/Macau'
    request_timeout: int = 30
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'IngestConfig':
        """
        Read configuration from environment variables, falling back to defaults.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            IngestConfig instance
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            source_name=env.get('SOURCE_NAME', defaults.source_name),
            listing_url=env.get('LISTING_URL', defaults.listing_url),
            detail_base_url=env.get('DETAIL_BASE_URL', defaults.detail_base_url),
            request_delay_ms=int(env.get('REQUEST_DELAY_MS', defaults.request_delay_ms)),
            max_items_per_run=int(env.get('MAX_ITEMS_PER_RUN', defaults.max_items_per_run)),
            timezone_offset=float(env.get('TIMEZONE_OFFSET_HOURS', defaults.timezone_offset)),
            timezone_name=env.get('TIMEZONE_NAME', defaults.timezone_name),
            request_timeout=int(env.get('TIMEOUT_SECONDS', defaults.request_timeout)),
            user_agent=env.get('USER_AGENT', defaults.user_agent),
        )

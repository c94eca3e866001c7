"""Page fetching and embedded-payload extraction for MacauTicket pages."""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'
)


class PayloadError(Exception):
    """Base class for failures fetching or extracting a page payload."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class FetchError(PayloadError):
    """Transport failure or non-2xx HTTP status."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message, url)
        self.status_code = status_code


class ExtractionError(PayloadError):
    """Response body does not carry the expected embedded data."""


class PayloadExtractor(ABC):
    """
    Fetches a page and pulls a structured payload out of its HTML.

    Subclasses decide how the payload is located in the markup; the HTTP
    exchange (headers, timeout, status handling) lives here. No retries are
    attempted: a failed fetch is reported to the caller.
    """

    def __init__(
        self,
        referer: str,
        timeout: int = 30,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the extractor.

        Args:
            referer: Value sent in the Referer header (the listing URL)
            timeout: HTTP request timeout in seconds (default: 30)
            user_agent: Browser-like User-Agent string
            session: Optional requests session to reuse connections
        """
        self.referer = referer
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session or requests.Session()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'User-Agent': self.user_agent,
            'Accept': 'text/html,application/xhtml+xml',
            'Referer': self.referer,
        }

    def fetch(self, url: str) -> Dict[str, Any]:
        """
        Fetch a page and return its embedded payload.

        Args:
            url: Page to fetch

        Returns:
            Decoded payload

        Raises:
            FetchError: Request failed or status was not 2xx
            ExtractionError: Payload missing or not decodable
        """
        logger.debug(f"Fetching {url}")
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request failed for {url}: {e}", url) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"HTTP {response.status_code} for {url}",
                url,
                status_code=response.status_code
            )

        return self.extract(response.text, url)

    @abstractmethod
    def extract(self, html: str, url: str) -> Dict[str, Any]:
        """Locate and decode the payload in a page body."""


class NextDataExtractor(PayloadExtractor):
    """Extracts the JSON Next.js embeds in <script id="__NEXT_DATA__">."""

    SCRIPT_ID = '__NEXT_DATA__'

    def extract(self, html: str, url: str) -> Dict[str, Any]:
        soup = BeautifulSoup(html, 'html.parser')
        script = soup.find('script', id=self.SCRIPT_ID)
        if script is None or not script.string:
            raise ExtractionError(f"No {self.SCRIPT_ID} found at {url}", url)

        try:
            payload = json.loads(script.string)
        except ValueError as e:
            raise ExtractionError(f"Invalid {self.SCRIPT_ID} JSON at {url}: {e}", url) from e

        if not isinstance(payload, dict):
            raise ExtractionError(f"Unexpected {self.SCRIPT_ID} shape at {url}", url)
        return payload


def page_props(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return props.pageProps of a Next.js payload, or an empty dict."""
    props = payload.get('props') if isinstance(payload, dict) else None
    props = props.get('pageProps') if isinstance(props, dict) else None
    return props if isinstance(props, dict) else {}

"""Orchestration of one ingestion run against the MacauTicket listing."""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Union

from ingest.config import IngestConfig
from ingest.errors import (
    FatalListingFetchError,
    ItemFetchError,
    ItemUpsertError,
    SourceNotConfigured,
)
from processor.event_processor import EventProcessor
from processor.models import (
    DetailPayload,
    DetailResult,
    ErrorRecord,
    ErrorType,
    RawListingItem,
    RunStats,
    RunStatus,
    RunSummary,
)
from scraper.payload_extractor import PayloadError, PayloadExtractor, page_props
from storage.base import EventStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestRunner:
    """
    Runs the listing → detail → normalize → upsert pipeline once.

    Items are processed sequentially with a fixed politeness delay before
    each detail fetch. Only a missing source or a failed listing fetch ends
    the run early; per-item failures are recorded and processing continues.
    """

    def __init__(
        self,
        config: IngestConfig,
        extractor: PayloadExtractor,
        processor: EventProcessor,
        store: EventStore,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now
    ):
        self.config = config
        self.extractor = extractor
        self.processor = processor
        self.store = store
        self.sleep = sleep
        self.clock = clock

    def run(self) -> RunSummary:
        """
        Execute one run.

        Returns:
            RunSummary with the run id, terminal status and counters

        Raises:
            SourceNotConfigured: The configured source does not exist
            Exception: Anything unexpected after the run was created; the
                run record is finalized as failed before it propagates
        """
        source_id = self.store.find_source_by_name(self.config.source_name)
        if source_id is None:
            raise SourceNotConfigured(self.config.source_name)

        run_id = self.store.create_run(source_id, self.clock())
        logger.info(
            f"Run started for source '{self.config.source_name}'",
            extra={'run_id': run_id, 'source_id': source_id}
        )

        try:
            return self._execute(source_id, run_id)
        except Exception as e:
            logger.error(
                f"Run aborted: {e}",
                extra={'run_id': run_id, 'error_type': type(e).__name__},
                exc_info=True
            )
            self.store.finalize_run(
                run_id,
                finished_at=self.clock(),
                status=RunStatus.FAILED,
                notes={'error': str(e)}
            )
            raise

    def _execute(self, source_id: str, run_id: str) -> RunSummary:
        stats = RunStats()
        try:
            listing = self._fetch_listing()
        except FatalListingFetchError as e:
            logger.error(f"Listing fetch failed: {e}", extra={'run_id': run_id})
            notes = {'error': str(e)}
            self.store.finalize_run(
                run_id,
                finished_at=self.clock(),
                status=RunStatus.FAILED,
                notes=notes
            )
            return RunSummary(run_id=run_id, status=RunStatus.FAILED, stats=stats, notes=notes)

        stats.found = len(listing)
        logger.info(f"Found {stats.found} events on listing page")

        error_log = self._process_items(listing, source_id, run_id, stats)

        if error_log:
            self.store.append_errors(error_log)

        status = stats.status()
        notes = {
            'max_items_per_run': self.config.max_items_per_run,
            'skipped': stats.skipped,
        }
        self.store.finalize_run(
            run_id,
            finished_at=self.clock(),
            status=status,
            events_found=stats.found,
            events_upserted=stats.upserted,
            errors_count=stats.errors,
            notes=notes
        )

        logger.info(
            f"Run finished with status {status.value}",
            extra={
                'run_id': run_id,
                'events_found': stats.found,
                'events_upserted': stats.upserted,
                'events_skipped': stats.skipped,
                'errors': stats.errors
            }
        )
        return RunSummary(run_id=run_id, status=status, stats=stats, notes=notes)

    def _fetch_listing(self) -> List[RawListingItem]:
        logger.info(f"Fetching listing: {self.config.listing_url}")
        try:
            payload = self.extractor.fetch(self.config.listing_url)
        except PayloadError as e:
            raise FatalListingFetchError(str(e)) from e

        show_list = page_props(payload).get('showListData') or []
        if not isinstance(show_list, list):
            raise FatalListingFetchError(
                f"Unexpected showListData shape at {self.config.listing_url}"
            )

        items = []
        for entry in show_list:
            if not isinstance(entry, dict):
                logger.warning(f"Ignoring malformed listing entry: {entry!r}")
                continue
            items.append(RawListingItem.from_source(entry))
        return items

    def _process_items(
        self,
        listing: List[RawListingItem],
        source_id: str,
        run_id: str,
        stats: RunStats
    ) -> List[ErrorRecord]:
        """
        Fetch detail, normalize and upsert each item up to the per-run cap.

        Args:
            listing: Items from the listing page
            source_id: Owning source
            run_id: Current run, referenced by error records
            stats: Counters updated in place

        Returns:
            Error records accumulated for the run
        """
        error_log: List[ErrorRecord] = []
        to_process = listing[:self.config.max_items_per_run]

        for index, raw in enumerate(to_process, start=1):
            self.sleep(self.config.request_delay_ms / 1000)
            logger.info(f"[{index}/{len(to_process)}] {raw.code} - {(raw.name or '')[:50]}")

            result = self._fetch_detail(raw)
            if not result.ok:
                logger.warning(f"Detail fetch failed for {raw.code}: {result.error}")
                error_log.append(self._error_record(
                    source_id, run_id, result.error, ErrorType.FETCH_ERROR
                ))
                stats.errors += 1

            event = self.processor.normalize(raw, result.detail, source_id)

            if event.start_at is None:
                logger.info(f"Skipping {raw.code}: no parseable date ({raw.show_date!r})")
                stats.skipped += 1
                continue

            upsert = self.store.upsert_event(event)
            if not upsert.ok:
                error = ItemUpsertError(upsert.error or 'upsert failed', self.processor.detail_url(raw.code))
                logger.warning(f"Upsert error for {raw.code}: {error}")
                error_log.append(self._error_record(
                    source_id, run_id, error, ErrorType.UPSERT_ERROR
                ))
                stats.errors += 1
                continue

            stats.upserted += 1
            logger.info(f"Upserted {event.title[:50]} @ {event.start_at.isoformat()}")

        return error_log

    def _fetch_detail(self, raw: RawListingItem) -> DetailResult:
        url = self.processor.detail_url(raw.code)
        try:
            payload = self.extractor.fetch(url)
            detail = DetailPayload.from_page_props(page_props(payload))
        except PayloadError as e:
            return DetailResult(error=ItemFetchError(str(e), url))
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            return DetailResult(error=ItemFetchError(f"Unexpected detail payload at {url}: {e}", url))
        return DetailResult(detail=detail)

    @staticmethod
    def _error_record(
        source_id: str,
        run_id: str,
        error: Union[ItemFetchError, ItemUpsertError],
        error_type: ErrorType
    ) -> ErrorRecord:
        return ErrorRecord(
            source_id=source_id,
            run_id=run_id,
            url=error.url,
            error_type=error_type,
            message=str(error)
        )


def summary_body(summary: RunSummary) -> Dict[str, Any]:
    """Shape a RunSummary for JSON responses and log output."""
    return {
        'run_id': summary.run_id,
        'status': summary.status.value,
        'statistics': {
            'events_found': summary.stats.found,
            'events_upserted': summary.stats.upserted,
            'events_skipped': summary.stats.skipped,
            'errors_count': summary.stats.errors,
        },
        'notes': summary.notes,
    }

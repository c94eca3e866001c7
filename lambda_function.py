"""Entry points for the MacauTicket event ingestion worker."""
import json
import logging
import os
import sys
import time
from typing import Any, Dict

from ingest.config import IngestConfig
from ingest.errors import FatalSetupError
from ingest.runner import IngestRunner, summary_body
from processor.event_processor import EventProcessor
from processor.models import RunStatus
from scraper.payload_extractor import NextDataExtractor
from storage.dynamodb_manager import DynamoDBStore

# Attributes every LogRecord has; anything else came in through ``extra=``
_RESERVED_LOG_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any extra fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_LOG_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_runner(config: IngestConfig) -> IngestRunner:
    """Wire the extractor, processor and DynamoDB store for a run."""
    extractor = NextDataExtractor(
        referer=config.listing_url,
        timeout=config.request_timeout,
        user_agent=config.user_agent
    )
    processor = EventProcessor.from_offset(
        config.detail_base_url,
        config.timezone_offset,
        timezone_name=config.timezone_name
    )
    store = DynamoDBStore(
        events_table=os.environ.get('EVENTS_TABLE', 'public-events'),
        sources_table=os.environ.get('SOURCES_TABLE', 'event-sources'),
        runs_table=os.environ.get('RUNS_TABLE', 'public-event-source-runs'),
        errors_table=os.environ.get('ERRORS_TABLE', 'public-event-ingest-errors')
    )
    return IngestRunner(config, extractor, processor, store)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler invoked by the EventBridge schedule.

    Args:
        event: EventBridge event payload (unused)
        context: Lambda context object

    Returns:
        Response dict with statusCode and the run summary; 200 for
        success and partial runs, 500 otherwise
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    config = IngestConfig.from_env()
    logger.info(
        "Ingestion started",
        extra={
            'source_name': config.source_name,
            'max_items_per_run': config.max_items_per_run,
            'request_delay_ms': config.request_delay_ms
        }
    )

    try:
        summary = build_runner(config).run()
    except FatalSetupError as e:
        logger.error(f"Ingestion setup failed: {e}", exc_info=True)
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Source not configured',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(time.time() - start_time, 2)
            })
        }
    except Exception as e:
        logger.error(
            f"Ingestion failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Ingestion failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(time.time() - start_time, 2)
            })
        }

    body = summary_body(summary)
    body['duration_seconds'] = round(time.time() - start_time, 2)
    failed = summary.status is RunStatus.FAILED
    body['message'] = 'Ingestion failed' if failed else 'Ingestion completed'

    logger.info("Ingestion finished", extra={'run_status': summary.status.value})
    return {
        'statusCode': 500 if failed else 200,
        'body': json.dumps(body)
    }


def main() -> int:
    """Command-line entry point; exit code 0 on success or partial runs."""
    response = lambda_handler({}, None)
    return 0 if response['statusCode'] == 200 else 1


if __name__ == '__main__':
    sys.exit(main())

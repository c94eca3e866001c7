"""DynamoDB-backed events store."""
import json
import logging
import time
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from processor.event_processor import EventProcessor
from processor.models import CanonicalEvent, ErrorRecord, RunStatus, UpsertResult
from processor.normalizers import format_instant
from storage.base import EventStore

logger = logging.getLogger(__name__)


class DynamoDBStore(EventStore):
    """
    Events store over four DynamoDB tables.

    events   hash source_id, range source_event_id
    sources  hash source_id, looked up by its ``name`` attribute
    runs     hash run_id
    errors   hash run_id, range error_id
    """

    BATCH_SIZE = 25  # DynamoDB batch operation limit
    TTL_DAYS = 90

    def __init__(
        self,
        events_table: str,
        sources_table: str,
        runs_table: str,
        errors_table: str,
        dynamodb=None
    ):
        """
        Initialize DynamoDB resource and table references.

        Args:
            events_table: Name of the events table
            sources_table: Name of the sources table
            runs_table: Name of the run log table
            errors_table: Name of the per-item error table
            dynamodb: Optional boto3 DynamoDB resource to use
        """
        self.dynamodb = dynamodb or boto3.resource('dynamodb')
        self.events = self.dynamodb.Table(events_table)
        self.sources = self.dynamodb.Table(sources_table)
        self.runs = self.dynamodb.Table(runs_table)
        self.errors = self.dynamodb.Table(errors_table)
        logger.info(
            f"Initialized DynamoDBStore (events={events_table}, sources={sources_table}, "
            f"runs={runs_table}, errors={errors_table})"
        )

    def find_source_by_name(self, name: str) -> Optional[str]:
        """
        Look up a source id by name using a filtered Scan.

        Args:
            name: Source name, e.g. "MacauTicket.com (Kong Seng)"

        Returns:
            The source_id, or None if no source has that name
        """
        scan_kwargs = {'FilterExpression': Attr('name').eq(name)}
        try:
            response = self.sources.scan(**scan_kwargs)
            items = response.get('Items', [])

            # Handle pagination
            while not items and 'LastEvaluatedKey' in response:
                response = self.sources.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **scan_kwargs
                )
                items = response.get('Items', [])
        except ClientError as e:
            logger.error(f"Error scanning sources table: {e}")
            raise

        if not items:
            return None
        return str(items[0]['source_id'])

    def upsert_event(self, event: CanonicalEvent) -> UpsertResult:
        """
        Put an event, replacing any item with the same natural key.

        Args:
            event: CanonicalEvent to write

        Returns:
            UpsertResult; ok=False with the error message on failure
        """
        try:
            self.events.put_item(Item=self._event_to_item(event))
        except (ClientError, BotoCoreError, TypeError, ValueError) as e:
            logger.warning(
                f"Upsert failed for {event.source_id}/{event.source_event_id}: {e}"
            )
            return UpsertResult(ok=False, error=str(e))
        return UpsertResult(ok=True)

    def get_event(self, source_id: str, source_event_id: str) -> Optional[Dict[str, Any]]:
        response = self.events.get_item(
            Key={'source_id': source_id, 'source_event_id': source_event_id}
        )
        return response.get('Item')

    def create_run(self, source_id: str, started_at: datetime) -> str:
        run_id = str(uuid.uuid4())
        self.runs.put_item(Item={
            'run_id': run_id,
            'source_id': source_id,
            'started_at': format_instant(started_at),
        })
        logger.info(f"Created run {run_id} for source {source_id}")
        return run_id

    def finalize_run(
        self,
        run_id: str,
        finished_at: datetime,
        status: RunStatus,
        events_found: int = 0,
        events_upserted: int = 0,
        errors_count: int = 0,
        notes: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Write the terminal fields of a run.

        The update is conditional on the run existing and not having been
        finalized, so a finished run record is never rewritten.

        Raises:
            ClientError: If the run is missing, already finalized, or the
                write fails
        """
        try:
            self.runs.update_item(
                Key={'run_id': run_id},
                UpdateExpression=(
                    'SET finished_at = :finished_at, #status = :status, '
                    'events_found = :found, events_upserted = :upserted, '
                    'errors_count = :errors, notes = :notes'
                ),
                ConditionExpression='attribute_exists(run_id) AND attribute_not_exists(finished_at)',
                ExpressionAttributeNames={'#status': 'status'},
                ExpressionAttributeValues={
                    ':finished_at': format_instant(finished_at),
                    ':status': status.value,
                    ':found': events_found,
                    ':upserted': events_upserted,
                    ':errors': errors_count,
                    ':notes': self._to_dynamo(notes or {}),
                }
            )
        except ClientError as e:
            logger.error(f"Error finalizing run {run_id}: {e}")
            raise
        logger.info(f"Finalized run {run_id} with status {status.value}")

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        return self.runs.get_item(Key={'run_id': run_id}).get('Item')

    def append_errors(self, records: List[ErrorRecord]) -> None:
        """
        Write error records in batches of 25 items.

        Args:
            records: ErrorRecord objects collected during a run
        """
        if not records:
            return

        logger.info(f"Writing {len(records)} error records to DynamoDB")
        for i in range(0, len(records), self.BATCH_SIZE):
            batch = records[i:i + self.BATCH_SIZE]
            try:
                with self.errors.batch_writer() as writer:
                    for record in batch:
                        writer.put_item(Item=self._error_to_item(record))
            except ClientError as e:
                logger.error(f"Error writing error batch {i // self.BATCH_SIZE + 1}: {e}")
                raise

    def get_run_errors(self, run_id: str) -> List[Dict[str, Any]]:
        response = self.errors.query(KeyConditionExpression=Key('run_id').eq(run_id))
        items = response.get('Items', [])
        while 'LastEvaluatedKey' in response:
            response = self.errors.query(
                KeyConditionExpression=Key('run_id').eq(run_id),
                ExclusiveStartKey=response['LastEvaluatedKey']
            )
            items.extend(response.get('Items', []))
        return items

    def _event_to_item(self, event: CanonicalEvent) -> Dict[str, Any]:
        """
        Convert a CanonicalEvent to a DynamoDB item.

        Adds the store-managed ``updated_at`` and ``ttl`` attributes; the
        item expires TTL_DAYS after the event ends (or starts).

        Args:
            event: CanonicalEvent object

        Returns:
            DynamoDB item dictionary
        """
        item = EventProcessor.to_record(event)
        item['raw_data'] = self._to_dynamo(item['raw_data'])
        item['updated_at'] = int(time.time())

        expires_from = event.end_at or event.start_at
        if expires_from:
            item['ttl'] = int((expires_from + timedelta(days=self.TTL_DAYS)).timestamp())

        return item

    def _error_to_item(self, record: ErrorRecord) -> Dict[str, Any]:
        return {
            'run_id': record.run_id,
            'error_id': str(uuid.uuid4()),
            'source_id': record.source_id,
            'url': record.url,
            'error_type': record.error_type.value,
            'message': record.message,
        }

    @staticmethod
    def _to_dynamo(value: Any) -> Any:
        """Round-trip through JSON so floats become Decimal, as boto3 requires."""
        return json.loads(json.dumps(value, default=str), parse_float=Decimal)

"""Shared fixtures: fake AWS credentials, mocked DynamoDB tables and page HTML."""
import json

import boto3
import pytest
from moto import mock_aws

from storage.dynamodb_manager import DynamoDBStore

SOURCE_ID = 'src-macauticket'
SOURCE_NAME = 'MacauTicket.com (Kong Seng)'
LISTING_URL = 'https://www.macauticket.com/TicketWeb2023/en'
DETAIL_BASE_URL = 'https://www.macauticket.com/TicketWeb2023/en/programme'

TABLES = {
    'events': ('test-public-events', 'source_id', 'source_event_id'),
    'sources': ('test-event-sources', 'source_id', None),
    'runs': ('test-source-runs', 'run_id', None),
    'errors': ('test-ingest-errors', 'run_id', 'error_id'),
}


def next_data_page(page_props):
    """Render a minimal Next.js page embedding ``page_props``."""
    payload = json.dumps({'props': {'pageProps': page_props}, 'page': '/'})
    return (
        '<html><head><title>MacauTicket</title></head><body>'
        '<div id="__next"></div>'
        f'<script id="__NEXT_DATA__" type="application/json">{payload}</script>'
        '</body></html>'
    )


def listing_entry(code, show_date='2026/02/25 19:45', **overrides):
    """Build a showListData entry shaped like the live site's."""
    entry = {
        'ProCode': code,
        'ProName1': f'Concert {code}',
        'ShowDate': show_date,
        'PriceDesc': '$150,$180',
        'ProType': 'Concert',
        'PictureS': f'https://img.example.com/{code}-s.jpg',
        'PictureP': f'https://img.example.com/{code}-p.jpg',
        'Status': '1',
        'SPID': 42,
        'WEBStatus': 'A',
        'WEBStatusStr': 'On Sale',
        'OpenFrom': '2026/01/01',
        'OpenTo': '2026/02/25',
    }
    entry.update(overrides)
    return entry


def detail_props(venue='Macau Cultural Centre', organizer='Kong Seng',
                 content='<p>An <b>evening</b> of music</p>'):
    return {
        'proList': {'SPName': organizer, 'ProListData': [{'VenueName': venue}]},
        'proInfo': [{'Content': content}],
    }


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real credentials and regions."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb():
    """Create the four mocked tables and seed the MacauTicket source."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')
        for table_name, hash_key, range_key in TABLES.values():
            key_schema = [{'AttributeName': hash_key, 'KeyType': 'HASH'}]
            attributes = [{'AttributeName': hash_key, 'AttributeType': 'S'}]
            if range_key:
                key_schema.append({'AttributeName': range_key, 'KeyType': 'RANGE'})
                attributes.append({'AttributeName': range_key, 'AttributeType': 'S'})
            resource.create_table(
                TableName=table_name,
                KeySchema=key_schema,
                AttributeDefinitions=attributes,
                BillingMode='PAY_PER_REQUEST'
            )

        resource.Table(TABLES['sources'][0]).put_item(
            Item={'source_id': SOURCE_ID, 'name': SOURCE_NAME}
        )
        yield resource


@pytest.fixture
def store(dynamodb):
    return DynamoDBStore(
        events_table=TABLES['events'][0],
        sources_table=TABLES['sources'][0],
        runs_table=TABLES['runs'][0],
        errors_table=TABLES['errors'][0],
        dynamodb=dynamodb
    )

"""Integration tests for the Lambda handler and command-line entry point."""
import json
import logging
import os
from unittest.mock import Mock, patch

import pytest

from ingest.errors import SourceNotConfigured
from lambda_function import JsonFormatter, lambda_handler, main, setup_logging
from processor.models import RunStats, RunStatus, RunSummary


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'EVENTS_TABLE': 'test-public-events',
        'SOURCES_TABLE': 'test-event-sources',
        'RUNS_TABLE': 'test-source-runs',
        'ERRORS_TABLE': 'test-ingest-errors',
        'LOG_LEVEL': 'INFO',
        'REQUEST_DELAY_MS': '0',
        'MAX_ITEMS_PER_RUN': '5',
        'TIMEOUT_SECONDS': '10'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.aws_request_id = 'test-request-id'
    return context


def summary(status, found=3, upserted=2, errors=1):
    return RunSummary(
        run_id='run-1',
        status=status,
        stats=RunStats(found=found, upserted=upserted, errors=errors),
        notes={'max_items_per_run': 5, 'skipped': 0}
    )


class TestLambdaHandler:
    """Test cases for Lambda handler."""

    @patch('lambda_function.build_runner')
    def test_successful_run(self, mock_build_runner, mock_env, mock_context):
        mock_build_runner.return_value.run.return_value = summary(RunStatus.SUCCESS, errors=0)

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'Ingestion completed'
        assert body['status'] == 'success'
        assert body['run_id'] == 'run-1'
        assert body['statistics']['events_found'] == 3
        assert 'duration_seconds' in body

        config = mock_build_runner.call_args.args[0]
        assert config.request_delay_ms == 0
        assert config.max_items_per_run == 5
        assert config.request_timeout == 10

    @patch('lambda_function.build_runner')
    def test_partial_run_is_not_a_failure(self, mock_build_runner, mock_env, mock_context):
        mock_build_runner.return_value.run.return_value = summary(RunStatus.PARTIAL)

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        assert json.loads(response['body'])['status'] == 'partial'

    @patch('lambda_function.build_runner')
    def test_failed_run(self, mock_build_runner, mock_env, mock_context):
        mock_build_runner.return_value.run.return_value = summary(RunStatus.FAILED, 0, 0, 0)

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Ingestion failed'
        assert body['status'] == 'failed'

    @patch('lambda_function.build_runner')
    def test_source_not_configured(self, mock_build_runner, mock_env, mock_context):
        mock_build_runner.return_value.run.side_effect = SourceNotConfigured('MacauTicket.com (Kong Seng)')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Source not configured'
        assert body['error_type'] == 'SourceNotConfigured'

    @patch('lambda_function.build_runner')
    def test_unexpected_error(self, mock_build_runner, mock_env, mock_context):
        mock_build_runner.return_value.run.side_effect = RuntimeError('store unavailable')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Ingestion failed'
        assert 'store unavailable' in body['error']

    @patch('lambda_function.build_runner')
    @patch('lambda_function.setup_logging')
    def test_logging_output(self, mock_setup_logging, mock_build_runner, mock_env,
                            mock_context, caplog):
        mock_build_runner.return_value.run.return_value = summary(RunStatus.SUCCESS, errors=0)

        with caplog.at_level(logging.INFO, logger='lambda_function'):
            response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        log_messages = [record.message for record in caplog.records]
        assert any('Ingestion started' in msg for msg in log_messages)
        assert any('Ingestion finished' in msg for msg in log_messages)


class TestMain:
    """Exit codes of the command-line entry point."""

    @pytest.mark.parametrize('status, expected', [
        (RunStatus.SUCCESS, 0),
        (RunStatus.PARTIAL, 0),
        (RunStatus.FAILED, 1),
    ])
    @patch('lambda_function.build_runner')
    def test_exit_code(self, mock_build_runner, status, expected, mock_env):
        mock_build_runner.return_value.run.return_value = summary(status)

        assert main() == expected

    @patch('lambda_function.build_runner')
    def test_exit_code_on_setup_error(self, mock_build_runner, mock_env):
        mock_build_runner.return_value.run.side_effect = SourceNotConfigured('missing')

        assert main() == 1


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_json_formatter_includes_extra_fields(self):
        record = logging.makeLogRecord({
            'name': 'ingest.runner',
            'levelname': 'INFO',
            'msg': 'Run finished',
            'run_id': 'run-1',
        })

        data = json.loads(JsonFormatter().format(record))

        assert data['message'] == 'Run finished'
        assert data['logger'] == 'ingest.runner'
        assert data['run_id'] == 'run-1'

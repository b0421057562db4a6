"""Tests for the rmqrpc CLI commands."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from rmqrpc.cli.main import app, echo
from rmqrpc.cli.providers.rabbitmq import RabbitMQContext
from rmqrpc.rmq import InitFailureError, RPCTimeoutError

runner = CliRunner()


@pytest.fixture(autouse=True)
def mock_configure_logging():
    with patch('rmqrpc.cli.main.configure_logging') as mock:
        yield mock


@pytest.fixture
def mock_service():
    with patch('rmqrpc.cli.main.RMQService') as mock_cls:
        yield mock_cls


class TestSend:
    """Test cases for the send command."""

    def test_prints_reply(self, mock_service):
        mock_service.return_value.call.return_value = {"ok": True}

        result = runner.invoke(app, ['send', 'echo', '{"a": 1}', '--timeout', '2.5'])

        assert result.exit_code == 0
        assert result.stdout.strip() == '{"ok": true}'
        mock_service.return_value.call.assert_called_once_with('echo', {"a": 1}, timeout=2.5)
        mock_service.return_value.close.assert_called_once()

    def test_builds_options_from_flags(self, mock_service):
        mock_service.return_value.call.return_value = 1

        result = runner.invoke(app, [
            '--rabbitmq-host', 'broker',
            '--rabbitmq-port', '5671',
            '--rabbitmq-enable-ssl',
            '--exchange', 'billing',
            'send', 'echo', '1',
        ])

        assert result.exit_code == 0
        options = mock_service.call_args[0][0]
        assert options.exchange_name == 'billing'
        assert options.connections[0].host == 'broker'
        assert options.connections[0].port == 5671
        assert options.connections[0].ssl is True
        assert options.queue_name is None

    def test_reads_environment(self, mock_service):
        mock_service.return_value.call.return_value = 1

        result = runner.invoke(
            app,
            ['send', 'echo', '1'],
            env={'RABBITMQ_HOST': 'env-broker', 'RMQRPC_EXCHANGE': 'env-exchange'},
        )

        assert result.exit_code == 0
        options = mock_service.call_args[0][0]
        assert options.exchange_name == 'env-exchange'
        assert options.connections[0].host == 'env-broker'

    def test_invalid_json(self, mock_service):
        result = runner.invoke(app, ['send', 'echo', '{nope'])

        assert result.exit_code != 0
        mock_service.assert_not_called()

    def test_service_error_exits_nonzero(self, mock_service):
        mock_service.return_value.call.side_effect = RPCTimeoutError('cid', 1.0)

        result = runner.invoke(app, ['send', 'echo', '1', '--timeout', '1'])

        assert result.exit_code == 1
        mock_service.return_value.close.assert_called_once()


class TestNotify:
    """Test cases for the notify command."""

    def test_publishes(self, mock_service):
        result = runner.invoke(app, ['notify', 'audit.login', '{"user": "ada"}'])

        assert result.exit_code == 0
        mock_service.return_value.notify.assert_called_once_with('audit.login', {"user": "ada"})
        mock_service.return_value.close.assert_called_once()

    def test_connection_failure(self, mock_service):
        mock_service.return_value.notify.side_effect = InitFailureError('refused')

        result = runner.invoke(app, ['notify', 'audit.login', '{}'])

        assert result.exit_code == 1


class TestServe:
    """Test cases for the serve command."""

    @patch('rmqrpc.cli.main._wait_for_shutdown')
    def test_registers_echo_routes(self, mock_wait, mock_service):
        result = runner.invoke(app, ['serve', 'echo', 'math.echo', '--queue', 'svc', '--workers', '2'])

        assert result.exit_code == 0
        options = mock_service.call_args[0][0]
        assert options.queue_name == 'svc'
        assert options.subscriptions == ['echo', 'math.echo']
        assert options.handler_workers == 2
        service = mock_service.return_value
        service.register_route.assert_any_call('echo', echo)
        service.register_route.assert_any_call('math.echo', echo)
        service.init.assert_called_once()
        mock_wait.assert_called_once()
        service.close.assert_called_once()

    @patch('rmqrpc.cli.main._wait_for_shutdown')
    def test_init_failure(self, mock_wait, mock_service):
        mock_service.return_value.init.side_effect = InitFailureError('refused')

        result = runner.invoke(app, ['serve', 'echo'])

        assert result.exit_code == 1
        mock_wait.assert_not_called()


def test_echo_returns_body():
    assert echo({"a": [1, 2]}) == {"a": [1, 2]}


def test_rabbitmq_context_defaults_credentials():
    connection = RabbitMQContext(host='h', port=5672, user=None, password=None).to_connection()

    assert connection.login == 'guest'
    assert connection.password == 'guest'
    assert connection.vhost == '/'

"""Tests for retry functionality."""

import pytest
from unittest.mock import Mock

from amqpstorm.exception import AMQPChannelError, AMQPConnectionError

from rmqrpc.retry import (
    RetryConfig,
    retry,
    is_transient_rmq_error,
)


class TestRetryConfig:
    """Test RetryConfig dataclass."""

    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.initial_delay == 1.0
        assert config.max_delay == 60.0
        assert config.exponential_base == 2.0
        assert config.jitter is True
        assert config.jitter_factor == 0.1

    def test_custom_config(self):
        config = RetryConfig(
            max_attempts=5,
            initial_delay=2.0,
            max_delay=30.0,
        )
        assert config.max_attempts == 5
        assert config.initial_delay == 2.0
        assert config.max_delay == 30.0


class TestRetryDecorator:
    """Test retry decorator."""

    def test_success_no_retry(self):
        """Function succeeds on first attempt."""
        mock_func = Mock(return_value="success")

        @retry(RetryConfig(max_attempts=3))
        def test_func():
            return mock_func()

        assert test_func() == "success"
        assert mock_func.call_count == 1

    def test_retry_on_exception(self):
        """Function fails then succeeds."""
        mock_func = Mock(side_effect=[ValueError("fail"), "success"])

        @retry(RetryConfig(
            max_attempts=3,
            initial_delay=0.01,
            jitter=False,
        ))
        def test_func():
            return mock_func()

        assert test_func() == "success"
        assert mock_func.call_count == 2

    def test_max_attempts_exceeded(self):
        """Function fails all attempts."""
        mock_func = Mock(side_effect=ValueError("fail"))

        @retry(RetryConfig(
            max_attempts=3,
            initial_delay=0.01,
            jitter=False,
        ))
        def test_func():
            return mock_func()

        with pytest.raises(ValueError, match="fail"):
            test_func()

        assert mock_func.call_count == 3

    def test_exception_filter(self):
        """Only retry filtered exceptions."""
        mock_func = Mock(side_effect=ValueError("do not retry"))

        @retry(RetryConfig(
            max_attempts=3,
            exception_filter=is_transient_rmq_error,
        ))
        def test_func():
            return mock_func()

        with pytest.raises(ValueError):
            test_func()

        assert mock_func.call_count == 1

    def test_on_retry_callback(self):
        """Callback is called on retry."""
        callback_mock = Mock()
        mock_func = Mock(side_effect=[ValueError("fail"), "success"])

        @retry(RetryConfig(
            max_attempts=3,
            initial_delay=0.01,
            jitter=False,
            on_retry=callback_mock,
        ))
        def test_func():
            return mock_func()

        assert test_func() == "success"

        callback_mock.assert_called_once()
        args = callback_mock.call_args[0]
        assert isinstance(args[0], ValueError)
        assert args[1] == 1
        assert isinstance(args[2], float)

    def test_custom_sleep_is_used(self):
        """The configured sleep function paces the attempts."""
        sleeper = Mock()
        mock_func = Mock(side_effect=[AMQPConnectionError("down"), "up"])

        @retry(RetryConfig(
            max_attempts=2,
            initial_delay=5.0,
            exponential_base=1.0,
            jitter=False,
            sleep=sleeper,
        ))
        def test_func():
            return mock_func()

        assert test_func() == "up"
        sleeper.assert_called_once_with(5.0)


class TestRMQErrorDetection:
    """Test RabbitMQ error detection."""

    def test_detects_connection_error(self):
        assert is_transient_rmq_error(AMQPConnectionError("connection failed")) is True

    def test_detects_channel_error(self):
        assert is_transient_rmq_error(AMQPChannelError("channel closed")) is True

    def test_detects_generic_connection_error(self):
        assert is_transient_rmq_error(ConnectionError("connection failed")) is True

    def test_does_not_detect_value_error(self):
        assert is_transient_rmq_error(ValueError("not an RMQ error")) is False


class TestExponentialBackoff:
    """Test exponential backoff calculation."""

    def test_backoff_increases(self):
        """Delays increase exponentially."""
        mock_func = Mock(side_effect=ValueError("fail"))
        delays = []

        @retry(RetryConfig(
            max_attempts=5,
            initial_delay=1.0,
            exponential_base=2.0,
            jitter=False,
            on_retry=lambda exc, attempt, delay: delays.append(delay),
            sleep=Mock(),
        ))
        def test_func():
            return mock_func()

        with pytest.raises(ValueError):
            test_func()

        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_constant_interval(self):
        """A base of 1 keeps a fixed reconnect interval."""
        delays = []

        @retry(RetryConfig(
            max_attempts=4,
            initial_delay=3.0,
            exponential_base=1.0,
            jitter=False,
            on_retry=lambda exc, attempt, delay: delays.append(delay),
            sleep=Mock(),
        ))
        def test_func():
            raise AMQPConnectionError("down")

        with pytest.raises(AMQPConnectionError):
            test_func()

        assert delays == [3.0, 3.0, 3.0]

    def test_max_delay_cap(self):
        """Delays are capped at max_delay."""
        delays = []

        @retry(RetryConfig(
            max_attempts=10,
            initial_delay=1.0,
            max_delay=5.0,
            exponential_base=2.0,
            jitter=False,
            on_retry=lambda exc, attempt, delay: delays.append(delay),
            sleep=Mock(),
        ))
        def test_func():
            raise ValueError("fail")

        with pytest.raises(ValueError):
            test_func()

        assert all(d <= 5.0 for d in delays)
        assert delays[-1] == 5.0

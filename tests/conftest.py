"""
Shared pytest fixtures for hostmetrics tests.

These fixtures provide mock loggers, a scripted command gateway and a
controllable clock, so collectors and the aggregator can be exercised
without a remote host.
"""

from unittest.mock import MagicMock

import pytest

from hostmetrics.config import MonitorSettings
from tests.fixtures.mock_gateway import FakeClock, MockCommandGateway
from tests.fixtures import sample_outputs


# =============================================================================
# Logger Fixtures
# =============================================================================

@pytest.fixture
def mock_logger():
    """
    Create a mock logger that captures all log calls.

    Usage:
        def test_something(mock_logger):
            some_function(logger=mock_logger)
            mock_logger.info.assert_called_with("expected message")
    """
    logger = MagicMock()
    # Add all log levels as mock methods
    for level in ['debug', 'info', 'warning', 'error', 'critical',
                  'status', 'verbose', 'verboser', 'ridiculous', 'result']:
        setattr(logger, level, MagicMock())
    return logger


@pytest.fixture
def capturing_logger():
    """
    Create a logger that captures messages to a list.

    Usage:
        def test_something(capturing_logger):
            logger, messages = capturing_logger
            some_function(logger=logger)
            assert "expected" in messages['info'][0]
    """
    messages = {
        'debug': [], 'info': [], 'warning': [], 'error': [],
        'critical': [], 'status': [], 'verbose': [], 'verboser': [],
        'ridiculous': [], 'result': []
    }

    logger = MagicMock()

    def make_capture(level):
        def capture(msg, *args, **kwargs):
            messages[level].append(msg)
        return capture

    for level in messages:
        setattr(logger, level, make_capture(level))

    return logger, messages


# =============================================================================
# Engine Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """Controllable epoch-ms clock starting at 1,000,000 ms."""
    return FakeClock(1_000_000)


@pytest.fixture
def settings():
    return MonitorSettings()


@pytest.fixture
def gateway():
    """Gateway answering every standard command with the recorded sample outputs."""
    return MockCommandGateway(sample_outputs.standard_responses())


@pytest.fixture
def empty_gateway():
    """Gateway that returns empty output for everything."""
    return MockCommandGateway()

"""
Test fixtures package for hostmetrics tests.

This package provides a scripted command gateway, a controllable clock and
recorded command outputs for testing parsers, collectors and the aggregator.
"""

from tests.fixtures.mock_gateway import FakeClock, MockCommandGateway
from tests.fixtures import sample_outputs

__all__ = [
    'FakeClock',
    'MockCommandGateway',
    'sample_outputs',
]

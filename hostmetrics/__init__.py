"""
hostmetrics - remote host metrics collection engine.

Runs standard Linux commands through a command gateway, parses their text
output and turns raw counters into rates and usage figures. Start with
``hostmetrics.aggregator.MetricsAggregator``.
"""

VERSION = "0.1.0"
__version__ = VERSION

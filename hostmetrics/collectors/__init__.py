"""
Domain collectors for hostmetrics.

Each collector owns one metric domain and reports its sections as
``SectionResult`` objects:

    - CpuCollector: basic.cpu, cpu, cores
    - MemoryCollector: basic.memory, memory
    - DiskCollector: basic.disk, disk, health, space, io
    - NetworkCollector: basic.network, network, connections
    - ProcessCollector: processes
"""

from hostmetrics.collectors.base import BaseCollector
from hostmetrics.collectors.cpu import CpuCollector
from hostmetrics.collectors.disk import DeviceIdentityMap, DiskCollector
from hostmetrics.collectors.memory import MemoryCollector
from hostmetrics.collectors.network import NetworkCollector
from hostmetrics.collectors.process import ProcessCollector

ALL_COLLECTORS = (
    CpuCollector,
    MemoryCollector,
    DiskCollector,
    NetworkCollector,
    ProcessCollector,
)

__all__ = [
    'ALL_COLLECTORS',
    'BaseCollector',
    'CpuCollector',
    'DeviceIdentityMap',
    'DiskCollector',
    'MemoryCollector',
    'NetworkCollector',
    'ProcessCollector',
]

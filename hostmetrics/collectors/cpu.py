"""
CPU collector: overall usage, frequency, lscpu description, temperature and
per-core usage.

Usage is the share of non-idle jiffies between two /proc/stat samples, so the
first call for a session reports 0.
"""

from typing import List, Optional, Tuple

from hostmetrics.collectors.base import BaseCollector
from hostmetrics.config import SECTIONS, get_command
from hostmetrics.errors import ParseError
from hostmetrics.models import CoreUsage, CoresDetail, CpuBasicInfo, CpuDetail, CpuTimes
from hostmetrics.parsers.cpu import (
    parse_cpu_mhz,
    parse_lscpu,
    parse_proc_stat,
    parse_sensors_temperature,
    usage_percent,
)


class CpuCollector(BaseCollector):

    BASIC_SECTION = SECTIONS.BASIC_CPU
    SECTION_METHODS = {
        SECTIONS.CPU: '_collect_detail',
        SECTIONS.CORES: '_collect_cores',
    }

    def _usage(self, session_id: str, times: CpuTimes, timestamp_ms: int) -> float:
        busy = self.rates.delta(session_id, f'cpu:{times.name}:busy', times.busy, timestamp_ms)
        total = self.rates.delta(session_id, f'cpu:{times.name}:all', times.total, timestamp_ms)
        return usage_percent(busy, total)

    @staticmethod
    def _aggregate(rows: List[CpuTimes]) -> CpuTimes:
        for row in rows:
            if row.name == 'cpu':
                return row
        raise ParseError("No aggregate cpu line in /proc/stat", source='/proc/stat')

    @staticmethod
    def _core_rows(rows: List[CpuTimes]) -> List[CpuTimes]:
        return [row for row in rows if row.name != 'cpu' and row.name[3:].isdigit()]

    async def _collect_basic(self, session_id: str) -> CpuBasicInfo:
        stat_output, mhz_output = await self._gather(
            self._run(session_id, get_command('proc_stat')),
            self._run_optional(session_id, get_command('cpu_mhz')),
        )
        rows = parse_proc_stat(stat_output)
        aggregate = self._aggregate(rows)
        return CpuBasicInfo(
            usage=self._usage(session_id, aggregate, self.clock()),
            logical_cores=len(self._core_rows(rows)),
            frequency_mhz=parse_cpu_mhz(mhz_output),
        )

    async def _temperature(self, session_id: str) -> Tuple[bool, Optional[float]]:
        """(sensors installed, package temperature in Celsius or None)."""
        if not await self._probe(session_id, 'sensors'):
            return False, None
        return True, parse_sensors_temperature(await self._run_optional(session_id, get_command('sensors')))

    async def _collect_detail(self, session_id: str) -> CpuDetail:
        lscpu_output, mhz_output, stat_output, temperature = await self._gather(
            self._run(session_id, get_command('lscpu')),
            self._run_optional(session_id, get_command('cpu_mhz')),
            self._run_optional(session_id, get_command('proc_stat')),
            self._temperature(session_id),
        )
        timestamp = self.clock()
        detail = parse_lscpu(lscpu_output)

        current_mhz: Optional[float] = parse_cpu_mhz(mhz_output)
        if current_mhz is not None:
            detail.frequency_mhz = current_mhz

        rows = parse_proc_stat(stat_output)
        if not detail.logical_cores:
            detail.logical_cores = len(self._core_rows(rows))
        try:
            detail.usage = self._usage(session_id, self._aggregate(rows), timestamp)
        except ParseError:
            self.logger.debug(f'No /proc/stat data for cpu usage on session {session_id}')

        detail.sensors_installed, detail.temperature = temperature
        detail.last_updated = timestamp
        return detail

    async def _collect_cores(self, session_id: str) -> CoresDetail:
        rows = parse_proc_stat(await self._run(session_id, get_command('proc_stat')))
        timestamp = self.clock()
        cores = [
            CoreUsage(core=int(row.name[3:]), usage=self._usage(session_id, row, timestamp))
            for row in self._core_rows(rows)
        ]
        if not cores:
            raise ParseError("No per-core lines in /proc/stat", source='/proc/stat')
        return CoresDetail(cores=cores, last_updated=timestamp)

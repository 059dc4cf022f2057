"""
Metrics aggregator: the entry point of the collection engine.

Basic metrics are recomputed on every call. Detail sections are computed on
demand: the requested section (or all of them) is refreshed, sections that
were requested earlier stay in rotation and are refreshed once their value
is older than ``inactive_refresh_seconds``, and every other section is copied
from the cache. A failed section keeps its last good value.

Refreshes of one session are serialized by a per-session lock, so two
overlapping calls never interleave their counter samples.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Set

from hostmetrics.cache import SectionState, SnapshotCache
from hostmetrics.collectors import ALL_COLLECTORS, ProcessCollector
from hostmetrics.collectors.base import BaseCollector, gather_all
from hostmetrics.config import BASIC_SECTIONS, DETAIL_SECTIONS, MonitorSettings
from hostmetrics.errors import ConfigurationError, ErrorCode, SessionDisconnectedError
from hostmetrics.interfaces.collector import SectionResult
from hostmetrics.interfaces.gateway import CommandGatewayInterface
from hostmetrics.models import BasicSnapshot, DetailSnapshot, ProcessFiles, ThreadInfo
from hostmetrics.rates import RateComputer, now_ms


class MetricsAggregator:
    """
    Collects basic and detail snapshots for any number of sessions.

    Attributes:
        gateway: Command gateway used by every collector.
        logger: Logger instance for output.
        settings: Engine settings.
        rates: Rate computer shared by the collectors.
        cache: Snapshot cache holding the last good value per section.
        collectors: One instance of each domain collector.
    """

    def __init__(self, gateway: CommandGatewayInterface, logger,
                 settings: Optional[MonitorSettings] = None, clock=now_ms):
        self.gateway = gateway
        self.logger = logger
        self.settings = settings or MonitorSettings()
        self.clock = clock
        self.rates = RateComputer(logger)
        self.cache = SnapshotCache()
        self.collectors = [cls(gateway, self.rates, logger, self.settings, clock) for cls in ALL_COLLECTORS]

        self._basic_owner: Dict[str, BaseCollector] = {}
        self._section_owner: Dict[str, BaseCollector] = {}
        for collector in self.collectors:
            if collector.basic_section is not None:
                self._basic_owner[collector.basic_section] = collector
            for section in collector.detail_sections:
                self._section_owner[section] = collector
        self._process_collector: ProcessCollector = next(
            c for c in self.collectors if isinstance(c, ProcessCollector))
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    def _store(self, session_id: str, result: SectionResult) -> None:
        if result.success:
            self.cache.store(session_id, result.section, result.data, result.timestamp or self.clock())
            return
        entry = self.cache.peek(session_id, result.section)
        fallback = 'cached value' if entry is not None and entry.value is not None else 'default'
        self.logger.warning(f'Refresh of {result.section} failed for session {session_id}; '
                            f'using {fallback}: {"; ".join(result.errors)}')
        self.cache.mark_failed(session_id, result.section)

    async def _refresh(self, session_id: str, sections: Iterable[str], coroutines: List) -> None:
        sections = list(sections)
        for section in sections:
            self.cache.begin_refresh(session_id, section)
        try:
            results = await gather_all(*coroutines)
        except (SessionDisconnectedError, asyncio.CancelledError):
            for section in sections:
                self.cache.mark_failed(session_id, section)
            raise
        for result in results:
            self._store(session_id, result)

    async def collect_basic_metrics(self, session_id: str) -> BasicSnapshot:
        """
        Recompute cpu, memory, disk and network basic metrics.

        Raises:
            SessionDisconnectedError: If the gateway reports the session as gone.
        """
        async with self._lock(session_id):
            await self._refresh(
                session_id,
                BASIC_SECTIONS,
                [self._basic_owner[s].collect_basic(session_id) for s in BASIC_SECTIONS],
            )
            cpu, memory, disk, network = (self.cache.value(session_id, s) for s in BASIC_SECTIONS)
            return BasicSnapshot(cpu=cpu, memory=memory, disk=disk, network=network, timestamp=self.clock())

    def _is_recent(self, session_id: str, section: str, max_age_seconds: float, now: int) -> bool:
        if self.cache.state(session_id, section) != SectionState.FRESH:
            return False
        age = self.cache.age_ms(session_id, section, now)
        return age is not None and age < max_age_seconds * 1000

    def sections_to_refresh(self, session_id: str, active_section: Optional[str] = None) -> Set[str]:
        """
        Decide which detail sections the next detail call recomputes.

        Requested sections are activated for the session. Sections with a
        minimum interval are reused while their fresh value is younger than it.
        """
        if active_section is None:
            requested = set(DETAIL_SECTIONS)
        elif active_section in DETAIL_SECTIONS:
            requested = {active_section}
        else:
            raise ConfigurationError(
                f"Unknown detail section: {active_section}",
                parameter='active_section',
                expected=list(DETAIL_SECTIONS),
                actual=active_section,
                code=ErrorCode.CONFIG_UNKNOWN_SECTION,
            )

        now = self.clock()
        min_intervals = self.settings.section_min_interval
        refresh = set()
        for section in requested:
            self.cache.activate(session_id, section)
            if section in min_intervals and self._is_recent(session_id, section, min_intervals[section], now):
                continue
            refresh.add(section)

        for section in self.cache.activated(session_id) - requested:
            max_age = max(self.settings.inactive_refresh_seconds, min_intervals.get(section, 0))
            if not self._is_recent(session_id, section, max_age, now):
                refresh.add(section)
        return refresh

    async def collect_detail_metrics(self, session_id: str,
                                     active_section: Optional[str] = None) -> DetailSnapshot:
        """
        Return a complete detail snapshot, refreshing only what is due.

        Args:
            session_id: Session to collect from.
            active_section: Detail section the caller is showing. None refreshes
                every detail section.

        Raises:
            ConfigurationError: If ``active_section`` is not a detail section.
            SessionDisconnectedError: If the gateway reports the session as gone.
        """
        async with self._lock(session_id):
            refresh = sorted(self.sections_to_refresh(session_id, active_section))
            if refresh:
                self.logger.debug(f'Refreshing {", ".join(refresh)} for session {session_id}')
                await self._refresh(
                    session_id,
                    refresh,
                    [self._section_owner[s].collect_section(session_id, s) for s in refresh],
                )
            values = {section: self.cache.value(session_id, section) for section in DETAIL_SECTIONS}
            return DetailSnapshot(timestamp=self.clock(), **values)

    async def collect_process_threads(self, session_id: str, pid: int) -> List[ThreadInfo]:
        """Thread listing for one process, or an empty list on failure."""
        return await self._process_collector.get_threads(session_id, pid)

    async def collect_process_files(self, session_id: str, pid: int) -> ProcessFiles:
        """
        Open file descriptors of one process, from ``lsof -p``.

        Raises:
            SessionDisconnectedError: If the gateway reports the session as gone.
        """
        return await self._process_collector.get_open_files(session_id, pid)

    def destroy(self, session_id: str) -> None:
        """Release all cached values, counter samples and identity state for a session."""
        self.cache.destroy(session_id)
        self.rates.destroy(session_id)
        for collector in self.collectors:
            collector.destroy(session_id)
        self._locks.pop(session_id, None)
        self.logger.debug(f'Released state for session {session_id}')

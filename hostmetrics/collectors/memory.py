"""Memory collector: /proc/meminfo summary and the top memory consumers."""

from hostmetrics.collectors.base import BaseCollector
from hostmetrics.config import SECTIONS, get_command
from hostmetrics.errors import ParseError
from hostmetrics.models import MemoryBasicInfo, MemoryDetail
from hostmetrics.parsers.memory import memory_basic, memory_detail, parse_meminfo
from hostmetrics.parsers.process import parse_process_table


class MemoryCollector(BaseCollector):

    BASIC_SECTION = SECTIONS.BASIC_MEMORY
    SECTION_METHODS = {
        SECTIONS.MEMORY: '_collect_detail',
    }

    @staticmethod
    def _meminfo(output: str):
        meminfo = parse_meminfo(output)
        if 'MemTotal' not in meminfo:
            raise ParseError("MemTotal missing from /proc/meminfo", source='/proc/meminfo')
        return meminfo

    async def _collect_basic(self, session_id: str) -> MemoryBasicInfo:
        return memory_basic(self._meminfo(await self._run(session_id, get_command('meminfo'))))

    async def _collect_detail(self, session_id: str) -> MemoryDetail:
        limit = self.settings.top_process_count
        meminfo_output, ps_output = await self._gather(
            self._run(session_id, get_command('meminfo')),
            self._run_optional(session_id, get_command('top_memory_processes', limit_plus_header=limit + 1)),
        )
        detail = memory_detail(self._meminfo(meminfo_output))
        detail.top_processes = parse_process_table(ps_output)[:limit]
        detail.last_updated = self.clock()
        return detail

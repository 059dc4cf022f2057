"""Process collector: top processes by CPU, process counts, per-process threads and open files."""

from typing import List

from hostmetrics.collectors.base import BaseCollector
from hostmetrics.config import SECTIONS, get_command
from hostmetrics.models import ProcessesDetail, ProcessFiles, ThreadInfo
from hostmetrics.parsers.process import parse_open_files, parse_process_counts, parse_thread_table


class ProcessCollector(BaseCollector):

    SECTION_METHODS = {
        SECTIONS.PROCESSES: '_collect_processes',
    }

    async def _collect_processes(self, session_id: str) -> ProcessesDetail:
        if not await self._probe(session_id, 'ps'):
            return ProcessesDetail(tool_installed=False, last_updated=self.clock())

        limit = self.settings.top_process_count
        output = await self._run(session_id, get_command('process_table', limit_plus_header=limit + 1))
        total, running, top = parse_process_counts(output)
        return ProcessesDetail(
            processes=top[:limit],
            total_count=total,
            running_count=running,
            tool_installed=True,
            last_updated=self.clock(),
        )

    async def get_threads(self, session_id: str, pid: int) -> List[ThreadInfo]:
        """
        Threads of one process.

        Returns:
            ThreadInfo rows, or an empty list when the process is gone or the
            command failed.
        """
        try:
            command = get_command('thread_table', pid=int(pid))
        except (TypeError, ValueError):
            self.logger.warning(f'Invalid pid for thread listing: {pid!r}')
            return []
        return parse_thread_table(await self._run_optional(session_id, command))

    async def get_open_files(self, session_id: str, pid: int) -> ProcessFiles:
        """
        Numbered file descriptors of one process.

        Returns:
            ProcessFiles with ``tool_installed=False`` when lsof is missing.
            The file list is empty when the process is gone, access is denied
            or the command failed. An invalid pid yields ``ProcessFiles(pid=0)``.
        """
        try:
            pid = int(pid)
        except (TypeError, ValueError):
            self.logger.warning(f'Invalid pid for open file listing: {pid!r}')
            return ProcessFiles(pid=0)
        if not await self._probe(session_id, 'lsof'):
            return ProcessFiles(pid=pid, tool_installed=False)
        output = await self._run_optional(session_id, get_command('open_files', pid=pid))
        return ProcessFiles(pid=pid, files=parse_open_files(output), tool_installed=True)

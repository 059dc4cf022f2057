"""
Parsers for ps and lsof -p output.

The process table is ``ps aux`` output:

    USER  PID  %CPU  %MEM  VSZ  RSS  TTY  STAT  START  TIME  COMMAND...

RSS is in kB. The command column runs to the end of the line.
"""

import re
from typing import List, Tuple

from hostmetrics.errors import ParseError
from hostmetrics.models import OpenFile, ProcessInfo, ProcessStatus, ThreadInfo
from hostmetrics.parsers.tokenizer import (
    FieldSpec,
    normalize_output,
    parse_row,
    parse_rows,
    parser_boundary,
    split_marked,
    to_float,
    to_int,
)

STATUS_CODES = {
    'R': ProcessStatus.RUNNING,
    'S': ProcessStatus.SLEEPING,
    'D': ProcessStatus.UNINTERRUPTIBLE,
    'Z': ProcessStatus.ZOMBIE,
    'T': ProcessStatus.STOPPED,
    'I': ProcessStatus.IDLE,
}

PS_AUX_SCHEMA = (
    FieldSpec('user', 0),
    FieldSpec('pid', 1, to_int),
    FieldSpec('cpu_percent', 2, to_float, 0.0),
    FieldSpec('memory_percent', 3, to_float, 0.0),
    FieldSpec('rss_kb', 5, to_int, 0),
    FieldSpec('stat', 7, str, ''),
    FieldSpec('start_time', 8, str, ''),
    FieldSpec('cpu_time', 9, str, ''),
    FieldSpec('command', 10, str, rest=True),
)

THREAD_SCHEMA = (
    FieldSpec('tid', 0, to_int),
    FieldSpec('name', 1),
    FieldSpec('cpu_percent', 2, to_float, 0.0),
    FieldSpec('stat', 3, str, ''),
)

OPEN_FILE_SCHEMA = (
    FieldSpec('fd', 3),
    FieldSpec('type', 4),
    FieldSpec('path', 8, str, rest=True),
)

_FD = re.compile(r'^(\d+)([rwu]?)')


def parse_process_status(code: str) -> ProcessStatus:
    """Map a ps STAT code to ProcessStatus. Unknown codes are SLEEPING."""
    if not code:
        return ProcessStatus.SLEEPING
    return STATUS_CODES.get(code[0].upper(), ProcessStatus.SLEEPING)


def process_name(command: str) -> str:
    """Executable basename of a command line, e.g. '/usr/bin/python3 x.py' -> 'python3'."""
    if not command:
        return ''
    if command.startswith('[') and command.endswith(']'):
        return command[1:-1]
    return command.split()[0].rsplit('/', 1)[-1] or command


@parser_boundary(list)
def parse_process_table(content: str) -> List[ProcessInfo]:
    """
    Parse ``ps aux`` rows. Header lines and malformed rows are skipped.

    Returns:
        ProcessInfo rows in the order ps printed them.
    """
    processes = []
    for line in normalize_output(content):
        tokens = line.split()
        if tokens[0] == 'USER' and 'PID' in tokens:
            continue
        try:
            row = parse_row(tokens, PS_AUX_SCHEMA)
        except ParseError:
            continue
        processes.append(ProcessInfo(
            pid=row['pid'],
            user=row['user'],
            name=process_name(row['command']),
            command=row['command'],
            cpu_percent=row['cpu_percent'],
            memory_percent=row['memory_percent'],
            memory_used=row['rss_kb'] * 1024,
            status=parse_process_status(row['stat']),
            start_time=row['start_time'],
            cpu_time=row['cpu_time'],
        ))
    return processes


def _first_int(lines: List[str]) -> int:
    for line in lines:
        try:
            return to_int(line.split()[0])
        except (ValueError, IndexError):
            continue
    return 0


@parser_boundary(lambda: (0, 0, []))
def parse_process_counts(content: str) -> Tuple[int, int, List[ProcessInfo]]:
    """
    Parse the combined process command with ``=== NAME ===`` markers.

    The PROCESS_COUNT section is ``ps aux | wc -l`` and includes the header
    line, so one is subtracted.

    Returns:
        (total_count, running_count, top_processes)
    """
    sections = split_marked(content)
    total = max(0, _first_int(sections.get('PROCESS_COUNT', [])) - 1)
    running = _first_int(sections.get('RUNNING_COUNT', []))
    top = parse_process_table('\n'.join(sections.get('TOP_PROCESSES', [])))
    return total, running, top


@parser_boundary(list)
def parse_thread_table(content: str) -> List[ThreadInfo]:
    """Parse ``ps -T -p PID -o tid,comm,%cpu,stat --no-headers`` output."""
    return [
        ThreadInfo(
            tid=row['tid'],
            name=row['name'],
            cpu_percent=row['cpu_percent'],
            status=parse_process_status(row['stat']),
        )
        for row in parse_rows(normalize_output(content), THREAD_SCHEMA)
    ]


@parser_boundary(list)
def parse_open_files(content: str) -> List[OpenFile]:
    """
    Parse ``lsof -p PID`` output into numbered file descriptors.

    Only descriptors such as ``3u`` are kept; ``cwd``, ``rtd``, ``txt``,
    ``mem`` and ``DEL`` entries are skipped, as are rows without a NAME column.

    Example:
        COMMAND  PID USER   FD   TYPE DEVICE SIZE/OFF    NODE NAME
        nginx    900 root    6u  IPv4  22000      0t0     TCP *:80 (LISTEN)
    """
    files = []
    for row in parse_rows(normalize_output(content), OPEN_FILE_SCHEMA):
        descriptor = _FD.match(row['fd'])
        if not descriptor:
            continue
        files.append(OpenFile(
            fd=int(descriptor.group(1)),
            mode=descriptor.group(2),
            type=row['type'],
            path=row['path'],
        ))
    return files

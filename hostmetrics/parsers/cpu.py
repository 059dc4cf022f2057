"""
Parsers for CPU related command output.

Covers /proc/stat jiffy counters, lscpu, the current frequency line from
/proc/cpuinfo and lm-sensors temperature output. Frequency and temperature
parsers return None when no value is present; 0 is a valid reading.
"""

import re
from typing import List, Optional

from hostmetrics.models import CpuDetail, CpuTimes
from hostmetrics.parsers.tokenizer import (
    FieldSpec,
    OutputFormat,
    normalize_output,
    parse_row,
    parse_with_formats,
    parser_boundary,
    to_int,
)
from hostmetrics.errors import ParseError

PROC_STAT_SCHEMA = (
    FieldSpec('name', 0),
    FieldSpec('user', 1, to_int),
    FieldSpec('nice', 2, to_int, 0),
    FieldSpec('system', 3, to_int),
    FieldSpec('idle', 4, to_int),
    FieldSpec('iowait', 5, to_int, 0),
    FieldSpec('irq', 6, to_int, 0),
    FieldSpec('softirq', 7, to_int, 0),
    FieldSpec('steal', 8, to_int, 0),
)

_TEMPERATURE = re.compile(r':\s*([+-]?\d+(?:\.\d+)?)\s*(?:°|Â°)?\s*C\b')


@parser_boundary(list)
def parse_proc_stat(content: str) -> List[CpuTimes]:
    """
    Parse the cpu lines of /proc/stat.

    Args:
        content: Output of ``grep "^cpu" /proc/stat``.

    Returns:
        CpuTimes rows in file order. The aggregate line is named 'cpu',
        per-core lines 'cpu0', 'cpu1', ...
    """
    rows = []
    for line in normalize_output(content):
        if not line.startswith('cpu'):
            continue
        try:
            rows.append(CpuTimes(**parse_row(line.split(), PROC_STAT_SCHEMA)))
        except ParseError:
            continue
    return rows


def usage_percent(busy_delta: Optional[int], total_delta: Optional[int]) -> float:
    """CPU usage between two /proc/stat samples, clamped to 0..100."""
    if not busy_delta or not total_delta or total_delta <= 0:
        return 0.0
    usage = busy_delta / total_delta * 100
    return round(max(0.0, min(100.0, usage)), 2)


def _mhz(value: str) -> Optional[float]:
    try:
        return float(value.replace(',', '.'))
    except ValueError:
        return None


def _int_or_zero(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


@parser_boundary(CpuDetail)
def parse_lscpu(content: str) -> CpuDetail:
    """
    Parse ``lscpu`` key/value output.

    Returns:
        CpuDetail with the static description filled in. ``last_updated``,
        ``usage`` and ``temperature`` are left for the collector.
    """
    info = {}
    for line in normalize_output(content):
        if ':' not in line:
            continue
        key, value = line.split(':', 1)
        key = key.strip()
        # First occurrence wins; newer lscpu repeats "Model name" under a BIOS heading.
        if key not in info:
            info[key] = value.strip()

    detail = CpuDetail(
        model=info.get('Model name', ''),
        vendor=info.get('Vendor ID', ''),
        architecture=info.get('Architecture', ''),
        logical_cores=_int_or_zero(info.get('CPU(s)', '0')),
        cache_l1d=info.get('L1d cache', ''),
        cache_l2=info.get('L2 cache', ''),
        cache_l3=info.get('L3 cache', ''),
        virtualization=info.get('Virtualization', ''),
    )

    cores_per_socket = _int_or_zero(info.get('Core(s) per socket', '0'))
    detail.sockets = _int_or_zero(info.get('Socket(s)', '0'))
    detail.physical_cores = cores_per_socket * (detail.sockets or 1) or detail.logical_cores

    if 'CPU max MHz' in info:
        detail.max_mhz = _mhz(info['CPU max MHz'])
    if 'CPU min MHz' in info:
        detail.min_mhz = _mhz(info['CPU min MHz'])
    if 'CPU MHz' in info:
        detail.frequency_mhz = _mhz(info['CPU MHz'])
    return detail


@parser_boundary(lambda: None)
def parse_cpu_mhz(content: str) -> Optional[float]:
    """Parse the single MHz value printed by the cpuinfo pipeline, or None."""
    lines = normalize_output(content)
    if not lines:
        return None
    return _mhz(lines[0].split()[-1])


def _temperatures(lines: List[str], prefix_pattern: str) -> List[float]:
    pattern = re.compile(prefix_pattern)
    values = []
    for line in lines:
        if not pattern.match(line):
            continue
        match = _TEMPERATURE.search(line)
        if match:
            values.append(float(match.group(1)))
    return values


def _parse_coretemp(lines: List[str]) -> Optional[float]:
    package = _temperatures(lines, r'^Package id \d+:')
    if package:
        return max(package)
    cores = _temperatures(lines, r'^Core \d+:')
    return round(sum(cores) / len(cores), 1) if cores else None


def _parse_k10temp(lines: List[str]) -> Optional[float]:
    values = _temperatures(lines, r'^(Tdie|Tctl):')
    return values[0] if values else None


def _parse_generic(lines: List[str]) -> Optional[float]:
    values = _temperatures(lines, r'^(temp\d+|CPU Temperature|cpu_thermal|SoC Temperature)\b')
    return max(values) if values else None


SENSORS_FORMATS = (
    OutputFormat('coretemp', lambda lines: any(l.startswith(('Package id', 'Core ')) for l in lines),
                 _parse_coretemp),
    OutputFormat('k10temp', lambda lines: any(l.startswith(('Tdie:', 'Tctl:')) for l in lines),
                 _parse_k10temp),
    OutputFormat('generic', lambda lines: any(_TEMPERATURE.search(l) for l in lines),
                 _parse_generic),
)


@parser_boundary(lambda: None)
def parse_sensors_temperature(content: str) -> Optional[float]:
    """
    Extract the CPU temperature in Celsius from ``sensors`` output.

    Intel coretemp package readings are preferred, then AMD k10temp, then
    the hottest generic ``tempN`` reading.

    Returns:
        Temperature in Celsius, or None when no reading is present.
    """
    return parse_with_formats(normalize_output(content), SENSORS_FORMATS, None)

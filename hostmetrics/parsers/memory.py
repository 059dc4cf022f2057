"""
Parsers for /proc/meminfo.

Kernel memory accounting overlaps, so ``used + free + cached + buffers`` is
not expected to equal ``total``. The only guarantee is ``used <= total``.
"""

from typing import Dict

from hostmetrics.models import MemoryBasicInfo, MemoryDetail, SwapInfo
from hostmetrics.parsers.tokenizer import normalize_output, parser_boundary

KB = 1024


@parser_boundary(dict)
def parse_meminfo(content: str) -> Dict[str, int]:
    """
    Parse /proc/meminfo content into a dictionary.

    Args:
        content: Raw content of /proc/meminfo.

    Returns:
        Dictionary mapping field names to values in kB.

    Example:
        >>> parse_meminfo("MemTotal:       16384000 kB\\nMemFree:         8192000 kB\\n")
        {'MemTotal': 16384000, 'MemFree': 8192000}
    """
    result = {}
    for line in normalize_output(content):
        if ':' not in line:
            continue
        key, value = line.split(':', 1)
        value_parts = value.split()
        if not value_parts:
            continue
        try:
            result[key.strip()] = int(value_parts[0])
        except ValueError:
            continue
    return result


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


def swap_info(meminfo: Dict[str, int]) -> SwapInfo:
    total = meminfo.get('SwapTotal', 0) * KB
    free = min(meminfo.get('SwapFree', 0) * KB, total)
    used = total - free
    return SwapInfo(total=total, used=used, free=free, usage_percent=_percent(used, total))


def memory_basic(meminfo: Dict[str, int]) -> MemoryBasicInfo:
    """
    Derive basic memory figures in bytes from parsed meminfo counters.

    ``cached`` includes reclaimable slab. ``used`` is total minus free,
    buffers and cached, clamped to ``[0, total]``.
    """
    total = meminfo.get('MemTotal', 0) * KB
    free = meminfo.get('MemFree', 0) * KB
    buffers = meminfo.get('Buffers', 0) * KB
    cached = (meminfo.get('Cached', 0) + meminfo.get('SReclaimable', 0)) * KB
    used = max(0, min(total, total - free - buffers - cached))
    return MemoryBasicInfo(
        total=total,
        used=used,
        free=free,
        cached=cached,
        buffers=buffers,
        usage_percent=_percent(used, total),
        swap=swap_info(meminfo),
    )


def memory_detail(meminfo: Dict[str, int]) -> MemoryDetail:
    """Derive the memory detail section (without top processes) from meminfo counters."""
    basic = memory_basic(meminfo)
    if 'MemAvailable' in meminfo:
        available = meminfo['MemAvailable'] * KB
    else:
        # Kernels before 3.14 have no MemAvailable.
        available = basic.free + basic.buffers + basic.cached
    available = min(available, basic.total)
    actual_used = max(0, basic.total - available)
    return MemoryDetail(
        total=basic.total,
        used=basic.used,
        free=basic.free,
        available=available,
        cached=basic.cached,
        buffers=basic.buffers,
        active=meminfo.get('Active', 0) * KB,
        inactive=meminfo.get('Inactive', 0) * KB,
        dirty=meminfo.get('Dirty', 0) * KB,
        writeback=meminfo.get('Writeback', 0) * KB,
        actual_used=actual_used,
        actual_usage_percent=_percent(actual_used, basic.total),
        swap=basic.swap,
    )

"""Unit tests for /proc/meminfo parsing and derived memory figures."""

from hostmetrics.parsers.memory import memory_basic, memory_detail, parse_meminfo, swap_info
from tests.fixtures import sample_outputs

KB = 1024


class TestParseMeminfo:
    """Tests for parse_meminfo."""

    def test_values_in_kb(self):
        meminfo = parse_meminfo(sample_outputs.MEMINFO)
        assert meminfo['MemTotal'] == 16384000
        assert meminfo['SReclaimable'] == 512000

    def test_lines_without_unit(self):
        """HugePages counters have no kB suffix and still parse."""
        meminfo = parse_meminfo("HugePages_Total:       0\nHugePages_Free:        0\n")
        assert meminfo == {'HugePages_Total': 0, 'HugePages_Free': 0}

    def test_invalid_lines_skipped(self):
        assert parse_meminfo("garbage\nMemFree: abc kB\nMemTotal: 10 kB\n") == {'MemTotal': 10}

    def test_crlf_variant_parses_identically(self):
        assert parse_meminfo(sample_outputs.crlf(sample_outputs.MEMINFO)) == \
            parse_meminfo(sample_outputs.MEMINFO)


class TestMemoryBasic:
    """Tests for memory_basic."""

    def test_figures(self):
        """Used excludes free, buffers and cached (including reclaimable slab)."""
        info = memory_basic(parse_meminfo(sample_outputs.MEMINFO))
        assert info.total == 16384000 * KB
        assert info.free == 4096000 * KB
        assert info.buffers == 512000 * KB
        assert info.cached == 2560000 * KB
        assert info.used == 9216000 * KB
        assert info.usage_percent == 56.25

    def test_swap(self):
        info = memory_basic(parse_meminfo(sample_outputs.MEMINFO))
        assert info.swap.total == 2097152 * KB
        assert info.swap.used == 1048576 * KB
        assert info.swap.usage_percent == 50.0

    def test_used_never_exceeds_total(self):
        info = memory_basic({'MemTotal': 100, 'MemFree': 0})
        assert info.used == 100 * KB
        info = memory_basic({'MemTotal': 100, 'MemFree': 80, 'Cached': 80})
        assert info.used == 0

    def test_empty_counters(self):
        info = memory_basic({})
        assert info.total == 0
        assert info.usage_percent == 0.0


class TestMemoryDetail:
    """Tests for memory_detail."""

    def test_available_and_actual_used(self):
        detail = memory_detail(parse_meminfo(sample_outputs.MEMINFO))
        assert detail.available == 8192000 * KB
        assert detail.actual_used == 8192000 * KB
        assert detail.actual_usage_percent == 50.0
        assert detail.active == 6000000 * KB
        assert detail.dirty == 1024 * KB

    def test_available_estimated_without_memavailable(self):
        """Older kernels: available = free + buffers + cached."""
        detail = memory_detail({'MemTotal': 1000, 'MemFree': 200, 'Buffers': 100, 'Cached': 300})
        assert detail.available == 600 * KB
        assert detail.actual_used == 400 * KB


class TestSwapInfo:
    """Tests for swap_info."""

    def test_no_swap(self):
        swap = swap_info({'SwapTotal': 0, 'SwapFree': 0})
        assert swap.total == 0
        assert swap.usage_percent == 0.0

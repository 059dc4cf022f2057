"""Rich table rendering for basic and detail snapshots."""

from typing import Callable, Dict, Optional

from rich import box
from rich.console import Console, Group
from rich.table import Table

from hostmetrics.config import SECTIONS
from hostmetrics.models import BasicSnapshot, DetailSnapshot

_UNITS = ('B', 'KB', 'MB', 'GB', 'TB', 'PB')


def format_bytes(value: float) -> str:
    """Format a byte count with a binary unit, e.g. 1536 -> '1.5 KB'."""
    value = float(value or 0)
    for unit in _UNITS:
        if abs(value) < 1024 or unit == _UNITS[-1]:
            return f"{value:.0f} {unit}" if unit == 'B' else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_UNITS[-1]}"


def format_speed(value: float) -> str:
    return f"{format_bytes(value)}/s"


def _usage_style(percent: float) -> str:
    if percent >= 90:
        return 'red'
    if percent >= 70:
        return 'yellow'
    return 'green'


def _pct(percent: float) -> str:
    return f"[{_usage_style(percent)}]{percent:.1f}%[/]"


def _table(title: str, *columns: str) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD, title_justify='left')
    for column in columns:
        table.add_column(column)
    return table


def render_basic(snapshot: BasicSnapshot, host: str = '') -> Table:
    table = _table(f"{host} overview".strip(), 'Domain', 'Usage', 'Details')
    cpu, mem, disk, net = snapshot.cpu, snapshot.memory, snapshot.disk, snapshot.network
    freq = f", {cpu.frequency_mhz:.0f} MHz" if cpu.frequency_mhz else ''
    table.add_row('CPU', _pct(cpu.usage), f"{cpu.logical_cores} cores{freq}")
    table.add_row('Memory', _pct(mem.usage_percent),
                  f"{format_bytes(mem.used)} / {format_bytes(mem.total)}, "
                  f"swap {format_bytes(mem.swap.used)} / {format_bytes(mem.swap.total)}")
    table.add_row('Disk', _pct(disk.usage_percent),
                  f"{format_bytes(disk.used)} / {format_bytes(disk.total)}")
    table.add_row('Network', '',
                  f"rx {format_speed(net.rx_speed)}, tx {format_speed(net.tx_speed)}")
    return table


# =============================================================================
# Detail sections
# =============================================================================

def _render_cpu(snapshot: DetailSnapshot) -> Table:
    cpu = snapshot.cpu
    table = _table('CPU', 'Field', 'Value')
    if not cpu.sensors_installed:
        temperature = 'sensors not installed'
    elif cpu.temperature is None:
        temperature = 'n/a'
    else:
        temperature = f"{cpu.temperature:.1f} °C"
    rows = [
        ('Model', cpu.model),
        ('Vendor', cpu.vendor),
        ('Architecture', cpu.architecture),
        ('Cores', f"{cpu.physical_cores} physical / {cpu.logical_cores} logical, {cpu.sockets} socket(s)"),
        ('Frequency', f"{cpu.frequency_mhz or 0:.0f} MHz"),
        ('Cache', f"L1d {cpu.cache_l1d or '-'}, L2 {cpu.cache_l2 or '-'}, L3 {cpu.cache_l3 or '-'}"),
        ('Virtualization', cpu.virtualization or '-'),
        ('Temperature', temperature),
        ('Usage', _pct(cpu.usage)),
    ]
    for name, value in rows:
        table.add_row(name, str(value))
    return table


def _render_cores(snapshot: DetailSnapshot) -> Table:
    table = _table('Cores', 'Core', 'Usage')
    for core in snapshot.cores.cores:
        table.add_row(str(core.core), _pct(core.usage))
    return table


def _render_processes(snapshot: DetailSnapshot) -> Table:
    detail = snapshot.processes
    title = f"Processes ({detail.total_count} total, {detail.running_count} running)"
    if not detail.tool_installed:
        title += ' - ps not installed'
    table = _table(title, 'PID', 'User', 'Name', 'CPU', 'Mem', 'RSS', 'Status')
    for proc in detail.processes:
        table.add_row(str(proc.pid), proc.user, proc.name, f"{proc.cpu_percent:.1f}%",
                      f"{proc.memory_percent:.1f}%", format_bytes(proc.memory_used), proc.status.value)
    return table


def _render_memory(snapshot: DetailSnapshot) -> Table:
    mem = snapshot.memory
    table = _table('Memory', 'Field', 'Value')
    for name in ('total', 'used', 'free', 'available', 'cached', 'buffers',
                 'active', 'inactive', 'dirty', 'writeback', 'actual_used'):
        table.add_row(name.replace('_', ' ').capitalize(), format_bytes(getattr(mem, name)))
    table.add_row('Actual usage', _pct(mem.actual_usage_percent))
    table.add_row('Swap', f"{format_bytes(mem.swap.used)} / {format_bytes(mem.swap.total)}")
    return table


def _render_disk(snapshot: DetailSnapshot) -> Table:
    disk = snapshot.disk
    table = _table(f"Disk ({format_bytes(disk.used)} / {format_bytes(disk.total)}, "
                   f"read {format_speed(disk.read_speed)}, write {format_speed(disk.write_speed)})",
                   'Device', 'Mount', 'Type', 'Class', 'Size', 'Use', 'Read', 'Write')
    for part in disk.partitions:
        table.add_row(part.device, part.mountpoint, part.fstype, part.disk_class,
                      format_bytes(part.total), _pct(part.usage_percent),
                      format_speed(part.read_speed), format_speed(part.write_speed))
    return table


def _render_health(snapshot: DetailSnapshot) -> Table:
    health = snapshot.health
    title = 'Disk health' if health.tool_installed else 'Disk health - smartctl not installed'
    table = _table(title, 'Device', 'Status', 'Model', 'Temp', 'Hours', 'Realloc', 'Life')
    for dev in health.devices:
        status_style = 'green' if dev.status == 'PASSED' else 'red'
        life = f"{dev.remaining_life}%" if dev.remaining_life is not None else '-'
        table.add_row(dev.device, f"[{status_style}]{dev.status}[/]", dev.model,
                      f"{dev.temperature} °C", str(dev.power_on_hours),
                      str(dev.reallocated_sectors), life)
    return table


def _render_space(snapshot: DetailSnapshot) -> Group:
    space = snapshot.space
    dirs = _table(f"Largest directories under {space.path or '-'}", 'Path', 'Size')
    for entry in space.large_directories:
        dirs.add_row(entry.path, format_bytes(entry.size))
    files = _table('Large files', 'Path', 'Size')
    for entry in space.large_files:
        files.add_row(entry.path, format_bytes(entry.size))
    types = _table('File types', 'Extension', 'Files', 'Size')
    for entry in space.file_types:
        types.add_row(entry.extension, str(entry.count), format_bytes(entry.total_size))
    return Group(dirs, files, types)


def _render_io(snapshot: DetailSnapshot) -> Group:
    io = snapshot.io
    devices = _table('I/O devices' if io.tool_installed else 'I/O devices - iostat not installed',
                     'Device', 'TPS', 'Read', 'Write', 'Await', 'Util')
    for dev in io.devices:
        devices.add_row(dev.device, f"{dev.tps:.1f}", format_speed(dev.read_speed),
                        format_speed(dev.write_speed), f"{dev.await_ms:.1f} ms", _pct(dev.util_percent))
    processes = _table('I/O processes' if io.process_tool_installed else 'I/O processes - iotop not installed',
                       'PID', 'Name', 'Read', 'Write')
    for proc in io.processes:
        processes.add_row(str(proc.pid), proc.name, format_speed(proc.read_speed), format_speed(proc.write_speed))
    return Group(devices, processes)


def _render_network(snapshot: DetailSnapshot) -> Table:
    net = snapshot.network
    table = _table(f"Network (rx {format_speed(net.rx_speed)}, tx {format_speed(net.tx_speed)})",
                   'Interface', 'Status', 'MAC', 'MTU', 'Addresses', 'RX', 'TX')
    for iface in net.interfaces:
        style = 'green' if iface.status == 'up' else 'dim'
        table.add_row(iface.name, f"[{style}]{iface.status}[/]", iface.mac or '-', str(iface.mtu),
                      ', '.join(iface.ipv4 + iface.ipv6) or '-',
                      format_speed(iface.rx_speed), format_speed(iface.tx_speed))
    return table


def _render_connections(snapshot: DetailSnapshot) -> Table:
    conn = snapshot.connections
    title = 'Connections' if conn.tool_installed else 'Connections - ss not installed'
    table = _table(title, 'Kind', 'Count')
    for name in ('total', 'tcp', 'tcp_established', 'tcp_closed', 'tcp_orphaned',
                 'tcp_timewait', 'udp', 'raw'):
        table.add_row(name.replace('_', ' '), str(getattr(conn, name)))
    return table


def _render_sockets(snapshot: DetailSnapshot) -> Table:
    sockets = snapshot.sockets
    title = (f"Sockets ({sockets.tcp} tcp, {sockets.udp} udp, {sockets.listening} listening)"
             if sockets.tool_installed else 'Sockets - lsof not installed')
    table = _table(title, 'Proto', 'Local', 'Remote', 'State', 'Scope', 'Process', 'PID')
    for conn in sockets.connections:
        table.add_row(conn.protocol, f"{conn.local_address}:{conn.local_port}",
                      f"{conn.remote_address}:{conn.remote_port}", conn.state, conn.scope,
                      conn.process, str(conn.pid))
    return table


def _render_traffic(snapshot: DetailSnapshot) -> Table:
    traffic = snapshot.traffic
    title = 'Process traffic' if traffic.tool_installed else 'Process traffic - nethogs not installed'
    table = _table(title, 'PID', 'Name', 'RX', 'TX', 'Command')
    for proc in traffic.processes:
        table.add_row(str(proc.pid), proc.name, format_speed(proc.rx_speed),
                      format_speed(proc.tx_speed), proc.command)
    return table


DETAIL_RENDERERS: Dict[str, Callable] = {
    SECTIONS.CPU: _render_cpu,
    SECTIONS.CORES: _render_cores,
    SECTIONS.PROCESSES: _render_processes,
    SECTIONS.MEMORY: _render_memory,
    SECTIONS.DISK: _render_disk,
    SECTIONS.HEALTH: _render_health,
    SECTIONS.SPACE: _render_space,
    SECTIONS.IO: _render_io,
    SECTIONS.NETWORK: _render_network,
    SECTIONS.CONNECTIONS: _render_connections,
    SECTIONS.SOCKETS: _render_sockets,
    SECTIONS.TRAFFIC: _render_traffic,
}


def render_detail(snapshot: DetailSnapshot, section: Optional[str] = None) -> Group:
    """Render one detail section, or all of them when ``section`` is None."""
    sections = [section] if section else list(DETAIL_RENDERERS)
    return Group(*(DETAIL_RENDERERS[name](snapshot) for name in sections))


def print_snapshot(console: Console, basic: BasicSnapshot,
                   detail: Optional[DetailSnapshot] = None,
                   section: Optional[str] = None, host: str = '') -> None:
    console.print(render_basic(basic, host))
    if detail is not None:
        console.print(render_detail(detail, section))

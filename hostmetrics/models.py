"""
Typed metric records for the hostmetrics collection engine.

Row types produced by the parsers, the basic per-domain summaries, the detail
sub-sections and the two snapshot types handed back by the aggregator all
live here. Every detail sub-section carries ``last_updated`` (epoch ms, 0 when
never computed) so callers can tell a fresh value from a carried one.

Sizes are bytes, speeds are bytes per second and percentages are 0-100.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from hostmetrics.config import SECTIONS


class ProcessStatus(str, Enum):
    """Process state derived from the first letter of the ps STAT column."""
    RUNNING = 'running'
    SLEEPING = 'sleeping'
    UNINTERRUPTIBLE = 'uninterruptible'
    ZOMBIE = 'zombie'
    STOPPED = 'stopped'
    IDLE = 'idle'


@dataclass
class CounterSample:
    """One raw monotonic counter reading for an entity within a session."""
    entity_key: str
    counter_value: int
    timestamp_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CounterSample':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


# =============================================================================
# Parser Rows
# =============================================================================

@dataclass
class CpuTimes:
    """Jiffy counters for one line of /proc/stat."""
    name: str
    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    @property
    def total(self) -> int:
        return (self.user + self.nice + self.system + self.idle + self.iowait
                + self.irq + self.softirq + self.steal)

    @property
    def idle_total(self) -> int:
        return self.idle + self.iowait

    @property
    def busy(self) -> int:
        return self.total - self.idle_total


@dataclass
class ProcessInfo:
    """One row of a ps aux table."""
    pid: int
    user: str = ''
    name: str = ''
    command: str = ''
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_used: int = 0
    status: ProcessStatus = ProcessStatus.SLEEPING
    start_time: str = ''
    cpu_time: str = ''

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProcessInfo':
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if 'status' in values:
            values['status'] = ProcessStatus(values['status'])
        return cls(**values)


@dataclass
class ThreadInfo:
    """One row of a ps -T thread listing."""
    tid: int
    name: str = ''
    cpu_percent: float = 0.0
    status: ProcessStatus = ProcessStatus.SLEEPING

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data


@dataclass
class OpenFile:
    """One numbered file descriptor from lsof -p."""
    fd: int
    mode: str = ''
    type: str = ''
    path: str = ''


@dataclass
class ProcessFiles:
    """Open files of one process. ``tool_installed`` is False without lsof."""
    pid: int
    files: List[OpenFile] = field(default_factory=list)
    tool_installed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DfRow:
    """One row of df -B1 output."""
    source: str
    mountpoint: str
    fstype: str
    total: int = 0
    used: int = 0
    free: int = 0
    usage_percent: float = 0.0


@dataclass
class BlockDevice:
    """One row of lsblk -o NAME,TYPE,ROTA,TRAN,MOUNTPOINT output."""
    name: str
    type: str = ''
    rotational: Optional[bool] = None
    transport: str = ''
    mountpoint: str = ''


@dataclass
class DiskCounters:
    """Cumulative byte counters for one device from /proc/diskstats."""
    device: str
    read_bytes: int = 0
    write_bytes: int = 0


@dataclass
class InterfaceCounters:
    """Per-interface byte counters from /proc/net/dev."""
    name: str
    rx_bytes: int = 0
    tx_bytes: int = 0


# =============================================================================
# Basic Metrics
# =============================================================================

@dataclass
class CpuBasicInfo:
    usage: float = 0.0
    logical_cores: int = 0
    frequency_mhz: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SwapInfo:
    total: int = 0
    used: int = 0
    free: int = 0
    usage_percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MemoryBasicInfo:
    total: int = 0
    used: int = 0
    free: int = 0
    cached: int = 0
    buffers: int = 0
    usage_percent: float = 0.0
    swap: SwapInfo = field(default_factory=SwapInfo)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DiskBasicInfo:
    """Physical disk totals. Virtual and container mounts are not counted."""
    total: int = 0
    used: int = 0
    free: int = 0
    usage_percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NetworkBasicInfo:
    total_rx: int = 0
    total_tx: int = 0
    rx_speed: float = 0.0
    tx_speed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BasicSnapshot:
    """Cheap per-tick metrics. All four domains are always present."""
    cpu: CpuBasicInfo = field(default_factory=CpuBasicInfo)
    memory: MemoryBasicInfo = field(default_factory=MemoryBasicInfo)
    disk: DiskBasicInfo = field(default_factory=DiskBasicInfo)
    network: NetworkBasicInfo = field(default_factory=NetworkBasicInfo)
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Detail Sub-sections
# =============================================================================

@dataclass
class CpuDetail:
    """
    Static CPU description plus current frequency and temperature.

    ``temperature`` is a reading in Celsius, ``None`` when sensors reported
    nothing or is not installed. ``sensors_installed`` tells the two apart.
    """
    model: str = ''
    vendor: str = ''
    architecture: str = ''
    logical_cores: int = 0
    physical_cores: int = 0
    sockets: int = 0
    frequency_mhz: Optional[float] = None
    min_mhz: Optional[float] = None
    max_mhz: Optional[float] = None
    cache_l1d: str = ''
    cache_l2: str = ''
    cache_l3: str = ''
    virtualization: str = ''
    temperature: Optional[float] = None
    sensors_installed: bool = False
    usage: float = 0.0
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CoreUsage:
    core: int
    usage: float = 0.0


@dataclass
class CoresDetail:
    cores: List[CoreUsage] = field(default_factory=list)
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProcessesDetail:
    processes: List[ProcessInfo] = field(default_factory=list)
    total_count: int = 0
    running_count: int = 0
    tool_installed: bool = False
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['processes'] = [p.to_dict() for p in self.processes]
        return data


@dataclass
class MemoryDetail:
    total: int = 0
    used: int = 0
    free: int = 0
    available: int = 0
    cached: int = 0
    buffers: int = 0
    active: int = 0
    inactive: int = 0
    dirty: int = 0
    writeback: int = 0
    actual_used: int = 0
    actual_usage_percent: float = 0.0
    swap: SwapInfo = field(default_factory=SwapInfo)
    top_processes: List[ProcessInfo] = field(default_factory=list)
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['top_processes'] = [p.to_dict() for p in self.top_processes]
        return data


@dataclass
class Partition:
    """A mounted filesystem joined with its block device description."""
    device: str
    mountpoint: str
    fstype: str = ''
    disk_class: str = 'unknown'
    total: int = 0
    used: int = 0
    free: int = 0
    usage_percent: float = 0.0
    read_speed: float = 0.0
    write_speed: float = 0.0

    @property
    def is_physical(self) -> bool:
        return self.disk_class not in ('virtual', 'container-storage')

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Partition':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class DeviceSpeed:
    read_speed: float = 0.0
    write_speed: float = 0.0


@dataclass
class DiskDetail:
    total: int = 0
    used: int = 0
    free: int = 0
    usage_percent: float = 0.0
    read_speed: float = 0.0
    write_speed: float = 0.0
    partitions: List[Partition] = field(default_factory=list)
    device_stats: Dict[str, DeviceSpeed] = field(default_factory=dict)
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DeviceHealth:
    """SMART summary for one disk."""
    device: str
    status: str = 'UNKNOWN'
    model: str = ''
    serial: str = ''
    temperature: int = 0
    power_on_hours: int = 0
    reallocated_sectors: int = 0
    pending_sectors: int = 0
    uncorrectable_sectors: int = 0
    remaining_life: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DiskHealth:
    devices: List[DeviceHealth] = field(default_factory=list)
    tool_installed: bool = False
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DirectoryUsage:
    path: str
    size: int = 0
    last_modified: Optional[int] = None


@dataclass
class FileTypeUsage:
    extension: str
    count: int = 0
    total_size: int = 0


@dataclass
class SpaceAnalysis:
    path: str = ''
    large_directories: List[DirectoryUsage] = field(default_factory=list)
    large_files: List[DirectoryUsage] = field(default_factory=list)
    file_types: List[FileTypeUsage] = field(default_factory=list)
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IoDeviceStats:
    """One device row of iostat -x."""
    device: str
    tps: float = 0.0
    read_speed: float = 0.0
    write_speed: float = 0.0
    await_ms: float = 0.0
    util_percent: float = 0.0


@dataclass
class IoProcess:
    """One process row of iotop -b -P."""
    pid: int
    name: str = ''
    command: str = ''
    read_speed: float = 0.0
    write_speed: float = 0.0


@dataclass
class IoAnalysis:
    devices: List[IoDeviceStats] = field(default_factory=list)
    processes: List[IoProcess] = field(default_factory=list)
    tool_installed: bool = False
    process_tool_installed: bool = False
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NetworkInterface:
    name: str
    status: str = 'down'
    flags: List[str] = field(default_factory=list)
    mac: str = ''
    mtu: int = 0
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_errors: int = 0
    tx_errors: int = 0
    rx_speed: float = 0.0
    tx_speed: float = 0.0
    ipv4: List[str] = field(default_factory=list)
    ipv6: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NetworkInterface':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class NetworkDetail:
    interfaces: List[NetworkInterface] = field(default_factory=list)
    rx_speed: float = 0.0
    tx_speed: float = 0.0
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConnectionSummary:
    """Socket counts from ss -s."""
    total: int = 0
    tcp: int = 0
    tcp_established: int = 0
    tcp_closed: int = 0
    tcp_orphaned: int = 0
    tcp_timewait: int = 0
    udp: int = 0
    raw: int = 0
    tool_installed: bool = False
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SocketConnection:
    """One TCP or UDP socket from lsof -i."""
    protocol: str
    local_address: str
    local_port: int = 0
    remote_address: str = '*'
    remote_port: int = 0
    state: str = ''
    scope: str = 'external'
    process: str = ''
    pid: int = 0


@dataclass
class SocketListing:
    """Per-socket listing with protocol and listening counts."""
    connections: List[SocketConnection] = field(default_factory=list)
    total: int = 0
    tcp: int = 0
    udp: int = 0
    listening: int = 0
    tool_installed: bool = False
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProcessTraffic:
    """Network throughput of one process as reported by nethogs."""
    pid: int
    name: str = ''
    command: str = ''
    rx_speed: float = 0.0
    tx_speed: float = 0.0


@dataclass
class NetworkTraffic:
    processes: List[ProcessTraffic] = field(default_factory=list)
    tool_installed: bool = False
    last_updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DetailSnapshot:
    """Expensive per-section metrics. Every sub-section is always present."""
    cpu: CpuDetail = field(default_factory=CpuDetail)
    cores: CoresDetail = field(default_factory=CoresDetail)
    processes: ProcessesDetail = field(default_factory=ProcessesDetail)
    memory: MemoryDetail = field(default_factory=MemoryDetail)
    disk: DiskDetail = field(default_factory=DiskDetail)
    health: DiskHealth = field(default_factory=DiskHealth)
    space: SpaceAnalysis = field(default_factory=SpaceAnalysis)
    io: IoAnalysis = field(default_factory=IoAnalysis)
    network: NetworkDetail = field(default_factory=NetworkDetail)
    connections: ConnectionSummary = field(default_factory=ConnectionSummary)
    sockets: SocketListing = field(default_factory=SocketListing)
    traffic: NetworkTraffic = field(default_factory=NetworkTraffic)
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['processes'] = self.processes.to_dict()
        data['memory'] = self.memory.to_dict()
        return data


# Zero-value defaults, keyed by cache section name.
SECTION_DEFAULTS = {
    SECTIONS.BASIC_CPU: CpuBasicInfo,
    SECTIONS.BASIC_MEMORY: MemoryBasicInfo,
    SECTIONS.BASIC_DISK: DiskBasicInfo,
    SECTIONS.BASIC_NETWORK: NetworkBasicInfo,
    SECTIONS.CPU: CpuDetail,
    SECTIONS.CORES: CoresDetail,
    SECTIONS.PROCESSES: ProcessesDetail,
    SECTIONS.MEMORY: MemoryDetail,
    SECTIONS.DISK: DiskDetail,
    SECTIONS.HEALTH: DiskHealth,
    SECTIONS.SPACE: SpaceAnalysis,
    SECTIONS.IO: IoAnalysis,
    SECTIONS.NETWORK: NetworkDetail,
    SECTIONS.CONNECTIONS: ConnectionSummary,
    SECTIONS.SOCKETS: SocketListing,
    SECTIONS.TRAFFIC: NetworkTraffic,
}


def default_for_section(section: str):
    """Return a fresh zero-value instance for ``section``."""
    return SECTION_DEFAULTS[section]()

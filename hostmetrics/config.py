"""
Constants, remote command strings and user settings for hostmetrics.

The command strings are part of the engine's compatibility surface: the
parsers expect exactly the column layout these invocations produce.

Settings can be loaded from a YAML file. ``load_settings`` with no argument
reads the file named by the ``HOSTMETRICS_CONFIG`` environment variable, or
returns the defaults when it is not set.
"""

import enum
import os
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional

import yaml

from hostmetrics.errors import ConfigurationError, ErrorCode

CONFIG_ENV_VAR = "HOSTMETRICS_CONFIG"


class EXIT_CODE(enum.IntEnum):
    SUCCESS = 0
    FAILURE = 1
    CONFIG_ERROR = 2
    DISCONNECTED = 3
    INTERRUPTED = 130

# Bytes per sector as reported by /proc/diskstats, independent of the device's
# physical sector size.
SECTOR_SIZE = 512

# Lower bound on the elapsed time between two counter samples, in seconds.
MIN_RATE_INTERVAL_SECONDS = 0.001

SPLIT_MARKER = "---SPLIT---"
PROBE_INSTALLED = "installed"
PROBE_NOT_INSTALLED = "not_installed"

ROOT_DEVICE_ALIAS = "/dev/root"

PSEUDO_FILESYSTEMS = frozenset([
    'tmpfs', 'devtmpfs', 'sysfs', 'proc', 'devpts', 'securityfs', 'cgroup', 'cgroup2',
    'pstore', 'hugetlbfs', 'mqueue', 'debugfs', 'tracefs', 'configfs', 'fusectl',
    'squashfs', 'efivarfs', 'bpf', 'autofs', 'ramfs', 'binfmt_misc', 'nsfs',
])
CONTAINER_FILESYSTEMS = frozenset(['overlay', 'overlay2', 'aufs'])
CONTAINER_STORAGE_PREFIXES = ('/var/lib/docker', '/var/lib/containers')

# Name-prefix heuristic for paravirtual block devices. Not authoritative.
CLOUD_DISK_PREFIXES = ('vd', 'xvd')

# Pseudo block devices that never contribute to disk throughput totals.
PSEUDO_BLOCK_PREFIXES = ('loop', 'ram', 'zram', 'dm-')

LOOPBACK_INTERFACE = 'lo'


class DISK_CLASS:
    """Disk classification labels for partitions."""
    VIRTUAL = 'virtual'
    CONTAINER_STORAGE = 'container-storage'
    SSD = 'ssd'
    HDD = 'hdd'
    CLOUD_BLOCK_STORAGE = 'cloud-block-storage'
    UNKNOWN = 'unknown'


class SECTIONS:
    """Cache section names."""
    BASIC_CPU = 'basic.cpu'
    BASIC_MEMORY = 'basic.memory'
    BASIC_DISK = 'basic.disk'
    BASIC_NETWORK = 'basic.network'

    CPU = 'cpu'
    CORES = 'cores'
    PROCESSES = 'processes'
    MEMORY = 'memory'
    DISK = 'disk'
    HEALTH = 'health'
    SPACE = 'space'
    IO = 'io'
    NETWORK = 'network'
    CONNECTIONS = 'connections'
    SOCKETS = 'sockets'
    TRAFFIC = 'traffic'


BASIC_SECTIONS = (
    SECTIONS.BASIC_CPU,
    SECTIONS.BASIC_MEMORY,
    SECTIONS.BASIC_DISK,
    SECTIONS.BASIC_NETWORK,
)

DETAIL_SECTIONS = (
    SECTIONS.CPU,
    SECTIONS.CORES,
    SECTIONS.PROCESSES,
    SECTIONS.MEMORY,
    SECTIONS.DISK,
    SECTIONS.HEALTH,
    SECTIONS.SPACE,
    SECTIONS.IO,
    SECTIONS.NETWORK,
    SECTIONS.CONNECTIONS,
    SECTIONS.SOCKETS,
    SECTIONS.TRAFFIC,
)


COMMANDS = {
    # cpu
    'proc_stat': 'cat /proc/stat | grep "^cpu"',
    'cpu_mhz': "cat /proc/cpuinfo | grep 'cpu MHz' | head -n1 | awk '{print $4}'",
    'lscpu': 'lscpu',
    'sensors': 'sensors 2>/dev/null',
    # memory
    'meminfo': 'cat /proc/meminfo',
    'top_memory_processes': 'ps aux --sort=-%mem | head -n {limit_plus_header}',
    # process
    'process_table': (
        'echo "=== PROCESS_COUNT ==="; ps aux | wc -l; '
        'echo "=== RUNNING_COUNT ==="; ps aux | awk \'$8 ~ /^R/ {{count++}} END {{print count+0}}\'; '
        'echo "=== TOP_PROCESSES ==="; ps aux --sort=-%cpu | head -n {limit_plus_header}'
    ),
    'thread_table': 'ps -T -p {pid} -o tid,comm,%cpu,stat --no-headers 2>/dev/null',
    'open_files': 'lsof -p {pid} -n -P 2>/dev/null',
    # disk
    'df': 'df -B1 --output=source,target,fstype,size,used,avail,pcent',
    'lsblk': 'lsblk -o NAME,TYPE,ROTA,TRAN,MOUNTPOINT -n',
    'root_device': 'findmnt -n -o SOURCE /',
    'diskstats': 'cat /proc/diskstats',
    'lsblk_disks': 'lsblk -d -o NAME,MODEL,TYPE -n',
    'smartctl': 'smartctl -a /dev/{device}',
    'du': 'du -x --max-depth=1 {path} 2>/dev/null | sort -rn | head -n 20',
    'large_files': "find {path} -xdev -type f -size +{threshold} -printf '%s %T@ %p\\n' 2>/dev/null | sort -rn | head -n 20",
    'file_types': (
        'find {path} -xdev -type f -printf "%s %f\\n" 2>/dev/null '
        "| awk -F. '{{if (NF>1) {{split($1, a, \" \"); print a[1] \" \" $NF}}}}' "
        "| awk '{{size[$2]+=$1; count[$2]+=1}} END {{for (ext in size) print size[ext] \" \" count[ext] \" \" ext}}' "
        '| sort -rn | head -n 20'
    ),
    'iostat': 'iostat -x 1 1',
    'iotop': 'iotop -b -n 1 -P -k -o | head -n 11',
    # network
    'netdev': 'cat /proc/net/dev',
    'ip_link_addr': f'ip -s link && echo "{SPLIT_MARKER}" && ip -s addr',
    'ss_summary': 'ss -s',
    'socket_list': (
        'echo "=== TCP ==="; lsof -i TCP -n -P 2>/dev/null; '
        'echo "=== UDP ==="; lsof -i UDP -n -P 2>/dev/null'
    ),
    'process_traffic': 'sudo -n nethogs -t -c 2 -d 1 2>/dev/null',
    # capability probe
    'probe': f'which {{tool}} >/dev/null 2>&1 && echo "{PROBE_INSTALLED}" || echo "{PROBE_NOT_INSTALLED}"',
}


def get_command(name: str, **kwargs) -> str:
    """Return the remote command string ``name`` with ``kwargs`` substituted."""
    template = COMMANDS[name]
    return template.format(**kwargs) if kwargs else template


# =============================================================================
# Settings
# =============================================================================

@dataclass
class MonitorSettings:
    """
    User-tunable settings for the collection engine.

    Attributes:
        poll_interval_seconds: Interval between basic polls used by the CLI.
        inactive_refresh_seconds: Activated detail sections older than this are
            refreshed on every detail call, even when another section is active.
        section_min_interval: Per-section minimum age (seconds) before an
            explicitly requested section is recomputed. Expensive scans only.
        command_timeout_seconds: Timeout handed to the reference gateways.
        top_process_count: Number of processes returned by process listings.
        space_scan_path: Directory scanned by the space analysis section.
        large_file_threshold: ``find -size`` threshold for the large file scan.
        ssh_username: Optional login name for the SSH gateway.
    """
    poll_interval_seconds: float = 2.0
    inactive_refresh_seconds: float = 60.0
    section_min_interval: Dict[str, float] = field(
        default_factory=lambda: {SECTIONS.HEALTH: 3600.0, SECTIONS.SPACE: 3600.0}
    )
    command_timeout_seconds: float = 30.0
    top_process_count: int = 15
    space_scan_path: str = '/'
    large_file_threshold: str = '100M'
    ssh_username: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MonitorSettings':
        """Build settings from a mapping, validating keys and value types.

        Raises:
            ConfigurationError: On unknown keys or values of the wrong type.
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigurationError(
                f"Unknown settings key(s): {', '.join(unknown)}",
                parameter=unknown[0],
                expected=sorted(known),
            )

        settings = cls()
        for key, value in data.items():
            default = getattr(settings, key)
            setattr(settings, key, _coerce_setting(key, value, default))

        for section in settings.section_min_interval:
            if section not in DETAIL_SECTIONS:
                raise ConfigurationError(
                    f"Unknown section in section_min_interval: {section}",
                    parameter='section_min_interval',
                    expected=list(DETAIL_SECTIONS),
                    actual=section,
                    code=ErrorCode.CONFIG_UNKNOWN_SECTION,
                )
        if settings.poll_interval_seconds <= 0:
            raise ConfigurationError(
                "poll_interval_seconds must be positive",
                parameter='poll_interval_seconds',
                expected='> 0',
                actual=settings.poll_interval_seconds,
            )
        if settings.top_process_count < 1:
            raise ConfigurationError(
                "top_process_count must be at least 1",
                parameter='top_process_count',
                expected='>= 1',
                actual=settings.top_process_count,
            )
        return settings


def _coerce_setting(key: str, value: Any, default: Any) -> Any:
    if value is None:
        return default if key != 'ssh_username' else None
    if isinstance(default, bool) or isinstance(value, bool):
        raise ConfigurationError(f"Invalid value for {key}", parameter=key, actual=value)
    if isinstance(default, float):
        if not isinstance(value, (int, float)):
            raise ConfigurationError(f"Invalid value for {key}", parameter=key,
                                     expected='number', actual=value)
        return float(value)
    if isinstance(default, int):
        if not isinstance(value, int):
            raise ConfigurationError(f"Invalid value for {key}", parameter=key,
                                     expected='integer', actual=value)
        return value
    if isinstance(default, dict):
        if not isinstance(value, dict):
            raise ConfigurationError(f"Invalid value for {key}", parameter=key,
                                     expected='mapping', actual=value)
        merged = dict(default)
        for section, seconds in value.items():
            if not isinstance(seconds, (int, float)) or isinstance(seconds, bool):
                raise ConfigurationError(f"Invalid interval for section {section}",
                                         parameter=key, expected='number', actual=seconds)
            merged[section] = float(seconds)
        return merged
    return str(value)


def load_settings(path: Optional[str] = None) -> MonitorSettings:
    """Load settings from a YAML file.

    Args:
        path: Settings file. When None, ``$HOSTMETRICS_CONFIG`` is used if set.

    Returns:
        MonitorSettings with file values applied over the defaults.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
        if not path:
            return MonitorSettings()

    if not os.path.isfile(path):
        raise ConfigurationError(
            f"Settings file not found: {path}",
            parameter='config',
            actual=path,
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
        )

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse settings file: {path}",
            parameter='config',
            actual=str(e),
            code=ErrorCode.CONFIG_PARSE_ERROR,
        ) from e

    if data is None:
        return MonitorSettings()
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Settings file must contain a mapping at the top level",
            parameter='config',
            expected='mapping',
            actual=type(data).__name__,
            code=ErrorCode.CONFIG_PARSE_ERROR,
        )
    return MonitorSettings.from_dict(data)

"""
Parsers for disk usage, block device, counter and analysis tool output.

Disk usage needs two correlated tables. ``df`` reports filesystems by
device path and ``lsblk`` reports the block device type. They are joined on
the base device name (partition suffix stripped). A ``df`` row for the
generic ``/dev/root`` alias is first re-resolved to its real device from the
``findmnt`` output.

Device type classification by name prefix (``vd``, ``xvd``) is a heuristic
and is only used when lsblk has nothing to say about the device.
"""

import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from hostmetrics.config import (
    CLOUD_DISK_PREFIXES,
    CONTAINER_FILESYSTEMS,
    CONTAINER_STORAGE_PREFIXES,
    DISK_CLASS,
    PSEUDO_BLOCK_PREFIXES,
    PSEUDO_FILESYSTEMS,
    ROOT_DEVICE_ALIAS,
    SECTOR_SIZE,
)
from hostmetrics.errors import ParseError
from hostmetrics.models import (
    BlockDevice,
    DeviceHealth,
    DfRow,
    DirectoryUsage,
    DiskBasicInfo,
    DiskCounters,
    FileTypeUsage,
    IoDeviceStats,
    IoProcess,
    Partition,
)
from hostmetrics.parsers.process import process_name
from hostmetrics.parsers.tokenizer import (
    FieldSpec,
    OutputFormat,
    base_device_name,
    normalize_output,
    parse_row,
    parse_with_formats,
    parser_boundary,
    strip_tree_glyphs,
    to_float,
    to_int,
)


# =============================================================================
# df
# =============================================================================

def _df_row(source: str, mountpoint: str, fstype: str, size: str, used: str,
            avail: str, pcent: str) -> DfRow:
    try:
        usage_percent = to_float(pcent)
    except ValueError:
        usage_percent = 0.0
    return DfRow(
        source=source,
        mountpoint=mountpoint,
        fstype=fstype,
        total=to_int(size),
        used=to_int(used),
        free=to_int(avail),
        usage_percent=usage_percent,
    )


def _is_df_header(line: str) -> bool:
    return line.startswith('Filesystem')


def _parse_df_output_columns(lines: List[str]) -> List[DfRow]:
    # source target fstype size used avail pcent; the mountpoint may contain spaces
    rows = []
    for line in lines:
        if _is_df_header(line):
            continue
        tokens = line.split()
        if len(tokens) < 7:
            continue
        try:
            rows.append(_df_row(tokens[0], ' '.join(tokens[1:-5]), *tokens[-5:]))
        except ValueError:
            continue
    return rows


def _parse_df_posix(lines: List[str]) -> List[DfRow]:
    # source size used avail capacity mountpoint
    rows = []
    for line in lines:
        if _is_df_header(line):
            continue
        tokens = line.split()
        if len(tokens) < 6:
            continue
        try:
            rows.append(_df_row(tokens[0], ' '.join(tokens[5:]), '', *tokens[1:5]))
        except ValueError:
            continue
    return rows


DF_FORMATS = (
    OutputFormat('posix',
                 lambda lines: bool(lines) and _is_df_header(lines[0]) and 'Type' not in lines[0].split(),
                 _parse_df_posix),
    OutputFormat('output-columns', lambda lines: True, _parse_df_output_columns),
)


@parser_boundary(list)
def parse_df(content: str) -> List[DfRow]:
    """
    Parse ``df -B1 --output=source,target,fstype,size,used,avail,pcent``.

    ``df -P -B1`` output (no filesystem type column) is also accepted.

    Returns:
        DfRow per mounted filesystem, sizes in bytes.
    """
    return parse_with_formats(normalize_output(content), DF_FORMATS, [])


# =============================================================================
# lsblk / findmnt
# =============================================================================

def _is_mountpoint(token: str) -> bool:
    return token.startswith('/') or token.startswith('[')


@parser_boundary(list)
def parse_lsblk(content: str) -> List[BlockDevice]:
    """
    Parse ``lsblk -o NAME,TYPE,ROTA,TRAN,MOUNTPOINT -n``.

    TRAN and MOUNTPOINT are blank for many rows, so only NAME, TYPE and ROTA
    are positional. A trailing token starting with '/' or '[' is the
    mountpoint; any other extra token is the transport.
    """
    devices = []
    for line in normalize_output(content):
        tokens = strip_tree_glyphs(line).split()
        if len(tokens) < 2:
            continue
        rest = tokens[3:]
        mount_index = next((i for i, token in enumerate(rest) if _is_mountpoint(token)), len(rest))
        transport = rest[0] if mount_index > 0 else ''
        mountpoint = ' '.join(rest[mount_index:])
        rota = tokens[2] if len(tokens) > 2 else ''
        devices.append(BlockDevice(
            name=tokens[0],
            type=tokens[1],
            rotational={'0': False, '1': True}.get(rota),
            transport=transport,
            mountpoint=mountpoint,
        ))
    return devices


@parser_boundary(lambda: None)
def parse_root_device(content: str) -> Optional[str]:
    """
    Parse ``findmnt -n -o SOURCE /``.

    Returns:
        The source device (e.g. '/dev/nvme0n1p2'), without any btrfs subvolume
        suffix, or None when the output is empty.
    """
    lines = normalize_output(content)
    if not lines:
        return None
    source = lines[0].split()[0]
    return source.split('[', 1)[0] or None


def resolve_root_device(root_source: Optional[str], devices: Iterable[BlockDevice]) -> Optional[str]:
    """
    Kernel name of the device backing '/'.

    The findmnt source is authoritative. When it is missing or is itself the
    generic alias, the lsblk row mounted at '/' is used.
    """
    if root_source and root_source != ROOT_DEVICE_ALIAS and root_source.startswith('/dev/'):
        return root_source.rsplit('/', 1)[-1]
    for device in devices:
        if device.mountpoint == '/':
            return device.name
    return None


# =============================================================================
# Partition join and classification
# =============================================================================

def _under_container_storage(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in CONTAINER_STORAGE_PREFIXES)


def classify_partition(fstype: str, source: str, mountpoint: str, device: str,
                       devices_by_name: Mapping[str, BlockDevice]) -> str:
    """
    Classify a mounted filesystem.

    Priority: pseudo filesystem, container storage, lsblk device type, device
    name prefix heuristic, unknown.
    """
    # df -P has no type column; pseudo mounts then name their type as the source
    kind = fstype or source
    if kind in PSEUDO_FILESYSTEMS:
        return DISK_CLASS.VIRTUAL
    if (kind in CONTAINER_FILESYSTEMS or _under_container_storage(source)
            or _under_container_storage(mountpoint)):
        return DISK_CLASS.CONTAINER_STORAGE

    base = base_device_name(device)
    block = devices_by_name.get(base) or devices_by_name.get(device)
    if block is not None:
        if block.transport == 'nvme' or block.rotational is False:
            return DISK_CLASS.SSD
        if block.rotational is True:
            return DISK_CLASS.HDD

    if base.startswith(CLOUD_DISK_PREFIXES):
        return DISK_CLASS.CLOUD_BLOCK_STORAGE
    return DISK_CLASS.UNKNOWN


def _device_name(source: str) -> str:
    if source.startswith('/dev/'):
        return source.rsplit('/', 1)[-1]
    return source


def build_partitions(df_rows: Iterable[DfRow], lsblk_rows: Iterable[BlockDevice],
                     root_source: Optional[str] = None,
                     identities: Optional[Mapping[str, str]] = None) -> List[Partition]:
    """
    Join df rows with lsblk rows and classify each mount.

    Args:
        df_rows: Parsed df output.
        lsblk_rows: Parsed lsblk output.
        root_source: Parsed findmnt source for '/'.
        identities: Pinned alias resolutions for the session, e.g.
            ``{'/dev/root': 'sda1'}``. Takes precedence over ``root_source``.

    Returns:
        Physical partitions (root mount first, then by mountpoint) followed by
        virtual and container partitions sorted by mountpoint.
    """
    lsblk_rows = list(lsblk_rows)
    identities = identities or {}
    devices_by_name = {d.name: d for d in lsblk_rows}

    partitions = []
    for row in df_rows:
        source = row.source
        if source in identities:
            device = identities[source]
        elif source == ROOT_DEVICE_ALIAS:
            device = resolve_root_device(root_source, lsblk_rows) or _device_name(source)
        else:
            device = _device_name(source)

        partitions.append(Partition(
            device=device,
            mountpoint=row.mountpoint,
            fstype=row.fstype,
            disk_class=classify_partition(row.fstype, source, row.mountpoint, device, devices_by_name),
            total=row.total,
            used=row.used,
            free=row.free,
            usage_percent=row.usage_percent,
        ))

    physical = sorted((p for p in partitions if p.is_physical),
                      key=lambda p: (p.mountpoint != '/', p.mountpoint))
    virtual = sorted((p for p in partitions if not p.is_physical), key=lambda p: p.mountpoint)
    return physical + virtual


def disk_totals(partitions: Iterable[Partition]) -> DiskBasicInfo:
    """
    Sum sizes over physical partitions.

    A device mounted more than once (bind mounts) is counted once.
    """
    total = used = free = 0
    seen = set()
    for partition in partitions:
        if not partition.is_physical or partition.device in seen:
            continue
        seen.add(partition.device)
        total += partition.total
        used += partition.used
        free += partition.free
    usage_percent = round(used / total * 100, 2) if total > 0 else 0.0
    return DiskBasicInfo(total=total, used=used, free=free, usage_percent=usage_percent)


# =============================================================================
# /proc/diskstats
# =============================================================================

DISKSTATS_SCHEMA = (
    FieldSpec('device', 2),
    FieldSpec('sectors_read', 5, to_int),
    FieldSpec('sectors_written', 9, to_int),
)


@parser_boundary(list)
def parse_diskstats(content: str) -> List[DiskCounters]:
    """
    Parse /proc/diskstats into cumulative byte counters per device.

    Loop, ramdisk, zram and device-mapper rows are dropped.
    """
    counters = []
    for line in normalize_output(content):
        try:
            row = parse_row(line.split(), DISKSTATS_SCHEMA)
        except ParseError:
            continue
        if row['device'].startswith(PSEUDO_BLOCK_PREFIXES):
            continue
        counters.append(DiskCounters(
            device=row['device'],
            read_bytes=row['sectors_read'] * SECTOR_SIZE,
            write_bytes=row['sectors_written'] * SECTOR_SIZE,
        ))
    return counters


def whole_disk_counters(counters: Iterable[DiskCounters]) -> List[DiskCounters]:
    """
    Rows that contribute to the domain-wide throughput total.

    Only the first row seen for each base device is kept. The kernel lists a
    whole disk before its partitions, so partitions are not double counted.
    """
    selected = []
    seen = set()
    for counter in counters:
        base = base_device_name(counter.device)
        if base in seen:
            continue
        seen.add(base)
        selected.append(counter)
    return selected


# =============================================================================
# SMART health
# =============================================================================

@parser_boundary(list)
def parse_lsblk_disks(content: str) -> List[str]:
    """Names of whole disks from ``lsblk -d -o NAME,MODEL,TYPE -n``."""
    disks = []
    for line in normalize_output(content):
        tokens = line.split()
        if len(tokens) < 2 or tokens[-1] != 'disk':
            continue
        if tokens[0].startswith(PSEUDO_BLOCK_PREFIXES):
            continue
        disks.append(tokens[0])
    return disks


# SMART attribute id -> weight in the remaining-life estimate
LIFE_ATTRIBUTE_WEIGHTS = {
    '5': 30,    # Reallocated_Sector_Ct
    '196': 10,  # Reallocation_Event_Count
    '197': 10,  # Current_Pending_Sector
    '198': 20,  # Offline_Uncorrectable
    '199': 10,  # UDMA_CRC_Error_Count
    '187': 10,  # Reported_Uncorrect
    '188': 10,  # Command_Timeout
}
PASSED_WITHOUT_ATTRIBUTES_LIFE = 76
MAX_BAD_SECTOR_PENALTY = 50

_SMART_ATTRIBUTE = re.compile(r'^\d+\s+\S+')
_LEADING_INT = re.compile(r'\d[\d,]*')


def _leading_int(value: str) -> Optional[int]:
    match = _LEADING_INT.search(value)
    return int(match.group(0).replace(',', '')) if match else None


def _value_after_colon(line: str) -> str:
    return line.split(':', 1)[1].strip() if ':' in line else ''


def estimate_remaining_life(status: str, normalized: Mapping[str, int], bad_sectors: int) -> Optional[int]:
    """
    Remaining-life estimate (0-100) from SMART attributes.

    Weighted mean of the normalized values of the critical attributes, a
    fixed score for a PASSED disk without them, minus up to 50 points for
    reallocated, pending and uncorrectable sectors.
    """
    weighted_sum = 0
    total_weight = 0
    for attr_id, weight in LIFE_ATTRIBUTE_WEIGHTS.items():
        if attr_id in normalized:
            weighted_sum += min(100, max(0, normalized[attr_id])) * weight
            total_weight += weight

    life = None
    if total_weight:
        life = round(weighted_sum / total_weight)
    elif status == 'PASSED':
        life = PASSED_WITHOUT_ATTRIBUTES_LIFE

    if bad_sectors > 0:
        life = (life if life is not None else 100) - min(MAX_BAD_SECTOR_PENALTY, bad_sectors)

    if life is not None:
        life = min(100, max(0, life))
    return life


@parser_boundary(lambda: None)
def parse_smartctl(device: str, content: str) -> DeviceHealth:
    """
    Parse ``smartctl -a`` output for one disk.

    ATA attribute rows are ``ID# NAME FLAG VALUE WORST THRESH TYPE UPDATED
    WHEN_FAILED RAW_VALUE``; the normalized value is column 3 and the raw
    value column 9. NVMe health logs are read from their key/value lines.
    """
    health = DeviceHealth(device=device)
    normalized = {}
    percentage_used = None

    for line in normalize_output(content):
        if 'SMART overall-health self-assessment test result:' in line:
            health.status = 'PASSED' if 'PASSED' in line else 'FAILED' if 'FAILED' in line else 'UNKNOWN'
        elif line.startswith('SMART Health Status:'):
            health.status = 'PASSED' if 'OK' in line else 'FAILED'
        elif line.startswith(('Device Model:', 'Model Number:', 'Product:')):
            health.model = _value_after_colon(line)
        elif line.startswith('Model Family:') and not health.model:
            health.model = _value_after_colon(line)
        elif line.startswith('Serial Number:') or line.startswith('Serial number:'):
            health.serial = _value_after_colon(line)
        elif line.startswith(('Temperature:', 'Current Drive Temperature:')):
            health.temperature = _leading_int(_value_after_colon(line)) or 0
        elif line.startswith('Power On Hours:'):
            health.power_on_hours = _leading_int(_value_after_colon(line)) or 0
        elif line.startswith('Percentage Used:'):
            percentage_used = _leading_int(_value_after_colon(line))
        elif _SMART_ATTRIBUTE.match(line):
            parts = line.split()
            if len(parts) < 10:
                continue
            attr_id, name = parts[0], parts[1]
            try:
                normalized[attr_id] = int(parts[3])
            except ValueError:
                pass
            raw = _leading_int(parts[9])
            if raw is None:
                continue
            if name in ('Temperature_Celsius', 'Airflow_Temperature_Cel'):
                health.temperature = health.temperature or raw
            elif name == 'Power_On_Hours':
                health.power_on_hours = raw
            elif name == 'Reallocated_Sector_Ct':
                health.reallocated_sectors = raw
            elif name == 'Current_Pending_Sector':
                health.pending_sectors = raw
            elif name == 'Offline_Uncorrectable':
                health.uncorrectable_sectors = raw

    bad_sectors = health.reallocated_sectors + health.pending_sectors + health.uncorrectable_sectors
    if percentage_used is not None and not normalized:
        health.remaining_life = min(100, max(0, 100 - percentage_used))
    else:
        health.remaining_life = estimate_remaining_life(health.status, normalized, bad_sectors)
    return health


# =============================================================================
# Space analysis
# =============================================================================

@parser_boundary(list)
def parse_du(content: str, exclude: Optional[str] = None) -> List[DirectoryUsage]:
    """
    Parse ``du -x --max-depth=1`` output (kB sizes).

    Args:
        content: du output.
        exclude: Path to skip, normally the scanned directory itself.
    """
    directories = []
    for line in normalize_output(content):
        tokens = line.split(None, 1)
        if len(tokens) != 2:
            continue
        try:
            size = to_int(tokens[0]) * 1024
        except ValueError:
            continue
        path = tokens[1]
        if exclude is not None and path.rstrip('/') == exclude.rstrip('/'):
            continue
        directories.append(DirectoryUsage(path=path, size=size))
    return directories


@parser_boundary(list)
def parse_large_files(content: str) -> List[DirectoryUsage]:
    """Parse ``find -printf '%s %T@ %p\\n'`` output (bytes, epoch seconds, path)."""
    files = []
    for line in normalize_output(content):
        tokens = line.split(None, 2)
        if len(tokens) != 3:
            continue
        try:
            size = to_int(tokens[0])
            modified = int(float(tokens[1]) * 1000)
        except ValueError:
            continue
        files.append(DirectoryUsage(path=tokens[2], size=size, last_modified=modified))
    return files


@parser_boundary(list)
def parse_file_types(content: str) -> List[FileTypeUsage]:
    """Parse the ``<total_bytes> <count> <extension>`` lines of the file type scan."""
    types = []
    for line in normalize_output(content):
        tokens = line.split()
        if len(tokens) != 3:
            continue
        try:
            types.append(FileTypeUsage(extension=tokens[2], count=to_int(tokens[1]),
                                       total_size=to_int(tokens[0])))
        except ValueError:
            continue
    return types


# =============================================================================
# iostat / iotop
# =============================================================================

def _iostat_rows(lines: List[str]) -> Tuple[List[str], List[List[str]]]:
    header = None
    rows = []
    for line in lines:
        tokens = line.split()
        if tokens[0].rstrip(':') == 'Device':
            header = [t.rstrip(':') for t in tokens]
            rows = []
            continue
        if header is not None and len(tokens) == len(header):
            rows.append(tokens)
    return header or [], rows


def _column(values: Dict[str, float], *names: str) -> Optional[float]:
    for name in names:
        if name in values:
            return values[name]
    return None


def _parse_iostat_extended(lines: List[str]) -> List[IoDeviceStats]:
    header, rows = _iostat_rows(lines)
    stats = []
    for tokens in rows:
        try:
            values = {name: to_float(tok) for name, tok in zip(header[1:], tokens[1:])}
        except ValueError:
            continue
        reads = _column(values, 'r/s') or 0.0
        writes = _column(values, 'w/s') or 0.0
        await_ms = _column(values, 'await')
        if await_ms is None:
            waits = [v for v in (_column(values, 'r_await'), _column(values, 'w_await')) if v is not None]
            await_ms = sum(waits) / len(waits) if waits else 0.0
        stats.append(IoDeviceStats(
            device=tokens[0],
            tps=round(reads + writes, 2),
            read_speed=(_column(values, 'rkB/s') or 0.0) * 1024,
            write_speed=(_column(values, 'wkB/s') or 0.0) * 1024,
            await_ms=await_ms,
            util_percent=_column(values, '%util') or 0.0,
        ))
    return stats


def _parse_iostat_basic(lines: List[str]) -> List[IoDeviceStats]:
    header, rows = _iostat_rows(lines)
    stats = []
    for tokens in rows:
        try:
            values = {name: to_float(tok) for name, tok in zip(header[1:], tokens[1:])}
        except ValueError:
            continue
        stats.append(IoDeviceStats(
            device=tokens[0],
            tps=_column(values, 'tps') or 0.0,
            read_speed=(_column(values, 'kB_read/s') or 0.0) * 1024,
            write_speed=(_column(values, 'kB_wrtn/s') or 0.0) * 1024,
        ))
    return stats


def _iostat_header(lines: List[str]) -> List[str]:
    for line in lines:
        tokens = line.split()
        if tokens[0].rstrip(':') == 'Device':
            return tokens
    return []


IOSTAT_FORMATS = (
    OutputFormat('extended', lambda lines: '%util' in _iostat_header(lines), _parse_iostat_extended),
    OutputFormat('basic', lambda lines: 'tps' in _iostat_header(lines), _parse_iostat_basic),
)


@parser_boundary(list)
def parse_iostat_x(content: str) -> List[IoDeviceStats]:
    """
    Parse ``iostat -x 1 1`` device rows.

    Columns are located by header name, so both the older (``rrqm/s wrqm/s
    r/s w/s ...``) and the sysstat 12 layouts are read. Plain ``iostat``
    output is accepted as well.
    """
    return parse_with_formats(normalize_output(content), IOSTAT_FORMATS, [])


_SPEED_MULTIPLIERS = {'b': 1, 'k': 1024, 'm': 1024 ** 2, 'g': 1024 ** 3}


def parse_speed(value: str, unit: str) -> float:
    """Convert an iotop '<value> <unit>/s' pair to bytes per second."""
    try:
        number = float(value)
    except ValueError:
        return 0.0
    unit = unit.lower()
    if not unit.endswith('/s'):
        return number
    return number * _SPEED_MULTIPLIERS.get(unit[0], 1)


@parser_boundary(list)
def parse_iotop(content: str) -> List[IoProcess]:
    """
    Parse ``iotop -b -n 1 -P -k -o`` process rows.

    Example row:
        30668 be/4 root  0.00 K/s  11.82 K/s  0.00 %  0.01 % java -server
    """
    processes = []
    for line in normalize_output(content):
        if line.startswith(('Total', 'Actual')) or 'PRIO' in line:
            continue
        parts = line.split()
        if len(parts) < 8:
            continue
        try:
            pid = int(parts[0])
        except ValueError:
            continue

        speed_indexes = [i for i in range(len(parts) - 1) if parts[i + 1].endswith('/s')][:2]
        if len(speed_indexes) < 2:
            continue
        read_index, write_index = speed_indexes

        command_start = None
        for i in range(write_index + 2, len(parts)):
            if parts[i].endswith('%'):
                command_start = i + 1
        if command_start is None or command_start >= len(parts):
            continue

        command = ' '.join(parts[command_start:])
        bracketed = re.search(r'\[(.*?)\]', command)
        processes.append(IoProcess(
            pid=pid,
            name=bracketed.group(1) if bracketed else process_name(command),
            command=command,
            read_speed=parse_speed(parts[read_index], parts[read_index + 1]),
            write_speed=parse_speed(parts[write_index], parts[write_index + 1]),
        ))
    return processes

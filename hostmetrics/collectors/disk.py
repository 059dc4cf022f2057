"""
Disk collector: filesystem usage, per-device throughput, SMART health, space
analysis and I/O analysis.

Partition identities are pinned per session. Once ``/dev/root`` has been
resolved to a real device, later samples in the same session keep using that
device even if findmnt output changes or disappears.
"""

from typing import Dict, List, Optional

from hostmetrics.collectors.base import BaseCollector
from hostmetrics.config import DISK_CLASS, ROOT_DEVICE_ALIAS, SECTIONS, get_command
from hostmetrics.errors import IdentityResolutionError, ParseError
from hostmetrics.models import (
    DeviceHealth,
    DeviceSpeed,
    DiskBasicInfo,
    DiskDetail,
    DiskHealth,
    IoAnalysis,
    Partition,
    SpaceAnalysis,
)
from hostmetrics.parsers.disk import (
    build_partitions,
    disk_totals,
    parse_df,
    parse_diskstats,
    parse_du,
    parse_file_types,
    parse_iostat_x,
    parse_iotop,
    parse_large_files,
    parse_lsblk,
    parse_lsblk_disks,
    parse_root_device,
    parse_smartctl,
    resolve_root_device,
    whole_disk_counters,
)


class DeviceIdentityMap:
    """
    Alias to device resolutions for one session.

    The first successful resolution of an alias is kept for the lifetime of
    the session.
    """

    def __init__(self, logger=None):
        self.logger = logger
        self._aliases: Dict[str, str] = {}

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def resolve(self, alias: str, candidate: Optional[str]) -> str:
        """
        Return the pinned device for ``alias``, pinning ``candidate`` on first use.

        Raises:
            IdentityResolutionError: If the alias was never resolved and there
                is no candidate.
        """
        pinned = self._aliases.get(alias)
        if pinned is not None:
            if candidate and candidate != pinned and self.logger:
                self.logger.debug(f'{alias} now reports {candidate}; keeping {pinned}')
            return pinned
        if not candidate:
            raise IdentityResolutionError(f"Cannot resolve {alias}", device=alias, source='findmnt')
        self._aliases[alias] = candidate
        return candidate


class DiskCollector(BaseCollector):

    BASIC_SECTION = SECTIONS.BASIC_DISK
    SECTION_METHODS = {
        SECTIONS.DISK: '_collect_detail',
        SECTIONS.HEALTH: '_collect_health',
        SECTIONS.SPACE: '_collect_space',
        SECTIONS.IO: '_collect_io',
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._identities: Dict[str, DeviceIdentityMap] = {}

    def identity_map(self, session_id: str) -> DeviceIdentityMap:
        if session_id not in self._identities:
            self._identities[session_id] = DeviceIdentityMap(self.logger)
        return self._identities[session_id]

    def destroy(self, session_id: str) -> None:
        super().destroy(session_id)
        self._identities.pop(session_id, None)

    async def _partitions(self, session_id: str) -> List[Partition]:
        df_output, lsblk_output, findmnt_output = await self._gather(
            self._run(session_id, get_command('df')),
            self._run_optional(session_id, get_command('lsblk')),
            self._run_optional(session_id, get_command('root_device')),
        )
        df_rows = parse_df(df_output)
        if not df_rows:
            raise ParseError("df returned no filesystems", source='df')
        lsblk_rows = parse_lsblk(lsblk_output)
        root_source = parse_root_device(findmnt_output)

        identities = self.identity_map(session_id)
        if any(row.source == ROOT_DEVICE_ALIAS for row in df_rows):
            try:
                identities.resolve(ROOT_DEVICE_ALIAS, resolve_root_device(root_source, lsblk_rows))
            except IdentityResolutionError as e:
                self.logger.debug(f'{e.error.message} on session {session_id}')

        partitions = build_partitions(df_rows, lsblk_rows, root_source, identities.aliases)
        for partition in partitions:
            if partition.disk_class == DISK_CLASS.UNKNOWN:
                self.logger.debug(f'No device type for {partition.device} ({partition.mountpoint})')
        return partitions

    async def _collect_basic(self, session_id: str) -> DiskBasicInfo:
        return disk_totals(await self._partitions(session_id))

    async def _collect_detail(self, session_id: str) -> DiskDetail:
        partitions, diskstats_output = await self._gather(
            self._partitions(session_id),
            self._run_optional(session_id, get_command('diskstats')),
        )
        timestamp = self.clock()
        counters = parse_diskstats(diskstats_output)

        device_stats = {}
        for counter in counters:
            device_stats[counter.device] = DeviceSpeed(
                read_speed=self.rates.update(session_id, f'diskstats:{counter.device}:read',
                                             counter.read_bytes, timestamp),
                write_speed=self.rates.update(session_id, f'diskstats:{counter.device}:write',
                                              counter.write_bytes, timestamp),
            )

        for partition in partitions:
            speed = device_stats.get(partition.device)
            if speed is not None:
                partition.read_speed = speed.read_speed
                partition.write_speed = speed.write_speed

        whole_disks = [device_stats[c.device] for c in whole_disk_counters(counters)]
        totals = disk_totals(partitions)
        return DiskDetail(
            total=totals.total,
            used=totals.used,
            free=totals.free,
            usage_percent=totals.usage_percent,
            read_speed=sum(s.read_speed for s in whole_disks),
            write_speed=sum(s.write_speed for s in whole_disks),
            partitions=partitions,
            device_stats=device_stats,
            last_updated=timestamp,
        )

    async def _smart_info(self, session_id: str, device: str) -> Optional[DeviceHealth]:
        output = await self._run_optional(session_id, get_command('smartctl', device=device))
        if not output.strip():
            return None
        return parse_smartctl(device, output) or DeviceHealth(device=device)

    async def _collect_health(self, session_id: str) -> DiskHealth:
        if not await self._probe(session_id, 'smartctl'):
            return DiskHealth(devices=[], tool_installed=False, last_updated=self.clock())

        disks = parse_lsblk_disks(await self._run_optional(session_id, get_command('lsblk_disks')))
        results = await self._gather(*(self._smart_info(session_id, disk) for disk in disks))
        return DiskHealth(
            devices=[result for result in results if result is not None],
            tool_installed=True,
            last_updated=self.clock(),
        )

    async def _collect_space(self, session_id: str) -> SpaceAnalysis:
        path = self.settings.space_scan_path
        du_output, large_output, types_output = await self._gather(
            self._run(session_id, get_command('du', path=path)),
            self._run_optional(session_id, get_command(
                'large_files', path=path, threshold=self.settings.large_file_threshold)),
            self._run_optional(session_id, get_command('file_types', path=path)),
        )
        return SpaceAnalysis(
            path=path,
            large_directories=parse_du(du_output, exclude=path),
            large_files=parse_large_files(large_output),
            file_types=parse_file_types(types_output),
            last_updated=self.clock(),
        )

    async def _collect_io(self, session_id: str) -> IoAnalysis:
        iostat_installed, iotop_installed = await self._gather(
            self._probe(session_id, 'iostat'),
            self._probe(session_id, 'iotop'),
        )
        commands = []
        if iostat_installed:
            commands.append(self._run_optional(session_id, get_command('iostat')))
        if iotop_installed:
            commands.append(self._run_optional(session_id, get_command('iotop')))
        outputs = await self._gather(*commands)

        analysis = IoAnalysis(tool_installed=iostat_installed, process_tool_installed=iotop_installed)
        if iostat_installed:
            analysis.devices = parse_iostat_x(outputs.pop(0))
        if iotop_installed:
            analysis.processes = parse_iotop(outputs.pop(0))
        analysis.last_updated = self.clock()
        return analysis

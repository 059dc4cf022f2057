"""
Network collector: interface totals and speeds, per-interface detail, socket
summary, per-socket listing and per-process traffic.

Basic speeds come from /proc/net/dev and detail speeds from ``ip -s link``.
Their counters are tracked under separate entity keys.
"""

from hostmetrics.collectors.base import BaseCollector
from hostmetrics.config import SECTIONS, get_command
from hostmetrics.errors import ParseError
from hostmetrics.models import (
    ConnectionSummary,
    NetworkBasicInfo,
    NetworkDetail,
    NetworkTraffic,
    SocketListing,
)
from hostmetrics.parsers.network import (
    parse_ip_combined,
    parse_nethogs,
    parse_proc_net_dev,
    parse_socket_list,
    parse_ss_summary,
)
from hostmetrics.parsers.tokenizer import normalize_output


class NetworkCollector(BaseCollector):

    BASIC_SECTION = SECTIONS.BASIC_NETWORK
    SECTION_METHODS = {
        SECTIONS.NETWORK: '_collect_detail',
        SECTIONS.CONNECTIONS: '_collect_connections',
        SECTIONS.SOCKETS: '_collect_sockets',
        SECTIONS.TRAFFIC: '_collect_traffic',
    }

    async def _collect_basic(self, session_id: str) -> NetworkBasicInfo:
        output = await self._run(session_id, get_command('netdev'))
        if not normalize_output(output):
            raise ParseError("Empty /proc/net/dev output", source='/proc/net/dev')
        timestamp = self.clock()

        info = NetworkBasicInfo()
        for counters in parse_proc_net_dev(output):
            info.total_rx += counters.rx_bytes
            info.total_tx += counters.tx_bytes
            info.rx_speed += self.rates.update(session_id, f'netdev:{counters.name}:rx',
                                               counters.rx_bytes, timestamp)
            info.tx_speed += self.rates.update(session_id, f'netdev:{counters.name}:tx',
                                               counters.tx_bytes, timestamp)
        return info

    async def _collect_detail(self, session_id: str) -> NetworkDetail:
        output = await self._run(session_id, get_command('ip_link_addr'))
        timestamp = self.clock()
        interfaces = parse_ip_combined(output)
        if not interfaces and not normalize_output(output):
            raise ParseError("Empty ip link output", source='ip -s link')

        detail = NetworkDetail(interfaces=interfaces, last_updated=timestamp)
        for interface in interfaces:
            interface.rx_speed = self.rates.update(session_id, f'link:{interface.name}:rx',
                                                   interface.rx_bytes, timestamp)
            interface.tx_speed = self.rates.update(session_id, f'link:{interface.name}:tx',
                                                   interface.tx_bytes, timestamp)
            detail.rx_speed += interface.rx_speed
            detail.tx_speed += interface.tx_speed
        return detail

    async def _collect_connections(self, session_id: str) -> ConnectionSummary:
        if not await self._probe(session_id, 'ss'):
            return ConnectionSummary(tool_installed=False, last_updated=self.clock())
        summary = parse_ss_summary(await self._run(session_id, get_command('ss_summary')))
        summary.last_updated = self.clock()
        return summary

    async def _collect_sockets(self, session_id: str) -> SocketListing:
        if not await self._probe(session_id, 'lsof'):
            return SocketListing(tool_installed=False, last_updated=self.clock())
        listing = parse_socket_list(await self._run(session_id, get_command('socket_list')))
        listing.last_updated = self.clock()
        return listing

    async def _collect_traffic(self, session_id: str) -> NetworkTraffic:
        # nethogs needs root; without passwordless sudo the output is empty
        if not await self._probe(session_id, 'nethogs'):
            return NetworkTraffic(tool_installed=False, last_updated=self.clock())
        processes = parse_nethogs(await self._run(session_id, get_command('process_traffic')))
        return NetworkTraffic(
            processes=processes[:self.settings.top_process_count],
            tool_installed=True,
            last_updated=self.clock(),
        )

"""
Parsers for network interface, socket and per-process traffic statistics.

``ip -s link`` and ``ip -s addr`` print one block per interface, each
starting with a header such as::

    2: eth0@if7: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue state UP

The loopback interface and loopback addresses are dropped.
"""

import ipaddress
import re
from typing import Dict, Iterable, List, Tuple

from hostmetrics.config import LOOPBACK_INTERFACE, SPLIT_MARKER
from hostmetrics.models import (
    ConnectionSummary,
    InterfaceCounters,
    NetworkInterface,
    ProcessTraffic,
    SocketConnection,
    SocketListing,
)
from hostmetrics.parsers.tokenizer import (
    FieldSpec,
    normalize_output,
    parse_rows,
    parser_boundary,
    split_blocks,
    split_marked,
    split_sections,
    to_float,
    to_int,
)

IP_LINK_HEADER = re.compile(r'^\d+:\s+([^:@]+)(?:@\S+)?:\s+<([^>]*)>')
_MTU = re.compile(r'\bmtu\s+(\d+)')


def _counter_line(block: List[str], label: str) -> Tuple[int, int]:
    """(bytes, errors) from the line after the ``RX:``/``TX:`` label line."""
    for index, line in enumerate(block[:-1]):
        if line.startswith(label):
            values = block[index + 1].split()
            try:
                return to_int(values[0]), to_int(values[2])
            except (ValueError, IndexError):
                return 0, 0
    return 0, 0


@parser_boundary(list)
def parse_ip_link(content: str) -> List[NetworkInterface]:
    """
    Parse ``ip -s link`` output.

    Returns:
        NetworkInterface per non-loopback interface with status, flags, MAC,
        MTU and RX/TX byte and error counters. Addresses are left empty.
    """
    interfaces = []
    for block in split_blocks(normalize_output(content), IP_LINK_HEADER):
        header = IP_LINK_HEADER.match(block[0])
        name = header.group(1).strip()
        if name == LOOPBACK_INTERFACE:
            continue
        flags = [flag for flag in header.group(2).split(',') if flag]

        interface = NetworkInterface(
            name=name,
            status='up' if 'UP' in flags else 'down',
            flags=flags,
        )
        mtu = _MTU.search(block[0])
        if mtu:
            interface.mtu = int(mtu.group(1))
        for line in block[1:]:
            if line.startswith('link/ether'):
                parts = line.split()
                if len(parts) > 1:
                    interface.mac = parts[1]
                break
        interface.rx_bytes, interface.rx_errors = _counter_line(block, 'RX:')
        interface.tx_bytes, interface.tx_errors = _counter_line(block, 'TX:')
        interfaces.append(interface)
    return interfaces


def _is_loopback_address(address: str) -> bool:
    try:
        return ipaddress.ip_interface(address).ip.is_loopback
    except ValueError:
        return False


@parser_boundary(dict)
def parse_ip_addr(content: str) -> Dict[str, Dict[str, List[str]]]:
    """
    Parse ``ip -s addr`` output into addresses per interface.

    Returns:
        ``{name: {'ipv4': [...], 'ipv6': [...]}}`` with CIDR addresses.
        Loopback addresses (127.0.0.0/8, ::1) are dropped.
    """
    addresses = {}
    for block in split_blocks(normalize_output(content), IP_LINK_HEADER):
        name = IP_LINK_HEADER.match(block[0]).group(1).strip()
        entry = {'ipv4': [], 'ipv6': []}
        for line in block[1:]:
            parts = line.split()
            if len(parts) < 2 or parts[0] not in ('inet', 'inet6'):
                continue
            if _is_loopback_address(parts[1]):
                continue
            entry['ipv4' if parts[0] == 'inet' else 'ipv6'].append(parts[1])
        addresses[name] = entry
    return addresses


def merge_addresses(interfaces: Iterable[NetworkInterface],
                    addresses: Dict[str, Dict[str, List[str]]]) -> List[NetworkInterface]:
    """Attach addresses to interfaces by name. Interfaces without a match keep empty lists."""
    merged = []
    for interface in interfaces:
        entry = addresses.get(interface.name, {})
        interface.ipv4 = list(entry.get('ipv4', []))
        interface.ipv6 = list(entry.get('ipv6', []))
        merged.append(interface)
    return merged


def parse_ip_combined(content: str) -> List[NetworkInterface]:
    """Parse ``ip -s link && echo ---SPLIT--- && ip -s addr`` output."""
    sections = split_sections(content, SPLIT_MARKER)
    link_output = sections[0] if sections else ''
    addr_output = sections[1] if len(sections) > 1 else ''
    return merge_addresses(parse_ip_link(link_output), parse_ip_addr(addr_output))


@parser_boundary(list)
def parse_proc_net_dev(content: str) -> List[InterfaceCounters]:
    """
    Parse /proc/net/dev into rx/tx byte counters, loopback excluded.

    Receive bytes are the first statistic and transmit bytes the ninth.
    """
    interfaces = []
    for line in normalize_output(content):
        if '|' in line or ':' not in line:
            continue
        name, stats = line.split(':', 1)
        name = name.strip()
        if name == LOOPBACK_INTERFACE:
            continue
        values = stats.split()
        if len(values) < 9:
            continue
        try:
            interfaces.append(InterfaceCounters(name=name, rx_bytes=to_int(values[0]),
                                                tx_bytes=to_int(values[8])))
        except ValueError:
            continue
    return interfaces


_SS_TOTAL = re.compile(r'^Total:\s*(\d+)')
_SS_TCP = re.compile(r'^TCP:\s*(\d+)\s*\((.*)\)')
_SS_TCP_STATE = re.compile(r'([a-z]+)\s+(\d+)')


@parser_boundary(ConnectionSummary)
def parse_ss_summary(content: str) -> ConnectionSummary:
    """
    Parse ``ss -s``.

    Example:
        Total: 190
        TCP:   12 (estab 4, closed 1, orphaned 0, timewait 1)

        Transport Total     IP        IPv6
        RAW       1         0         0
        UDP       6         4         2
    """
    summary = ConnectionSummary(tool_installed=True)
    for line in normalize_output(content):
        total = _SS_TOTAL.match(line)
        if total:
            summary.total = int(total.group(1))
            continue
        tcp = _SS_TCP.match(line)
        if tcp:
            summary.tcp = int(tcp.group(1))
            states = dict((key, int(value)) for key, value in _SS_TCP_STATE.findall(tcp.group(2)))
            summary.tcp_established = states.get('estab', 0)
            summary.tcp_closed = states.get('closed', 0)
            summary.tcp_orphaned = states.get('orphaned', 0)
            summary.tcp_timewait = states.get('timewait', 0)
            continue
        parts = line.split()
        if len(parts) >= 2 and parts[0] in ('UDP', 'RAW'):
            try:
                count = int(parts[1])
            except ValueError:
                continue
            if parts[0] == 'UDP':
                summary.udp = count
            else:
                summary.raw = count
    return summary


# =============================================================================
# Per-socket and per-process listings
# =============================================================================

LSOF_SOCKET_SCHEMA = (
    FieldSpec('command', 0),
    FieldSpec('pid', 1, to_int),
    FieldSpec('name', 8, str, rest=True),
)

_SOCKET_STATE = re.compile(r'\s*\(([^)]*)\)$')


def _split_endpoint(endpoint: str) -> Tuple[str, int]:
    """'10.0.0.5:22' -> ('10.0.0.5', 22); '[::1]:8080' -> ('::1', 8080); '*:*' -> ('*', 0)."""
    host, sep, port = endpoint.strip().rpartition(':')
    if not sep:
        return endpoint.strip(), 0
    host = host.strip('[]') or '*'
    try:
        return host, int(port)
    except ValueError:
        return host, 0


def connection_scope(state: str, remote_address: str) -> str:
    """
    Classify a socket as 'listening', 'internal' or 'external'.

    Wildcard, loopback and private (RFC 1918, ULA) peers are internal.
    """
    if state == 'LISTEN':
        return 'listening'
    if remote_address in ('*', 'localhost'):
        return 'internal'
    try:
        address = ipaddress.ip_address(remote_address)
    except ValueError:
        return 'external'
    return 'internal' if address.is_private or address.is_loopback else 'external'


def _parse_socket_rows(lines: List[str], protocol: str) -> List[SocketConnection]:
    connections = []
    for row in parse_rows(lines, LSOF_SOCKET_SCHEMA):
        name = row['name']
        state_match = _SOCKET_STATE.search(name)
        if state_match:
            state = state_match.group(1)
            name = name[:state_match.start()]
        else:
            state = '-' if protocol == 'UDP' else 'ESTABLISHED'

        local, _, remote = name.partition('->')
        if not local.strip():
            continue
        local_address, local_port = _split_endpoint(local)
        remote_address, remote_port = _split_endpoint(remote) if remote else ('*', 0)
        connections.append(SocketConnection(
            protocol=protocol,
            local_address=local_address,
            local_port=local_port,
            remote_address=remote_address,
            remote_port=remote_port,
            state=state,
            scope=connection_scope(state, remote_address),
            process=row['command'],
            pid=row['pid'],
        ))
    return connections


@parser_boundary(SocketListing)
def parse_socket_list(content: str) -> SocketListing:
    """
    Parse the ``=== TCP ===`` / ``=== UDP ===`` sections of ``lsof -i -n -P``.

    Example:
        === TCP ===
        COMMAND  PID USER   FD   TYPE DEVICE SIZE/OFF NODE NAME
        sshd     812 root    3u  IPv4  21456      0t0  TCP *:22 (LISTEN)
        sshd    1234 root    4u  IPv4  31337      0t0  TCP 10.0.0.5:22->93.184.216.34:51234 (ESTABLISHED)
        === UDP ===
        chronyd  700 chrony  5u  IPv4  19000      0t0  UDP 127.0.0.1:323
    """
    sections = split_marked(content)
    tcp = _parse_socket_rows(sections.get('TCP', []), 'TCP')
    udp = _parse_socket_rows(sections.get('UDP', []), 'UDP')
    connections = tcp + udp
    return SocketListing(
        connections=connections,
        total=len(connections),
        tcp=len(tcp),
        udp=len(udp),
        listening=sum(1 for conn in connections if conn.state == 'LISTEN'),
        tool_installed=True,
    )


_NETHOGS_REFRESH = re.compile(r'^Refreshing:')
_NETHOGS_PROGRAM = re.compile(r'^(.*)/(\d+)/\d+$')


@parser_boundary(list)
def parse_nethogs(content: str) -> List[ProcessTraffic]:
    """
    Parse ``nethogs -t`` trace output.

    Each refresh prints ``program/pid/uid<TAB>sent KB/s<TAB>received KB/s``
    rows. Only the last refresh is used; the first one covers no interval.
    Rows of the same pid are summed and ``unknown`` rows are dropped.

    Returns:
        ProcessTraffic rows in bytes per second, busiest first.
    """
    blocks = split_blocks(normalize_output(content), _NETHOGS_REFRESH)
    if not blocks:
        return []

    by_pid: Dict[int, ProcessTraffic] = {}
    for line in blocks[-1][1:]:
        if line.startswith('unknown'):
            continue
        parts = line.rsplit(None, 2)
        if len(parts) != 3:
            continue
        program = _NETHOGS_PROGRAM.match(parts[0])
        if not program:
            continue
        try:
            sent, received = to_float(parts[1]), to_float(parts[2])
        except ValueError:
            continue
        pid = int(program.group(2))
        if pid == 0:
            continue

        command = program.group(1)
        if command.startswith('./'):
            command = command[2:]
        name = command.split(': ', 1)[0] if ': ' in command else command.rsplit('/', 1)[-1]

        traffic = by_pid.setdefault(pid, ProcessTraffic(pid=pid, name=name, command=command))
        traffic.rx_speed += received * 1024
        traffic.tx_speed += sent * 1024

    return sorted(by_pid.values(), key=lambda p: p.rx_speed + p.tx_speed, reverse=True)

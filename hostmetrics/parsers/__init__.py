"""
Command output parsers for hostmetrics.

Every parser is a pure function of the raw text. None of them raise on
malformed output: they return empty or default rows and leave the fallback
decision to the collectors.

Modules:
    - tokenizer: line normalization, field schemas, device names, format adapters
    - cpu: /proc/stat, lscpu, cpu MHz, sensors
    - memory: /proc/meminfo
    - disk: df, lsblk, findmnt, /proc/diskstats, smartctl, du, find, iostat, iotop
    - network: ip -s link, ip -s addr, /proc/net/dev, ss -s, lsof -i, nethogs
    - process: ps aux, ps -T, lsof -p
"""

from hostmetrics.parsers.cpu import (
    parse_cpu_mhz,
    parse_lscpu,
    parse_proc_stat,
    parse_sensors_temperature,
)
from hostmetrics.parsers.disk import (
    build_partitions,
    parse_df,
    parse_diskstats,
    parse_iostat_x,
    parse_iotop,
    parse_lsblk,
    parse_root_device,
    parse_smartctl,
)
from hostmetrics.parsers.memory import parse_meminfo
from hostmetrics.parsers.network import (
    parse_ip_addr,
    parse_ip_link,
    parse_nethogs,
    parse_proc_net_dev,
    parse_socket_list,
    parse_ss_summary,
)
from hostmetrics.parsers.process import (
    parse_open_files,
    parse_process_counts,
    parse_process_status,
    parse_process_table,
    parse_thread_table,
)
from hostmetrics.parsers.tokenizer import base_device_name, normalize_output

__all__ = [
    'base_device_name',
    'build_partitions',
    'normalize_output',
    'parse_cpu_mhz',
    'parse_df',
    'parse_diskstats',
    'parse_iostat_x',
    'parse_iotop',
    'parse_ip_addr',
    'parse_ip_link',
    'parse_lscpu',
    'parse_lsblk',
    'parse_meminfo',
    'parse_nethogs',
    'parse_open_files',
    'parse_proc_net_dev',
    'parse_proc_stat',
    'parse_process_counts',
    'parse_process_status',
    'parse_process_table',
    'parse_root_device',
    'parse_sensors_temperature',
    'parse_smartctl',
    'parse_socket_list',
    'parse_ss_summary',
    'parse_thread_table',
]

"""
Recorded command outputs for hostmetrics tests.

Each constant is the stdout of one command from ``hostmetrics.config.COMMANDS``
as captured on a typical Linux host. ``standard_responses`` maps command
patterns to these outputs for ``MockCommandGateway``.
"""

PROC_STAT = """cpu  10000 0 5000 80000 1000 0 0 0 0 0
cpu0 5000 0 2500 40000 500 0 0 0 0 0
cpu1 5000 0 2500 40000 500 0 0 0 0 0
"""

# Aggregate: +600 busy, +400 idle -> 60% usage.
# cpu0: +300 busy +200 idle -> 60%, cpu1: +100 busy +400 idle -> 20%
PROC_STAT_LATER = """cpu  10400 0 5200 80400 1000 0 0 0 0 0
cpu0 5200 0 2600 40200 500 0 0 0 0 0
cpu1 5100 0 2500 40400 500 0 0 0 0 0
"""

CPU_MHZ = "2400.000\n"

LSCPU = """Architecture:                    x86_64
CPU op-mode(s):                  32-bit, 64-bit
Byte Order:                      Little Endian
CPU(s):                          8
On-line CPU(s) list:             0-7
Vendor ID:                       GenuineIntel
Model name:                      Intel(R) Core(TM) i7-9700K CPU @ 3.60GHz
CPU family:                      6
Thread(s) per core:              1
Core(s) per socket:              8
Socket(s):                       1
CPU max MHz:                     4900.0000
CPU min MHz:                     800.0000
Virtualization:                  VT-x
L1d cache:                       256 KiB
L2 cache:                        2 MiB
L3 cache:                        12 MiB
"""

SENSORS_CORETEMP = """coretemp-isa-0000
Adapter: ISA adapter
Package id 0:  +52.0°C  (high = +80.0°C, crit = +100.0°C)
Core 0:        +50.0°C  (high = +80.0°C, crit = +100.0°C)
Core 1:        +48.0°C  (high = +80.0°C, crit = +100.0°C)
"""

SENSORS_K10TEMP = """k10temp-pci-00c3
Adapter: PCI adapter
Tctl:         +61.4°C
Tdie:         +61.4°C
"""

MEMINFO = """MemTotal:       16384000 kB
MemFree:         4096000 kB
MemAvailable:    8192000 kB
Buffers:          512000 kB
Cached:          2048000 kB
SwapCached:            0 kB
Active:          6000000 kB
Inactive:        3000000 kB
SwapTotal:       2097152 kB
SwapFree:        1048576 kB
Dirty:              1024 kB
Writeback:             0 kB
SReclaimable:     512000 kB
"""

PS_AUX_HEADER = "USER         PID %CPU %MEM    VSZ   RSS TTY      STAT START   TIME COMMAND"

PS_AUX_TOP = PS_AUX_HEADER + """
root        1234 25.0  2.5 123456 40960 ?        Rs   10:00   1:23 /usr/bin/python3 /opt/app/server.py --port 8080
mysql       2345 10.5 12.0 999999 204800 ?       Sl   09:00  10:00 /usr/sbin/mysqld
root           2  0.0  0.0      0     0 ?        S    08:00   0:00 [kthreadd]
nobody      3456  0.1  0.0   1000   100 ?        Z    08:30   0:00 [defunct-thing]
"""

PROCESS_TABLE = """=== PROCESS_COUNT ===
243
=== RUNNING_COUNT ===
3
=== TOP_PROCESSES ===
""" + PS_AUX_TOP

THREAD_TABLE = """ 1234 python3          12.5 Sl
 1240 worker-1          6.0 Rl
 1241 worker-2          0.0 Sl
"""

DF = """Filesystem     Mounted on     Type      1B-blocks         Used        Avail Use%
/dev/root      /              ext4   100000000000  40000000000  60000000000  40%
/dev/sdb1      /data          xfs    200000000000  50000000000 150000000000  25%
tmpfs          /run           tmpfs      800000000      1000000    799000000   1%
overlay        /var/lib/docker/overlay2/abc/merged overlay 100000000000 40000000000 60000000000 40%
"""

DF_POSIX = """Filesystem        1024-blocks      Used Available Capacity Mounted on
/dev/sda1         100000000  40000000  60000000      40% /
tmpfs               800000      1000    799000       1% /run
"""

LSBLK = """sda          disk 0 sata
└─sda1       part 0      /
sdb          disk 1 sata
└─sdb1       part 1      /data
nvme0n1      disk 0 nvme
├─nvme0n1p1  part 0 nvme /boot/efi
└─nvme0n1p2  part 0 nvme /home
"""

FINDMNT_ROOT = "/dev/sda1\n"

DISKSTATS = """   8       0 sda 1000 0 20000 500 2000 0 40000 1000 0 1500 1500 0 0 0 0
   8       1 sda1 900 0 18000 450 1900 0 38000 950 0 1400 1400 0 0 0 0
   8      16 sdb 500 0 10000 200 100 0 2000 50 0 250 250 0 0 0 0
   8      17 sdb1 450 0 9000 180 90 0 1800 40 0 220 220 0 0 0 0
   7       0 loop0 50 0 1000 10 0 0 0 0 0 10 10 0 0 0 0
 253       0 dm-0 10 0 100 1 10 0 100 1 0 2 2 0 0 0 0
"""

# sda: +10240 sectors read, +20480 written; sdb unchanged
DISKSTATS_LATER = """   8       0 sda 1100 0 30240 500 2100 0 60480 1000 0 1500 1500 0 0 0 0
   8       1 sda1 1000 0 28240 450 2000 0 58480 950 0 1400 1400 0 0 0 0
   8      16 sdb 500 0 10000 200 100 0 2000 50 0 250 250 0 0 0 0
   8      17 sdb1 450 0 9000 180 90 0 1800 40 0 220 220 0 0 0 0
   7       0 loop0 60 0 5000 10 0 0 0 0 0 10 10 0 0 0 0
 253       0 dm-0 10 0 100 1 10 0 100 1 0 2 2 0 0 0 0
"""

LSBLK_DISKS = """sda      Samsung SSD 860  disk
sdb      WDC WD40EFRX     disk
sr0      DVD-RW           rom
loop0                     loop
"""

SMARTCTL_ATA = """smartctl 7.2 2020-12-30 r5155 [x86_64-linux-5.15.0] (local build)
=== START OF INFORMATION SECTION ===
Model Family:     Samsung based SSDs
Device Model:     Samsung SSD 860 EVO 500GB
Serial Number:    S3Z1NB0K123456A
=== START OF READ SMART DATA SECTION ===
SMART overall-health self-assessment test result: PASSED

ID# ATTRIBUTE_NAME          FLAG     VALUE WORST THRESH TYPE      UPDATED  WHEN_FAILED RAW_VALUE
  5 Reallocated_Sector_Ct   0x0033   100   100   010    Pre-fail  Always       -       0
  9 Power_On_Hours          0x0032   095   095   000    Old_age   Always       -       21345
187 Reported_Uncorrect      0x0032   100   100   000    Old_age   Always       -       0
190 Airflow_Temperature_Cel 0x0032   066   050   000    Old_age   Always       -       34
197 Current_Pending_Sector  0x0012   100   100   000    Old_age   Always       -       0
198 Offline_Uncorrectable   0x0010   100   100   000    Old_age   Offline      -       0
"""

SMARTCTL_FAILING = """Device Model:     WDC WD40EFRX-68N32N0
Serial Number:    WD-WCC7K0123456
SMART overall-health self-assessment test result: FAILED!
ID# ATTRIBUTE_NAME          FLAG     VALUE WORST THRESH TYPE      UPDATED  WHEN_FAILED RAW_VALUE
  5 Reallocated_Sector_Ct   0x0033   080   080   140    Pre-fail  Always   FAILING_NOW 120
  9 Power_On_Hours          0x0032   050   050   000    Old_age   Always       -       43800
194 Temperature_Celsius     0x0022   118   100   000    Old_age   Always       -       41
197 Current_Pending_Sector  0x0032   200   200   000    Old_age   Always       -       8
198 Offline_Uncorrectable   0x0030   100   253   000    Old_age   Offline      -       2
"""

SMARTCTL_NVME = """=== START OF INFORMATION SECTION ===
Model Number:                       Samsung SSD 970 EVO Plus 1TB
Serial Number:                      S4EWNX0N123456
=== START OF SMART DATA SECTION ===
SMART overall-health self-assessment test result: PASSED
Temperature:                        38 Celsius
Percentage Used:                    3%
Power On Hours:                     1,234
"""

DU = """52428800\t/
31457280\t/usr
10485760\t/var
5242880\t/home
"""

LARGE_FILES = """2147483648 1700000000.5 /var/lib/images/disk.img
1073741824 1690000000.0 /home/user/backup.tar
"""

FILE_TYPES = """3221225472 2 img
1073741824 1 tar
2048 10 log
"""

IOSTAT_X = """Linux 5.15.0 (host)  01/01/2024  _x86_64_  (8 CPU)

avg-cpu:  %user   %nice %system %iowait  %steal   %idle
           5.00    0.00    2.00    0.50    0.00   92.50

Device            r/s     rkB/s   rrqm/s  %rrqm r_await rareq-sz     w/s     wkB/s   wrqm/s  %wrqm w_await wareq-sz     d/s     dkB/s   drqm/s  %drqm d_await dareq-sz  aqu-sz  %util
sda             10.00    400.00     0.00   0.00    1.00    40.00    5.00    200.00     1.00  16.67    3.00    40.00    0.00      0.00     0.00   0.00    0.00     0.00    0.02   2.50
"""

IOSTAT_X_OLD = """Device:         rrqm/s   wrqm/s     r/s     w/s    rkB/s    wkB/s avgrq-sz avgqu-sz   await r_await w_await  svctm  %util
sda               0.00     1.00   10.00    5.00   400.00   200.00    80.00     0.02    1.67    1.00    3.00   0.50   2.50
"""

IOTOP = """Total DISK READ :       0.00 K/s | Total DISK WRITE :      11.82 K/s
Actual DISK READ:       0.00 K/s | Actual DISK WRITE:      23.65 K/s
    PID  PRIO  USER     DISK READ  DISK WRITE  SWAPIN      IO    COMMAND
  30668 be/4 root        0.00 K/s   11.82 K/s  0.00 %  0.01 % java -server -Xmx1g
    478 be/3 root        2.00 M/s    0.00 K/s  0.00 %  0.50 % [jbd2/sda1-8]
"""

PROC_NET_DEV = """Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo: 5000000    5000    0    0    0     0          0         0  5000000    5000    0    0    0     0       0          0
  eth0: 1000000    1000    0    0    0     0          0         0   500000     800    0    0    0     0       0          0
"""

PROC_NET_DEV_LATER = """Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo: 9000000    9000    0    0    0     0          0         0  9000000    9000    0    0    0     0       0          0
  eth0: 2000000    2000    0    0    0     0          0         0  1000000    1600    0    0    0     0       0          0
"""

IP_LINK = """1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN mode DEFAULT group default qlen 1000
    link/loopback 00:00:00:00:00:00 brd 00:00:00:00:00:00
    RX: bytes  packets  errors  dropped overrun mcast
    5000000    5000     0       0       0       0
    TX: bytes  packets  errors  dropped carrier collsns
    5000000    5000     0       0       0       0
2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UP mode DEFAULT group default qlen 1000
    link/ether 52:54:00:12:34:56 brd ff:ff:ff:ff:ff:ff
    RX: bytes  packets  errors  dropped overrun mcast
    1000000    1000     2       0       0       0
    TX: bytes  packets  errors  dropped carrier collsns
    500000     800      1       0       0       0
3: docker0@if5: <NO-CARRIER,BROADCAST,MULTICAST> mtu 1500 qdisc noqueue state DOWN mode DEFAULT group default
    link/ether 02:42:ac:11:00:01 brd ff:ff:ff:ff:ff:ff
    RX: bytes  packets  errors  dropped overrun mcast
    0          0        0       0       0       0
    TX: bytes  packets  errors  dropped carrier collsns
    0          0        0       0       0       0
"""

IP_ADDR = """1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN group default qlen 1000
    link/loopback 00:00:00:00:00:00 brd 00:00:00:00:00:00
    inet 127.0.0.1/8 scope host lo
    inet6 ::1/128 scope host
2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UP group default qlen 1000
    link/ether 52:54:00:12:34:56 brd ff:ff:ff:ff:ff:ff
    inet 192.168.1.10/24 brd 192.168.1.255 scope global eth0
    inet6 fe80::5054:ff:fe12:3456/64 scope link
3: docker0@if5: <NO-CARRIER,BROADCAST,MULTICAST> mtu 1500 qdisc noqueue state DOWN group default
    link/ether 02:42:ac:11:00:01 brd ff:ff:ff:ff:ff:ff
"""

IP_COMBINED = IP_LINK + "---SPLIT---\n" + IP_ADDR

SS_SUMMARY = """Total: 190
TCP:   12 (estab 4, closed 1, orphaned 0, timewait 1)

Transport Total     IP        IPv6
RAW       1         0         1
UDP       6         4         2
TCP       11        8         3
INET      18        12        6
FRAG      0         0         0
"""

LSOF_SOCKETS = """=== TCP ===
COMMAND    PID     USER   FD   TYPE DEVICE SIZE/OFF NODE NAME
sshd       812     root    3u  IPv4  21456      0t0  TCP *:22 (LISTEN)
sshd       812     root    4u  IPv6  21458      0t0  TCP *:22 (LISTEN)
sshd      1234     root    4u  IPv4  31337      0t0  TCP 10.0.0.5:22->93.184.216.34:51234 (ESTABLISHED)
nginx      900 www-data    6u  IPv6  22000      0t0  TCP [::1]:8080->[::1]:40000 (ESTABLISHED)
postgres  1500 postgres    7u  IPv4  23000      0t0  TCP 10.0.0.5:5432->10.0.0.9:60000 (ESTABLISHED)
=== UDP ===
COMMAND    PID     USER   FD   TYPE DEVICE SIZE/OFF NODE NAME
chronyd    700   chrony    5u  IPv4  19000      0t0  UDP 127.0.0.1:323
"""

NETHOGS = """Adding local address: 10.0.0.5
Ethernet link detected
Waiting for first packet to arrive (see sourceforge.net bug 1019381)

Refreshing:
/usr/bin/curl/5678/1000\t0\t0
unknown TCP/0/0\t0\t0

Refreshing:
/usr/bin/curl/5678/1000\t2\t100
sshd: root@pts/0/1234/0\t0.5\t0.25
./bin/worker/4321/1000\t1\t1
/usr/bin/curl/5678/1000\t0\t50
unknown TCP/0/0\t0.1\t0.1
"""

LSOF_PID = """COMMAND  PID USER   FD   TYPE DEVICE SIZE/OFF    NODE NAME
nginx    900 root  cwd    DIR  259,2     4096       2 /
nginx    900 root  txt    REG  259,2  1187016 1312345 /usr/sbin/nginx
nginx    900 root  mem    REG  259,2  2216304 1310721 /usr/lib/x86_64-linux-gnu/libc.so.6
nginx    900 root    0u   CHR    1,3      0t0       5 /dev/null
nginx    900 root    2w   REG  259,2    10240  655361 /var/log/nginx/error.log
nginx    900 root    6u  IPv4  22000      0t0     TCP *:80 (LISTEN)
nginx    900 root    8r  FIFO   0,13      0t0   33333 pipe
"""

INSTALLED = "installed\n"
NOT_INSTALLED = "not_installed\n"


def crlf(text: str) -> str:
    """Return ``text`` with CRLF line endings and an extra blank line between rows."""
    return text.replace('\n', '\r\n\r\n')


def standard_responses() -> dict:
    """Pattern -> output map covering every command the collectors issue."""
    return {
        'cat /proc/stat': PROC_STAT,
        'cpu MHz': CPU_MHZ,
        'lscpu': LSCPU,
        'which sensors': INSTALLED,
        'sensors 2>/dev/null': SENSORS_CORETEMP,
        'cat /proc/meminfo': MEMINFO,
        'ps aux --sort=-%mem': PS_AUX_TOP,
        'which ps': INSTALLED,
        'PROCESS_COUNT': PROCESS_TABLE,
        'ps -T -p': THREAD_TABLE,
        'df -B1': DF,
        'lsblk -o NAME,TYPE': LSBLK,
        'findmnt': FINDMNT_ROOT,
        'cat /proc/diskstats': DISKSTATS,
        'lsblk -d': LSBLK_DISKS,
        'which smartctl': INSTALLED,
        'smartctl -a /dev/sda': SMARTCTL_ATA,
        'smartctl -a /dev/sdb': SMARTCTL_FAILING,
        'du -x': DU,
        '-size +': LARGE_FILES,
        '%f': FILE_TYPES,
        'which iostat': INSTALLED,
        'which iotop': INSTALLED,
        'iostat -x': IOSTAT_X,
        'iotop -b': IOTOP,
        'cat /proc/net/dev': PROC_NET_DEV,
        'ip -s link': IP_COMBINED,
        'which ss': INSTALLED,
        'ss -s': SS_SUMMARY,
        'which lsof': INSTALLED,
        'lsof -i': LSOF_SOCKETS,
        'lsof -p': LSOF_PID,
        'which nethogs': INSTALLED,
        'nethogs -t': NETHOGS,
    }

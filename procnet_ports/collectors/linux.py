from __future__ import annotations
import logging
import re
import stat
from typing import List, Optional, Tuple

from ..errors import CollectorError, MalformedRecordError
from ..host import FileSystem
from ..models import SocketRecord, TCP_STATES, STATE_UNKNOWN
from ..utils.net import hex2ipv4, hex2ipv6, parse_dec, parse_hex

log = logging.getLogger(__name__)

PROC_NET_RE = re.compile(
    r"^\s*\d+:\s+"
    r"(?P<laddr>\S+):(?P<lport>\S+)\s+"   # local_address
    r"(?P<raddr>\S+):(?P<rport>\S+)\s+"   # rem_address
    r"(?P<state>\S+)\s+"                  # st
    r"\S+:\S+\s+"                         # tx_queue:rx_queue
    r"\S+:\S+\s+"                         # tr:tm->when
    r"\S+\s+"                             # retrnsmt
    r"(?P<uid>\S+)\s+"
    r"\S+\s+"                             # timeout
    r"(?P<inode>\S+)"
)

# path, protocol, table may be absent (IPv6 disabled)
PROC_NET_TABLES: Tuple[Tuple[str, str, bool], ...] = (
    ("tcp", "tcp4", False),
    ("udp", "udp4", False),
    ("tcp6", "tcp6", True),
    ("udp6", "udp6", True),
)


def parse_address(s: str) -> str:
    if len(s) == 8:
        return hex2ipv4(s)
    if len(s) == 32:
        return hex2ipv6(s)
    raise ValueError(f"unexpected address length {len(s)}")


def _field(name: str, value: str, conv, source: str):
    try:
        return conv(value)
    except ValueError:
        raise MalformedRecordError(name, value, source) from None


def _port(v: str) -> int:
    n = parse_hex(v)
    if not 0 <= n <= 0xFFFF:
        raise ValueError(f"port out of range: {n}")
    return n


def state_name(n: int) -> str:
    return TCP_STATES.get(n, STATE_UNKNOWN)


def parse_line(line: str, protocol: str, source: str = "") -> Optional[SocketRecord]:
    """Decode one /proc/net table row; ``None`` for rows that are not socket entries."""
    m = PROC_NET_RE.match(line)
    if not m:
        return None
    return SocketRecord(
        protocol=protocol,
        address=_field("address", m.group("laddr"), parse_address, source),
        port=_field("port", m.group("lport"), _port, source),
        remote_address=_field("remote_address", m.group("raddr"), parse_address, source),
        remote_port=_field("remote_port", m.group("rport"), _port, source),
        state=state_name(_field("state", m.group("state"), parse_hex, source)),
        # the kernel prints uid in decimal; hex here gives 1000 -> 4096
        uid=_field("uid", m.group("uid"), parse_hex, source),
        inode=_field("inode", m.group("inode"), parse_dec, source),
    )


def parse_proc_net(text: str, protocol: str, source: str = "") -> List[SocketRecord]:
    records: List[SocketRecord] = []
    for line in text.splitlines():
        rec = parse_line(line, protocol, source)
        if rec is not None:
            records.append(rec)
    return records


def read_proc_net(fs: FileSystem, path: str, protocol: str, optional: bool = False) -> List[SocketRecord]:
    try:
        st = fs.stat(path)
    except FileNotFoundError:
        if optional:
            log.info("%s not present, treating as empty", path)
            return []
        raise CollectorError(f"cannot access stat for {path}") from None
    except OSError as err:
        raise CollectorError(f"cannot access stat for {path}: {err}") from err
    if stat.S_ISDIR(st.st_mode):
        raise CollectorError(f"something is wrong, looks like {path} is a folder")

    try:
        with fs.open(path) as f:
            text = f.read()
    except OSError as err:
        raise CollectorError(f"cannot read {path}: {err}") from err
    records = parse_proc_net(text, protocol, source=path)
    log.debug("%s: %d sockets", path, len(records))
    return records


def collect(fs: FileSystem, proc_net_dir: str = "/proc/net", tolerate_missing_ipv6: bool = True) -> List[SocketRecord]:
    records: List[SocketRecord] = []
    for name, protocol, ipv6 in PROC_NET_TABLES:
        path = f"{proc_net_dir.rstrip('/')}/{name}"
        records.extend(read_proc_net(fs, path, protocol, optional=ipv6 and tolerate_missing_ipv6))
    return records

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import MalformedRecordError
from ..host import CommandRunner, run_checked
from ..models import SocketRecord, STATE_UNKNOWN
from ..utils.net import parse_dec

log = logging.getLogger(__name__)

LSOF_CMD = "lsof -nP -i -F"

FILE_TYPE_IPV4 = "IPv4"
FILE_TYPE_IPV6 = "IPv6"

# values of the TCP/TPI "ST=" info field
LSOF_STATES = {
    "LISTEN": "listen",
    "ESTABLISHED": "established",
    "SYN_SENT": "syn sent",
    "SYN_RCVD": "syn recv",
    "SYN_RECEIVED": "syn recv",
    "FIN_WAIT_1": "fin wait1",
    "FIN_WAIT1": "fin wait1",
    "FIN_WAIT_2": "fin wait2",
    "FIN_WAIT2": "fin wait2",
    "TIME_WAIT": "time wait",
    "CLOSED": "close",
    "CLOSE_WAIT": "close wait",
    "LAST_ACK": "last ack",
    "CLOSING": "closing",
}


@dataclass
class FileDescriptor:
    fd: str
    type: str = ""
    protocol: str = ""
    name: str = ""
    tcp_info: Dict[str, str] = field(default_factory=dict)

    @property
    def is_network(self) -> bool:
        return self.type in (FILE_TYPE_IPV4, FILE_TYPE_IPV6)

    def state(self) -> str:
        return LSOF_STATES.get(self.tcp_info.get("ST", ""), STATE_UNKNOWN)

    def network_file(self) -> Tuple[str, int, str, int]:
        """Split the name field into local and remote endpoints.

        ``127.0.0.1:5432->127.0.0.1:51234``, ``*:22`` or ``[::1]:631``.
        An unconnected socket has an empty remote address and port 0.
        """
        local, _, remote = self.name.partition("->")
        laddr, lport = split_endpoint(local, self.name)
        if not remote:
            return laddr, lport, "", 0
        raddr, rport = split_endpoint(remote, self.name)
        return laddr, lport, raddr, rport


@dataclass
class LsofProcess:
    pid: str
    uid: str = ""
    command: str = ""
    file_descriptors: List[FileDescriptor] = field(default_factory=list)


def split_endpoint(endpoint: str, source: str = "") -> Tuple[str, int]:
    host, sep, port = endpoint.rpartition(":")
    if not sep:
        raise MalformedRecordError("name", endpoint, source)
    if port == "*":
        return host, 0
    try:
        return host, parse_dec(port)
    except ValueError:
        raise MalformedRecordError("port", port, source) from None


def parse(text: str) -> List[LsofProcess]:
    """Group ``lsof -F`` field output into processes and their descriptors."""
    procs: List[LsofProcess] = []
    proc: Optional[LsofProcess] = None
    fd: Optional[FileDescriptor] = None
    for line in text.splitlines():
        if not line:
            continue
        tag, value = line[0], line[1:]
        if tag == "p":
            proc = LsofProcess(pid=value)
            procs.append(proc)
            fd = None
        elif proc is None:
            continue
        elif tag == "f":
            fd = FileDescriptor(fd=value)
            proc.file_descriptors.append(fd)
        elif fd is None:
            # process set fields
            if tag == "u":
                proc.uid = value
            elif tag == "c":
                proc.command = value
        elif tag == "t":
            fd.type = value
        elif tag == "P":
            fd.protocol = value
        elif tag == "n":
            fd.name = value
        elif tag == "T":
            k, _, v = value.partition("=")
            fd.tcp_info[k] = v
    return procs


def _int(name: str, value: str) -> int:
    try:
        return parse_dec(value)
    except ValueError:
        raise MalformedRecordError(name, value, LSOF_CMD) from None


def to_records(procs: List[LsofProcess]) -> List[SocketRecord]:
    records: List[SocketRecord] = []
    for proc in procs:
        for fd in proc.file_descriptors:
            if not fd.is_network:
                continue
            pid = _int("pid", proc.pid)
            uid = _int("uid", proc.uid) if proc.uid else None

            ipv6 = fd.type == FILE_TYPE_IPV6
            protocol = fd.protocol.lower() + ("6" if ipv6 else "4")
            laddr, lport, raddr, rport = fd.network_file()
            # any ipv6 address is printed as "*"
            if ipv6 and laddr == "*":
                laddr = "[::]"

            records.append(SocketRecord(
                protocol=protocol,
                address=laddr,
                port=lport,
                remote_address=raddr,
                remote_port=rport,
                state=fd.state(),
                pid=pid,
                uid=uid,
            ))
    return records


def collect(runner: CommandRunner, command: str = LSOF_CMD) -> List[SocketRecord]:
    res = run_checked(runner, command)
    records = to_records(parse(res.stdout))
    log.debug("lsof: %d sockets", len(records))
    return records

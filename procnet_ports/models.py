from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

STATE_LISTEN = "listen"
STATE_UNKNOWN = "unknown"

# /proc/net state numbers; the other collectors map into the same words
TCP_STATES = {
    1: "established",
    2: "syn sent",
    3: "syn recv",
    4: "fin wait1",
    5: "fin wait2",
    6: "time wait",
    7: "close",
    8: "close wait",
    9: "last ack",
    10: STATE_LISTEN,
    11: "closing",
    12: "new syn recv",
}

PROTOCOLS = ("tcp4", "tcp6", "udp4", "udp6")


@dataclass(frozen=True)
class ProcessDescriptor:
    pid: int
    executable: str = ""
    command: str = ""
    state: str = ""
    socket_inodes: FrozenSet[int] = frozenset()

    def to_dict(self) -> dict:
        return {"pid": self.pid, "executable": self.executable,
                "command": self.command, "state": self.state}


@dataclass(frozen=True)
class UserDescriptor:
    uid: int
    name: str

    def to_dict(self) -> dict:
        return {"uid": self.uid, "name": self.name}


@dataclass(frozen=True)
class SocketRecord:
    """One socket as seen by a collector.

    Equality and hashing only look at the natural key (protocol, both
    endpoints and state). Owner references and the raw ids a collector
    found (inode, uid, pid) ride along without taking part in identity.
    """
    protocol: str
    address: str
    port: int
    remote_address: str
    remote_port: int
    state: str
    process: Optional[ProcessDescriptor] = field(default=None, compare=False)
    user: Optional[UserDescriptor] = field(default=None, compare=False)
    inode: int = field(default=0, compare=False)
    uid: Optional[int] = field(default=None, compare=False)
    pid: Optional[int] = field(default=None, compare=False)

    @property
    def key(self) -> Tuple[str, str, int, str, int, str]:
        return (self.protocol, self.address, self.port,
                self.remote_address, self.remote_port, self.state)

    @property
    def id(self) -> str:
        return (f"port: {self.protocol}/{self.address}:{self.port}/"
                f"{self.remote_address}:{self.remote_port}/{self.state}")

    def to_dict(self) -> dict:
        return {
            "protocol": self.protocol,
            "address": self.address,
            "port": self.port,
            "remoteAddress": self.remote_address,
            "remotePort": self.remote_port,
            "state": self.state,
            "process": self.process.to_dict() if self.process else None,
            "user": self.user.to_dict() if self.user else None,
        }

from __future__ import annotations
import io
import stat
from types import SimpleNamespace

import pytest

from procnet_ports.host import CommandResult, Host
from procnet_ports.models import ProcessDescriptor, UserDescriptor

PROC_NET_TCP = """\
  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode
   0: 0100007F:0050 00000000:0000 0A 00000000:00000000 00:00000000 00000000  1000        0 12345 1 0000000000000000 100 0 0 10 0
   1: 0F02000A:0016 0202000A:C5D8 01 00000000:00000000 02:0004C8AE 00000000     0        0 23456 4 0000000000000000 20 4 29 10 -1
"""

PROC_NET_UDP = """\
  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode ref pointer drops
  5: 00000000:0044 00000000:0000 07 00000000:00000000 00:00000000 00000000     0        0 45678 2 0000000000000000 0
"""

PROC_NET_TCP6 = """\
  sl  local_address                         remote_address                        st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode
   0: 00000000000000000000000001000000:0277 00000000000000000000000000000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 34567 1 0000000000000000 100 0 0 10 0
"""

PROC_NET_UDP6 = """\
  sl  local_address                         remote_address                        st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode ref pointer drops
"""

LSOF_OUTPUT = """\
p123
g123
R1
csshd
u0
Lroot
f3
au
l
tIPv4
G0x80802;0x0
d0x1234
o0t0
PTCP
n*:22
TST=LISTEN
TQR=0
TQS=0
f4
au
tIPv6
PTCP
n*:22
TST=LISTEN
p456
g456
R1
cSafari
u501
f10
tIPv4
PTCP
n192.168.1.5:50000->17.1.2.3:443
TST=ESTABLISHED
f11
tIPv6
PUDP
n[::1]:5353
f12
tREG
n/dev/null
"""

WINDOWS_JSON = """\
[
  {"LocalAddress": "0.0.0.0", "LocalPort": 135, "RemoteAddress": "0.0.0.0", "RemotePort": 0, "State": 2, "OwningProcess": 900},
  {"LocalAddress": "192.168.1.10", "LocalPort": 49712, "RemoteAddress": "20.50.2.1", "RemotePort": 443, "State": 5, "OwningProcess": 4321},
  {"LocalAddress": "::", "LocalPort": 445, "RemoteAddress": "::", "RemotePort": 0, "State": 2, "OwningProcess": 4},
  {"LocalAddress": "0.0.0.0", "LocalPort": 50001, "RemoteAddress": "0.0.0.0", "RemotePort": 0, "State": 100, "OwningProcess": 77}
]
"""


class FakeRunner:
    def __init__(self, outputs=None, default=None):
        self.outputs = dict(outputs or {})
        self.default = default
        self.calls = []

    def run(self, cmd: str) -> CommandResult:
        self.calls.append(cmd)
        if cmd in self.outputs:
            return self.outputs[cmd]
        if self.default is not None:
            return self.default
        return CommandResult(stdout="", stderr=f"{cmd}: not found", exit_status=127)


class FakeFS:
    def __init__(self, files=None, dirs=()):
        self.files = dict(files or {})
        self.dirs = set(dirs)
        self.opened = []

    def stat(self, path):
        if path in self.dirs:
            return SimpleNamespace(st_mode=stat.S_IFDIR | 0o555)
        if path not in self.files:
            raise FileNotFoundError(path)
        return SimpleNamespace(st_mode=stat.S_IFREG | 0o444)

    def open(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        self.opened.append(path)
        return io.StringIO(self.files[path])


class FakeManager:
    def __init__(self, items=(), error=None):
        self.items = list(items)
        self.error = error
        self.calls = 0

    def list(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


@pytest.fixture
def procs():
    return [
        ProcessDescriptor(pid=1, executable="/sbin/init", command="/sbin/init", state="S"),
        ProcessDescriptor(pid=123, executable="/usr/sbin/nginx", command="nginx: master process",
                          state="S", socket_inodes=frozenset({12345, 34567})),
        ProcessDescriptor(pid=456, executable="/usr/bin/ssh", command="ssh example.org",
                          state="S", socket_inodes=frozenset({23456})),
    ]


@pytest.fixture
def users():
    return [
        UserDescriptor(uid=0, name="root"),
        UserDescriptor(uid=4096, name="svc"),
        UserDescriptor(uid=501, name="alice"),
    ]


@pytest.fixture
def linux_fs():
    return FakeFS({
        "/proc/net/tcp": PROC_NET_TCP,
        "/proc/net/udp": PROC_NET_UDP,
        "/proc/net/tcp6": PROC_NET_TCP6,
        "/proc/net/udp6": PROC_NET_UDP6,
    })


@pytest.fixture
def make_host(procs, users):
    def _make(platform, runner=None, fs=None, processes=None, user_manager=None):
        return Host(
            platform=platform,
            runner=runner or FakeRunner(),
            fs=fs or FakeFS(),
            processes=processes or FakeManager(procs),
            users=user_manager or FakeManager(users),
        )
    return _make

from __future__ import annotations
import logging
import os
import re
import shlex
import sys
from typing import Dict, List, Set

import psutil

from .host import CommandRunner, run_checked
from .models import ProcessDescriptor

log = logging.getLogger(__name__)

SOCKET_LINK_RE = re.compile(r"^socket:\[(?P<inode>\d+)\]$")
PS_RE = re.compile(r"^\s*(?P<pid>\S+)\s+(?P<stat>\S+)\s+(?P<uid>\S+)\s+(?P<cmd>.*)$")
# "lrwx------ 1 0 0 64 Dec  6 13:56 /proc/1/fd/12 -> socket:[37364]"
LS_SOCKET_RE = re.compile(r"/proc/(?P<pid>\d+)/fd/\d+\s+->\s+socket:\[(?P<inode>\d+)\]")

PS_CMD = "ps axo pid,stat,uid,args"
FD_LIST_CMD = "find /proc -maxdepth 3 -path '/proc/*/fd/*' -exec ls -n {} +"


def socket_inodes(pid: int, proc_dir: str = "/proc") -> frozenset:
    """Inodes of the sockets held open by ``pid`` (Linux only)."""
    inodes: Set[int] = set()
    fd_dir = os.path.join(proc_dir, str(pid), "fd")
    try:
        entries = list(os.scandir(fd_dir))
    except (FileNotFoundError, PermissionError, ProcessLookupError, NotADirectoryError):
        return frozenset()
    for entry in entries:
        try:
            target = os.readlink(entry.path)
        except OSError:
            continue
        m = SOCKET_LINK_RE.match(target)
        if m:
            inodes.add(int(m.group("inode")))
    return frozenset(inodes)


class PsutilProcessManager:
    """Processes of the local machine."""

    def __init__(self, with_sockets: bool = sys.platform.startswith("linux")):
        self.with_sockets = with_sockets

    def list(self) -> List[ProcessDescriptor]:
        procs: List[ProcessDescriptor] = []
        for p in psutil.process_iter(["pid", "name", "exe", "cmdline", "status"]):
            info = p.info
            pid = info["pid"]
            cmd = " ".join(info.get("cmdline") or [])
            procs.append(ProcessDescriptor(
                pid=pid,
                executable=info.get("exe") or info.get("name") or "",
                command=cmd or info.get("name") or "",
                state=info.get("status") or "",
                socket_inodes=socket_inodes(pid) if self.with_sockets else frozenset(),
            ))
        return procs


def executable_of(command: str) -> str:
    try:
        args = shlex.split(command)
    except ValueError:
        return ""
    return args[0] if args else ""


def parse_ps(output: str) -> List[ProcessDescriptor]:
    procs: List[ProcessDescriptor] = []
    for line in output.splitlines():
        m = PS_RE.match(line)
        if not m or m.group("pid") == "PID":
            continue
        try:
            pid = int(m.group("pid"))
        except ValueError:
            log.error("cannot parse ps pid %r", m.group("pid"))
            continue
        cmd = m.group("cmd").strip()
        procs.append(ProcessDescriptor(pid=pid, executable=executable_of(cmd), command=cmd,
                                       state=m.group("stat")))
    return procs


def parse_fd_listing(output: str) -> Dict[int, Set[int]]:
    sockets: Dict[int, Set[int]] = {}
    for line in output.splitlines():
        m = LS_SOCKET_RE.search(line)
        if m:
            sockets.setdefault(int(m.group("pid")), set()).add(int(m.group("inode")))
    return sockets


class PsProcessManager:
    """Processes listed through ``ps``; socket inodes through ``/proc/*/fd``."""

    def __init__(self, runner: CommandRunner, with_sockets: bool = True):
        self.runner = runner
        self.with_sockets = with_sockets

    def list(self) -> List[ProcessDescriptor]:
        procs = parse_ps(run_checked(self.runner, PS_CMD).stdout)
        if not self.with_sockets:
            return procs
        res = self.runner.run(FD_LIST_CMD)
        if res.exit_status != 0:
            # unreadable fds of other users' processes; keep what was listed
            log.warning("incomplete fd listing (exit %d): %s", res.exit_status, res.stderr.strip()[:200])
        sockets = parse_fd_listing(res.stdout)
        return [
            ProcessDescriptor(pid=p.pid, executable=p.executable, command=p.command, state=p.state,
                              socket_inodes=frozenset(sockets.get(p.pid, ())))
            for p in procs
        ]

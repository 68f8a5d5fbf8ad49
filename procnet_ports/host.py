from __future__ import annotations
import logging
import os
import platform
import shlex
import subprocess
from dataclasses import dataclass
from typing import IO, Optional, Protocol

from .errors import CommandExecutionError

log = logging.getLogger(__name__)

FAMILIES = {
    "Linux": "linux",
    "Windows": "windows",
    "Darwin": "darwin",
    "FreeBSD": "freebsd",
}


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str = ""
    exit_status: int = 0


class CommandRunner(Protocol):
    def run(self, cmd: str) -> CommandResult: ...


class FileSystem(Protocol):
    def open(self, path: str) -> IO[str]: ...
    def stat(self, path: str) -> os.stat_result: ...


class ProcessManager(Protocol):
    def list(self) -> list: ...


class UserManager(Protocol):
    def list(self) -> list: ...


@dataclass
class Host:
    """Everything the engine needs from the machine being inspected."""
    platform: str
    runner: CommandRunner
    fs: FileSystem
    processes: ProcessManager
    users: UserManager


def run_checked(runner: CommandRunner, cmd: str) -> CommandResult:
    res = runner.run(cmd)
    if res.exit_status != 0:
        raise CommandExecutionError(cmd, res.exit_status, res.stderr)
    return res


class LocalCommandRunner:
    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, cmd: str) -> CommandResult:
        log.debug("run: %s", cmd)
        try:
            p = subprocess.run(shlex.split(cmd, posix=os.name != "nt"), capture_output=True,
                               text=True, timeout=self.timeout)
        except FileNotFoundError as err:
            return CommandResult(stdout="", stderr=str(err), exit_status=127)
        return CommandResult(stdout=p.stdout, stderr=p.stderr, exit_status=p.returncode)


class LocalFileSystem:
    def open(self, path: str) -> IO[str]:
        return open(path, "r", encoding="utf-8", errors="replace")

    def stat(self, path: str) -> os.stat_result:
        return os.stat(path)


def detect_family(system: Optional[str] = None) -> str:
    system = system or platform.system()
    return FAMILIES.get(system, system.lower())


def local_host(family: Optional[str] = None, process_source: str = "psutil", user_source: str = "pwd") -> Host:
    """Host bound to this machine.

    ``process_source="ps"`` reads processes from ps and /proc/*/fd listings
    instead of psutil; ``user_source="passwd"`` parses /etc/passwd instead
    of asking the pwd module.
    """
    from .processes import PsProcessManager, PsutilProcessManager
    from .users import PasswdUserManager, PwdUserManager

    runner = LocalCommandRunner()
    fs = LocalFileSystem()
    processes = PsProcessManager(runner) if process_source == "ps" else PsutilProcessManager()
    users = PasswdUserManager(fs) if user_source == "passwd" else PwdUserManager()
    return Host(
        platform=family or detect_family(),
        runner=runner,
        fs=fs,
        processes=processes,
        users=users,
    )
from __future__ import annotations
from typing import List, Optional

from ..config import CFG
from ..errors import UnsupportedPlatformError
from ..host import Host
from ..models import SocketRecord
from . import linux, lsof, windows

LSOF_FAMILIES = ("darwin", "freebsd")


def collect(family: str, host: Host, cfg: Optional[CFG] = None) -> List[SocketRecord]:
    """Enumerate the sockets of ``host`` with the collector for its platform family."""
    cfg = cfg or CFG()
    if family == "linux":
        return linux.collect(host.fs, cfg.proc_net_dir, cfg.tolerate_missing_ipv6)
    if family == "windows":
        return windows.collect(host.runner, cfg.powershell)
    # both macOS and FreeBSD ship (or can install) lsof
    if family in LSOF_FAMILIES:
        return lsof.collect(host.runner, cfg.lsof_command)
    raise UnsupportedPlatformError(family)

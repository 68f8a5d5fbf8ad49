from __future__ import annotations
import dataclasses
import logging
from typing import List, Optional

from .collectors import collect
from .config import CFG
from .errors import NoInodeError
from .host import Host
from .models import ProcessDescriptor, SocketRecord, STATE_LISTEN
from .registry import Memo, ProcessRegistry, UserRegistry

log = logging.getLogger(__name__)


class Ports:
    """Sockets of one host, with their owning processes and users.

    ``list()`` runs the platform collector once per instance; later calls
    and ``listening()`` reuse that snapshot.
    """

    def __init__(self, host: Host, processes: Optional[ProcessRegistry] = None,
                 users: Optional[UserRegistry] = None, cfg: Optional[CFG] = None):
        self.host = host
        self.cfg = cfg or CFG()
        self.processes = processes or ProcessRegistry(host.processes)
        self.users = users or UserRegistry(host.users)
        self._list: Memo[List[SocketRecord]] = Memo(self._collect)

    @property
    def family(self) -> str:
        return self.host.platform

    def _collect(self) -> List[SocketRecord]:
        records = collect(self.family, self.host, self.cfg)
        if self.family == "linux":
            records = self._correlate_linux(records)
        elif self.family == "windows":
            records = [dataclasses.replace(r, process=self.processes.by_pid(r.pid)) for r in records]
        else:
            records = [dataclasses.replace(r, process=self.processes.by_pid(r.pid),
                                           user=self.users.by_uid(r.uid)) for r in records]
        log.info("%s: %d sockets", self.family, len(records))
        return records

    def _correlate_linux(self, records: List[SocketRecord]) -> List[SocketRecord]:
        res = []
        for r in records:
            proc = self.processes.by_inode(r.inode) if self.cfg.resolve_processes else None
            res.append(dataclasses.replace(r, process=proc, user=self.users.by_uid(r.uid)))
        return res

    def list(self) -> List[SocketRecord]:
        return list(self._list.get())

    def listening(self) -> List[SocketRecord]:
        return [r for r in self._list.get() if r.state == STATE_LISTEN]

    def process(self, record: SocketRecord) -> Optional[ProcessDescriptor]:
        if self.family != "linux":
            return record.process
        if not record.inode:
            raise NoInodeError(record)
        return self.processes.by_inode(record.inode)


class ScanSession:
    """One inspection of a host; the registries are shared by everything created from it."""

    def __init__(self, host: Host, cfg: Optional[CFG] = None):
        self.host = host
        self.cfg = cfg or CFG()
        self.processes = ProcessRegistry(host.processes)
        self.users = UserRegistry(host.users)
        self.ports = Ports(host, self.processes, self.users, self.cfg)

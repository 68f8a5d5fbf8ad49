from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Generic, Mapping, Optional, TypeVar

from .errors import RegistryPopulationError
from .models import ProcessDescriptor, UserDescriptor

log = logging.getLogger(__name__)

T = TypeVar("T")

NOT_COMPUTED = "not computed"
COMPUTED = "computed"
FAILED = "failed"


class Memo(Generic[T]):
    """Compute-once value with a sticky error.

    The first caller runs ``compute`` under the lock while concurrent
    callers wait. Afterwards the stored value is returned (or the stored
    error raised again) without taking the lock.
    """

    def __init__(self, compute: Callable[[], T], wrap_error: Optional[Callable[[Exception], Exception]] = None):
        self._compute = compute
        self._wrap_error = wrap_error
        self._lock = threading.Lock()
        self._state = NOT_COMPUTED
        self._value: Optional[T] = None
        self._error: Optional[Exception] = None
        self._tb = None

    @property
    def state(self) -> str:
        return self._state

    def get(self) -> T:
        if self._state == NOT_COMPUTED:
            with self._lock:
                if self._state == NOT_COMPUTED:
                    self._populate()
        if self._state == FAILED:
            # re-raising appends frames to __traceback__, restore the original first
            raise self._error.with_traceback(self._tb)
        return self._value

    def _populate(self) -> None:
        try:
            value = self._compute()
        except Exception as err:
            if self._wrap_error is not None:
                wrapped = self._wrap_error(err)
                wrapped.__cause__ = err
                err = wrapped
            self._error = err
            self._tb = err.__traceback__
            self._state = FAILED
            return
        self._value = value
        self._state = COMPUTED


@dataclass(frozen=True)
class ProcessIndex:
    by_pid: Mapping[int, ProcessDescriptor]
    by_inode: Mapping[int, ProcessDescriptor]


class ProcessRegistry:
    def __init__(self, manager):
        self._manager = manager
        self._memo: Memo[ProcessIndex] = Memo(
            self._build, lambda err: RegistryPopulationError("processes", err))

    def _build(self) -> ProcessIndex:
        procs = list(self._manager.list())
        by_pid = {}
        by_inode = {}
        for p in procs:
            by_pid[p.pid] = p
            for inode in p.socket_inodes:
                by_inode[inode] = p
        log.debug("process registry: %d processes, %d socket inodes", len(by_pid), len(by_inode))
        return ProcessIndex(by_pid=MappingProxyType(by_pid), by_inode=MappingProxyType(by_inode))

    @property
    def state(self) -> str:
        return self._memo.state

    def list(self) -> ProcessIndex:
        return self._memo.get()

    def by_pid(self, pid: Optional[int]) -> Optional[ProcessDescriptor]:
        if pid is None:
            return None
        return self.list().by_pid.get(pid)

    def by_inode(self, inode: Optional[int]) -> Optional[ProcessDescriptor]:
        if not inode:
            return None
        return self.list().by_inode.get(inode)


class UserRegistry:
    def __init__(self, manager):
        self._manager = manager
        self._memo: Memo[Mapping[int, UserDescriptor]] = Memo(
            self._build, lambda err: RegistryPopulationError("users", err))

    def _build(self) -> Mapping[int, UserDescriptor]:
        users = {u.uid: u for u in self._manager.list()}
        log.debug("user registry: %d users", len(users))
        return MappingProxyType(users)

    @property
    def state(self) -> str:
        return self._memo.state

    def list(self) -> Mapping[int, UserDescriptor]:
        return self._memo.get()

    def by_uid(self, uid: Optional[int]) -> Optional[UserDescriptor]:
        if uid is None:
            return None
        return self.list().get(uid)
from __future__ import annotations
import logging
from typing import List

from .host import FileSystem
from .models import UserDescriptor

log = logging.getLogger(__name__)


def parse_passwd(text: str) -> List[UserDescriptor]:
    users: List[UserDescriptor] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(":")
        if len(parts) < 3:
            continue
        try:
            uid = int(parts[2])
        except ValueError:
            log.error("cannot parse passwd uid %r", parts[2])
            continue
        users.append(UserDescriptor(uid=uid, name=parts[0]))
    return users


class PasswdUserManager:
    def __init__(self, fs: FileSystem, path: str = "/etc/passwd"):
        self.fs = fs
        self.path = path

    def list(self) -> List[UserDescriptor]:
        with self.fs.open(self.path) as f:
            return parse_passwd(f.read())


class PwdUserManager:
    """Users of the local machine; empty where there is no ``pwd`` (Windows)."""

    def list(self) -> List[UserDescriptor]:
        try:
            import pwd
        except ImportError:
            return []
        return [UserDescriptor(uid=e.pw_uid, name=e.pw_name) for e in pwd.getpwall()]

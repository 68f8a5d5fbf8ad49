from __future__ import annotations


class PortsError(Exception):
    """Base class for everything the socket engine raises."""


class UnsupportedPlatformError(PortsError):
    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"could not detect suitable ports manager for platform: {platform or '?'}")


class CollectorError(PortsError):
    """A socket table could not be read."""


class CommandExecutionError(CollectorError):
    def __init__(self, command: str, exit_status: int, stderr: str = ""):
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr
        msg = f"command '{command}' failed with exit status {exit_status}"
        if stderr.strip():
            msg += f": {stderr.strip()}"
        super().__init__(msg)


class MalformedRecordError(CollectorError):
    def __init__(self, field: str, value: str, source: str = ""):
        self.field = field
        self.value = value
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"failed to parse {field} '{value}'{where}")


class RegistryPopulationError(PortsError):
    def __init__(self, registry: str, cause: BaseException):
        self.registry = registry
        self.cause = cause
        super().__init__(f"failed to list {registry}: {cause}")


class NoInodeError(PortsError):
    def __init__(self, record=None):
        self.record = record
        super().__init__("no inode available to resolve process for this port")

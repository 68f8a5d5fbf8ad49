from .errors import (
    PortsError, UnsupportedPlatformError, CollectorError, CommandExecutionError,
    MalformedRecordError, RegistryPopulationError, NoInodeError,
)
from .host import Host, CommandResult, local_host
from .models import SocketRecord, ProcessDescriptor, UserDescriptor
from .ports import Ports, ScanSession
from .registry import Memo, ProcessRegistry, UserRegistry

__version__ = "0.1.0"

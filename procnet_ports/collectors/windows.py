from __future__ import annotations
import base64
import json
import logging
from typing import List, Union

from ..errors import MalformedRecordError
from ..host import CommandRunner, run_checked
from ..models import SocketRecord, TCP_STATES, STATE_UNKNOWN
from ..utils.net import bracket

log = logging.getLogger(__name__)

NET_TCP_CONNECTION = "Get-NetTCPConnection | ConvertTo-Json"

# MSFT_NetTCPConnection.State
WINDOWS_STATES = {
    1: "Closed", 2: "Listen", 3: "SynSent", 4: "SynReceived", 5: "Established",
    6: "FinWait1", 7: "FinWait2", 8: "CloseWait", 9: "Closing", 10: "LastAck",
    11: "TimeWait", 12: "DeleteTCB", 100: "Bound",
}

STATE_MAP = {
    "Listen": TCP_STATES[10],
    "Closed": TCP_STATES[7],
    "SynSent": TCP_STATES[2],
    "SynReceived": TCP_STATES[3],
    "Established": TCP_STATES[1],
    "FinWait1": TCP_STATES[4],
    "FinWait2": TCP_STATES[5],
    "CloseWait": TCP_STATES[8],
    "Closing": TCP_STATES[11],
    "LastAck": TCP_STATES[9],
    "TimeWait": TCP_STATES[6],
    # no unix equivalent
    "DeleteTCB": "deletetcb",
    "Bound": "bound",
}


def encode_powershell(script: str, powershell: str = "powershell") -> str:
    encoded = base64.b64encode(script.encode("utf-16-le")).decode("ascii")
    return f"{powershell} -NoProfile -NonInteractive -EncodedCommand {encoded}"


def state_name(state: Union[int, str, None]) -> str:
    if isinstance(state, str) and not state.isdigit():
        name = state
    else:
        try:
            name = WINDOWS_STATES.get(int(state))
        except (TypeError, ValueError):
            name = None
    return STATE_MAP.get(name, STATE_UNKNOWN)


def _int(entry: dict, key: str, source: str) -> int:
    value = entry.get(key)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedRecordError(key, str(value), source) from None


def _address(addr: str) -> str:
    return bracket(addr) if ":" in addr else addr


def parse_net_tcp_connections(text: str, source: str = NET_TCP_CONNECTION) -> List[SocketRecord]:
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except ValueError as err:
        raise MalformedRecordError("json", text[:40], source) from err
    # a single connection is not wrapped in a list
    if isinstance(data, dict):
        data = [data]

    records: List[SocketRecord] = []
    for entry in data:
        local = str(entry.get("LocalAddress") or "")
        remote = str(entry.get("RemoteAddress") or "")
        records.append(SocketRecord(
            protocol="tcp6" if ":" in local else "tcp4",
            address=_address(local),
            port=_int(entry, "LocalPort", source),
            remote_address=_address(remote),
            remote_port=_int(entry, "RemotePort", source),
            state=state_name(entry.get("State")),
            pid=_int(entry, "OwningProcess", source),
        ))
    return records


def collect(runner: CommandRunner, powershell: str = "powershell") -> List[SocketRecord]:
    res = run_checked(runner, encode_powershell(NET_TCP_CONNECTION, powershell))
    records = parse_net_tcp_connections(res.stdout)
    log.debug("Get-NetTCPConnection: %d sockets", len(records))
    return records

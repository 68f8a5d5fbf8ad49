from __future__ import annotations
import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .errors import PortsError

log = logging.getLogger(__name__)


@dataclass
class CFG:
    platform: Optional[str] = None          # None: detect from the running system
    proc_net_dir: str = "/proc/net"
    tolerate_missing_ipv6: bool = True
    resolve_processes: bool = True
    process_source: str = "psutil"          # psutil | ps
    user_source: str = "pwd"                # pwd | passwd
    lsof_command: str = "lsof -nP -i -F"
    powershell: str = "powershell"
    log_level: str = "WARNING"
    host: str = "127.0.0.1"
    port: int = 8765


PROCESS_SOURCES = ("psutil", "ps")
USER_SOURCES = ("pwd", "passwd")
NULLABLE = {"platform"}

TRUE_WORDS = {"true", "yes", "on", "1"}
FALSE_WORDS = {"false", "no", "off", "0"}


class ConfigError(PortsError):
    pass


def to_abs_path(p: str) -> Path:
    pp = Path(p).expanduser()
    if pp.is_absolute():
        return pp.resolve()
    return (Path.cwd() / pp).resolve()


def _coerce(name: str, value, default):
    if value is None and name in NULLABLE:
        return None
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in TRUE_WORDS | FALSE_WORDS:
            return value.lower() in TRUE_WORDS
    elif isinstance(default, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
    elif isinstance(value, str):
        return value
    expected = "str" if default is None else type(default).__name__
    raise ConfigError(f"config key {name} expects {expected}, got {value!r}")


def validate(cfg: CFG) -> CFG:
    if not isinstance(logging.getLevelName(cfg.log_level.upper()), int):
        raise ConfigError(f"unknown log level: {cfg.log_level}")
    cfg.log_level = cfg.log_level.upper()
    if cfg.process_source not in PROCESS_SOURCES:
        raise ConfigError(f"process_source must be one of {', '.join(PROCESS_SOURCES)}")
    if cfg.user_source not in USER_SOURCES:
        raise ConfigError(f"user_source must be one of {', '.join(USER_SOURCES)}")
    if not 0 <= cfg.port <= 0xFFFF:
        raise ConfigError(f"port out of range: {cfg.port}")
    return cfg


def load_config(path: Optional[str]) -> CFG:
    """Read a YAML or JSON config file.

    Unknown keys are rejected; values are checked against the CFG defaults,
    so ``resolve_processes: "off"`` is accepted but ``port: http`` is not.
    """
    cfg = CFG()
    if not path:
        return cfg
    p = to_abs_path(path)
    if not p.exists():
        raise ConfigError(f"config not found: {p}")
    txt = p.read_text(encoding="utf-8")
    try:
        data = json.loads(txt) if p.suffix == ".json" else yaml.safe_load(txt)
    except (ValueError, yaml.YAMLError) as err:
        raise ConfigError(f"cannot parse config {p}: {err}") from err
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError(f"config {p} must be a mapping")

    defaults = {f.name: f.default for f in fields(CFG)}
    unknown = set(data) - set(defaults)
    if unknown:
        raise ConfigError(f"unknown config keys in {p}: {', '.join(sorted(unknown))}")
    for k, v in data.items():
        setattr(cfg, k, _coerce(k, v, defaults[k]))
    log.debug("config loaded from %s", p)
    return validate(cfg)


def init_cfg_from_args(args) -> CFG:
    cfg = load_config(getattr(args, "config", None))
    if getattr(args, "platform", None):
        cfg.platform = args.platform
    if getattr(args, "proc_net_dir", None):
        cfg.proc_net_dir = args.proc_net_dir
    if getattr(args, "no_resolve", False):
        cfg.resolve_processes = False
    if getattr(args, "process_source", None):
        cfg.process_source = args.process_source
    if getattr(args, "user_source", None):
        cfg.user_source = args.user_source
    if getattr(args, "log_level", None):
        cfg.log_level = args.log_level
    if getattr(args, "host", None):
        cfg.host = args.host
    if getattr(args, "port", None):
        cfg.port = _coerce("port", args.port, CFG.port)
    return validate(cfg)

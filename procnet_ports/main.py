from __future__ import annotations
import argparse
import json
import logging
import sys

from .config import init_cfg_from_args
from .errors import PortsError
from .host import local_host
from .ports import ScanSession


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description='List the sockets of this host with their owning processes')
    ap.add_argument('--listening', action='store_true', help='only sockets in listen state')
    ap.add_argument('--json', action='store_true', help='print JSON instead of a table')
    ap.add_argument('--config', type=str, default=None, help='YAML or JSON config file')
    ap.add_argument('--platform', type=str, default=None, help='override the detected platform family (linux, windows, darwin, freebsd)')
    ap.add_argument('--proc-net-dir', type=str, default=None, help='directory holding tcp/udp/tcp6/udp6 tables (linux)')
    ap.add_argument('--no-resolve', action='store_true', help='do not correlate sockets with processes on linux')
    ap.add_argument('--process-source', choices=('psutil', 'ps'), default=None, help='where process and socket inode data comes from')
    ap.add_argument('--user-source', choices=('pwd', 'passwd'), default=None, help='where user names come from')
    ap.add_argument('--log-level', type=str, default=None)
    ap.add_argument('--serve', action='store_true', help='serve the JSON API instead of printing')
    ap.add_argument('--host', type=str, default=None)
    ap.add_argument('--port', type=int, default=None)
    return ap.parse_args(argv)


def format_record(r) -> str:
    proc = f"{r.process.pid}/{r.process.executable}" if r.process else "-"
    user = r.user.name if r.user else "-"
    return (f"{r.protocol:<5} {r.address + ':' + str(r.port):<28} "
            f"{r.remote_address + ':' + str(r.remote_port):<28} {r.state:<12} {user:<10} {proc}")


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        cfg = init_cfg_from_args(args)
    except PortsError as err:
        print(f"[error] {err}", file=sys.stderr)
        return 1
    logging.basicConfig(level=cfg.log_level.upper(), format="[%(levelname)s] %(name)s: %(message)s")

    if args.serve:
        from .web import create_app
        app = create_app(cfg)
        print(f"[*] Serving on http://{cfg.host}:{cfg.port}")
        app.run(host=cfg.host, port=cfg.port, debug=False, use_reloader=False)
        return 0

    session = ScanSession(local_host(cfg.platform, cfg.process_source, cfg.user_source), cfg)
    try:
        records = session.ports.listening() if args.listening else session.ports.list()
    except PortsError as err:
        print(f"[error] {err}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
    else:
        for r in records:
            print(format_record(r))
    return 0


if __name__ == '__main__':
    sys.exit(main())

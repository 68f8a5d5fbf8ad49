from __future__ import annotations
from typing import Callable, Optional

from flask import Flask, current_app, jsonify

from ..config import CFG
from ..errors import NoInodeError, PortsError
from ..host import Host, local_host
from ..ports import ScanSession


def create_app(cfg: CFG, host_factory: Optional[Callable[[], Host]] = None) -> Flask:
    app = Flask(__name__)
    if host_factory is None:
        host_factory = lambda: local_host(cfg.platform, cfg.process_source, cfg.user_source)

    def session() -> ScanSession:
        # every request is its own snapshot
        return ScanSession(host_factory(), cfg)

    @app.errorhandler(PortsError)
    def ports_error(err: PortsError):
        status = 400 if isinstance(err, NoInodeError) else 500
        current_app.logger.warning("%s: %s", type(err).__name__, err)
        return jsonify({"error": type(err).__name__, "message": str(err)}), status

    @app.get("/api/ports")
    def api_ports():
        return jsonify([r.to_dict() for r in session().ports.list()])

    @app.get("/api/ports/listening")
    def api_listening():
        return jsonify([r.to_dict() for r in session().ports.listening()])

    @app.get("/api/ports/<int:port>/process")
    def api_port_process(port: int):
        ports = session().ports
        owners = {}
        for r in ports.list():
            if r.port != port:
                continue
            proc = ports.process(r) if r.inode or ports.family != "linux" else None
            if proc is not None:
                owners[proc.pid] = proc.to_dict()
        return jsonify({"port": port, "processes": list(owners.values())})

    return app

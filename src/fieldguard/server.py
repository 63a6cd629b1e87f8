"""HTTP sidecar server for fieldguard.

Runs as a lightweight stdlib HTTP server on localhost so a host that is
not written in Python can use the engine without spawning a process per
keystroke.

Endpoints:
    GET  /health       Health check and engine stats
    POST /scan         {"text": ..., "field": {...}} → {"spans": [...]}
    POST /mask         {"text": ..., "field": {...}} → {"text": masked, "count": n}
    POST /patterns     {"patterns": [...]} → registration report

All endpoints expect/return JSON.  The engine's sweeper runs for the
lifetime of the server.
"""

from __future__ import annotations
import json
import logging
import os
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from .config import create_engine, load_from_yaml
from .engine import Engine, Sweeper
from .types import FieldDescriptor

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("FIELDGUARD_PORT", "18792"))


def _field(body: dict[str, Any]) -> FieldDescriptor | None:
    data = body.get("field")
    return FieldDescriptor.from_dict(data) if isinstance(data, dict) else None


def make_handler(engine: Engine) -> type[BaseHTTPRequestHandler]:
    """Build a request handler class bound to one engine."""

    class FieldGuardHandler(BaseHTTPRequestHandler):
        """HTTP request handler for the fieldguard sidecar."""

        def _read_json(self) -> dict[str, Any]:
            length = int(self.headers.get("Content-Length", 0))
            body = self.rfile.read(length).decode("utf-8")
            data = json.loads(body) if body else {}
            if not isinstance(data, dict):
                raise ValueError("request body must be a JSON object")
            return data

        def _respond(self, status: int, data: Any) -> None:
            body = json.dumps(data, ensure_ascii=False).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug("%s %s", self.address_string(), format % args)

        def do_GET(self) -> None:
            if self.path == "/health":
                self._respond(200, {"status": "ok", **engine.stats})
            else:
                self._respond(404, {"error": "not found"})

        def do_POST(self) -> None:
            try:
                body = self._read_json()
            except ValueError as e:
                self._respond(400, {"error": str(e)})
                return

            try:
                if self.path == "/scan":
                    spans = engine.scan(str(body.get("text", "")), _field(body))
                    self._respond(200, {"spans": [s.to_dict() for s in spans]})

                elif self.path == "/mask":
                    text = str(body.get("text", ""))
                    spans = engine.scan(text, _field(body))
                    self._respond(200, {"text": engine.mask_text(text, spans), "count": len(spans)})

                elif self.path == "/patterns":
                    patterns = body.get("patterns", [])
                    if not isinstance(patterns, list):
                        self._respond(400, {"error": "patterns must be a list"})
                        return
                    report = engine.register_custom_patterns(patterns)
                    self._respond(200, {"ok": report.ok, **report.to_dict()})

                else:
                    self._respond(404, {"error": "not found"})

            except Exception as e:
                logger.exception("request to %s failed", self.path)
                self._respond(500, {"error": str(e)})

    return FieldGuardHandler


def serve(port: int = DEFAULT_PORT, engine: Engine | None = None) -> None:
    """Start the fieldguard HTTP sidecar."""
    engine = engine or create_engine({})
    server = ThreadingHTTPServer(("127.0.0.1", port), make_handler(engine))
    print(f"fieldguard sidecar listening on http://127.0.0.1:{port}")
    print(f"  custom patterns: {engine.stats['custom_patterns']}")
    with Sweeper(engine):
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down...")
        finally:
            server.server_close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="fieldguard HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--config", default=os.environ.get("FIELDGUARD_CONFIG", ""))
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    serve(port=args.port, engine=create_engine(load_from_yaml(args.config) if args.config else {}))

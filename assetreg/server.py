# assetreg/server.py
"""
HTTP server for the asset registry.

Endpoints:
    POST   /assets                          - Create asset
    GET    /assets/:id/description          - Read description
    GET    /assets/:id/access/:accessor     - Check access
    GET    /assets/:id/tags/count           - Count tags
    POST   /assets/:id/transfer             - Transfer ownership
    PUT    /assets/:id                      - Update metadata
    DELETE /assets/:id                      - Delete asset
    GET    /health                          - Health check

The caller of a mutation is the principal whose signature verifies, or
the X-Principal header as-is when signatures are not required.
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

from .errors import ErrorKind, Result
from .identity import HEADER_PRINCIPAL, PrincipalStore, verify_request
from .registry import AssetRegistry

logger = logging.getLogger(__name__)

STATUS_FOR_ERROR = {
    ErrorKind.INVALID_FIELD: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
}


class RegistryServer:
    """
    HTTP server for an AssetRegistry.

    Usage:
        server = RegistryServer(AssetRegistry(), port=8080)
        server.start()  # Blocking
    """

    def __init__(
        self,
        registry: AssetRegistry,
        principals: Optional[PrincipalStore] = None,
        host: str = "127.0.0.1",
        port: int = 8080,
        require_signatures: bool = False,
        signature_max_age: float = 300,
    ):
        if require_signatures and principals is None:
            raise ValueError("require_signatures needs a PrincipalStore")
        self.registry = registry
        self.principals = principals
        self.host = host
        self.port = port
        self.require_signatures = require_signatures
        self.signature_max_age = signature_max_age
        self._httpd: Optional[ThreadingHTTPServer] = None

    def authenticate(self, headers, method: str, path: str, body: bytes) -> Optional[str]:
        """Resolve the caller identity for a request, or None."""
        if self.require_signatures:
            return verify_request(
                headers, method, path, body,
                self.principals, self.signature_max_age,
            )
        return headers.get(HEADER_PRINCIPAL) or None

    def _create_handler(server_instance):
        """Create request handler with access to server instance."""

        class RequestHandler(BaseHTTPRequestHandler):
            server_ref = server_instance

            def log_message(self, format, *args):
                logger.debug(format % args)

            def _send_json(self, data: Any, status: int = 200):
                body = json.dumps(data).encode()
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _send_error(self, message: str, status: int = 400):
                self._send_json({"error": message}, status)

            def _send_result(self, result: Result, data: Dict[str, Any] = None, status: int = 200):
                if result.success:
                    self._send_json(data if data is not None else {"status": "ok"}, status)
                else:
                    self._send_json(result.error.to_dict(), STATUS_FOR_ERROR[result.kind])

            def _read_body(self) -> bytes:
                content_length = int(self.headers.get("Content-Length", 0))
                return self.rfile.read(content_length) if content_length else b""

            def _route(self):
                """Split the path into (segments, asset_id)."""
                parsed = urlparse(self.path)
                parts = [unquote(p) for p in parsed.path.strip("/").split("/") if p]
                if len(parts) >= 2 and parts[0] == "assets":
                    try:
                        return parts, int(parts[1])
                    except ValueError:
                        return parts, None
                return parts, None

            def _read_json(self):
                """Read a JSON object body. Returns (raw, data) or (raw, None) after replying 400."""
                body = self._read_body()
                try:
                    data = json.loads(body or b"{}")
                except ValueError as e:
                    self._send_error(f"Invalid JSON: {e}")
                    return body, None
                if not isinstance(data, dict):
                    self._send_error("Expected a JSON object")
                    return body, None
                return body, data

            def _caller(self, body: bytes) -> Optional[str]:
                caller = self.server_ref.authenticate(self.headers, self.command, self.path, body)
                if caller is None:
                    self._send_error("Authentication required", 401)
                return caller

            def _metadata(self, data: Dict[str, Any]):
                return (
                    data.get("title"),
                    data.get("size"),
                    data.get("description"),
                    data.get("tags"),
                )

            def do_GET(self):
                registry = self.server_ref.registry
                parts, asset_id = self._route()

                if parts == ["health"]:
                    self._send_json({"status": "ok"})
                    return

                if asset_id is None:
                    self._send_error("Not found", 404)
                    return

                rest = parts[2:]
                if rest == ["description"]:
                    result = registry.read_description(asset_id)
                    self._send_result(result, {"description": result.value})
                elif len(rest) == 2 and rest[0] == "access":
                    self._send_json({"authorized": registry.check_access(asset_id, rest[1])})
                elif rest == ["tags", "count"]:
                    result = registry.count_tags(asset_id)
                    self._send_result(result, {"count": result.value})
                else:
                    self._send_error("Not found", 404)

            def do_POST(self):
                registry = self.server_ref.registry
                parts, asset_id = self._route()
                body, data = self._read_json()
                if data is None:
                    return

                if parts == ["assets"]:
                    caller = self._caller(body)
                    if caller is None:
                        return
                    result = registry.create(caller, *self._metadata(data))
                    self._send_result(result, {"asset_id": result.value}, 201)
                elif asset_id is not None and parts[2:] == ["transfer"]:
                    caller = self._caller(body)
                    if caller is None:
                        return
                    new_creator = data.get("new_creator")
                    if not isinstance(new_creator, str) or not new_creator:
                        self._send_error("new_creator is required")
                        return
                    self._send_result(registry.transfer_ownership(caller, asset_id, new_creator))
                else:
                    self._send_error("Not found", 404)

            def do_PUT(self):
                registry = self.server_ref.registry
                parts, asset_id = self._route()
                if asset_id is None or len(parts) != 2:
                    self._send_error("Not found", 404)
                    return

                body, data = self._read_json()
                if data is None:
                    return

                caller = self._caller(body)
                if caller is None:
                    return
                self._send_result(registry.update_metadata(caller, asset_id, *self._metadata(data)))

            def do_DELETE(self):
                registry = self.server_ref.registry
                parts, asset_id = self._route()
                if asset_id is None or len(parts) != 2:
                    self._send_error("Not found", 404)
                    return

                caller = self._caller(self._read_body())
                if caller is None:
                    return
                self._send_result(registry.delete(caller, asset_id))

        return RequestHandler

    def _bind(self) -> ThreadingHTTPServer:
        if self._httpd is None:
            self._httpd = ThreadingHTTPServer((self.host, self.port), self._create_handler())
            # Port 0 asks the OS for a free port
            self.port = self._httpd.server_address[1]
        return self._httpd

    def start(self):
        """Start the HTTP server (blocking)."""
        httpd = self._bind()
        logger.info(f"Registry server starting on {self.host}:{self.port}")
        print(f"Registry server running on http://{self.host}:{self.port}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down...")
        finally:
            httpd.server_close()

    def start_background(self) -> threading.Thread:
        """Start the server in a background thread. The port is bound on return."""
        httpd = self._bind()
        logger.info(f"Registry server starting on {self.host}:{self.port}")
        thread = threading.Thread(target=httpd.serve_forever)
        thread.daemon = True
        thread.start()
        return thread

    def stop(self):
        """Stop a server started with start_background()."""
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None

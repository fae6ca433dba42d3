# assetreg/client.py
"""
Client SDK for the registry server.

Usage:
    principal = PrincipalStore("~/.assetreg/principals").get("alice")
    client = RegistryClient("http://localhost:8080", principal=principal)

    asset_id = client.create("Map v1", 1024, "Initial survey", ["geo", "v1"])
    client.check_access(asset_id, "alice")  # True
"""

import json
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .errors import ErrorKind, OperationError, RegistryError
from .identity import HEADER_PRINCIPAL, Principal, sign_request

_KINDS = {kind.value for kind in ErrorKind}


class RegistryClient:
    """
    Client for the registry server.

    Args:
        base_url: Server URL (e.g., "http://localhost:8080")
        principal: Signs mutating requests when given
        caller: Plain identity header, for servers that do not check signatures
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        principal: Optional[Principal] = None,
        caller: Optional[str] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.principal = principal
        self.caller = caller
        self.timeout = timeout

    def _headers(self, method: str, path: str, body: bytes) -> dict:
        if self.principal is not None:
            return sign_request(self.principal, method, path, body)
        if self.caller is not None:
            return {HEADER_PRINCIPAL: self.caller}
        return {}

    def _request(self, method: str, path: str, data: dict = None) -> dict:
        """Make HTTP request to server."""
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode() if data is not None else b""

        headers = self._headers(method, path, body)
        if data is not None:
            headers["Content-Type"] = "application/json"

        req = Request(url, data=body or None, headers=headers, method=method)

        try:
            with urlopen(req, timeout=self.timeout) as response:
                return json.loads(response.read().decode())
        except HTTPError as e:
            error_body = e.read().decode()
            try:
                error_data = json.loads(error_body)
            except json.JSONDecodeError:
                raise RuntimeError(f"HTTP {e.code}: {error_body}")
            if error_data.get("error") in _KINDS:
                raise RegistryError(OperationError.from_dict(error_data))
            raise RuntimeError(error_data.get("error", str(e)))
        except URLError as e:
            raise ConnectionError(f"Failed to connect to server: {e}")

    def health(self) -> bool:
        """Check if server is healthy."""
        try:
            result = self._request("GET", "/health")
            return result.get("status") == "ok"
        except (RuntimeError, ConnectionError):
            return False

    def create(self, title: str, size: int, description: str, tags: List[str]) -> int:
        """Register an asset, returning its identifier."""
        result = self._request("POST", "/assets", {
            "title": title,
            "size": size,
            "description": description,
            "tags": tags,
        })
        return result["asset_id"]

    def read_description(self, asset_id: int) -> str:
        return self._request("GET", f"/assets/{asset_id}/description")["description"]

    def check_access(self, asset_id: int, accessor: str) -> bool:
        path = f"/assets/{asset_id}/access/{quote(accessor, safe='')}"
        return self._request("GET", path)["authorized"]

    def count_tags(self, asset_id: int) -> int:
        return self._request("GET", f"/assets/{asset_id}/tags/count")["count"]

    def transfer_ownership(self, asset_id: int, new_creator: str) -> None:
        self._request("POST", f"/assets/{asset_id}/transfer", {"new_creator": new_creator})

    def update_metadata(
        self,
        asset_id: int,
        title: str,
        size: int,
        description: str,
        tags: List[str],
    ) -> None:
        self._request("PUT", f"/assets/{asset_id}", {
            "title": title,
            "size": size,
            "description": description,
            "tags": tags,
        })

    def delete(self, asset_id: int) -> None:
        self._request("DELETE", f"/assets/{asset_id}")


__all__ = ["RegistryClient"]

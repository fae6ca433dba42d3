# assetreg/identity.py
"""
Principals and request signatures.

The registry itself trusts whatever caller identity it is handed. This
module is how the HTTP layer earns that trust: every principal owns an
RSA key pair, clients sign requests with the private key, and the server
checks the signature against the stored public key.
"""

import base64
import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

logger = logging.getLogger(__name__)

HEADER_PRINCIPAL = "X-Principal"
HEADER_CREATED = "X-Created"
HEADER_SIGNATURE = "X-Signature"


def _generate_keypair() -> tuple[bytes, bytes]:
    """Generate RSA key pair for signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@dataclass
class Principal:
    """
    A caller identity.

    Attributes:
        name: Unique name, also the identity token the registry records
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key (None for public-only copies)
        created_at: Timestamp of creation
    """
    name: str
    public_key: bytes
    private_key: Optional[bytes] = None
    created_at: float = field(default_factory=time.time)

    @property
    def id(self) -> str:
        return self.name

    @property
    def key_id(self) -> str:
        return f"{self.name}#main-key"

    def public_only(self) -> "Principal":
        """Copy without the private key, safe to hand to a server."""
        return Principal(
            name=self.name,
            public_key=self.public_key,
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        data = {
            "name": self.name,
            "public_key": self.public_key.decode("utf-8"),
            "created_at": self.created_at,
        }
        if self.private_key:
            data["private_key"] = self.private_key.decode("utf-8")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Principal":
        """Deserialize from storage."""
        private_key = data.get("private_key")
        return cls(
            name=data["name"],
            public_key=data["public_key"].encode("utf-8"),
            private_key=private_key.encode("utf-8") if private_key else None,
            created_at=data.get("created_at", time.time()),
        )

    @classmethod
    def create(cls, name: str) -> "Principal":
        """Create a new principal with generated keys."""
        private_pem, public_pem = _generate_keypair()
        return cls(name=name, public_key=public_pem, private_key=private_pem)


class PrincipalStore:
    """
    Persistent storage for principals.

    Structure:
        store_dir/
            principals.json   # Index of all principals
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._principals: Dict[str, Principal] = {}
        self._load()

    def _index_path(self) -> Path:
        return self.store_dir / "principals.json"

    def _load(self):
        """Load principals from disk."""
        index_path = self._index_path()
        if index_path.exists():
            try:
                with open(index_path) as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("index is not a JSON object")
                self._principals = {
                    name: Principal.from_dict(principal_data)
                    for name, principal_data in data.get("principals", {}).items()
                }
            except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Failed to load principals: {e}")
                self._principals = {}

    def _save(self):
        """Save principals to disk."""
        data = {
            "version": "1.0",
            "principals": {
                name: principal.to_dict()
                for name, principal in self._principals.items()
            },
        }
        with open(self._index_path(), "w") as f:
            json.dump(data, f, indent=2)

    def create(self, name: str) -> Principal:
        """Create and store a new principal."""
        if name in self._principals:
            raise ValueError(f"Principal {name} already exists")

        principal = Principal.create(name)
        self._principals[name] = principal
        self._save()
        logger.info(f"Created principal {name}")
        return principal

    def add_public(self, name: str, public_key_pem: bytes) -> Principal:
        """Register a principal whose private key lives elsewhere."""
        if name in self._principals:
            raise ValueError(f"Principal {name} already exists")

        principal = Principal(name=name, public_key=public_key_pem)
        self._principals[name] = principal
        self._save()
        return principal

    def get(self, name: str) -> Optional[Principal]:
        """Get a principal by name."""
        return self._principals.get(name)

    def list(self) -> List[Principal]:
        """List all principals."""
        return list(self._principals.values())

    def __contains__(self, name: str) -> bool:
        return name in self._principals

    def __len__(self) -> int:
        return len(self._principals)


def _canonicalize(data: Dict[str, Any]) -> str:
    """Sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def _signing_input(principal: str, method: str, path: str, body: bytes, created: str) -> bytes:
    return _canonicalize({
        "principal": principal,
        "method": method.upper(),
        "path": path,
        "body": hashlib.sha256(body or b"").hexdigest(),
        "created": created,
    }).encode()


def sign_request(principal: Principal, method: str, path: str, body: bytes = b"") -> Dict[str, str]:
    """
    Sign an HTTP request with the principal's private key.

    Returns:
        Headers to attach to the request
    """
    if not principal.private_key:
        raise ValueError(f"Principal {principal.name} has no private key")

    private_key = serialization.load_pem_private_key(
        principal.private_key,
        password=None,
    )
    created = str(int(time.time()))
    signature_bytes = private_key.sign(
        _signing_input(principal.name, method, path, body, created),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    return {
        HEADER_PRINCIPAL: principal.name,
        HEADER_CREATED: created,
        HEADER_SIGNATURE: base64.b64encode(signature_bytes).decode("utf-8"),
    }


def verify_request(
    headers: Mapping[str, str],
    method: str,
    path: str,
    body: bytes,
    store: PrincipalStore,
    max_age: float = 300,
) -> Optional[str]:
    """
    Verify a signed request.

    Args:
        headers: Request headers
        method: HTTP method
        path: Request path (including query)
        body: Raw request body
        store: Known principals
        max_age: Oldest acceptable signature, in seconds

    Returns:
        The authenticated principal's id, or None
    """
    name = headers.get(HEADER_PRINCIPAL)
    created = headers.get(HEADER_CREATED)
    signature = headers.get(HEADER_SIGNATURE)
    if not (name and created and signature):
        return None

    principal = store.get(name)
    if principal is None:
        logger.debug(f"Signature from unknown principal {name}")
        return None

    try:
        if abs(time.time() - int(created)) > max_age:
            logger.debug(f"Stale signature from {name}")
            return None

        public_key = serialization.load_pem_public_key(principal.public_key)
        public_key.verify(
            base64.b64decode(signature),
            _signing_input(name, method, path, body, created),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return principal.id

    except (InvalidSignature, ValueError):
        logger.debug(f"Bad signature from {name}")
        return None

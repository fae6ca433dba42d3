# assetreg - Asset metadata registry with creator-gated mutation
#
# Stores metadata records keyed by sequential identifiers, together with
# a per-asset access-grant relation.
#
# Core concepts:
# - AssetRegistry: create/read/update/transfer/delete over a key-value store
# - Result: every operation reports success or an OperationError
# - Store: key-value substrate with atomic transactions (memory or JSON file)
# - Principal: caller identity with a key pair for signed HTTP requests

from .errors import ErrorKind, OperationError, RegistryError, Result
from .validation import invalid_fields
from .store import MemoryStore, JsonStore
from .clock import SequenceClock, WallClock, make_clock
from .registry import AssetRecord, AssetRegistry
from .identity import Principal, PrincipalStore, sign_request, verify_request
from .config import RegistryConfig
from .server import RegistryServer
from .client import RegistryClient

__all__ = [
    # Core
    "AssetRegistry",
    "AssetRecord",
    "Result",
    "ErrorKind",
    "OperationError",
    "RegistryError",
    "invalid_fields",
    # Substrate
    "MemoryStore",
    "JsonStore",
    "SequenceClock",
    "WallClock",
    "make_clock",
    # Identity and transport
    "Principal",
    "PrincipalStore",
    "sign_request",
    "verify_request",
    "RegistryConfig",
    "RegistryServer",
    "RegistryClient",
]

__version__ = "0.1.0"

# assetreg/errors.py
"""
Operation results and error kinds.

Registry operations report failure as a value: each call returns a
Result whose error says what went wrong. RegistryError exists for
callers that would rather raise (client SDK, CLI).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Why an operation was rejected."""
    INVALID_FIELD = "InvalidField"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"


@dataclass
class OperationError:
    """
    A rejected operation.

    Attributes:
        kind: Error category
        message: Human-readable explanation
        fields: Offending field names (InvalidField only)
    """
    kind: ErrorKind
    message: str
    fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": self.kind.value, "message": self.message}
        if self.fields:
            data["fields"] = self.fields
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OperationError":
        return cls(
            kind=ErrorKind(data["error"]),
            message=data.get("message", ""),
            fields=data.get("fields", []),
        )


class RegistryError(Exception):
    """Raised by Result.unwrap() and the client for a failed operation."""

    def __init__(self, error: OperationError):
        super().__init__(f"{error.kind.value}: {error.message}")
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


@dataclass
class Result:
    """Outcome of a registry operation."""
    success: bool
    value: Any = None
    error: Optional[OperationError] = None

    @classmethod
    def ok(cls, value: Any = None) -> "Result":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, fields: List[str] = None) -> "Result":
        return cls(success=False, error=OperationError(kind, message, fields or []))

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def unwrap(self) -> Any:
        """Return the value, or raise RegistryError if the operation failed."""
        if not self.success:
            raise RegistryError(self.error)
        return self.value


def invalid_field(fields: List[str]) -> Result:
    return Result.fail(
        ErrorKind.INVALID_FIELD,
        f"Invalid field(s): {', '.join(fields)}",
        fields,
    )


def not_found(asset_id: int) -> Result:
    return Result.fail(ErrorKind.NOT_FOUND, f"Asset {asset_id} not found")


def forbidden(asset_id: int) -> Result:
    return Result.fail(ErrorKind.FORBIDDEN, f"Caller is not the creator of asset {asset_id}")

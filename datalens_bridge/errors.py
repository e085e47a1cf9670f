from __future__ import annotations

from typing import Any, Optional


class BridgeError(Exception):
    """Base error surfaced to tool callers as a structured value."""

    kind = "internal"

    def __init__(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data

    @property
    def method(self) -> Optional[str]:
        return (self.data or {}).get("method")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


class ConfigurationError(BridgeError):
    """Org id or credential is missing; only a restart with new env fixes it."""

    kind = "configuration"


class InvalidArgumentsError(BridgeError):
    kind = "invalid_arguments"


class TransportError(BridgeError):
    kind = "transport"


class UpstreamError(BridgeError):
    kind = "upstream"

    def __init__(self, message: str, status: int, data: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, data)
        self.status = status


class DecodeError(BridgeError):
    kind = "decode"


class CatalogError(RuntimeError):
    pass

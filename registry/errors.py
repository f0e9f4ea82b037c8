"""
Error types raised by the registry core.

- RegistryError: base, carries a code for programmatic handling
- ConflictError: duplicate mod name, duplicate version slot, edit that would
  duplicate a verified version
- NotFoundError: referenced mod, version, game version or dependency missing
- ValidationError: malformed approval payload, invalid enum value
- IntegrityError: store health check failure (reported, never auto-repaired)

The web layer maps these onto HTTP status codes; services never return
partial writes when one of them is raised.
"""
from __future__ import annotations

from typing import Any, Optional


class RegistryError(Exception):
    """Base exception for all registry errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "REGISTRY_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ConflictError(RegistryError):
    status_code = 409

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, code="CONFLICT", details=details)


class NotFoundError(RegistryError):
    status_code = 404

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, code="NOT_FOUND", details=details)


class ValidationError(RegistryError):
    status_code = 400

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name} if field_name else None,
        )
        self.field_name = field_name


class IntegrityError(RegistryError):
    """Store health check failed."""

    def __init__(self, message: str, result: Optional[str] = None) -> None:
        super().__init__(message, code="INTEGRITY_ERROR", details={"result": result} if result else None)
        self.result = result

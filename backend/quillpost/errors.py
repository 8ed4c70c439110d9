from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError


class StoreError(Exception):
    """Base class for failures raised by the storage layer."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message}


class ValidationError(StoreError):
    status_code = 400

    def __init__(self, message: str = "Validation error", errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> ValidationError:
        return cls(errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()])

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message, "errors": self.errors}


class NotFound(StoreError):
    status_code = 404


class Conflict(StoreError):
    status_code = 409


class InternalError(StoreError):
    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)

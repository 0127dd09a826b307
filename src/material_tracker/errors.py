from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FieldErrorKind(str, Enum):
    INVALID_LENGTH = "InvalidLength"
    INVALID_RANGE = "InvalidRange"
    INVALID_ENUM = "InvalidEnum"
    INVALID_TYPE = "InvalidType"
    READ_ONLY = "ReadOnly"


@dataclass(frozen=True)
class FieldError:
    field: str
    kind: FieldErrorKind
    message: str


class MaterialTrackerError(RuntimeError):
    pass


class RequestValidationError(MaterialTrackerError, ValueError):
    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        summary = "; ".join(f"{error.field}: {error.message}" for error in self.errors)
        super().__init__(summary or "Invalid material request.")

    @property
    def fields(self) -> list[str]:
        return [error.field for error in self.errors]

    def for_field(self, field: str) -> FieldError | None:
        for error in self.errors:
            if error.field == field:
                return error
        return None


class NotFoundError(MaterialTrackerError):
    pass


class UnauthenticatedError(MaterialTrackerError):
    pass


class CollaboratorError(MaterialTrackerError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyExportError(MaterialTrackerError):
    pass


class NoOpTransitionError(MaterialTrackerError):
    pass


class TransitionError(MaterialTrackerError):
    pass

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Mapping, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from material_tracker.errors import FieldError, FieldErrorKind, RequestValidationError

Status = Literal["pending", "approved", "rejected", "fulfilled"]
Priority = Literal["low", "medium", "high", "urgent"]
Unit = Literal["kg", "m", "pieces", "liters", "bags", "boxes", "sheets", "rolls"]

STATUS_VALUES: tuple[str, ...] = get_args(Status)
PRIORITY_VALUES: tuple[str, ...] = get_args(Priority)
UNIT_VALUES: tuple[str, ...] = get_args(Unit)

UNIT_LABELS = {
    "kg": "Kilograms (kg)",
    "m": "Meters (m)",
    "pieces": "Pieces",
    "liters": "Liters (L)",
    "bags": "Bags",
    "boxes": "Boxes",
    "sheets": "Sheets",
    "rolls": "Rolls",
}
PRIORITY_LABELS = {value: value.capitalize() for value in PRIORITY_VALUES}
STATUS_LABELS = {value: value.capitalize() for value in STATUS_VALUES}

MATERIAL_NAME_MIN = 2
MATERIAL_NAME_MAX = 100
NOTES_MAX = 500
QUANTITY_MIN = 0.01

READ_ONLY_FIELDS = ("id", "requested_at", "requested_by", "requested_by_name", "company_id")

FIELD_KINDS = {
    "material_name": FieldErrorKind.INVALID_LENGTH,
    "notes": FieldErrorKind.INVALID_LENGTH,
    "quantity": FieldErrorKind.INVALID_RANGE,
    "unit": FieldErrorKind.INVALID_ENUM,
    "priority": FieldErrorKind.INVALID_ENUM,
    "status": FieldErrorKind.INVALID_ENUM,
}

FIELD_MESSAGES = {
    "quantity": "Quantity must be greater than 0",
    "unit": f"Unit must be one of: {', '.join(UNIT_VALUES)}",
    "priority": f"Priority must be one of: {', '.join(PRIORITY_VALUES)}",
    "status": f"Status must be one of: {', '.join(STATUS_VALUES)}",
    "notes": f"Notes must be at most {NOTES_MAX} characters",
}

# Pydantic error types raised when a value has the wrong Python type.
TYPE_ERROR_TYPES = frozenset({"string_type", "number_type"})

TYPE_FIELD_LABELS = {
    "material_name": "Material name must be text",
    "notes": "Notes must be text",
    "project_id": "Project must be text",
    "quantity": "Quantity must be a number",
}


class Project(BaseModel):
    id: str
    name: str
    company_id: Optional[str] = None

    @field_validator("id", "company_id", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return None if v is None else str(v)


class MaterialRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    project_id: Optional[str] = None
    material_name: str
    quantity: float = Field(gt=0)
    unit: Unit
    status: Status
    priority: Priority
    requested_by: str = ""
    requested_by_name: str = ""
    requested_at: datetime
    notes: Optional[str] = None
    company_id: Optional[str] = None

    @field_validator("id", "project_id", "requested_by", "company_id", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return None if v is None else str(v)

    @field_validator("requested_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


def _reject_bool(v):
    if isinstance(v, bool):
        raise PydanticCustomError("number_type", "Input should be a number, not a boolean")
    return v


class CreateMaterialRequestInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    material_name: str = Field(min_length=MATERIAL_NAME_MIN, max_length=MATERIAL_NAME_MAX)
    quantity: float = Field(ge=QUANTITY_MIN, allow_inf_nan=False)
    unit: Unit
    priority: Priority
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX)
    project_id: Optional[str] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def reject_bool_quantity(cls, v):
        return _reject_bool(v)

    @field_validator("notes", "project_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class UpdateMaterialRequestInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    material_name: Optional[str] = Field(default=None, min_length=MATERIAL_NAME_MIN, max_length=MATERIAL_NAME_MAX)
    quantity: Optional[float] = Field(default=None, ge=QUANTITY_MIN, allow_inf_nan=False)
    unit: Optional[Unit] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX)
    project_id: Optional[str] = None

    @field_validator("material_name", "quantity", "unit", "priority", "status")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("field cannot be cleared")
        return v

    @field_validator("quantity", mode="before")
    @classmethod
    def reject_bool_quantity(cls, v):
        return _reject_bool(v)

    @field_validator("notes", "project_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def _field_message(field: str, error_type: str) -> str:
    if error_type in TYPE_ERROR_TYPES and field in TYPE_FIELD_LABELS:
        return TYPE_FIELD_LABELS[field]
    if field == "material_name":
        if error_type == "string_too_long":
            return f"Material name must be at most {MATERIAL_NAME_MAX} characters"
        return f"Material name must be at least {MATERIAL_NAME_MIN} characters"
    if field in READ_ONLY_FIELDS:
        return f"{field} cannot be changed after creation"
    if error_type == "extra_forbidden":
        return f"{field} is not an editable field"
    if field in FIELD_MESSAGES:
        return FIELD_MESSAGES[field]
    return f"{field} is invalid"


def _to_field_errors(exc: ValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    seen: set[str] = set()
    for item in exc.errors():
        loc = item.get("loc") or ("__root__",)
        field = str(loc[0])
        if field in seen:
            continue
        seen.add(field)
        if item.get("type") == "extra_forbidden" and field in READ_ONLY_FIELDS:
            kind = FieldErrorKind.READ_ONLY
        elif item.get("type") in TYPE_ERROR_TYPES:
            kind = FieldErrorKind.INVALID_TYPE
        else:
            kind = FIELD_KINDS.get(field, FieldErrorKind.INVALID_TYPE)
        errors.append(FieldError(field=field, kind=kind, message=_field_message(field, item.get("type", ""))))
    return errors


def validate_create_input(data: Mapping[str, Any] | CreateMaterialRequestInput) -> CreateMaterialRequestInput:
    if isinstance(data, CreateMaterialRequestInput):
        return data
    try:
        return CreateMaterialRequestInput.model_validate(dict(data))
    except ValidationError as exc:
        raise RequestValidationError(_to_field_errors(exc)) from exc


def validate_update_input(data: Mapping[str, Any] | UpdateMaterialRequestInput) -> UpdateMaterialRequestInput:
    if isinstance(data, UpdateMaterialRequestInput):
        return data
    try:
        return UpdateMaterialRequestInput.model_validate(dict(data))
    except ValidationError as exc:
        raise RequestValidationError(_to_field_errors(exc)) from exc


def validate_status(value: Any, field: str = "status") -> str:
    if value not in STATUS_VALUES:
        raise RequestValidationError(
            [FieldError(field=field, kind=FieldErrorKind.INVALID_ENUM, message=FIELD_MESSAGES["status"])]
        )
    return value

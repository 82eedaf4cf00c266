from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.core.errors import FieldErrors

ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TimestampedRead(ApiModel):
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # sqlite hands back naive values
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def violation_code(error_type: str) -> str:
    return "required" if error_type == "missing" else "invalid"


def collect_violations(errors: list[dict[str, Any]], skip: tuple[str, ...] = ()) -> FieldErrors:
    collected = FieldErrors()
    for error in errors:
        # undecodable bodies are located by character offset
        if error.get("type") == "json_invalid":
            collected.add("payload", "invalid")
            continue
        loc = [str(part) for part in error.get("loc", ()) if str(part) not in skip]
        collected.add(".".join(loc) or "payload", violation_code(error.get("type", "")))
    return collected


def parse_payload(model: type[ModelT], data: Any) -> ModelT:
    """Validate an inbound payload, folding pydantic errors into our ValidationError."""
    try:
        return model.model_validate(data if data is not None else {})
    except PydanticValidationError as exc:
        collect_violations(exc.errors()).raise_if_any()
        raise

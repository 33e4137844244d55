"""
Base schemas with standardized field types for consistent API responses.
"""
from decimal import Decimal
import re
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic_core import core_schema

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)


class Money(Decimal):
    """Money field that always serializes as float"""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def validate_money(value: Any) -> Decimal:
            if isinstance(value, bool):
                raise ValueError("Cannot convert bool to Money")
            if isinstance(value, (int, float)):
                return cls(str(value))
            if isinstance(value, str):
                return cls(value)
            if isinstance(value, Decimal):
                return value
            raise ValueError(f"Cannot convert {type(value)} to Money")

        return core_schema.no_info_after_validator_function(
            validate_money,
            core_schema.union_schema(
                [
                    core_schema.int_schema(),
                    core_schema.float_schema(),
                    core_schema.str_schema(),
                    core_schema.is_instance_schema(Decimal),
                ]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                float,
                info_arg=False,
                return_schema=core_schema.float_schema(),
            ),
        )


def ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


def ensure_hhmm(value: object, field_name: str) -> object:
    """Accept "9:00" or "09:00" and return the zero-padded form."""
    if isinstance(value, str):
        candidate = value.strip()
        if len(candidate) == 4 and candidate[1] == ":":
            candidate = f"0{candidate}"
        if not HHMM_REGEX.fullmatch(candidate):
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
        return candidate
    raise ValueError(f"{field_name} must be an HH:MM string")

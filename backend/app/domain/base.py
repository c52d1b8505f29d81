"""
Shared base for domain models

The database speaks snake_case and the storefront speaks camelCase. Models
accept either on input and `to_dict()` emits camelCase with Decimal and
datetime values converted for JSON.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def to_jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_dict(self) -> dict:
        """Convert to a camelCase dictionary ready for a JSON response"""
        return to_jsonable(self.model_dump(by_alias=True))

"""Recursive conversion of nested structures to JSON-compatible values."""

import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


def serialize(data: any) -> dict | list | int | float | str | bool | None:
    """
    Convert any list or dict of scalars or pydantic.BaseModel instances (even nested)
    to a JSON serializable format using only dict, list, int, float, str, and bool.
    """
    if isinstance(data, BaseModel):
        return serialize(data.model_dump(mode="json"))
    if isinstance(data, dict):
        return {key: serialize(value) for key, value in data.items()}
    if isinstance(data, (list, tuple, set)):
        return [serialize(item) for item in data]
    if isinstance(data, Enum):
        return data.name
    if isinstance(data, (int, float, str, bool)) or data is None:
        return data
    if isinstance(data, (datetime.datetime, datetime.date)):
        return data.isoformat()
    if isinstance(data, Decimal):
        return str(data)
    if isinstance(data, bytes):
        return data.decode("utf-8")
    raise ValueError(data)

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
from uuid import UUID


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC (SQLite returns them without an offset)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_dates(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively convert values that JSON columns cannot hold (dates, decimals, enums) to strings"""
    def convert_value(value: Any) -> Any:
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        elif isinstance(value, Decimal):
            return str(value)
        elif isinstance(value, Enum):
            return value.value
        elif isinstance(value, UUID):
            return str(value)
        elif isinstance(value, dict):
            return serialize_dates(value)
        elif isinstance(value, (list, tuple)):
            return [convert_value(item) for item in value]
        return value

    serialized = {}
    for key, value in (data or {}).items():
        serialized[key] = convert_value(value)
    return serialized

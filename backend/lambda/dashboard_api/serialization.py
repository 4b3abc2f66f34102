"""serialization.py — DynamoDB serialization/deserialization, timestamps, structured observability.

Part of the Prometheus dashboard API Lambda.
"""
from __future__ import annotations

import datetime as dt
import json
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from config import logger

__all__ = [
    "_deserialize",
    "_emit_structured_observability",
    "_iso_z",
    "_now_z",
    "_parse_timestamp",
    "_plain",
    "_serialize",
]

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

_deserializer = TypeDeserializer()
_serializer = TypeSerializer()


def _to_dynamo(value: Any) -> Any:
    """Recursively swap floats for Decimals so TypeSerializer accepts them."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo(v) for v in value]
    return value


def _plain(value: Any) -> Any:
    """Recursively convert deserialized DynamoDB values to JSON-friendly Python."""
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return [_plain(v) for v in sorted(value, key=str)]
    return value


def _serialize(value: Any) -> Dict[str, Any]:
    return _serializer.serialize(_to_dynamo(value))


def _deserialize(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _plain(_deserializer.deserialize(v)) for k, v in raw.items()}


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def _iso_z(value: dt.datetime) -> str:
    """Format an aware (or UTC-naive) datetime as ``YYYY-MM-DDTHH:MM:SSZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _now_z() -> str:
    return _iso_z(dt.datetime.now(dt.timezone.utc))


def _parse_timestamp(value: Any) -> Optional[dt.datetime]:
    """Best-effort parse of a stored timestamp into an aware UTC datetime.

    Accepts datetimes, epoch seconds and ISO-8601 strings (``Z`` or offset
    suffix). Returns None for missing or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, (int, float, Decimal)):
        try:
            return dt.datetime.fromtimestamp(float(value), tz=dt.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------


def _emit_structured_observability(
    *,
    component: str,
    event: str,
    method: Optional[str] = None,
    path: Optional[str] = None,
    status_code: Optional[int] = None,
    latency_ms: Optional[int] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "timestamp": _now_z(),
        "component": component,
        "event": event,
        "method": str(method or ""),
        "path": str(path or ""),
        "status_code": int(status_code or 0),
        "latency_ms": int(max(0, latency_ms or 0)),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str))

"""http_utils.py — Response envelope building, body parsing, path/method extraction.

Part of the Prometheus dashboard API Lambda.
"""
from __future__ import annotations

import base64
import datetime as dt
import json
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from config import CORS_HEADERS

__all__ = [
    "_error",
    "_json_body",
    "_not_found",
    "_ok",
    "_parse_body",
    "_path_method",
    "_preflight",
    "_raw_body",
    "_response",
]

# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------


def _headers() -> Dict[str, str]:
    return {**CORS_HEADERS, "Content-Type": "application/json"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    if isinstance(obj, dt.datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _response(status_code: int, payload: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": _headers(),
        "body": json.dumps(payload, default=_json_default),
    }


def _preflight() -> Dict[str, Any]:
    """CORS preflight: 200 with an empty (non-JSON) body."""
    return {"statusCode": 200, "headers": _headers(), "body": ""}


def _ok(payload: Dict[str, Any]) -> Dict[str, Any]:
    return _response(200, {"success": True, **payload})


def _error(status_code: int, message: str) -> Dict[str, Any]:
    return _response(status_code, {"success": False, "error": message})


def _not_found() -> Dict[str, Any]:
    # No success flag here, unlike _error.
    return _response(404, {"error": "Endpoint not found"})


# ---------------------------------------------------------------------------
# Request parsing
# ---------------------------------------------------------------------------


def _raw_body(event: Dict[str, Any]) -> Optional[str]:
    """Return the request body as text, decoding base64 payloads."""
    raw = event.get("body")
    if raw is None:
        return None
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw).decode("utf-8")
    return raw


def _json_body(raw: Optional[str]) -> Any:
    """Strict parse: an empty body is ``{}``; malformed JSON raises the
    decoder's own JSONDecodeError so its message reaches the caller as is."""
    if raw in (None, ""):
        return {}
    return json.loads(raw)


def _parse_body(raw: Optional[str]) -> Dict[str, Any]:
    """Lenient parse: anything that is not a JSON object becomes ``{}``."""
    try:
        parsed = json.loads(raw or "{}")
    except (json.JSONDecodeError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    """Extract HTTP method and path from API Gateway v1/v2 or Netlify events."""
    rc = event.get("requestContext") or {}
    http = rc.get("http") or {}
    method = (http.get("method") or event.get("httpMethod") or "").upper()
    path = event.get("rawPath") or http.get("path") or event.get("path") or ""
    return method, path

"""jitr_shared.http_utils — HTTP response helpers and event payload extraction.

Standard response envelope and error formatting used by both JITR Lambda
functions.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict

from jitr_shared.errors import InputError

logger = logging.getLogger(__name__)


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    """Build a standard Lambda proxy response."""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }


def _error(status_code: int, message: str, kind: str) -> Dict[str, Any]:
    """Build a standard error response.

    Only the error kind, message and status leave the function; stack
    traces stay in the logs.
    """
    return _response(
        status_code,
        {
            "success": False,
            "error": message,
            "error_envelope": {
                "kind": kind,
                "message": message,
                "status": status_code,
            },
        },
    )


def _parse_body(event: Dict[str, Any]) -> Any:
    """Parse JSON body from API Gateway event (handles base64)."""
    raw = event.get("body") or "{}"
    if not isinstance(raw, (str, bytes)):
        return raw
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw).decode("utf-8")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def _request_payload(event: Any) -> Dict[str, Any]:
    """Return the input payload of a direct invocation or API Gateway event."""
    if event is None:
        return {}
    if not isinstance(event, dict):
        raise InputError("Event must be a JSON object")
    if "body" in event and ("requestContext" in event or "httpMethod" in event):
        body = _parse_body(event)
        if not isinstance(body, dict):
            raise InputError("Invalid JSON body")
        return body
    return event


def _first_record_body(event: Any) -> Dict[str, Any]:
    """Return the JSON-decoded body of the first queue record."""
    records = (event or {}).get("Records") if isinstance(event, dict) else None
    if not isinstance(records, list) or not records:
        raise InputError("Event contains no records")
    if len(records) > 1:
        logger.warning("Received %d records; only the first is processed", len(records))

    body = records[0].get("body") if isinstance(records[0], dict) else None
    if isinstance(body, dict):
        return body
    try:
        message = json.loads(body or "")
    except (json.JSONDecodeError, TypeError):
        raise InputError("Record body is not valid JSON")
    if not isinstance(message, dict):
        raise InputError("Record body must be a JSON object")
    return message

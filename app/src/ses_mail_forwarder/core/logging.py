"""JSONロギングの共通ヘルパー。"""

from __future__ import annotations

import json
import logging
import traceback
from typing import Any

_LOGGER = logging.getLogger("ses_mail_forwarder")


def get_logger() -> logging.Logger:
    return _LOGGER


def log_info(event: str, **fields: Any) -> None:
    _LOGGER.info(_dumps({"level": "INFO", "event": event, **fields}))


def log_warning(event: str, **fields: Any) -> None:
    _LOGGER.warning(_dumps({"level": "WARNING", "event": event, **fields}))


def log_error(event: str, *, error: Any, **fields: Any) -> None:
    payload = {
        "level": "ERROR",
        "event": event,
        **fields,
        "error_json": _to_error_json(error),
        "traceback": traceback.format_exc(),
    }
    _LOGGER.error(_dumps(payload))


def log_request(*, path: str, status: int, request_id: str, latency_ms: int) -> None:
    payload = {
        "level": "INFO",
        "path": path,
        "status": status,
        "request_id": request_id,
        "latency_ms": latency_ms,
    }
    _LOGGER.info(_dumps(payload))


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _to_error_json(error: Any) -> str:
    if isinstance(error, (dict, list)):
        return json.dumps(error, ensure_ascii=False)
    body: dict[str, Any] = {"type": type(error).__name__, "message": str(error)}
    # boto3 由来のエラーはコード/フォールトも残す
    for attr in ("code", "fault", "value"):
        value = getattr(error, attr, None)
        if value is not None:
            body[attr] = value
    return json.dumps(body, ensure_ascii=False, default=str)

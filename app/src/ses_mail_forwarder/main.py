"""ローカル/ Lambda エントリポイント。"""

from __future__ import annotations

import logging
import os
from typing import Any

import uvicorn
from mangum import Mangum

from .app import create_app
from .core.logging import get_logger
from .features.forward_mail.schemas_forward_mail import SesEvent
from .features.forward_mail.usecase_forward_mail import forward_event, get_forwarder

get_logger().setLevel(logging.INFO)

app = create_app()
_handler = Mangum(app)


def lambda_handler(event: dict[str, Any], context: Any) -> Any:
    """AWS Lambda から呼び出されるエントリポイント

    SES の受信イベントは転送処理へ、それ以外（HTTP）は FastAPI へ渡す。
    """

    if _is_ses_event(event):
        forward_event(SesEvent.model_validate(event), forwarder=get_forwarder())
        return None
    return _handler(event, context)


def _is_ses_event(event: dict[str, Any]) -> bool:
    records = event.get("Records")
    if not isinstance(records, list) or not records:
        return False
    return all(
        isinstance(record, dict) and record.get("eventSource") == "aws:ses"
        for record in records
    )


def run_local() -> None:
    """`ses-mail-forwarder-api` 用のローカル実行関数。"""
    host = os.getenv("APP_HOST", "0.0.0.0")
    port = int(os.getenv("APP_PORT", "8000"))
    uvicorn.run("ses_mail_forwarder.main:app", host=host, port=port, reload=True)


if os.getenv("RUN_LOCAL") == "1":
    run_local()

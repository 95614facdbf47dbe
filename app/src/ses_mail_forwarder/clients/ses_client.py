"""SES 送信に利用する boto3 クライアントラッパー。"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Iterable

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ses_mail_forwarder.clients.aws_errors import describe_client_error
from ses_mail_forwarder.core.errors import SendError


@lru_cache(maxsize=None)
def get_client(region: str) -> BaseClient:
    """リージョン固定の SES v2 クライアントを返す。"""

    return boto3.client("sesv2", region_name=region)


def send_raw_email(
    *,
    region: str,
    source: str,
    to_addresses: Iterable[str],
    data: bytes,
) -> dict[str, Any]:
    """組み立て済みの RAW メールをそのまま送信する。"""

    client = get_client(region)
    return client.send_email(
        FromEmailAddress=source,
        Destination={"ToAddresses": list(to_addresses)},
        Content={"Raw": {"Data": data}},
    )


class SesSender:
    """RAW メールを送り、SES が採番したメッセージ ID を返す。"""

    def __init__(self, *, region: str) -> None:
        self.region = region

    def send(self, source: str, destinations: list[str], data: bytes) -> str:
        try:
            response = send_raw_email(
                region=self.region,
                source=source,
                to_addresses=destinations,
                data=data,
            )
        except ClientError as exc:
            code, message, fault = describe_client_error(exc)
            raise SendError(
                f"メール送信に失敗しました (code: {code}, message: {message}, fault: {fault})",
                code=code,
                error_message=message,
                fault=fault,
            ) from exc
        except BotoCoreError as exc:
            raise SendError(f"メール送信に失敗しました: {exc}", error_message=str(exc)) from exc
        return response["MessageId"]

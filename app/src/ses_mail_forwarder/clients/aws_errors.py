"""botocore の ClientError からエラー情報を取り出すヘルパー。"""

from __future__ import annotations

from botocore.exceptions import ClientError


def describe_client_error(exc: ClientError) -> tuple[str | None, str | None, str]:
    """(エラーコード, メッセージ, フォールト種別) を返す。

    フォールトは HTTP ステータスが 5xx なら `server`、4xx なら `client`、
    それ以外は `unknown`。
    """

    error = exc.response.get("Error", {})
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if isinstance(status, int) and status >= 500:
        fault = "server"
    elif isinstance(status, int) and status >= 400:
        fault = "client"
    else:
        fault = "unknown"
    return error.get("Code"), error.get("Message"), fault

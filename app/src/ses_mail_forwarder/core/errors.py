"""転送処理で扱う例外の定義。"""

from __future__ import annotations


class ForwarderError(RuntimeError):
    """メール転送処理の基底例外。"""


class ConfigError(ForwarderError):
    """転送設定の読み込み・検証に失敗した。"""


class AddressParseError(ForwarderError):
    """RFC 5322 アドレスとして解釈できない値を受け取った。"""

    def __init__(self, message: str, value: str) -> None:
        super().__init__(message)
        self.value = value


class InvalidAddressError(ForwarderError):
    """`@` を含まないなど、分割できないアドレス。"""


class NoDestinationsError(ForwarderError):
    """どの受信者も転送先に解決されなかった。"""


class FetchError(ForwarderError):
    """保存済みの RAW メールを取得できなかった。"""


class MessageParseError(ForwarderError):
    """RAW メールのヘッダ部を解析できなかった。"""


class MessageBuildError(ForwarderError):
    """送信用バイト列を組み立てられなかった。"""


class _AwsError(ForwarderError):
    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        error_message: str | None = None,
        fault: str = "unknown",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.error_message = error_message
        self.fault = fault


class StorageError(_AwsError):
    """S3 の get/put/copy/delete に失敗した。"""


class SendError(_AwsError):
    """SES がメール送信を拒否、または送信に失敗した。"""

"""外部サービスへの接続ヘルパーをまとめたパッケージ。"""

from __future__ import annotations

__all__ = [
    "aws_errors",
    "s3_client",
    "ses_client",
]

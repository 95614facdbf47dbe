"""ユースケース間で共有するデータモデル。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from ses_mail_forwarder.mail.address import Address


@dataclass(slots=True)
class TransformationResult:
    """元の受信者 1 件と、その転送先アドレス（空の場合あり）。"""

    source: Address
    transformed: list[Address] = field(default_factory=list)


@dataclass(slots=True)
class ForwardResult:
    """1 通分の転送処理の結果サマリ。"""

    status: Literal["FORWARDED", "SPAM_VIRUS"]
    message_id: str
    forwarded_message_id: str | None = None
    destinations: list[str] = field(default_factory=list)

"""RFC 5322 のメールボックス表現を扱うモジュール。"""

from __future__ import annotations

import email.errors
import email.policy
from dataclasses import dataclass
from email.header import Header

from ses_mail_forwarder.core.errors import AddressParseError

_FATAL_DEFECTS = (
    email.errors.InvalidHeaderDefect,
    email.errors.HeaderMissingRequiredValue,
)


@dataclass(frozen=True, slots=True)
class Address:
    """表示名とアドレス部の組。"""

    name: str
    address: str

    def __str__(self) -> str:
        if not self.name:
            return self.address
        if self.name.isascii() and self.name.isprintable():
            return f'"{_quote(self.name)}" <{self.address}>'
        # 非 ASCII の表示名は RFC 2047 エンコードワードにする
        encoded = Header(self.name, "utf-8").encode(maxlinelen=0)
        return f"{encoded} <{self.address}>"


def parse_address(value: str) -> Address:
    """単一のメールボックス文字列を `Address` に変換する。

    表示名の RFC 2047 エンコードワードはデコードされる。ローカル部とドメインの
    両方を持つアドレスがちょうど 1 つ含まれていない場合は `AddressParseError`。
    """

    try:
        header = email.policy.default.header_factory("To", value)
        addresses = header.addresses
    except (email.errors.HeaderParseError, IndexError, ValueError) as exc:
        raise AddressParseError(f"アドレスを解析できません: {value!r}", value) from exc

    if any(isinstance(defect, _FATAL_DEFECTS) for defect in header.defects):
        raise AddressParseError(f"アドレスを解析できません: {value!r}", value)
    if len(addresses) != 1 or any(group.display_name for group in header.groups):
        raise AddressParseError(
            f"アドレスはちょうど 1 件である必要があります: {value!r}", value
        )

    parsed = addresses[0]
    if not parsed.username or not parsed.domain:
        raise AddressParseError(f"アドレスにドメインがありません: {value!r}", value)

    return Address(name=parsed.display_name or "", address=parsed.addr_spec)


def _quote(name: str) -> str:
    return name.replace("\\", "\\\\").replace('"', '\\"')

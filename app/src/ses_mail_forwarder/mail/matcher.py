"""受信者アドレスを転送先リストへ解決する。"""

from __future__ import annotations

import re

from ses_mail_forwarder.core.config import ParsedConfig
from ses_mail_forwarder.core.errors import InvalidAddressError
from ses_mail_forwarder.core.logging import log_info
from ses_mail_forwarder.mail.address import Address

_PLUS_TAG = re.compile(r"\+.*?@")


def normalize_recipient(address: str, *, allow_plus_sign: bool) -> str:
    """照合用に小文字化し、必要なら `+tag` を取り除く。

    RFC 上ローカル部は大文字小文字を区別し得るが、ここでは区別しない。
    """

    normalized = address.lower()
    if allow_plus_sign:
        normalized = _PLUS_TAG.sub("@", normalized, count=1)
    return normalized


def match_recipient(address: str, config: ParsedConfig) -> list[Address]:
    """マッピングを優先順（完全一致 > @domain > ローカル部 > @）で引く。

    最初に一致したキーの転送先だけを返す。一致しなければ空リスト。
    """

    normalized = normalize_recipient(address, allow_plus_sign=config.allow_plus_sign)
    if normalized != address:
        log_info("recipient_normalized", original=address, normalized=normalized)

    mapping = config.forward_mapping
    if normalized in mapping:
        return list(mapping[normalized])

    local_part, domain = split_address(normalized)
    for key in (f"@{domain}", local_part, "@"):
        if key in mapping:
            return list(mapping[key])
    return []


def split_address(address: str) -> tuple[str, str]:
    """最後の `@` でローカル部とドメインに分ける。"""

    local_part, at, domain = address.rpartition("@")
    if not at:
        raise InvalidAddressError(f"アドレスを分割できません: {address}")
    return local_part, domain

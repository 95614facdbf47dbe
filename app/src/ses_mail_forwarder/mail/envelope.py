"""エンベロープの送信者・受信者を転送用に変換する。"""

from __future__ import annotations

from typing import Sequence

from ses_mail_forwarder.core.config import ParsedConfig
from ses_mail_forwarder.core.errors import AddressParseError, NoDestinationsError
from ses_mail_forwarder.core.logging import log_info
from ses_mail_forwarder.core.models import TransformationResult
from ses_mail_forwarder.mail.address import Address, parse_address
from ses_mail_forwarder.mail.matcher import match_recipient


def transform_recipients(
    config: ParsedConfig,
    recipients: Sequence[str],
) -> list[TransformationResult]:
    """元の受信者ごとに転送先を解決する。

    1 件でも解析できない受信者があれば部分結果は返さずに失敗する。全受信者の
    転送先が 0 件の場合は `NoDestinationsError`。
    """

    parsed_recipients = [_parse(recipient, kind="受信者") for recipient in recipients]

    results: list[TransformationResult] = []
    for recipient in parsed_recipients:
        destinations = match_recipient(recipient.address, config)
        log_info(
            "recipient_transformed",
            recipient=recipient.address,
            destinations=[str(destination) for destination in destinations],
        )
        results.append(TransformationResult(source=recipient, transformed=destinations))

    if sum(len(result.transformed) for result in results) < 1:
        raise NoDestinationsError("変換後の転送先が 0 件です。")
    return results


def transform_senders(
    config: ParsedConfig,
    senders: Sequence[str],
    transformations: Sequence[TransformationResult],
) -> Address:
    """転送メールの差出人を 1 件に決める。

    SES は未検証アドレスからの送信を拒否するため、アドレス部は `fromEmail`
    または元の受信者（検証済みドメイン）とし、元の差出人は表示名に残す。
    送信者・受信者が複数でも先頭の 1 件だけを使う。
    """

    parsed_senders = [_parse(sender, kind="送信者") for sender in senders]
    if not parsed_senders:
        raise AddressParseError("送信者アドレスがありません。", "")

    if config.from_email:
        address_part = config.from_email
    else:
        address_part = transformations[0].source.address

    original = parsed_senders[0]
    if original.name:
        name_part = f"{original.name} at {original.address}"
    else:
        name_part = original.address

    return Address(name=name_part, address=address_part)


def _parse(value: str, *, kind: str) -> Address:
    try:
        return parse_address(value)
    except AddressParseError as exc:
        raise AddressParseError(f"{kind}アドレスが不正です: {value}", value) from exc

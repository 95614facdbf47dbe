"""転送用にメールヘッダを書き換える。"""

from __future__ import annotations

from typing import Sequence

from ses_mail_forwarder.core.config import ParsedConfig
from ses_mail_forwarder.core.logging import log_info
from ses_mail_forwarder.mail.address import Address
from ses_mail_forwarder.mail.message import (
    FROM_KEY,
    MESSAGE_ID_KEY,
    REPLY_TO_KEY,
    RETURN_PATH_KEY,
    SENDER_KEY,
    SUBJECT_KEY,
    TO_KEY,
    HeaderSet,
)

DEBUG_MESSAGE_ID_KEY = "X-Forwarder-Message-Id"
DEBUG_ORIGINAL_FROM_KEY = "X-Forwarder-Original-From"
DEBUG_FUNCTION_NAME_KEY = "X-Forwarder-Function-Name"

_DKIM_SIGNATURE_SUFFIX = "dkim-signature"


def process_message_header(
    config: ParsedConfig,
    headers: HeaderSet,
    new_sender: Address,
) -> None:
    """ヘッダ集合をその場で書き換える。

    順序:
        1. 元の From を退避
        2. Reply-To が無ければ元の From を設定
        3. From を新しい差出人で上書き
        4. 件名プレフィックスを付与（設定時のみ）
        5. To を上書き（toEmail 設定時のみ）
        6. Return-Path / Sender / Message-Id を削除
        7. 名前が Dkim-Signature で終わるヘッダをすべて削除
    """

    original_from = headers.get(FROM_KEY)

    if REPLY_TO_KEY not in headers:
        _set_header(headers, REPLY_TO_KEY, [original_from])

    _set_header(headers, FROM_KEY, [str(new_sender)])

    if config.subject_prefix:
        subject = config.subject_prefix + headers.get(SUBJECT_KEY)
        _set_header(headers, SUBJECT_KEY, [subject])

    # To を残すと元の宛先が読み手に分かる。SES は To と実配送先の一致を求めない。
    if config.to_email:
        _set_header(headers, TO_KEY, [config.to_email])

    for key in (RETURN_PATH_KEY, SENDER_KEY, MESSAGE_ID_KEY):
        _remove_header(headers, key)

    # From を変えた時点で署名は無効。重複した DKIM-Signature は SES に拒否される。
    for name in headers.names():
        if name.lower().endswith(_DKIM_SIGNATURE_SUFFIX):
            _remove_header(headers, name)


def set_debug_headers(
    headers: HeaderSet,
    *,
    message_id: str,
    original_from: Sequence[str],
    function_name: str,
) -> None:
    """調査用の X-Forwarder-* ヘッダを付与する。"""

    _set_header(headers, DEBUG_MESSAGE_ID_KEY, [message_id])
    _set_header(headers, DEBUG_ORIGINAL_FROM_KEY, list(original_from))
    _set_header(headers, DEBUG_FUNCTION_NAME_KEY, [function_name])


def _set_header(headers: HeaderSet, name: str, values: list[str]) -> None:
    headers.set(name, values)
    log_info("header_set", header=name, values=values)


def _remove_header(headers: HeaderSet, name: str) -> None:
    if headers.remove(name):
        log_info("header_removed", header=name)

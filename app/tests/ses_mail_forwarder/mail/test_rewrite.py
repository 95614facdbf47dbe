"""ヘッダ書き換えのテスト。"""

from __future__ import annotations

import pytest

from ses_mail_forwarder.mail.address import Address
from ses_mail_forwarder.mail.build import build_mail
from ses_mail_forwarder.mail.message import parse_message
from ses_mail_forwarder.mail.rewrite import process_message_header, set_debug_headers

_TO = (
    "=?UTF-8?Q?To?= <to@excited-emu.awsapps.com>, "
    "=?UTF-8?Q?Donald_Duck?= <donald.duck@excited-emu.awsapps.com>"
)
_CC = (
    "=?UTF-8?Q?CC?= <cc@excited-emu.awsapps.com>, "
    "=?UTF-8?Q?Dagobert_Duck?= <dagobert.duck@excited-emu.awsapps.com>"
)

_TEST_MAIL = f"""Return-Path: <sender@excited-emu.awsapps.com>
Received: from mail.example.com by inbound-smtp.amazonaws.com
X-SES-DKIM-SIGNATURE: a=rsa-sha256; q=dns/txt; b=f2pIQmy3y57b8pPsSDb9; c=relaxed/simple; d=amazonses.com
DKIM-Signature: v=1; a=rsa-sha256; q=dns/txt; c=relaxed/simple;
\ts=o7bai5im5otrg6zk6gyjdrmo53gkx2er; d=excited-emu.awsapps.com;
\tt=1669144560;
\tb=uu/yvrdoee2/dbB3ZKRVKQ+65cuJGQkN4bbQ0HGhzhEQSXMm/MXEuKybMcUxrq2U
\tlWkzi+CGh0K6AFGf6zRnZaHjkZ2w7D+inuxOz3Lnt8BkJeQfLUERP9NrgCSIZBTr9lo
DKIM-Signature: v=1; a=rsa-sha256; q=dns/txt; c=relaxed/simple;
\ts=ihchhvubuqgjsxyuhssfvqohv7z3u4hn; d=amazonses.com; t=1669144560;
\tb=mDtS3zTGYh5csNN3KfWskpZuwldq4ZIRhI6kAswVOpXxEWkjxliNGVL/EGW03XPn
X-Google-DKIM-Signature: v=1; a=rsa-sha256; c=relaxed/relaxed;
\td=1e100.net; s=20210112;
\th=to:from:subject:message-id:feedback-id:reply-to:date:mime-version
\t\t:dkim-signature:x-gm-message-state:from:to:cc:subject:date
\t\t:message-id:reply-to;
\tb=4sWMDyotELNk9B5Udnp05Fps7uvvEdW544m6+pmZe4rxeOvpcA9au3d3D2T4quY1UG
Subject: Test mail with attachment
From: =?UTF-8?Q?Sender?= <sender@excited-emu.awsapps.com>
To: {_TO}
Cc: {_CC}
Sender: sender@excited-emu.awsapps.com
Message-ID: <0100018484d5b1c4@email.amazonses.com>
MIME-Version: 1.0
Content-Type: text/plain; charset=UTF-8

Hello
"""


def _parse(text: str):
    return parse_message(text.replace("\n", "\r\n").encode())


def _simple(headers: str):
    return _parse(f"Foo: bar\n{headers}Content-Type: text/plain\n\nMessage body\n")


@pytest.mark.parametrize(
    ("reply_to", "expected"),
    [
        (None, ["sender@example.com"]),
        ("reply-to@example.com", ["reply-to@example.com"]),
    ],
)
def test_ReplyToが無ければ元のFromを設定する(make_config, reply_to, expected) -> None:
    reply_to_header = f"Reply-To: {reply_to}\n" if reply_to else ""
    message = _simple(f"From: sender@example.com\n{reply_to_header}")

    process_message_header(make_config(), message.headers, Address("", "private@example.com"))

    assert message.headers.get_all("Reply-To") == expected


@pytest.mark.parametrize(
    ("prefix", "subject", "expected"),
    [
        ("", "Test subject", ["Test subject"]),
        ("FORWARDER: ", "Test subject", ["FORWARDER: Test subject"]),
        ("FORWARDER: ", None, ["FORWARDER: "]),
    ],
)
def test_件名プレフィックス(make_config, prefix, subject, expected) -> None:
    subject_header = f"Subject: {subject}\n" if subject else ""
    message = _simple(subject_header)

    process_message_header(
        make_config(subjectPrefix=prefix), message.headers, Address("", "public@example.com")
    )

    assert message.headers.get_all("Subject") == expected


def test_テストメールのヘッダ書き換え(make_config) -> None:
    message = _parse(_TEST_MAIL)

    process_message_header(
        make_config(), message.headers, Address("", "to@excited-emu.awsapps.com")
    )

    headers = message.headers
    assert headers.get_all("From") == ["to@excited-emu.awsapps.com"]
    assert headers.get_all("To") == [_TO]
    assert headers.get_all("Cc") == [_CC]
    assert headers.get_all("Reply-To") == ["=?UTF-8?Q?Sender?= <sender@excited-emu.awsapps.com>"]
    assert headers.get_all("Subject") == ["Test mail with attachment"]
    assert "Return-Path" not in headers
    assert "Sender" not in headers
    assert "Message-Id" not in headers
    assert not [name for name in headers if name.lower().endswith("dkim-signature")]
    # 対象外のヘッダは順序を保つ
    assert headers.names()[:2] == ["Received", "Subject"]


def test_Toは上書き設定が無ければバイト列も変わらない(make_config) -> None:
    message = _parse(_TEST_MAIL)

    process_message_header(make_config(), message.headers, Address("", "public@example.com"))

    assert f"To: {_TO}\r\n".encode() in build_mail(message)


def test_toEmail設定時はToを上書きする(make_config) -> None:
    message = _parse(_TEST_MAIL)

    process_message_header(
        make_config(toEmail="override@example.com"),
        message.headers,
        Address("", "public@example.com"),
    )

    assert message.headers.get_all("To") == ["override@example.com"]


@pytest.mark.parametrize(
    "dkim_headers",
    [
        "",
        "DKIM-Signature: v=1; b=abc\n",
        "DKIM-Signature: v=1;\n\tb=abc\nX-SES-DKIM-SIGNATURE: a=1\nDKIM-Signature: v=1; b=def\n",
    ],
)
def test_DKIM署名ヘッダはすべて削除される(make_config, dkim_headers) -> None:
    message = _simple(f"From: sender@example.com\n{dkim_headers}")

    process_message_header(make_config(), message.headers, Address("", "public@example.com"))

    assert not [name for name in message.headers if name.lower().endswith("dkim-signature")]
    assert message.headers.get("Foo") == "bar"


def test_Fromは新しい差出人で上書きされる(make_config) -> None:
    message = _simple('From: "John Doe" <sender@example.com>\n')
    new_sender = Address("John Doe at sender@example.com", "public-address@example.com")

    process_message_header(make_config(), message.headers, new_sender)

    assert message.headers.get_all("From") == [
        '"John Doe at sender@example.com" <public-address@example.com>'
    ]
    assert message.headers.get_all("Reply-To") == ['"John Doe" <sender@example.com>']


def test_デバッグ用ヘッダを付与する() -> None:
    message = _simple("From: sender@example.com\n")

    set_debug_headers(
        message.headers,
        message_id="o3vrnil0e2ic28trm7dfhrc2v0clambda4nbp0g1",
        original_from=["sender@example.com", "other@example.com"],
        function_name="forwarder-function",
    )

    assert message.headers.get_all("X-Forwarder-Message-Id") == [
        "o3vrnil0e2ic28trm7dfhrc2v0clambda4nbp0g1"
    ]
    assert message.headers.get_all("X-Forwarder-Original-From") == [
        "sender@example.com",
        "other@example.com",
    ]
    assert message.headers.get_all("X-Forwarder-Function-Name") == ["forwarder-function"]

"""本文をバッファ済みのメールと、順序付きヘッダ集合。"""

from __future__ import annotations

import email.policy
import re
from dataclasses import dataclass, field
from email.parser import BytesHeaderParser
from typing import Iterable, Iterator

from ses_mail_forwarder.core.errors import MessageParseError

# RFC 5322 の行区切り
RFC5322_LINE_DELIMITER = b"\r\n"

FROM_KEY = "From"
TO_KEY = "To"
CC_KEY = "Cc"
REPLY_TO_KEY = "Reply-To"
SUBJECT_KEY = "Subject"
SENDER_KEY = "Sender"
MESSAGE_ID_KEY = "Message-Id"
RETURN_PATH_KEY = "Return-Path"

_LINE_BREAK = re.compile(r"\r\n|\n|\r")


class HeaderSet:
    """ヘッダ名ごとに値リストを持つ順序付きマルチマップ。

    名前の照合は大文字小文字を区別しない。最初に現れた名前の表記と位置を保持し、
    同名ヘッダの値はその位置にまとめる。
    """

    def __init__(self, items: Iterable[tuple[str, str]] = ()) -> None:
        self._entries: dict[str, tuple[str, list[str]]] = {}
        for name, value in items:
            self.add(name, value)

    def add(self, name: str, value: str) -> None:
        key = name.lower()
        if key in self._entries:
            self._entries[key][1].append(value)
        else:
            self._entries[key] = (name, [value])

    def get(self, name: str, default: str = "") -> str:
        """先頭の値を返す。"""

        entry = self._entries.get(name.lower())
        if entry is None or not entry[1]:
            return default
        return entry[1][0]

    def get_all(self, name: str) -> list[str] | None:
        entry = self._entries.get(name.lower())
        if entry is None:
            return None
        return list(entry[1])

    def set(self, name: str, values: Iterable[str]) -> None:
        """値を置き換える。既存ヘッダは元の表記と位置を保つ。"""

        key = name.lower()
        existing = self._entries.get(key)
        display_name = existing[0] if existing else name
        self._entries[key] = (display_name, list(values))

    def remove(self, name: str) -> bool:
        return self._entries.pop(name.lower(), None) is not None

    def names(self) -> list[str]:
        return [display_name for display_name, _ in self._entries.values()]

    def items(self) -> list[tuple[str, list[str]]]:
        return [(display_name, list(values)) for display_name, values in self._entries.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"HeaderSet({self.items()!r})"


@dataclass(slots=True)
class BufferedMessage:
    """解析済みヘッダと、全体をメモリに読み込んだ本文。"""

    headers: HeaderSet = field(default_factory=HeaderSet)
    body: bytes = b""


def parse_message(raw: bytes) -> BufferedMessage:
    """RAW メールをヘッダ集合と本文バイト列に分ける。

    ヘッダ部は最初の空行（CRLF / LF どちらも可）までとし、本文は一切加工しない。
    空行が無い場合は全体をヘッダ部とし、本文は空とする。
    折り返されたヘッダ値は空白 1 つで連結する。
    """

    header_block, body = _split_header_block(raw)

    parser = BytesHeaderParser(policy=email.policy.compat32)
    parsed = parser.parsebytes(header_block)
    if parsed.defects or parsed.get_payload():
        raise MessageParseError(
            f"ヘッダ部の形式が不正です: {[type(d).__name__ for d in parsed.defects]}"
        )

    headers = HeaderSet((name, _unfold(value)) for name, value in parsed.raw_items())
    return BufferedMessage(headers=headers, body=body)


def _split_header_block(raw: bytes) -> tuple[bytes, bytes]:
    position = 0
    while True:
        end = raw.find(b"\n", position)
        if end == -1:
            # 本文の無いメールはヘッダ部のみとして扱う
            if not raw.strip():
                raise MessageParseError("メッセージが空です。")
            return raw, b""
        line = raw[position : end + 1]
        if line in (b"\r\n", b"\n"):
            return raw[:position], raw[end + 1 :]
        position = end + 1


def _unfold(value: str) -> str:
    parts = (part.strip() for part in _LINE_BREAK.split(value))
    return " ".join(part for part in parts if part)

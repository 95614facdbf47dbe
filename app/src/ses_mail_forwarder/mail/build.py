"""書き換え済みのメールを送信用バイト列に組み立てる。"""

from __future__ import annotations

from ses_mail_forwarder.core.errors import MessageBuildError
from ses_mail_forwarder.mail.message import RFC5322_LINE_DELIMITER, BufferedMessage


def build_mail(message: BufferedMessage) -> bytes:
    """ヘッダ・空行・本文・行末を CRLF で連結する。

    同名ヘッダの値はカンマ区切りで 1 行にまとめる。本文は再解析せずそのまま書く。
    """

    buffer = bytearray()
    for name, values in message.headers.items():
        line = f"{name}: {','.join(values)}"
        try:
            # 8bit のヘッダは解析時の surrogateescape を戻して元のバイト列にする
            buffer += line.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError as exc:
            raise MessageBuildError(f"ヘッダを書き出せません: {name}") from exc
        buffer += RFC5322_LINE_DELIMITER

    buffer += RFC5322_LINE_DELIMITER
    buffer += message.body
    buffer += RFC5322_LINE_DELIMITER
    return bytes(buffer)

"""SES で受信したメールを転送するユースケース。"""

from __future__ import annotations

from functools import lru_cache
from typing import IO, Protocol

from ses_mail_forwarder.clients.s3_client import S3BlobStore
from ses_mail_forwarder.clients.ses_client import SesSender
from ses_mail_forwarder.core.config import ParsedConfig
from ses_mail_forwarder.core.errors import FetchError, ForwarderError, StorageError
from ses_mail_forwarder.core.logging import log_error, log_info, log_warning
from ses_mail_forwarder.core.models import ForwardResult, TransformationResult
from ses_mail_forwarder.core.settings import Settings, load_forwarder_config, load_settings
from ses_mail_forwarder.features.forward_mail.schemas_forward_mail import (
    SesEvent,
    SesMail,
    SesPayload,
)
from ses_mail_forwarder.mail.address import Address
from ses_mail_forwarder.mail.build import build_mail
from ses_mail_forwarder.mail.envelope import transform_recipients, transform_senders
from ses_mail_forwarder.mail.message import BufferedMessage, HeaderSet, parse_message
from ses_mail_forwarder.mail.rewrite import process_message_header, set_debug_headers

# SES の送受信サイズ上限（40 MiB）
MAX_MESSAGE_SIZE = 40 * 1024 * 1024


class BlobStore(Protocol):
    def get(self, key: str) -> tuple[IO[bytes], int]: ...

    def put(self, key: str, data: bytes) -> str | None: ...

    def move(self, source_key: str, target_key: str) -> None: ...


class MailSender(Protocol):
    def send(self, source: str, destinations: list[str], data: bytes) -> str: ...


class Forwarder:
    """プロセスごとに 1 度だけ組み立て、呼び出しごとに `forward` を実行する。

    保持するのは変更されない設定とクライアントだけで、1 通分の状態は
    `forward` の中で完結する。
    """

    def __init__(
        self,
        config: ParsedConfig,
        *,
        storage: BlobStore,
        sender: MailSender,
        function_name: str = "",
    ) -> None:
        self.config = config
        self.storage = storage
        self.sender = sender
        self.function_name = function_name

    def forward(self, payload: SesPayload) -> ForwardResult:
        """受信通知 1 件を処理する。

        途中のどの段階で失敗しても受信メールを failed へ移動し、元の例外を送出する。
        送信後に forwarded へ移動できなかった場合も例外になる（送信済みである点に注意）。
        """

        message_id = payload.mail.message_id

        if self._is_spam_or_virus(payload):
            self._mark_as_spam_virus(message_id)
            return ForwardResult(status="SPAM_VIRUS", message_id=message_id)

        try:
            transformations = self._transform_recipients(payload.receipt.recipients)
            new_sender = self._transform_sender(
                payload.mail.common_headers.from_, transformations
            )
            message = self._fetch_message(message_id)
            self._process_message_header(message.headers, new_sender)
            self._set_debug_headers(message.headers, payload.mail)
            data = build_mail(message)
        except Exception:
            self._mark_as_failed(message_id)
            raise

        # 送信先は先頭の受信者の転送先のみ
        destinations = [str(address) for address in transformations[0].transformed]
        try:
            forwarded_message_id = self._send_message(
                str(new_sender), destinations, message_id, data
            )
        except Exception:
            self._mark_as_failed(message_id)
            raise

        self._mark_as_forwarded(message_id)
        return ForwardResult(
            status="FORWARDED",
            message_id=message_id,
            forwarded_message_id=forwarded_message_id,
            destinations=destinations,
        )

    def _is_spam_or_virus(self, payload: SesPayload) -> bool:
        receipt = payload.receipt
        if receipt.spam_verdict.failed:
            log_info("message_marked_as_spam", message_id=payload.mail.message_id)
        if receipt.virus_verdict.failed:
            log_info("message_marked_as_virus", message_id=payload.mail.message_id)
        return receipt.spam_verdict.failed or receipt.virus_verdict.failed

    def _transform_recipients(self, recipients: list[str]) -> list[TransformationResult]:
        log_info("transforming_recipients", recipients=recipients)
        transformations = transform_recipients(self.config, recipients)
        log_info("transforming_recipients_succeeded")
        return transformations

    def _transform_sender(
        self,
        senders: list[str],
        transformations: list[TransformationResult],
    ) -> Address:
        log_info("transforming_senders", senders=senders)
        new_sender = transform_senders(self.config, senders, transformations)
        log_info("transforming_senders_succeeded", sender=str(new_sender))
        return new_sender

    def _fetch_message(self, message_id: str) -> BufferedMessage:
        key = self.config.s3.incoming.new_prefix + message_id
        log_info("fetching_message", key=key)
        try:
            stream, size = self.storage.get(key)
        except StorageError as exc:
            raise FetchError(f"メッセージを取得できません: {key}: {exc}") from exc

        log_info("message_size", key=key, size_mib=round(size / (1024 * 1024), 1))
        if size > MAX_MESSAGE_SIZE:
            # 受信側の上限も 40 MiB のため通常は起こらない
            log_warning("message_too_large", key=key, size=size, limit=MAX_MESSAGE_SIZE)

        try:
            raw = stream.read()
        except OSError as exc:
            raise FetchError(f"メッセージ本文を読み込めません: {key}") from exc
        finally:
            stream.close()

        message = parse_message(raw)
        log_info("fetching_message_succeeded", key=key)
        return message

    def _process_message_header(self, headers: HeaderSet, new_sender: Address) -> None:
        log_info("processing_message_headers")
        process_message_header(self.config, headers, new_sender)
        log_info("processing_message_headers_succeeded")

    def _set_debug_headers(self, headers: HeaderSet, mail: SesMail) -> None:
        set_debug_headers(
            headers,
            message_id=mail.message_id,
            original_from=mail.common_headers.from_,
            function_name=self.function_name,
        )

    def _send_message(
        self,
        source: str,
        destinations: list[str],
        original_message_id: str,
        data: bytes,
    ) -> str:
        log_info("sending_message", source=source, destinations=destinations)
        try:
            forwarded_message_id = self.sender.send(source, destinations, data)
        except ForwarderError as exc:
            log_error("sending_message_failed", error=exc, message_id=original_message_id)
            key = self.config.s3.outgoing.failed_prefix + original_message_id
            try:
                self._store_message(key, data)
            except Exception as store_exc:
                log_error("storing_failed_message_failed", error=store_exc, key=key)
            raise

        key = self.config.s3.outgoing.sent_prefix + original_message_id
        self._store_message(key, data)

        log_info("sending_message_succeeded", forwarded_message_id=forwarded_message_id)
        return forwarded_message_id

    def _store_message(self, key: str, data: bytes) -> None:
        self.storage.put(key, data)
        log_info("message_stored", key=key)

    def _move_message(self, source_key: str, target_key: str) -> None:
        self.storage.move(source_key, target_key)
        log_info("message_moved", source=source_key, target=target_key)

    def _mark_as_failed(self, message_id: str) -> None:
        incoming = self.config.s3.incoming
        try:
            self._move_message(incoming.new_prefix + message_id, incoming.failed_prefix + message_id)
        except Exception as exc:
            log_error("mark_as_failed_failed", error=exc, message_id=message_id)

    def _mark_as_forwarded(self, message_id: str) -> None:
        incoming = self.config.s3.incoming
        self._move_message(incoming.new_prefix + message_id, incoming.forwarded_prefix + message_id)

    def _mark_as_spam_virus(self, message_id: str) -> None:
        incoming = self.config.s3.incoming
        self._move_message(incoming.new_prefix + message_id, incoming.spam_virus_prefix + message_id)


def build_forwarder(settings: Settings) -> Forwarder:
    """設定と AWS クライアントから `Forwarder` を組み立てる。"""

    config = load_forwarder_config(settings)
    return Forwarder(
        config,
        storage=S3BlobStore(config.s3.bucket_name, region=settings.region),
        sender=SesSender(region=settings.region),
        function_name=settings.function_name,
    )


@lru_cache(maxsize=1)
def get_forwarder() -> Forwarder:
    """プロセス内で共有する `Forwarder` を返す（初回のみ組み立てる）。"""

    return build_forwarder(load_settings())


def forward_event(event: SesEvent, *, forwarder: Forwarder) -> list[ForwardResult]:
    """SES イベントのレコードを順に転送する。最初の失敗で打ち切る。"""

    results: list[ForwardResult] = []
    for record in event.records:
        log_info("ses_record_received", record=record.model_dump(mode="json", by_alias=True))
        try:
            results.append(forwarder.forward(record.ses))
        except Exception as exc:
            log_error("forward_failed", error=exc, message_id=record.ses.mail.message_id)
            raise
    return results

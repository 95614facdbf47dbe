from __future__ import annotations

import io
import os
from typing import Any, Callable

os.environ.setdefault("APP_ENV", "local")
os.environ.setdefault("REGION", "ap-northeast-1")

import pytest

from ses_mail_forwarder.core import settings as core_settings
from ses_mail_forwarder.core.config import ForwarderConfig, ParsedConfig, parse_config
from ses_mail_forwarder.core.errors import SendError, StorageError
from ses_mail_forwarder.features.forward_mail import usecase_forward_mail

_S3_CONFIG = {
    "bucketName": "mail-bucket",
    "incoming": {
        "newPrefix": "in/new/",
        "spamVirusPrefix": "in/spam-virus/",
        "forwardedPrefix": "in/forwarded/",
        "failedPrefix": "in/failed/",
    },
    "outgoing": {
        "sentPrefix": "out/sent/",
        "failedPrefix": "out/failed/",
    },
}


@pytest.fixture(autouse=True)
def basic_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """アプリ初期化に必要な環境変数をテスト時にセットする。"""

    monkeypatch.setenv("REGION", "ap-northeast-1")
    monkeypatch.setenv("AWS_LAMBDA_FUNCTION_NAME", "test-function")
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("FORWARDER_CONFIG_PATH", raising=False)
    monkeypatch.delenv("SSM_PATH_PREFIX", raising=False)
    core_settings.load_settings.cache_clear()
    usecase_forward_mail.get_forwarder.cache_clear()


@pytest.fixture
def make_config() -> Callable[..., ParsedConfig]:
    """camelCase の設定値から S3 プレフィックス入りの `ParsedConfig` を作る。"""

    def factory(**overrides: Any) -> ParsedConfig:
        raw: dict[str, Any] = {"s3": _S3_CONFIG}
        raw.update(overrides)
        return parse_config(ForwarderConfig.model_validate(raw))

    return factory


class FakeBlobStore:
    """メモリ上の辞書で S3 を模したストア。"""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.failing_put_prefixes: set[str] = set()
        self.failing_move_targets: set[str] = set()

    def get(self, key: str) -> tuple[io.BytesIO, int]:
        if key not in self.objects:
            raise StorageError(f"S3 GetObject に失敗しました: {key}", code="NoSuchKey", fault="client")
        data = self.objects[key]
        return io.BytesIO(data), len(data)

    def put(self, key: str, data: bytes) -> str:
        if any(key.startswith(prefix) for prefix in self.failing_put_prefixes):
            raise StorageError(f"S3 PutObject に失敗しました: {key}", fault="server")
        self.objects[key] = data
        return '"etag"'

    def move(self, source_key: str, target_key: str) -> None:
        if any(target_key.startswith(prefix) for prefix in self.failing_move_targets):
            raise StorageError(f"S3 CopyObject に失敗しました: {target_key}", fault="server")
        if source_key not in self.objects:
            raise StorageError(
                f"S3 CopyObject に失敗しました: {source_key}", code="NoSuchKey", fault="client"
            )
        self.objects[target_key] = self.objects.pop(source_key)


class FakeSender:
    """送信内容を記録する SES の代役。"""

    def __init__(self) -> None:
        self.error: SendError | None = None
        self.calls: list[tuple[str, list[str], bytes]] = []

    def send(self, source: str, destinations: list[str], data: bytes) -> str:
        self.calls.append((source, list(destinations), data))
        if self.error is not None:
            raise self.error
        return "forwarded-message-id"


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def fake_sender() -> FakeSender:
    return FakeSender()

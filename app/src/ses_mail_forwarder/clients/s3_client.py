"""S3 とのやり取りに使う boto3 クライアントのラッパー。"""

from __future__ import annotations

from functools import lru_cache
from typing import IO, Any

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ses_mail_forwarder.clients.aws_errors import describe_client_error
from ses_mail_forwarder.core.errors import StorageError


@lru_cache(maxsize=None)
def get_client(region: str) -> BaseClient:
    """リージョンに紐づく S3 クライアントを返す。"""

    return boto3.client("s3", region_name=region)


def get_object(bucket: str, key: str, *, region: str) -> dict[str, Any]:
    """S3 からオブジェクトを取得するヘルパー。"""

    client = get_client(region)
    return client.get_object(Bucket=bucket, Key=key)


def put_object(bucket: str, key: str, body: bytes, *, region: str) -> dict[str, Any]:
    client = get_client(region)
    return client.put_object(Bucket=bucket, Key=key, Body=body)


def copy_object(bucket: str, source_key: str, target_key: str, *, region: str) -> dict[str, Any]:
    client = get_client(region)
    return client.copy_object(
        Bucket=bucket,
        CopySource={"Bucket": bucket, "Key": source_key},
        Key=target_key,
    )


def delete_object(bucket: str, key: str, *, region: str) -> dict[str, Any]:
    client = get_client(region)
    return client.delete_object(Bucket=bucket, Key=key)


class S3BlobStore:
    """1 バケットを get/put/move だけの単純なストアとして扱う。"""

    def __init__(self, bucket: str, *, region: str) -> None:
        self.bucket = bucket
        self.region = region

    def get(self, key: str) -> tuple[IO[bytes], int]:
        """本文ストリームとサイズを返す。"""

        try:
            response = get_object(self.bucket, key, region=self.region)
        except (ClientError, BotoCoreError) as exc:
            raise to_storage_error("GetObject", exc) from exc
        return response["Body"], int(response.get("ContentLength") or 0)

    def put(self, key: str, data: bytes) -> str | None:
        try:
            response = put_object(self.bucket, key, data, region=self.region)
        except (ClientError, BotoCoreError) as exc:
            raise to_storage_error("PutObject", exc) from exc
        return response.get("ETag")

    def move(self, source_key: str, target_key: str) -> None:
        """コピー後に元を削除する。アトミックではなく、途中失敗で両方に残り得る。"""

        try:
            copy_object(self.bucket, source_key, target_key, region=self.region)
        except (ClientError, BotoCoreError) as exc:
            raise to_storage_error("CopyObject", exc) from exc
        try:
            delete_object(self.bucket, source_key, region=self.region)
        except (ClientError, BotoCoreError) as exc:
            raise to_storage_error("DeleteObject", exc) from exc


def to_storage_error(operation: str, exc: Exception) -> StorageError:
    if isinstance(exc, ClientError):
        code, message, fault = describe_client_error(exc)
        return StorageError(
            f"S3 {operation} に失敗しました (code: {code}, message: {message}, fault: {fault})",
            code=code,
            error_message=message,
            fault=fault,
        )
    return StorageError(f"S3 {operation} に失敗しました: {exc}", error_message=str(exc))

"""転送設定ファイル（forwardMapping と S3 プレフィックス）の読み込み。"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ses_mail_forwarder.core.errors import AddressParseError, ConfigError
from ses_mail_forwarder.mail.address import Address, parse_address


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class S3IncomingConfig(_CamelModel):
    """受信メールを状態ごとに格納するプレフィックス。"""

    new_prefix: str = ""
    spam_virus_prefix: str = ""
    forwarded_prefix: str = ""
    failed_prefix: str = ""


class S3OutgoingConfig(_CamelModel):
    """送信メールを状態ごとに格納するプレフィックス。"""

    sent_prefix: str = ""
    failed_prefix: str = ""


class S3Config(_CamelModel):
    bucket_name: str = ""
    incoming: S3IncomingConfig = Field(default_factory=S3IncomingConfig)
    outgoing: S3OutgoingConfig = Field(default_factory=S3OutgoingConfig)


class ForwarderConfig(_CamelModel):
    """JSON ファイルそのままの転送設定。"""

    from_email: str = ""
    to_email: str = ""
    subject_prefix: str = ""
    allow_plus_sign: bool = False
    forward_mapping: dict[str, list[str]] = Field(default_factory=dict)
    s3: S3Config = Field(default_factory=S3Config)


@dataclass(frozen=True, slots=True)
class ParsedConfig:
    """転送先アドレスを検証済みの設定。ロード後は変更しない。"""

    from_email: str = ""
    to_email: str = ""
    subject_prefix: str = ""
    allow_plus_sign: bool = False
    forward_mapping: dict[str, list[Address]] = field(default_factory=dict)
    s3: S3Config = field(default_factory=S3Config)


def load_config(path: str | Path) -> ForwarderConfig:
    """JSON ファイルから `ForwarderConfig` を読み込む。"""

    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"設定ファイルを読み込めません: {path}") from exc
    return _validate_json(text)


def parse_config(config: ForwarderConfig) -> ParsedConfig:
    """マッピング先アドレスを解析し `ParsedConfig` を返す。

    マッチキーは小文字に正規化する。正規化後に衝突するキーはエラーとする。
    """

    parsed_mapping: dict[str, list[Address]] = {}
    for key, destinations in config.forward_mapping.items():
        normalized_key = key.lower()
        if normalized_key in parsed_mapping:
            raise ConfigError(f"大文字小文字のみ異なるマッピングキーが重複しています: {key}")

        parsed_destinations: list[Address] = []
        for destination in destinations:
            try:
                parsed_destinations.append(parse_address(destination))
            except AddressParseError as exc:
                raise ConfigError(
                    f"マッピング内のアドレスが不正です: {key} => {destination}"
                ) from exc
        parsed_mapping[normalized_key] = parsed_destinations

    return ParsedConfig(
        from_email=config.from_email,
        to_email=config.to_email,
        subject_prefix=config.subject_prefix,
        allow_plus_sign=config.allow_plus_sign,
        forward_mapping=parsed_mapping,
        s3=config.s3,
    )


def load_and_parse_config(path: str | Path) -> ParsedConfig:
    return parse_config(load_config(path))


def parse_config_json(text: str) -> ParsedConfig:
    """SSM などから取得した JSON 文字列を `ParsedConfig` にする。"""

    return parse_config(_validate_json(text))


def save_config(path: str | Path, config: ForwarderConfig) -> None:
    """`ForwarderConfig` を camelCase の JSON として書き出す。"""

    payload = config.model_dump(by_alias=True)
    try:
        Path(path).write_text(
            json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
        )
    except OSError as exc:
        raise ConfigError(f"設定ファイルを書き込めません: {path}") from exc


def _validate_json(text: str) -> ForwarderConfig:
    try:
        return ForwarderConfig.model_validate_json(text)
    except ValidationError as exc:
        raise ConfigError(f"設定ファイルの形式が不正です: {exc}") from exc

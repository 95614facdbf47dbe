"""アプリ全体で共有する設定読み込みロジック。"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from ses_mail_forwarder.core.config import (
    ParsedConfig,
    load_and_parse_config,
    parse_config_json,
)
from ses_mail_forwarder.core.errors import ConfigError

_DEFAULT_REGION = "ap-northeast-1"
_DEFAULT_CONFIG_FILE = "config.json"
_LOCAL_ENV = "local"
_SSM_CONFIG_KEY = "forwarder/config"


@dataclass(slots=True)
class Settings:
    """環境非依存で参照できる設定値の集合。"""

    app_env: str
    region: str
    function_name: str
    config_path: str
    ssm_path_prefix: str | None = None

    @property
    def is_local(self) -> bool:
        return self.app_env == _LOCAL_ENV


def _resolve_config_path() -> str:
    explicit = os.getenv("FORWARDER_CONFIG_PATH")
    if explicit:
        return explicit
    # ENVIRONMENT があれば config.<ENVIRONMENT>.json を使う
    environment = os.getenv("ENVIRONMENT")
    if environment:
        return f"config.{environment}.json"
    return _DEFAULT_CONFIG_FILE


def _fetch_ssm_parameters(
    region: str, names: Iterable[str], prefix: str
) -> dict[str, str]:
    name_list = [f"{prefix}/{name}" for name in names]
    client = boto3.client("ssm", region_name=region)
    try:
        resp = client.get_parameters(Names=name_list, WithDecryption=True)
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - boto3 例外ラップ
        raise ConfigError("SSM パラメータ取得に失敗しました。") from exc

    found = {item["Name"]: item["Value"] for item in resp.get("Parameters", [])}
    missing = {name for name in name_list if name not in found}
    if missing:
        raise ConfigError(f"SSM パラメータ未設定: {', '.join(sorted(missing))}")
    return found


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """環境変数（ローカルでは `.env` も）から設定を構築する。"""

    app_env = os.getenv("APP_ENV", _LOCAL_ENV)
    if app_env == _LOCAL_ENV:
        load_dotenv()

    region = os.getenv("REGION") or os.getenv("AWS_REGION") or _DEFAULT_REGION
    ssm_path_prefix = None if app_env == _LOCAL_ENV else os.getenv("SSM_PATH_PREFIX")

    return Settings(
        app_env=app_env,
        region=region,
        function_name=os.getenv("AWS_LAMBDA_FUNCTION_NAME", ""),
        config_path=_resolve_config_path(),
        ssm_path_prefix=ssm_path_prefix,
    )


def load_forwarder_config(settings: Settings) -> ParsedConfig:
    """SSM プレフィックスがあれば SSM から、無ければファイルから転送設定を読む。"""

    if settings.ssm_path_prefix:
        values = _fetch_ssm_parameters(
            region=settings.region,
            names=[_SSM_CONFIG_KEY],
            prefix=settings.ssm_path_prefix,
        )
        return parse_config_json(values[f"{settings.ssm_path_prefix}/{_SSM_CONFIG_KEY}"])
    return load_and_parse_config(settings.config_path)

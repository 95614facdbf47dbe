"""SES 受信通知イベントと `/mail/forward` のスキーマ。"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _SesModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class SesCommonHeaders(_SesModel):
    from_: list[str] = Field(default_factory=list, alias="from")
    to: list[str] = Field(default_factory=list)
    subject: str | None = None
    message_id: str | None = None


class SesMail(_SesModel):
    """SES が受信したメールのメタデータ。"""

    message_id: str
    source: str | None = None
    destination: list[str] = Field(default_factory=list)
    common_headers: SesCommonHeaders = Field(default_factory=SesCommonHeaders)


class SesVerdict(_SesModel):
    status: str = ""

    @property
    def failed(self) -> bool:
        return self.status == "FAIL"


class SesReceipt(_SesModel):
    recipients: list[str] = Field(default_factory=list)
    spam_verdict: SesVerdict = Field(default_factory=SesVerdict)
    virus_verdict: SesVerdict = Field(default_factory=SesVerdict)


class SesPayload(_SesModel):
    """1 通分の受信通知（Records[].ses）。"""

    mail: SesMail
    receipt: SesReceipt = Field(default_factory=SesReceipt)


class SesRecord(_SesModel):
    event_source: str = Field("aws:ses", alias="eventSource")
    event_version: str | None = Field(None, alias="eventVersion")
    ses: SesPayload


class SesEvent(_SesModel):
    """Lambda に届く SES イベント全体。"""

    records: list[SesRecord] = Field(default_factory=list, alias="Records")


class ForwardResultModel(BaseModel):
    status: Literal["FORWARDED", "SPAM_VIRUS"]
    message_id: str
    forwarded_message_id: str | None = None
    destinations: list[str] = Field(default_factory=list)


class ForwardResponse(BaseModel):
    results: list[ForwardResultModel] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class ErrorModel(BaseModel):
    """共通エラーモデル。"""

    code: str
    message: str
    retryable: bool


class ForwardErrorResponse(BaseModel):
    error: ErrorModel

    model_config = ConfigDict(extra="forbid")

"""ローカル検証用に SES イベントを HTTP で受け付けるルータ。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ses_mail_forwarder.core.errors import (
    AddressParseError,
    ForwarderError,
    InvalidAddressError,
    MessageParseError,
    NoDestinationsError,
    SendError,
    StorageError,
)
from ses_mail_forwarder.features.forward_mail.schemas_forward_mail import (
    ErrorModel,
    ForwardErrorResponse,
    ForwardResponse,
    ForwardResultModel,
    SesEvent,
)
from ses_mail_forwarder.features.forward_mail.usecase_forward_mail import (
    Forwarder,
    forward_event,
    get_forwarder,
)

router = APIRouter(prefix="/mail", tags=["mail"])

_BAD_REQUEST_ERRORS: dict[type[ForwarderError], str] = {
    AddressParseError: "INVALID_ADDRESS",
    InvalidAddressError: "INVALID_ADDRESS",
    NoDestinationsError: "NO_DESTINATIONS",
    MessageParseError: "INVALID_MESSAGE",
}


async def provide_forwarder() -> Forwarder:
    return get_forwarder()


@router.post(
    "/forward",
    response_model=ForwardResponse,
    responses={400: {"model": ForwardErrorResponse}, 502: {"model": ForwardErrorResponse}},
)
def mail_forward(
    payload: SesEvent,
    forwarder: Forwarder = Depends(provide_forwarder),
) -> ForwardResponse:
    try:
        results = forward_event(payload, forwarder=forwarder)
    except ForwarderError as exc:
        code = _BAD_REQUEST_ERRORS.get(type(exc))
        if code is not None:
            error = ErrorModel(code=code, message=str(exc), retryable=False)
            raise HTTPException(status_code=400, detail={"error": error.model_dump()}) from exc
        error = ErrorModel(code=_upstream_code(exc), message=str(exc), retryable=_retryable(exc))
        raise HTTPException(status_code=502, detail={"error": error.model_dump()}) from exc

    return ForwardResponse(
        results=[
            ForwardResultModel(
                status=result.status,
                message_id=result.message_id,
                forwarded_message_id=result.forwarded_message_id,
                destinations=result.destinations,
            )
            for result in results
        ]
    )


def _upstream_code(exc: ForwarderError) -> str:
    if isinstance(exc, SendError):
        return "SES_SEND_ERROR"
    if isinstance(exc, StorageError):
        return "S3_STORAGE_ERROR"
    return "FORWARD_FAILED"


def _retryable(exc: ForwarderError) -> bool:
    return getattr(exc, "fault", None) == "server"

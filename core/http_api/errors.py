"""
POS HTTP API - Error Mapping
============================
Maps bill operation rejections and malformed requests onto the
response envelope and an HTTP status.

    400  INVALID_REQUEST      body or field failed shape validation
    404  *_NOT_FOUND          product, cart line or combo instance missing
    405  METHOD_NOT_ALLOWED
    409  any other rejection  (stock, combo status, points, incomplete combo)
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

from core.commands.rejection import NOT_FOUND_CODES, RejectionReason
from core.http_api.contracts import HttpApiErrorBody, HttpApiResponse

HTTP_STATUS_INVALID = 400
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_METHOD_NOT_ALLOWED = 405
HTTP_STATUS_REJECTED = 409

INVALID_REQUEST = "INVALID_REQUEST"
METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"


def error_response(
    *,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    body = HttpApiErrorBody(code=code, message=message, details=details or {})
    return HttpApiResponse(ok=False, error=body).to_dict()


def success_response(data: Any) -> dict[str, Any]:
    return HttpApiResponse(ok=True, data=data).to_dict()


def map_rejection_reason(reason: RejectionReason) -> HttpApiErrorBody:
    """The till shows `message`; `message_key` is for translated UIs."""
    return HttpApiErrorBody(
        code=reason.code,
        message=reason.message,
        details={
            "policy_name": reason.policy_name,
            "message_key": f"rejection.{reason.code.lower()}",
        },
    )


def rejection_status(reason: RejectionReason) -> int:
    if reason.code in NOT_FOUND_CODES:
        return HTTP_STATUS_NOT_FOUND
    return HTTP_STATUS_REJECTED


def rejection_response(reason: RejectionReason) -> Tuple[int, dict[str, Any]]:
    body = HttpApiResponse(ok=False, error=map_rejection_reason(reason))
    return rejection_status(reason), body.to_dict()

"""
Tests - HTTP API Envelope and Error Mapping
==============================================
"""

import pytest

from core.commands.rejection import ReasonCode, RejectionReason
from core.http_api.contracts import HttpApiResponse
from core.http_api.errors import (
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_REJECTED,
    error_response,
    map_rejection_reason,
    rejection_response,
    success_response,
)


def _reason(code):
    return RejectionReason(code=code, message="Refused.", policy_name="test_policy")


class TestEnvelope:
    def test_success(self):
        assert success_response({"grand_total": 800}) == {
            "ok": True, "data": {"grand_total": 800},
        }

    def test_error(self):
        body = error_response(code="INVALID_REQUEST", message="bad")
        assert body == {
            "ok": False,
            "error": {"code": "INVALID_REQUEST", "message": "bad", "details": {}},
        }

    def test_failed_response_needs_error(self):
        with pytest.raises(ValueError, match="error must be set"):
            HttpApiResponse(ok=False).to_dict()


class TestRejectionMapping:
    def test_details_carry_policy_and_key(self):
        body = map_rejection_reason(_reason(ReasonCode.INSUFFICIENT_STOCK))
        assert body.details == {
            "policy_name": "test_policy",
            "message_key": "rejection.insufficient_stock",
        }

    @pytest.mark.parametrize("code", [
        ReasonCode.PRODUCT_NOT_FOUND,
        ReasonCode.LINE_NOT_FOUND,
        ReasonCode.COMBO_INSTANCE_NOT_FOUND,
    ])
    def test_missing_entities_are_404(self, code):
        status, body = rejection_response(_reason(code))
        assert status == HTTP_STATUS_NOT_FOUND
        assert body["error"]["code"] == code

    @pytest.mark.parametrize("code", [
        ReasonCode.INSUFFICIENT_STOCK,
        ReasonCode.COMBO_NOT_ACTIVE,
        ReasonCode.COMBO_INCOMPLETE,
        ReasonCode.INSUFFICIENT_POINTS,
    ])
    def test_refusals_are_409(self, code):
        status, body = rejection_response(_reason(code))
        assert status == HTTP_STATUS_REJECTED
        assert body["ok"] is False

"""
Tests - Django POS Adapter
==============================
Envelope, status mapping and the bill flow over the dev wiring.
"""

from __future__ import annotations

import json

import pytest

from adapters.django_api import views
from adapters.django_api.wiring import (
    DEV_CUSTOMER_PHONE,
    build_dependencies,
    reset_dependencies,
)


@pytest.fixture(autouse=True)
def fresh_wiring():
    reset_dependencies()
    yield
    reset_dependencies()


def _post(rf, view, body, *, raw=None):
    request = rf.post(
        "/pos/",
        data=raw if raw is not None else json.dumps(body),
        content_type="application/json",
    )
    response = view(request)
    return response.status_code, json.loads(response.content)


def _get(rf, view, **params):
    response = view(rf.get("/pos/", params))
    return response.status_code, json.loads(response.content)


# ══════════════════════════════════════════════════════════════
# ENVELOPE & VALIDATION
# ══════════════════════════════════════════════════════════════

class TestEnvelope:
    def test_scan_success(self, rf):
        status, body = _post(rf, views.scan_view, {"code": "SKU-TEE", "quantity": 2})
        assert status == 200
        assert body["ok"] is True
        assert body["data"]["totals"]["grand_total"] == 800
        assert body["data"]["lines"][0]["quantity"] == 2

    def test_invalid_json(self, rf):
        status, body = _post(rf, views.scan_view, None, raw="{not json")
        assert status == 400
        assert body["ok"] is False
        assert body["error"]["code"] == "INVALID_REQUEST"

    def test_missing_field(self, rf):
        status, body = _post(rf, views.scan_view, {"quantity": 1})
        assert status == 400
        assert body["error"]["code"] == "INVALID_REQUEST"

    def test_non_integer_quantity(self, rf):
        status, body = _post(rf, views.scan_view, {"code": "SKU-TEE", "quantity": "2"})
        assert status == 400
        assert "integer" in body["error"]["message"]

    def test_wrong_method(self, rf):
        response = views.scan_view(rf.get("/pos/"))
        assert response.status_code == 405
        response = views.totals_view(rf.post("/pos/"))
        assert response.status_code == 405


# ══════════════════════════════════════════════════════════════
# REJECTIONS
# ══════════════════════════════════════════════════════════════

class TestRejections:
    def test_unknown_product_is_404(self, rf):
        status, body = _post(rf, views.scan_view, {"code": "0000"})
        assert status == 404
        assert body["error"]["code"] == "PRODUCT_NOT_FOUND"
        assert body["error"]["details"]["policy_name"] == "catalog_lookup"

    def test_insufficient_stock_is_409(self, rf):
        status, body = _post(rf, views.scan_view, {"code": "SKU-KURTA", "quantity": 11})
        assert status == 409
        assert body["error"]["code"] == "INSUFFICIENT_STOCK"
        _, totals = _get(rf, views.totals_view)
        assert totals["data"]["grand_total"] == 0

    def test_unknown_combo_instance_is_404(self, rf):
        status, body = _post(rf, views.combo_close_view, {"instance_id": "C0404"})
        assert status == 404
        assert body["error"]["code"] == "COMBO_INSTANCE_NOT_FOUND"

    def test_incomplete_combo_blocks_finalize(self, rf):
        _post(rf, views.combo_open_view, {"combo_id": "COMBO-OUTFIT"})
        _post(rf, views.scan_view, {"code": "SKU-TEE"})
        status, body = _post(rf, views.finalize_view, {"payment_method": "CASH"})
        assert status == 409
        assert body["error"]["code"] == "COMBO_INCOMPLETE"


# ══════════════════════════════════════════════════════════════
# BILL FLOW
# ══════════════════════════════════════════════════════════════

class TestBillFlow:
    def test_active_combos(self, rf):
        status, body = _get(rf, views.active_combos_view)
        assert status == 200
        assert {c["combo_id"] for c in body["data"]} == {"COMBO-OUTFIT", "COMBO-ANY3"}

    def test_combo_pricing_and_line_items(self, rf):
        _, opened = _post(rf, views.combo_open_view, {"combo_id": "COMBO-OUTFIT"})
        assert opened["data"]["instance_id"]
        _post(rf, views.scan_view, {"code": "SKU-TEE"})
        _, scanned = _post(rf, views.scan_view, {"code": "SKU-JEANS"})
        assert scanned["data"]["combos"][0]["state"] == "OPEN_COMPLETE"

        _, totals = _get(rf, views.totals_view)
        assert totals["data"]["grand_total"] == 800
        assert totals["data"]["total_savings"] == 200

        _, items = _get(rf, views.line_items_view)
        prices = {i["product_id"]: i["unit_price_charged"] for i in items["data"]}
        assert prices == {"SKU-TEE": 320, "SKU-JEANS": 480}
        assert all(i["is_combo_applied"] for i in items["data"])

    def test_close_combo_and_edit_quantity(self, rf):
        _, opened = _post(rf, views.combo_open_view, {"combo_id": "COMBO-ANY3"})
        _post(rf, views.scan_view, {"code": "SKU-TEE"})
        _, closed = _post(
            rf, views.combo_close_view, {"instance_id": opened["data"]["instance_id"]},
        )
        assert closed["data"]["combos"] == []
        line_id = closed["data"]["lines"][0]["cart_line_id"]

        status, body = _post(
            rf, views.line_quantity_view, {"cart_line_id": line_id, "quantity": 3},
        )
        assert status == 200
        assert body["data"]["totals"]["grand_total"] == 1200

    def test_manual_item(self, rf):
        status, body = _post(
            rf, views.manual_item_view, {"name": "Gift Wrap", "price": 30},
        )
        assert status == 200
        assert body["data"]["lines"][0]["is_manual"] is True

    def test_finalize_with_redemption(self, rf, settings):
        settings.POS_POINT_VALUE = 2
        _post(rf, views.combo_open_view, {"combo_id": "COMBO-OUTFIT"})
        _post(rf, views.scan_view, {"code": "SKU-TEE"})
        _post(rf, views.scan_view, {"code": "SKU-JEANS"})

        status, body = _post(rf, views.finalize_view, {
            "payment_method": "UPI",
            "customer_phone": DEV_CUSTOMER_PHONE,
            "redeem_points": 100,
        })

        assert status == 200
        data = body["data"]
        assert data["totals"]["grand_total"] == 800
        assert data["redeemed_value"] == 200
        assert data["payable_amount"] == 600
        assert data["earned_points"] == 500  # 320 -> 200, 480 -> 300
        assert build_dependencies().loyalty.get_balance(DEV_CUSTOMER_PHONE) == 900

        _, totals = _get(rf, views.totals_view)
        assert totals["data"]["grand_total"] == 0

    def test_tills_are_isolated(self, rf):
        _post(rf, views.scan_view, {"code": "SKU-TEE", "till_id": "till-2"})
        _, other = _get(rf, views.totals_view, till_id="till-3")
        _, same = _get(rf, views.totals_view, till_id="till-2")
        assert other["data"]["grand_total"] == 0
        assert same["data"]["grand_total"] == 400

    def test_clear(self, rf):
        _post(rf, views.scan_view, {"code": "SKU-TEE"})
        status, body = _post(rf, views.clear_view, {})
        assert status == 200
        assert body["data"]["lines"] == []

    def test_taxes_and_points(self, rf):
        _post(rf, views.scan_view, {"code": "SKU-KURTA"})
        _, taxes = _get(rf, views.taxes_view)
        assert taxes["data"][0]["gst_rate_percent"] == 12
        _, points = _get(rf, views.points_view)
        assert points["data"]["total"] == 600

"""
Tests for the Razorpay adapter: error mapping and the signature contract.
No network calls; the SDK resource methods are replaced per test.
"""

import time

import pytest
from razorpay.errors import BadRequestError, ServerError

from chessbook.core.errors import GatewayRejected, GatewayUnavailable
from chessbook.infrastructure.razorpay_gateway import RazorpayGateway
from chessbook.services.interfaces import compute_signature

SECRET = "rzp_test_secret"


@pytest.fixture
def razorpay_gateway() -> RazorpayGateway:
    return RazorpayGateway("rzp_test_key", SECRET, timeout=0.2)


def test_sdk_accepts_our_signature(razorpay_gateway):
    signature = compute_signature(SECRET, "order_abc", "pay_xyz")
    assert razorpay_gateway.verify_signature("order_abc", "pay_xyz", signature) is True
    assert razorpay_gateway.verify_signature("order_abc", "pay_other", signature) is False


@pytest.mark.asyncio
async def test_create_order_maps_response(razorpay_gateway, monkeypatch):
    def fake_create(data):
        return {"id": "order_1", "amount": data["amount"], "currency": data["currency"], "status": "created"}

    monkeypatch.setattr(razorpay_gateway.client.order, "create", fake_create)

    order = await razorpay_gateway.create_order(51000, "INR", "CC-20250101-1234")
    assert order.order_id == "order_1"
    assert order.amount == 51000
    assert order.raw["status"] == "created"


@pytest.mark.asyncio
async def test_bad_request_is_rejected_not_retryable(razorpay_gateway, monkeypatch):
    def fake_create(data):
        raise BadRequestError("amount must be at least INR 1.00")

    monkeypatch.setattr(razorpay_gateway.client.order, "create", fake_create)

    with pytest.raises(GatewayRejected) as exc:
        await razorpay_gateway.create_order(0, "INR", "CC-20250101-1234")
    assert exc.value.retryable is False


@pytest.mark.asyncio
async def test_server_and_network_errors_are_retryable(razorpay_gateway, monkeypatch):
    def server_down(data):
        raise ServerError("upstream 502")

    monkeypatch.setattr(razorpay_gateway.client.order, "create", server_down)
    with pytest.raises(GatewayUnavailable):
        await razorpay_gateway.create_order(100, "INR", "r")

    def connection_reset(payment_id, data):
        raise ConnectionResetError("reset by peer")

    monkeypatch.setattr(razorpay_gateway.client.payment, "refund", connection_reset)
    with pytest.raises(GatewayUnavailable) as exc:
        await razorpay_gateway.refund("pay_1", 100)
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_slow_gateway_times_out(razorpay_gateway, monkeypatch):
    def slow_create(data):
        time.sleep(1)
        return {"id": "order_late"}

    monkeypatch.setattr(razorpay_gateway.client.order, "create", slow_create)

    with pytest.raises(GatewayUnavailable):
        await razorpay_gateway.create_order(100, "INR", "r")

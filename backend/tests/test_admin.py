"""
Tests for admin endpoints: oversight, status overrides, refunds and flags.
"""

import asyncio

import pytest
from httpx import AsyncClient

from chessbook.core.errors import GatewayUnavailable
from chessbook.core.feature_flags import feature_flags
from chessbook.core.security import CallerIdentity
from chessbook.models.enums import BookingStatus, UserRole
from chessbook.services import booking_service
from conftest import current_bookings


async def book(client, headers, event, participant) -> dict:
    response = await client.post(
        "/api/v1/bookings/",
        json={"event_id": event.id, "participants": [{"participant_id": participant.id}]},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["booking"]


async def paid_online_booking(client, headers, gateway, event, participant) -> tuple[dict, dict]:
    booking = await book(client, headers, event, participant)
    order = (await client.post("/api/v1/payments/create-order", json={"booking_id": booking["id"]}, headers=headers)).json()
    verified = await client.post(
        "/api/v1/payments/verify",
        json={
            "razorpay_order_id": order["order_id"],
            "razorpay_payment_id": "pay_test0001",
            "razorpay_signature": gateway.sign(order["order_id"], "pay_test0001"),
        },
        headers=headers,
    )
    assert verified.status_code == 200
    payment = (await client.get(f"/api/v1/payments/booking/{booking['id']}", headers=headers)).json()[0]
    return booking, payment


@pytest.mark.asyncio
async def test_admin_endpoints_require_admin(client: AsyncClient, auth_headers):
    assert (await client.get("/api/v1/admin/bookings", headers=auth_headers)).status_code == 403
    assert (await client.post("/api/v1/admin/settings/invalidate", headers=auth_headers)).status_code == 403
    assert (await client.get("/api/v1/admin/bookings")).status_code == 401


@pytest.mark.asyncio
async def test_admin_lists_everyones_bookings(
    client: AsyncClient, admin_headers, auth_headers, other_headers, test_event, participant, other_participant
):
    mine = await book(client, auth_headers, test_event, participant)
    await book(client, other_headers, test_event, other_participant)

    response = await client.get("/api/v1/admin/bookings", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 2

    by_reference = await client.get(
        f"/api/v1/admin/bookings?search={mine['booking_reference']}", headers=admin_headers
    )
    assert [b["id"] for b in by_reference.json()["bookings"]] == [mine["id"]]

    by_email = await client.get("/api/v1/admin/bookings?search=other@", headers=admin_headers)
    assert by_email.json()["total"] == 1
    assert by_email.json()["bookings"][0]["id"] != mine["id"]


@pytest.mark.asyncio
async def test_admin_completes_confirmed_booking(
    client: AsyncClient, admin, admin_headers, auth_headers, audit_sink, test_event, participant
):
    booking = await book(client, auth_headers, test_event, participant)
    await client.post("/api/v1/payments/offline", json={"booking_id": booking["id"]}, headers=auth_headers)

    response = await client.patch(
        f"/api/v1/admin/bookings/{booking['id']}/status",
        json={"booking_status": "COMPLETED", "admin_remarks": "Played all rounds"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["booking_status"] == "COMPLETED"
    assert response.json()["admin_remarks"] == "Played all rounds"

    record = audit_sink.records[-1]
    assert record.action == "UPDATE_BOOKING_STATUS"
    assert record.admin_id == admin.id
    assert record.entity_id == booking["id"]
    assert record.old_value["booking_status"] == "CONFIRMED"
    assert record.new_value["booking_status"] == "COMPLETED"


@pytest.mark.asyncio
async def test_admin_cannot_complete_unpaid_booking(client: AsyncClient, admin_headers, auth_headers, audit_sink, test_event, participant):
    booking = await book(client, auth_headers, test_event, participant)

    response = await client.patch(
        f"/api/v1/admin/bookings/{booking['id']}/status",
        json={"booking_status": "COMPLETED"},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATE_TRANSITION"
    assert audit_sink.records == []


@pytest.mark.asyncio
async def test_complete_booking_service(client: AsyncClient, db_session, admin, auth_headers, test_event, participant):
    booking = await book(client, auth_headers, test_event, participant)
    await client.post("/api/v1/payments/offline", json={"booking_id": booking["id"]}, headers=auth_headers)

    completed = await booking_service.complete_booking(
        db_session, booking["id"], CallerIdentity(user_id=admin.id, role=UserRole.ADMIN)
    )
    assert completed.booking_status is BookingStatus.COMPLETED

    response = await client.get(f"/api/v1/bookings/{booking['id']}", headers=auth_headers)
    assert response.json()["booking_status"] == "COMPLETED"
    assert response.json()["payment_status"] == "PAID"


@pytest.mark.asyncio
async def test_admin_cannot_force_arbitrary_status(client: AsyncClient, admin_headers, auth_headers, test_event, participant):
    booking = await book(client, auth_headers, test_event, participant)

    response = await client.patch(
        f"/api/v1/admin/bookings/{booking['id']}/status",
        json={"booking_status": "CONFIRMED"},
        headers=admin_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_admin_cancel_releases_slots(
    client: AsyncClient, admin_headers, auth_headers, session_factory, single_slot_event, participant
):
    booking = await book(client, auth_headers, single_slot_event, participant)

    response = await client.patch(
        f"/api/v1/admin/bookings/{booking['id']}/status",
        json={"booking_status": "CANCELLED", "admin_remarks": "Duplicate entry"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["cancellation_reason"] == "Duplicate entry"
    assert await current_bookings(session_factory, single_slot_event.id) == 0


@pytest.mark.asyncio
async def test_cannot_cancel_completed_booking(client: AsyncClient, admin_headers, auth_headers, test_event, participant):
    booking = await book(client, auth_headers, test_event, participant)
    await client.post("/api/v1/payments/offline", json={"booking_id": booking["id"]}, headers=auth_headers)
    await client.patch(
        f"/api/v1/admin/bookings/{booking['id']}/status",
        json={"booking_status": "COMPLETED"},
        headers=admin_headers,
    )

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CANNOT_CANCEL_COMPLETED"


@pytest.mark.asyncio
async def test_refund_after_cancellation(
    client: AsyncClient, admin, admin_headers, auth_headers, gateway, audit_sink, concession_event, participant
):
    booking, payment = await paid_online_booking(client, auth_headers, gateway, concession_event, participant)
    await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)

    response = await client.post(f"/api/v1/admin/payments/{payment['id']}/refund", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["payment_status"] == "REFUNDED"
    assert data["refund_amount"] is not None
    assert data["refund_date"] is not None
    assert gateway.refunds == [("pay_test0001", 50000)]

    record = audit_sink.records[-1]
    assert record.action == "REFUND_PAYMENT"
    assert record.entity_type == "PAYMENT"
    assert record.admin_id == admin.id

    again = await client.post(f"/api/v1/admin/payments/{payment['id']}/refund", headers=admin_headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "PAYMENT_NOT_REFUNDABLE"
    assert len(gateway.refunds) == 1


@pytest.mark.asyncio
async def test_refund_requires_cancellation(client: AsyncClient, admin_headers, auth_headers, gateway, concession_event, participant):
    _, payment = await paid_online_booking(client, auth_headers, gateway, concession_event, participant)

    response = await client.post(f"/api/v1/admin/payments/{payment['id']}/refund", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "REFUND_REQUIRES_CANCELLATION"
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_failed_gateway_refund_leaves_payment_completed(
    client: AsyncClient, admin_headers, auth_headers, gateway, audit_sink, concession_event, participant
):
    booking, payment = await paid_online_booking(client, auth_headers, gateway, concession_event, participant)
    await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    gateway.fail_with = GatewayUnavailable("Payment gateway timed out")

    response = await client.post(f"/api/v1/admin/payments/{payment['id']}/refund", headers=admin_headers)
    assert response.status_code == 503
    assert response.headers["retry-after"] == "5"
    assert gateway.refunds == []
    assert audit_sink.records == []

    stored = (await client.get(f"/api/v1/payments/booking/{booking['id']}", headers=auth_headers)).json()[0]
    assert stored["payment_status"] == "COMPLETED"
    assert stored["refund_date"] is None

    # The claim was released, so the admin can retry
    gateway.fail_with = None
    retry = await client.post(f"/api/v1/admin/payments/{payment['id']}/refund", headers=admin_headers)
    assert retry.status_code == 200
    assert retry.json()["payment_status"] == "REFUNDED"
    assert len(gateway.refunds) == 1


@pytest.mark.asyncio
async def test_concurrent_refunds_reach_gateway_once(
    client: AsyncClient, admin_headers, auth_headers, gateway, monkeypatch, concession_event, participant
):
    booking, payment = await paid_online_booking(client, auth_headers, gateway, concession_event, participant)
    await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)

    refund = gateway.refund

    async def slow_refund(payment_id, amount):
        await asyncio.sleep(0.05)
        return await refund(payment_id, amount)

    monkeypatch.setattr(gateway, "refund", slow_refund)

    url = f"/api/v1/admin/payments/{payment['id']}/refund"
    first, second = await asyncio.gather(
        client.post(url, headers=admin_headers),
        client.post(url, headers=admin_headers),
    )

    assert sorted([first.status_code, second.status_code]) == [200, 409]
    loser = first if first.status_code == 409 else second
    assert loser.json()["error"]["code"] == "PAYMENT_NOT_REFUNDABLE"
    assert gateway.refunds == [("pay_test0001", 50000)]

    stored = (await client.get(f"/api/v1/payments/booking/{booking['id']}", headers=auth_headers)).json()[0]
    assert stored["payment_status"] == "REFUNDED"


@pytest.mark.asyncio
async def test_offline_refund_skips_gateway(client: AsyncClient, admin_headers, auth_headers, gateway, test_event, participant):
    booking = await book(client, auth_headers, test_event, participant)
    await client.post("/api/v1/payments/offline", json={"booking_id": booking["id"]}, headers=auth_headers)
    await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    payment = (await client.get(f"/api/v1/payments/booking/{booking['id']}", headers=auth_headers)).json()[0]

    response = await client.post(f"/api/v1/admin/payments/{payment['id']}/refund", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["payment_status"] == "REFUNDED"
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_admin_offline_settlement_is_audited(
    client: AsyncClient, admin_headers, auth_headers, audit_sink, test_event, participant
):
    booking = await book(client, auth_headers, test_event, participant)

    response = await client.post(
        "/api/v1/payments/offline",
        json={"booking_id": booking["id"], "evidence": {"method": "bank_transfer"}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert audit_sink.records[-1].action == "OFFLINE_PAYMENT"


@pytest.mark.asyncio
async def test_invalidate_feature_flags(client: AsyncClient, admin_headers):
    await feature_flags.get()

    response = await client.post("/api/v1/admin/settings/invalidate", headers=admin_headers)
    assert response.status_code == 200
    assert feature_flags._policy is None

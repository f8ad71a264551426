"""
Tests for health, metrics and request middleware.
"""

import pytest
from httpx import AsyncClient

from chessbook.core.logging import redact_secrets


@pytest.mark.asyncio
async def test_health_without_redis(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == "disabled"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "cb-123"})
    assert response.headers["x-request-id"] == "cb-123"
    assert response.headers["x-response-time"].endswith("ms")

    generated = await client.get("/health")
    assert generated.headers["x-request-id"]


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient):
    await client.get("/health")
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "http_request_latency_seconds" in response.text
    assert "booking_attempts_total" in response.text


def test_signatures_are_redacted_from_logs():
    event = redact_secrets(None, "warning", {"event": "payment_signature_invalid", "signature": "abc", "order_id": "o1"})
    assert event["signature"] == "***"
    assert event["order_id"] == "o1"

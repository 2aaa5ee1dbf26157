"""
Tests for health check endpoints.
"""
import pytest

from hotel_pricing.models import PricingEvent


@pytest.mark.asyncio
async def test_health_endpoint_returns_healthy(client):
    """Test that the /health endpoint returns a healthy status."""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "healthy"
    assert data["pending_events"] == 0
    assert data["scheduler"]["running"] is False


@pytest.mark.asyncio
async def test_health_counts_pending_events(client, db_session):
    db_session.add(PricingEvent(event_type="booking_change", room_id="r1"))
    db_session.add(PricingEvent(event_type="booking_change", room_id="r2", status="completed", processed=True))
    db_session.commit()

    response = await client.get("/health")

    assert response.json()["pending_events"] == 1


@pytest.mark.asyncio
async def test_health_returns_json(client):
    """Test that the /health endpoint returns JSON content type."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_ping(client):
    response = await client.get("/ping")

    assert response.json() == {"status": "ok"}

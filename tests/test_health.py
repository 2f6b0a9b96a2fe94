"""Tests for health endpoints."""

import pytest


@pytest.mark.asyncio
async def test_health_endpoint(client):
    """Test basic health check."""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "tenderflow"


@pytest.mark.asyncio
async def test_readiness_checks_database(client):
    response = await client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "connected"


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Test root endpoint."""
    response = await client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "TenderFlow"
    assert data["version"] == "1.0.0"


@pytest.mark.asyncio
async def test_scheduler_status_lists_job_stats(client):
    response = await client.get("/scheduler/status")

    assert response.status_code == 200
    data = response.json()
    assert data["running"] is False
    assert {job["job_id"] for job in data["stats"]} >= {
        "close_expired_tenders",
        "deadline_reminders",
        "retry_outbox",
    }

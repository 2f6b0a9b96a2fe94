"""Tests for the SQL-backed document store."""

from datetime import datetime, timezone

import pytest

from tenderflow.exceptions import ConflictError, NotFoundError
from tenderflow.schemas import TenderStatus


@pytest.mark.asyncio
async def test_create_and_get(gateway):
    created = await gateway.create(
        "tenders",
        {"title": "Ny barnehage", "status": TenderStatus.OPEN, "deadline": datetime(2026, 4, 1, tzinfo=timezone.utc)},
    )

    fetched = await gateway.get("tenders", created["id"])
    assert fetched["id"] == created["id"]
    assert fetched["status"] == "open"
    assert fetched["deadline"].startswith("2026-04-01T00:00:00")


@pytest.mark.asyncio
async def test_get_respects_collection(gateway):
    created = await gateway.create("tenders", {"title": "Veivedlikehold"})

    assert await gateway.get("contracts", created["id"]) is None
    assert await gateway.get("tenders", "") is None


@pytest.mark.asyncio
async def test_query_filters(gateway):
    await gateway.create("notifications", {"user_id": "u1", "read": False, "priority": 1})
    await gateway.create("notifications", {"user_id": "u1", "read": True, "priority": 2})
    await gateway.create("notifications", {"user_id": "u2", "read": False, "priority": 1})

    unread = await gateway.query("notifications", {"user_id": "u1", "read": False})
    assert len(unread) == 1

    by_priority = await gateway.query("notifications", {"priority": 1})
    assert {doc["user_id"] for doc in by_priority} == {"u1", "u2"}

    assert len(await gateway.query("notifications")) == 3


@pytest.mark.asyncio
async def test_conditional_update_conflict(gateway):
    created = await gateway.create("tenders", {"status": "open", "title": "Brannstasjon"})

    with pytest.raises(ConflictError):
        await gateway.update("tenders", created["id"], {"status": "awarded"}, expected={"status": "closed"})

    unchanged = await gateway.get("tenders", created["id"])
    assert unchanged["status"] == "open"

    updated = await gateway.update(
        "tenders", created["id"], {"status": "closed"}, expected={"status": TenderStatus.OPEN}
    )
    assert updated["status"] == "closed"
    assert updated["title"] == "Brannstasjon"


@pytest.mark.asyncio
async def test_update_missing_document(gateway):
    with pytest.raises(NotFoundError):
        await gateway.update("tenders", "missing", {"status": "closed"})


@pytest.mark.asyncio
async def test_delete(gateway):
    created = await gateway.create("tenders", {"title": "Kulvert"})
    await gateway.delete("tenders", created["id"])

    assert await gateway.get("tenders", created["id"]) is None

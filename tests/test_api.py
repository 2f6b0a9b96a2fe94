"""Tests for the tender and contract HTTP API."""

import pytest

BUYER_HEADERS = {"X-User-Id": "buyer-1"}
SUPPLIER_HEADERS = {"X-User-Id": "supplier-1"}


async def create_tender(client, **fields):
    payload = {
        "title": "Utomhusbelysning",
        "deadline": "2026-03-16T12:00:00Z",
        "status": "draft",
        "invited_suppliers": [{"supplier_id": "supplier-1", "email": "post@bygg1.no"}],
        **fields,
    }
    response = await client.post("/api/v1/tenders", json=payload, headers=BUYER_HEADERS)
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_unknown_user_rejected(client):
    response = await client.post(
        "/api/v1/tenders",
        json={"title": "X", "deadline": "2026-03-16T12:00:00Z"},
        headers={"X-User-Id": "nobody"},
    )
    assert response.status_code == 401

    missing = await client.post("/api/v1/tenders", json={"title": "X"})
    assert missing.status_code == 422


@pytest.mark.asyncio
async def test_tender_to_award_flow(client, transport):
    created = await create_tender(client)
    assert created["success"]
    tender_id = created["data"]["id"]

    published = (await client.post(f"/api/v1/tenders/{tender_id}/publish")).json()
    assert published["success"]
    assert published["data"]["notifications"]["succeeded"] == 1

    bid = (await client.post(
        f"/api/v1/tenders/{tender_id}/bids",
        data={"price": "990000", "notes": "Med LED-armaturer"},
        headers=SUPPLIER_HEADERS,
    )).json()
    assert bid["success"]
    bid_id = bid["data"]["id"]

    invitations = (await client.get("/api/v1/tenders/invitations", headers=SUPPLIER_HEADERS)).json()
    assert [t["id"] for t in invitations["data"]] == [tender_id]

    awarded = (await client.post(f"/api/v1/tenders/{tender_id}/award", json={"bid_id": bid_id})).json()
    assert awarded["success"]
    assert awarded["data"]["award_letter"]["standstill_period_days"] == 10
    assert len(transport.to("post@bygg1.no", "Tilbud tildelt")) == 1

    early = (await client.post(f"/api/v1/tenders/{tender_id}/contract")).json()
    assert not early["success"]
    assert "ventetiden" in early["error"]


@pytest.mark.asyncio
async def test_domain_errors_are_results(client):
    created = await create_tender(client)
    tender_id = created["data"]["id"]

    question = (await client.post(
        f"/api/v1/tenders/{tender_id}/questions", json={"question": "Hvor mange master?"}, headers=SUPPLIER_HEADERS
    )).json()
    assert question == {
        "success": False,
        "error": "Du kan ikke stille spørsmål før anskaffelsen er publisert.",
        "data": None,
    }

    missing = (await client.get("/api/v1/contracts/missing")).json()
    assert not missing["success"]
    assert missing["error"] == "Kontrakt ikke funnet"


@pytest.mark.asyncio
async def test_list_tenders_by_status(client):
    await create_tender(client, title="Utkast")
    await create_tender(client, title="Åpen", status="open")

    response = (await client.get("/api/v1/tenders", params={"status": "open"})).json()

    assert [t["title"] for t in response["data"]] == ["Åpen"]


@pytest.mark.asyncio
async def test_standstill_status_and_viewed(client, services, clock):
    created = await create_tender(client, status="open")
    tender_id = created["data"]["id"]

    viewed = (await client.post(f"/api/v1/tenders/{tender_id}/viewed", headers=SUPPLIER_HEADERS)).json()
    assert viewed["data"]["invited_suppliers"][0]["status"] == "viewed"

    bid = (await client.post(
        f"/api/v1/tenders/{tender_id}/bids", data={"price": "120000"}, headers=SUPPLIER_HEADERS
    )).json()
    await client.post(f"/api/v1/tenders/{tender_id}/award", json={"bid_id": bid["data"]["id"]})

    status = (await client.get(f"/api/v1/tenders/{tender_id}/standstill")).json()["data"]
    assert status["is_over"] is False
    assert status["remaining_days"] == 11

    clock.advance(days=11)
    status = (await client.get(f"/api/v1/tenders/{tender_id}/standstill")).json()["data"]
    assert status == {**status, "is_over": True, "remaining_days": 0}


@pytest.mark.asyncio
async def test_document_upload_and_versions(client):
    created = await create_tender(client)
    tender_id = created["data"]["id"]

    uploaded = (await client.post(
        f"/api/v1/tenders/{tender_id}/documents",
        files=[("files", ("konkurransegrunnlag.pdf", b"%PDF-1.4", "application/pdf"))],
        headers=BUYER_HEADERS,
    )).json()
    assert uploaded["success"]
    document_id = uploaded["data"][0]["id"]

    versions = (await client.get(f"/api/v1/tenders/documents/{document_id}/versions")).json()
    assert [v["version_number"] for v in versions["data"]] == [1]
    assert versions["data"][0]["uploaded_by_name"] == "Kari Nordmann"


@pytest.mark.asyncio
async def test_notification_inbox(client):
    created = await create_tender(client, status="open")
    tender_id = created["data"]["id"]
    await client.post(f"/api/v1/tenders/{tender_id}/bids", data={"price": "1"}, headers=SUPPLIER_HEADERS)
    await client.post(
        f"/api/v1/tenders/{tender_id}/questions", json={"question": "Befaring?"}, headers=SUPPLIER_HEADERS
    )

    count = (await client.get("/api/v1/notifications/unread-count", headers=BUYER_HEADERS)).json()
    assert count["data"] == 2

    inbox = (await client.get("/api/v1/notifications", headers=BUYER_HEADERS)).json()["data"]
    await client.post(f"/api/v1/notifications/{inbox[0]['id']}/read")
    count = (await client.get("/api/v1/notifications/unread-count", headers=BUYER_HEADERS)).json()
    assert count["data"] == 1

    marked = (await client.post("/api/v1/notifications/read-all", headers=BUYER_HEADERS)).json()
    assert marked["data"] == 1

    await client.delete(f"/api/v1/notifications/{inbox[1]['id']}")
    remaining = (await client.get("/api/v1/notifications", headers=BUYER_HEADERS)).json()["data"]
    assert [n["id"] for n in remaining] == [inbox[0]["id"]]
    assert remaining[0]["read"] is True

    missing = (await client.post("/api/v1/notifications/unknown/read")).json()
    assert not missing["success"]


@pytest.mark.asyncio
async def test_create_awarded_tender_refused(client):
    response = await client.post(
        "/api/v1/tenders",
        json={"title": "Snarvei", "deadline": "2026-03-16T12:00:00Z", "status": "awarded"},
        headers=BUYER_HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["success"] is False
    listed = (await client.get("/api/v1/tenders")).json()
    assert listed["data"] == []


@pytest.mark.asyncio
async def test_complaint_flow(client):
    created = await create_tender(client, status="open")
    tender_id = created["data"]["id"]

    filed = (await client.post(
        "/api/v1/complaints",
        json={"title": "Uklar kravspesifikasjon", "description": "Mengdene mangler.", "related_tender_id": tender_id},
        headers=SUPPLIER_HEADERS,
    )).json()
    assert filed["success"]
    complaint_id = filed["data"]["id"]

    invalid = (await client.post(
        f"/api/v1/complaints/{complaint_id}/status", json={"status": "pending"}, headers=BUYER_HEADERS
    )).json()
    assert invalid == {"success": False, "error": "Ugyldig status", "data": None}

    await client.post(
        f"/api/v1/complaints/{complaint_id}/comments", json={"comment": "Mottatt"}, headers=BUYER_HEADERS
    )
    resolved = (await client.post(
        f"/api/v1/complaints/{complaint_id}/resolution",
        json={"resolution": "Mengdeliste publisert"},
        headers=BUYER_HEADERS,
    )).json()
    assert resolved["data"]["status"] == "resolved"

    listed = (await client.get("/api/v1/complaints", params={"tender_id": tender_id})).json()
    assert [c["id"] for c in listed["data"]] == [complaint_id]
    assert listed["data"][0]["comments"][0]["text"] == "Mottatt"

"""Tests for bid submission."""

import pytest

from conftest import create_open_tender, set_preferences
from tenderflow.exceptions import PolicyViolationError
from tenderflow.schemas import BidCreate, FileUpload, InvitationStatus, NotificationType, TenderStatus


@pytest.mark.asyncio
async def test_submit_bid_on_open_tender(services, buyer, suppliers, transport):
    tender = await create_open_tender(services, buyer, invited=suppliers[:2])
    supplier = suppliers[0]

    bid = await services.bids.submit_bid(
        tender.id,
        BidCreate(price=1_450_000, notes="Inkluderer rigg og drift"),
        supplier,
        files=[FileUpload("tilbud.pdf", b"%PDF-1.4 tilbud", "application/pdf")],
    )

    assert bid.company_name == "Bygg 1 AS"
    assert bid.documents[0].url.startswith("https://app.test/files/tenders/")

    stored = await services.tenders.get_tender(tender.id)
    assert [b.id for b in stored.bids] == [bid.id]
    statuses = {inv.supplier_id: inv.status for inv in stored.invited_suppliers}
    assert statuses == {"supplier-1": InvitationStatus.SUBMITTED, "supplier-2": InvitationStatus.INVITED}

    notes = await services.notifications.get_notifications_for_user(buyer.id)
    assert [n.type for n in notes] == [NotificationType.NEW_BID]
    assert notes[0].metadata["bid_id"] == bid.id
    [email] = transport.to(buyer.email, "Nytt tilbud mottatt")
    assert "1 450 000 kr" in email.html


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TenderStatus.DRAFT, TenderStatus.CLOSED])
async def test_bid_refused_unless_open(services, buyer, suppliers, status):
    if status == TenderStatus.CLOSED:
        tender = await create_open_tender(services, buyer)
        await services.tenders.close_tender(tender.id)
    else:
        tender = await create_open_tender(services, buyer, status=status)

    with pytest.raises(PolicyViolationError):
        await services.bids.submit_bid(tender.id, BidCreate(price=100), suppliers[0])

    result = await services.operations.submit_bid(tender.id, BidCreate(price=100), suppliers[0])
    assert not result.success
    assert result.error == "Anskaffelsen tar ikke imot tilbud."


@pytest.mark.asyncio
async def test_owner_opted_out_of_bid_emails(services, buyer, suppliers, transport):
    await set_preferences(services, buyer, bid_notifications=False)
    tender = await create_open_tender(services, buyer)

    bid = await services.bids.submit_bid(tender.id, BidCreate(price=500_000), suppliers[0])

    assert transport.to(buyer.email) == []
    assert (await services.tenders.get_tender(tender.id)).find_bid(bid.id) is not None


@pytest.mark.asyncio
async def test_owner_email_failure_keeps_bid(services, buyer, suppliers, transport):
    transport.failing.add(buyer.email)
    tender = await create_open_tender(services, buyer)

    result = await services.operations.submit_bid(tender.id, BidCreate(price=500_000), suppliers[0])

    assert result.success
    assert result.data["company_name"] == "Bygg 1 AS"
    assert [entry.to for entry in await services.outbox.pending()] == [buyer.email]

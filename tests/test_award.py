"""Tests for awarding a tender."""

import pytest

from conftest import create_open_tender
from tenderflow.exceptions import ConflictError, NotFoundError, PolicyViolationError
from tenderflow.schemas import BidCreate, BidStatus, TenderStatus, User


async def tender_with_bids(services, buyer, suppliers):
    tender = await create_open_tender(services, buyer, invited=suppliers)
    bids = {}
    for price, supplier in zip((1_200_000, 980_000, 1_050_000), suppliers):
        bid = await services.bids.submit_bid(tender.id, BidCreate(price=price), supplier)
        bids[supplier.id] = bid
    return tender, bids


@pytest.mark.asyncio
async def test_award_rejects_other_bids(services, buyer, suppliers, transport):
    tender, bids = await tender_with_bids(services, buyer, suppliers)
    winner = bids["supplier-2"]

    outcome = await services.awards.award_tender(tender.id, winner.id)

    assert outcome.tender.status == TenderStatus.AWARDED
    assert outcome.tender.awarded_bid_id == winner.id
    statuses = {bid.supplier_id: bid.status for bid in outcome.tender.bids}
    assert statuses == {
        "supplier-1": BidStatus.REJECTED,
        "supplier-2": BidStatus.AWARDED,
        "supplier-3": BidStatus.REJECTED,
    }

    stored = await services.tenders.get_tender(tender.id)
    assert stored.status == TenderStatus.AWARDED
    assert stored.award_letter.awarded_to.company_name == "Bygg 2 AS"
    assert stored.standstill_end_date == outcome.award_letter.standstill_end_date


@pytest.mark.asyncio
async def test_award_emails_every_bidder(services, buyer, suppliers, transport):
    tender, bids = await tender_with_bids(services, buyer, suppliers)

    outcome = await services.awards.award_tender(tender.id, bids["supplier-2"].id)

    assert outcome.report.succeeded == 3
    assert outcome.report.failed == 0
    assert len(transport.to("post@bygg2.no", "Tilbud tildelt")) == 1
    assert len(transport.to("post@bygg1.no", "Tilbud ikke tildelt")) == 1
    assert len(transport.to("post@bygg3.no", "Tilbud ikke tildelt")) == 1
    assert "Bygg 2 AS" in transport.to("post@bygg1.no", "Tilbud ikke tildelt")[0].html


@pytest.mark.asyncio
async def test_award_standstill_window(services, buyer, suppliers, clock):
    tender, bids = await tender_with_bids(services, buyer, suppliers)

    letter = (await services.awards.award_tender(tender.id, bids["supplier-1"].id)).award_letter

    assert letter.standstill_period_days == 10
    assert letter.standstill_start_date == clock()
    assert (letter.standstill_end_date.month, letter.standstill_end_date.day) == (3, 12)


@pytest.mark.asyncio
async def test_failed_recipient_does_not_undo_award(services, buyer, suppliers, transport):
    tender, bids = await tender_with_bids(services, buyer, suppliers)
    transport.failing.add("post@bygg3.no")

    outcome = await services.awards.award_tender(tender.id, bids["supplier-1"].id)

    assert outcome.report.succeeded == 2
    assert outcome.report.failed == 1
    error = outcome.report.errors[0]
    assert error["recipient"] == "post@bygg3.no"
    assert error["kind"] == "rejection"

    assert (await services.tenders.get_tender(tender.id)).status == TenderStatus.AWARDED
    queued = await services.outbox.pending()
    assert [entry.to for entry in queued] == ["post@bygg3.no"]


@pytest.mark.asyncio
async def test_award_twice_conflicts(services, buyer, suppliers):
    tender, bids = await tender_with_bids(services, buyer, suppliers)
    await services.awards.award_tender(tender.id, bids["supplier-1"].id)

    with pytest.raises(ConflictError):
        await services.awards.award_tender(tender.id, bids["supplier-2"].id)

    stored = await services.tenders.get_tender(tender.id)
    assert stored.awarded_bid_id == bids["supplier-1"].id


@pytest.mark.asyncio
async def test_award_conflicts_when_tender_changes_before_write(services, buyer, suppliers, transport, monkeypatch):
    tender, bids = await tender_with_bids(services, buyer, suppliers)
    read_tender = services.tenders.get_tender

    async def read_then_close(tender_id):
        current = await read_tender(tender_id)
        await services.gateway.update("tenders", tender_id, {"status": TenderStatus.CLOSED.value})
        return current

    monkeypatch.setattr(services.tenders, "get_tender", read_then_close)
    with pytest.raises(ConflictError):
        await services.awards.award_tender(tender.id, bids["supplier-1"].id)
    monkeypatch.undo()

    stored = await services.tenders.get_tender(tender.id)
    assert stored.status == TenderStatus.CLOSED
    assert stored.awarded_bid_id is None
    assert transport.to("post@bygg1.no", "Tilbud tildelt") == []

    result = await services.operations.award_tender(tender.id, bids["supplier-2"].id)
    assert result.success


@pytest.mark.asyncio
async def test_award_unknown_bid(services, buyer, suppliers):
    tender, _ = await tender_with_bids(services, buyer, suppliers)

    with pytest.raises(NotFoundError):
        await services.awards.award_tender(tender.id, "bid_missing")


@pytest.mark.asyncio
async def test_award_draft_not_allowed(services, buyer):
    tender = await create_open_tender(services, buyer, status=TenderStatus.DRAFT)

    with pytest.raises(PolicyViolationError):
        await services.awards.award_tender(tender.id, "bid_any")


@pytest.mark.asyncio
async def test_award_operation_result(services, buyer, suppliers):
    tender, bids = await tender_with_bids(services, buyer, suppliers)
    ops = services.operations

    result = await ops.award_tender(tender.id, bids["supplier-3"].id)
    assert result.success
    assert result.data["tender"]["status"] == "awarded"
    assert result.data["notifications"]["succeeded"] == 3

    again = await ops.award_tender(tender.id, bids["supplier-1"].id)
    assert not again.success
    assert again.error == "Anskaffelsen er allerede tildelt."


@pytest.mark.asyncio
async def test_bidder_without_any_address_counts_as_failed(services, buyer, suppliers, transport):
    tender, bids = await tender_with_bids(services, buyer, suppliers[:2])
    unlisted = User(id="supplier-4", company_id="company-4", company_name="Bygg 4 AS")
    await services.gateway.create("users", unlisted.model_dump())
    stray = await services.bids.submit_bid(tender.id, BidCreate(price=1_500_000), unlisted)

    outcome = await services.awards.award_tender(tender.id, bids["supplier-1"].id)

    assert outcome.report.succeeded == 2
    assert outcome.report.failed == 1
    assert outcome.report.errors == [
        {"recipient": stray.id, "error": "Supplier email not found", "bid_id": stray.id, "kind": "rejection"}
    ]
    assert outcome.tender.find_bid(stray.id).status == BidStatus.REJECTED
    assert len(transport.to("post@bygg2.no", "Tilbud ikke tildelt")) == 1

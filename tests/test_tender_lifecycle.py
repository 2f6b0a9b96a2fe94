"""Tests for tender drafting, publishing, invitations, Q&A and documents."""

from datetime import timedelta
from pathlib import Path

import pytest

from conftest import NOW, create_open_tender
from tenderflow.exceptions import NotFoundError, PolicyViolationError, ValidationError
from tenderflow.schemas import (
    FileUpload,
    InvitationCreate,
    InvitationStatus,
    NotificationType,
    TenderCreate,
    TenderStatus,
)


@pytest.mark.asyncio
async def test_create_requires_title_and_deadline(services, buyer):
    with pytest.raises(ValidationError):
        await services.tenders.create_tender(TenderCreate(title="  ", deadline=NOW), buyer)
    with pytest.raises(ValidationError):
        await services.tenders.create_tender(TenderCreate(title="Asfaltering"), buyer)

    result = await services.operations.create_tender(TenderCreate(title="Asfaltering"), buyer)
    assert not result.success
    assert result.error == "Frist er påkrevd."


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TenderStatus.CLOSED, TenderStatus.AWARDED])
async def test_create_only_as_draft_or_open(services, buyer, status):
    with pytest.raises(ValidationError):
        await create_open_tender(services, buyer, status=status)

    assert await services.tenders.list_tenders() == []


@pytest.mark.asyncio
async def test_draft_is_silent_until_published(services, buyer, suppliers, transport):
    tender = await create_open_tender(services, buyer, invited=suppliers[:2], status=TenderStatus.DRAFT)
    assert transport.sent == []

    published, report = await services.tenders.publish_tender(tender.id)

    assert published.status == TenderStatus.OPEN
    assert published.publish_date == NOW
    assert report.succeeded == 2
    assert len(transport.to("post@bygg1.no", "Invitasjon til anskaffelse")) == 1
    assert len(transport.to("post@bygg2.no", "Invitasjon til anskaffelse")) == 1

    with pytest.raises(PolicyViolationError):
        await services.tenders.publish_tender(tender.id)


@pytest.mark.asyncio
async def test_open_tender_invites_on_create(services, buyer, suppliers, transport):
    await create_open_tender(services, buyer, invited=suppliers)

    assert {m.to for m in transport.sent} == {s.email for s in suppliers}


@pytest.mark.asyncio
async def test_invite_is_upsert_and_notifies_once(services, buyer, suppliers, transport):
    tender = await create_open_tender(services, buyer, invited=suppliers[:1])
    newcomer = suppliers[2]

    first = InvitationCreate(supplier_id=newcomer.id, email=newcomer.email, company_name="Bygg 3")
    second = InvitationCreate(email=newcomer.email.upper(), company_name="Bygg 3 AS", org_number="912345678")
    await services.tenders.invite_supplier(tender.id, first)
    updated = await services.tenders.invite_supplier(tender.id, second)

    invitations = [inv for inv in updated.invited_suppliers if inv.matches(newcomer.id)]
    assert len(invitations) == 1
    assert invitations[0].company_name == "Bygg 3 AS"
    assert invitations[0].org_number == "912345678"
    assert invitations[0].invited_at == NOW
    assert updated.invited_supplier_ids == ["supplier-1", "supplier-3"]

    notifications = await services.notifications.get_notifications_for_user(newcomer.id)
    assert [n.type for n in notifications] == [NotificationType.TENDER_INVITATION]
    assert len(transport.to(newcomer.email, "Invitasjon")) == 1


@pytest.mark.asyncio
async def test_invite_requires_id_or_email(services, buyer):
    tender = await create_open_tender(services, buyer)

    with pytest.raises(ValidationError):
        await services.tenders.invite_supplier(tender.id, InvitationCreate(company_name="Ukjent AS"))


@pytest.mark.asyncio
async def test_invite_on_draft_sends_nothing(services, buyer, suppliers, transport):
    tender = await create_open_tender(services, buyer, status=TenderStatus.DRAFT)

    await services.tenders.invite_supplier(tender.id, InvitationCreate(supplier_id="supplier-1", email="post@bygg1.no"))

    assert transport.sent == []
    assert await services.notifications.get_notifications_for_user("supplier-1") == []


@pytest.mark.asyncio
async def test_supplier_sees_only_published_invitations(services, buyer, suppliers):
    open_tender = await create_open_tender(services, buyer, invited=suppliers[:1])
    await create_open_tender(services, buyer, invited=suppliers[:1], status=TenderStatus.DRAFT)

    tenders = await services.tenders.get_invitations_for_supplier(None, "POST@bygg1.no")

    assert [t.id for t in tenders] == [open_tender.id]


@pytest.mark.asyncio
async def test_questions_need_published_tender(services, buyer, suppliers):
    draft = await create_open_tender(services, buyer, status=TenderStatus.DRAFT)

    with pytest.raises(PolicyViolationError):
        await services.tenders.ask_question(draft.id, "Når er befaring?", suppliers[0])

    result = await services.operations.ask_question(draft.id, "Når er befaring?", suppliers[0])
    assert not result.success
    assert "publisert" in result.error


@pytest.mark.asyncio
async def test_question_and_answer_notify_both_sides(services, buyer, suppliers):
    tender = await create_open_tender(services, buyer)
    supplier = suppliers[0]

    with pytest.raises(ValidationError):
        await services.tenders.ask_question(tender.id, "   ", supplier)

    question = await services.tenders.ask_question(tender.id, " Når er befaring? ", supplier)
    assert question.question == "Når er befaring?"
    assert question.asked_by_company == "Bygg 1 AS"

    answered = await services.tenders.answer_question(tender.id, question.id, "Tirsdag kl. 10", buyer)
    assert answered.answered_by == buyer.id

    stored = await services.tenders.get_tender(tender.id)
    assert stored.qa[0].answer == "Tirsdag kl. 10"

    buyer_notes = await services.notifications.get_notifications_for_user(buyer.id)
    supplier_notes = await services.notifications.get_notifications_for_user(supplier.id)
    assert [n.type for n in buyer_notes] == [NotificationType.QUESTION_ASKED]
    assert [n.type for n in supplier_notes] == [NotificationType.QUESTION_ANSWERED]

    with pytest.raises(NotFoundError):
        await services.tenders.answer_question(tender.id, "qa_missing", "Svar", buyer)


@pytest.mark.asyncio
async def test_same_document_name_creates_new_version(services, buyer):
    tender = await create_open_tender(services, buyer)

    [document] = await services.tenders.add_documents(
        tender.id, [FileUpload("beskrivelse.pdf", b"%PDF-1.4 v1", "application/pdf")], buyer
    )
    documents = await services.tenders.add_documents(
        tender.id, [FileUpload("beskrivelse.pdf", b"%PDF-1.4 version two", "application/pdf")], buyer
    )

    assert [d.id for d in documents] == [document.id]
    assert documents[0].size == len(b"%PDF-1.4 version two")

    versions = await services.tenders.versioning.get_versions(document.id)
    assert [v.version_number for v in versions] == [2, 1]
    assert [v.is_current for v in versions] == [True, False]
    assert versions[1].changes[0].type == "created"
    assert versions[0].change_reason == "Dokument oppdatert"
    assert {c.field for c in versions[0].changes} == {"size", "file"}


@pytest.mark.asyncio
async def test_remove_document_tolerates_missing_blob(services, buyer, tmp_path):
    tender = await create_open_tender(services, buyer)
    [document] = await services.tenders.add_documents(
        tender.id, [FileUpload("tegning.dwg", b"drawing")], buyer
    )
    blob = tmp_path / "storage" / document.storage_path
    assert blob.exists()
    Path(blob).unlink()

    updated = await services.tenders.remove_document(tender.id, document.id)

    assert updated.documents == []
    with pytest.raises(NotFoundError):
        await services.tenders.remove_document(tender.id, document.id)


@pytest.mark.asyncio
async def test_close_and_reopen(services, buyer):
    tender = await create_open_tender(services, buyer)

    closed = await services.tenders.close_tender(tender.id)
    assert closed.status == TenderStatus.CLOSED
    assert (await services.tenders.close_tender(tender.id)).status == TenderStatus.CLOSED

    reopened = await services.tenders.reopen_tender(tender.id)
    assert reopened.status == TenderStatus.OPEN

    draft = await create_open_tender(services, buyer, status=TenderStatus.DRAFT)
    with pytest.raises(PolicyViolationError):
        await services.tenders.close_tender(draft.id)
    with pytest.raises(PolicyViolationError):
        await services.tenders.reopen_tender(draft.id)


@pytest.mark.asyncio
async def test_close_expired_is_idempotent(services, buyer, clock):
    expired = await create_open_tender(services, buyer, deadline=NOW - timedelta(hours=1))
    running = await create_open_tender(services, buyer, deadline=NOW + timedelta(days=2))

    first = await services.tenders.close_expired_tenders()
    second = await services.tenders.close_expired_tenders()

    assert first == {"closed": 1, "errors": []}
    assert second == {"closed": 0, "errors": []}
    assert (await services.tenders.get_tender(expired.id)).status == TenderStatus.CLOSED
    assert (await services.tenders.get_tender(running.id)).status == TenderStatus.OPEN

    clock.advance(days=3)
    assert (await services.tenders.close_expired_tenders())["closed"] == 1


@pytest.mark.asyncio
async def test_close_expired_skips_tender_closed_during_sweep(services, buyer, monkeypatch):
    expired = await create_open_tender(services, buyer, deadline=NOW - timedelta(hours=1))
    list_tenders = services.tenders.list_tenders

    async def list_then_close(**filters):
        found = await list_tenders(**filters)
        await services.gateway.update("tenders", expired.id, {"status": TenderStatus.CLOSED.value})
        return found

    monkeypatch.setattr(services.tenders, "list_tenders", list_then_close)

    assert await services.tenders.close_expired_tenders() == {"closed": 0, "errors": []}


@pytest.mark.asyncio
async def test_list_and_delete(services, buyer, clock):
    first = await create_open_tender(services, buyer, title="Første")
    clock.advance(minutes=1)
    second = await create_open_tender(services, buyer, title="Andre", status=TenderStatus.DRAFT)

    listed = await services.tenders.list_tenders(created_by=buyer.id)
    assert [t.id for t in listed] == [second.id, first.id]
    assert [t.id for t in await services.tenders.list_tenders(status=TenderStatus.DRAFT)] == [second.id]

    await services.tenders.delete_tender(first.id)
    with pytest.raises(NotFoundError):
        await services.tenders.get_tender(first.id)

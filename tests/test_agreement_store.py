import pytest

from app.errors import InvalidState, NotFound
from app.models.agreement import AgreementStatus
from app.services.agreement_store import AgreementStore
from app.services.documents import build_lease_agreement


def test_create_starts_as_draft(db, parties):
    doc = build_lease_agreement(parties.lease)
    agreement = AgreementStore(db).create(parties.lease.id, doc.document_hash)
    db.commit()

    assert agreement.status == AgreementStatus.DRAFT
    assert agreement.current_version == 1
    assert agreement.document_hash == doc.document_hash
    assert agreement.landlord_signed is False
    assert agreement.tenant_signed is False


def test_one_agreement_per_lease(db, parties, make_agreement):
    make_agreement()
    with pytest.raises(InvalidState, match="already exists"):
        AgreementStore(db).create(parties.lease.id, "0" * 64)


def test_get_unknown_raises_not_found(db):
    store = AgreementStore(db)
    with pytest.raises(NotFound, match="Agreement not found"):
        store.get("missing")
    with pytest.raises(NotFound):
        store.get_by_lease("missing")


def test_get_by_lease_loads_parties(db, parties, make_agreement):
    agreement_id = make_agreement()
    agreement = AgreementStore(db).get_by_lease(parties.lease.id)
    assert agreement.id == agreement_id
    assert agreement.lease.landlord.id == parties.landlord.id
    assert agreement.lease.property.title == "Sunny Loft"


def test_transition_applies_only_from_expected_status(db, make_agreement):
    agreement_id = make_agreement()
    store = AgreementStore(db)

    assert store.transition(agreement_id, AgreementStatus.PENDING_TENANT, {"status": AgreementStatus.COMPLETED}) is None
    db.rollback()

    updated = store.transition(agreement_id, AgreementStatus.DRAFT, {"status": AgreementStatus.PENDING_LANDLORD})
    db.commit()
    assert updated.status == AgreementStatus.PENDING_LANDLORD
    assert updated.updated_at is not None

    # Second writer with the same expectation loses
    assert store.transition(agreement_id, AgreementStatus.DRAFT, {"status": AgreementStatus.CANCELLED}) is None
    db.rollback()
    assert store.get(agreement_id).status == AgreementStatus.PENDING_LANDLORD


def test_transition_checks_version(db, make_agreement):
    agreement_id = make_agreement()
    store = AgreementStore(db)
    assert store.transition(agreement_id, AgreementStatus.DRAFT, {"current_version": 3}, expected_version=2) is None
    db.rollback()
    updated = store.transition(agreement_id, AgreementStatus.DRAFT, {"current_version": 2}, expected_version=1)
    db.commit()
    assert updated.current_version == 2


def test_update_patches_fields(db, make_agreement):
    agreement_id = make_agreement()
    agreement = AgreementStore(db).update(agreement_id, {"pdf_url": "https://files.example/a.pdf"})
    db.commit()
    assert agreement.pdf_url == "https://files.example/a.pdf"


def test_list_for_user_only_returns_own_agreements(db, parties, make_agreement):
    agreement_id = make_agreement()
    store = AgreementStore(db)
    assert [a.id for a in store.list_for_user(parties.landlord.id)] == [agreement_id]
    assert [a.id for a in store.list_for_user(parties.tenant.id)] == [agreement_id]
    assert store.list_for_user(parties.stranger.id) == []


def test_search_and_counts(db, parties, make_agreement):
    make_agreement(AgreementStatus.PENDING_LANDLORD)
    store = AgreementStore(db)

    items, total = store.search(search="sunny")
    assert total == 1 and len(items) == 1
    items, total = store.search(search=parties.tenant.name.lower())
    assert total == 1
    items, total = store.search(status=AgreementStatus.COMPLETED)
    assert (items, total) == ([], 0)
    items, total = store.search(search="no such place")
    assert total == 0

    counts = store.count_by_status()
    assert counts[AgreementStatus.PENDING_LANDLORD] == 1
    assert counts[AgreementStatus.DRAFT] == 0
    assert set(counts) == set(AgreementStatus)

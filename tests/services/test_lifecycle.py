# tests/services/test_lifecycle.py

from unittest.mock import MagicMock

import pytest

from registration_service import crud
from registration_service.core.exceptions import NotFound
from registration_service.models.payment_record import PaymentMethod, PaymentRecordStatus
from registration_service.models.registration import PaymentStatus
from registration_service.services import lifecycle
from tests.utils.registration import (
    create_individual,
    create_random_category,
    create_school,
    make_verified,
)


def _set_status(db, registration, status):
    lifecycle.crud_for(registration).compare_and_set(
        db,
        registration_id=registration.id,
        from_statuses=PaymentStatus.ALL,
        values={"payment_status": status},
    )
    db.commit()
    db.refresh(registration)


def test_attest_moves_pending_to_awaiting_verification(db_session_e2e):
    registration = create_individual(db_session_e2e)

    registration = lifecycle.attest_payment(db_session_e2e, registration.tracking_number)

    assert registration.payment_status == PaymentStatus.AWAITING_VERIFICATION
    assert registration.admin_verified is False
    assert registration.payment_method == PaymentMethod.BANK_TRANSFER
    records = crud.payment_record.get_by_tracking_number(
        db_session_e2e, tracking_number=registration.tracking_number
    )
    assert len(records) == 1
    assert records[0].payment_status == PaymentRecordStatus.PENDING
    assert records[0].amount == registration.amount_due


def test_repeated_attestation_is_a_no_op(db_session_e2e):
    registration = create_individual(db_session_e2e)

    for _ in range(3):
        registration = lifecycle.attest_payment(db_session_e2e, registration.tracking_number)

    assert registration.payment_status == PaymentStatus.AWAITING_VERIFICATION
    records = crud.payment_record.get_by_tracking_number(
        db_session_e2e, tracking_number=registration.tracking_number
    )
    assert len(records) == 1


def test_attestation_after_payment_changes_nothing(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))

    registration = lifecycle.attest_payment(db_session_e2e, registration.tracking_number)

    assert registration.payment_status == PaymentStatus.PAID
    assert registration.admin_verified is True


def test_approval_grants_access(db_session_e2e):
    registration = create_individual(db_session_e2e)
    lifecycle.attest_payment(db_session_e2e, registration.tracking_number)
    assert lifecycle.has_access(registration) is False

    registration = lifecycle.verify_payment(
        db_session_e2e, registration.tracking_number, approve=True, operator="admin_1"
    )

    assert registration.payment_status == PaymentStatus.PAID
    assert registration.admin_verified is True
    assert lifecycle.has_access(registration) is True
    record = crud.payment_record.get_by_tracking_number(
        db_session_e2e, tracking_number=registration.tracking_number
    )[0]
    db_session_e2e.refresh(record)
    assert record.payment_status == PaymentRecordStatus.SUCCESS


def test_rejection_returns_to_pending_and_allows_new_attestation(db_session_e2e):
    registration = create_individual(db_session_e2e)
    lifecycle.attest_payment(db_session_e2e, registration.tracking_number)

    registration = lifecycle.verify_payment(
        db_session_e2e, registration.tracking_number, approve=False
    )

    assert registration.payment_status == PaymentStatus.PENDING
    assert registration.admin_verified is False

    registration = lifecycle.attest_payment(db_session_e2e, registration.tracking_number)
    assert registration.payment_status == PaymentStatus.AWAITING_VERIFICATION
    statuses = sorted(
        r.payment_status
        for r in crud.payment_record.get_by_tracking_number(
            db_session_e2e, tracking_number=registration.tracking_number
        )
    )
    assert statuses == [PaymentRecordStatus.PENDING, PaymentRecordStatus.REJECTED]


def test_double_approval_does_not_flip_a_decision(db_session_e2e):
    registration = create_individual(db_session_e2e)
    lifecycle.attest_payment(db_session_e2e, registration.tracking_number)
    lifecycle.verify_payment(db_session_e2e, registration.tracking_number, approve=True)

    # A late reject click after approval is ignored
    registration = lifecycle.verify_payment(
        db_session_e2e, registration.tracking_number, approve=False
    )

    assert registration.payment_status == PaymentStatus.PAID
    assert registration.admin_verified is True


def test_verification_without_attestation_is_ignored(db_session_e2e):
    registration = create_individual(db_session_e2e)

    registration = lifecycle.verify_payment(
        db_session_e2e, registration.tracking_number, approve=True
    )

    assert registration.payment_status == PaymentStatus.PENDING
    assert lifecycle.has_access(registration) is False


def test_access_needs_both_paid_and_verified(db_session_e2e):
    registration = create_individual(db_session_e2e)
    _set_status(db_session_e2e, registration, PaymentStatus.PAID)

    # Paid but never verified
    assert lifecycle.has_access(registration) is False
    projection = lifecycle.status_projection(registration)
    assert projection["access_granted"] is False
    assert projection["ticket_url"] is None
    assert projection["display_status"] != "verified"


def test_retry_moves_failed_back_to_pending(db_session_e2e):
    registration = create_individual(db_session_e2e)
    _set_status(db_session_e2e, registration, PaymentStatus.FAILED)

    registration = lifecycle.retry_payment(db_session_e2e, registration.tracking_number)

    assert registration.payment_status == PaymentStatus.PENDING


def test_gateway_success_settles_without_admin_review(db_session_e2e):
    registration = create_individual(db_session_e2e)

    assert lifecycle.mark_gateway_paid(db_session_e2e, registration) is True
    assert lifecycle.mark_gateway_paid(db_session_e2e, registration) is False
    db_session_e2e.commit()
    db_session_e2e.refresh(registration)

    assert lifecycle.has_access(registration) is True
    assert registration.payment_method == PaymentMethod.GATEWAY


def test_gateway_success_closes_attested_bank_transfer(db_session_e2e):
    registration = create_individual(db_session_e2e)
    lifecycle.attest_payment(db_session_e2e, registration.tracking_number)

    assert lifecycle.mark_gateway_paid(db_session_e2e, registration) is True
    db_session_e2e.commit()

    records = crud.payment_record.get_by_tracking_number(
        db_session_e2e, tracking_number=registration.tracking_number
    )
    for record in records:
        db_session_e2e.refresh(record)
    assert [(r.payment_method, r.payment_status) for r in records] == [
        (PaymentMethod.BANK_TRANSFER, PaymentRecordStatus.SUPERSEDED)
    ]
    # A late admin decision finds nothing left to verify
    registration = lifecycle.verify_payment(
        db_session_e2e, registration.tracking_number, approve=False
    )
    assert lifecycle.has_access(registration) is True


def test_gateway_failure_only_applies_to_pending(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))

    assert lifecycle.mark_gateway_failed(db_session_e2e, registration) is False
    db_session_e2e.commit()
    db_session_e2e.refresh(registration)
    assert registration.payment_status == PaymentStatus.PAID


def test_find_registration_searches_both_kinds(db_session_e2e):
    category = create_random_category(db_session_e2e)
    school = create_school(db_session_e2e, [category])
    individual = create_individual(db_session_e2e)

    assert lifecycle.find_registration(db_session_e2e, school.tracking_number).id == school.id
    assert lifecycle.find_registration(db_session_e2e, individual.tracking_number).id == individual.id
    with pytest.raises(NotFound):
        lifecycle.find_registration(db_session_e2e, "CHAF-NOPE00")


def test_recover_by_phone_lists_every_registration(db_session_e2e):
    category = create_random_category(db_session_e2e)
    phone = "08055554444"
    individual = create_individual(db_session_e2e, phone_number=phone)
    school = create_school(db_session_e2e, [category], contact_phone=phone)

    found = lifecycle.recover_by_phone(db_session_e2e, phone)

    assert {r.tracking_number for r in found} == {
        individual.tracking_number,
        school.tracking_number,
    }


@pytest.mark.parametrize("payment_status", PaymentStatus.ALL)
@pytest.mark.parametrize("admin_verified", [True, False])
def test_access_predicate(payment_status, admin_verified):
    registration = MagicMock(payment_status=payment_status, admin_verified=admin_verified)

    expected = payment_status == PaymentStatus.PAID and admin_verified
    assert lifecycle.has_access(registration) is expected

# tests/services/test_ticket_service.py

from concurrent.futures import ThreadPoolExecutor

import pytest

from registration_service import crud
from registration_service.core.config import settings
from registration_service.core.exceptions import (
    AlreadyCheckedIn,
    ConstraintViolation,
    NotEligible,
    NotFound,
    NotVerified,
)
from registration_service.models.ticket import TicketRole
from registration_service.schemas.ticket import CompanionTicketRequest
from registration_service.services import lifecycle
from registration_service.services.ticket_management.qr_signing import (
    sign_ticket_qr,
    verify_ticket_qr,
)
from registration_service.services.ticket_management.ticket_service import ticket_service
from tests.utils.registration import (
    create_individual,
    create_random_category,
    create_school,
    make_verified,
)


def test_no_ticket_before_verification(db_session_e2e):
    registration = create_individual(db_session_e2e)

    with pytest.raises(NotEligible) as exc_info:
        ticket_service.issue_ticket(db_session_e2e, registration)

    assert exc_info.value.code == "processing"
    assert exc_info.value.retryable is True
    assert crud.individual_ticket.get_by_registration(db_session_e2e, registration.id) == []


def test_issue_ticket_is_idempotent(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))

    first = ticket_service.issue_ticket(db_session_e2e, registration)
    second = ticket_service.issue_ticket(db_session_e2e, registration)

    assert first.id == second.id
    assert first.ticket_number == f"TK-{registration.tracking_number}-MAIN"
    assert first.role == TicketRole.MAIN
    assert len(crud.individual_ticket.get_by_registration(db_session_e2e, registration.id)) == 1


def test_qr_payload_identifies_the_ticket(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))

    ticket = ticket_service.issue_ticket(db_session_e2e, registration)
    claims = verify_ticket_qr(ticket.qr_payload)

    assert claims["tn"] == ticket.ticket_number
    assert claims["trk"] == registration.tracking_number
    assert claims["eid"] == settings.EVENT_ID


def test_school_gets_group_pass_and_participant_tickets(db_session_e2e):
    category = create_random_category(db_session_e2e)
    registration = make_verified(
        db_session_e2e, create_school(db_session_e2e, [category], participants_per_category=2)
    )

    tickets = ticket_service.issue_all(db_session_e2e, registration)
    again = ticket_service.issue_all(db_session_e2e, registration)

    roles = sorted(t.role for t in tickets)
    assert roles == [TicketRole.GROUP, TicketRole.PARTICIPANT, TicketRole.PARTICIPANT]
    assert {t.id for t in again} == {t.id for t in tickets}


def test_unknown_holder_is_not_found(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))

    with pytest.raises(NotFound):
        ticket_service.issue_ticket(db_session_e2e, registration, "PNOBODY")


def test_companion_tickets_are_capped_per_category(db_session_e2e, monkeypatch):
    monkeypatch.setattr(settings, "COMPANION_TICKETS_PER_CATEGORY", 2)
    drawing = create_random_category(db_session_e2e)
    music = create_random_category(db_session_e2e)
    registration = make_verified(db_session_e2e, create_school(db_session_e2e, [drawing, music]))

    teacher = ticket_service.add_companion(
        db_session_e2e,
        registration,
        CompanionTicketRequest(category_id=drawing.id, name="Mr Ade", role="teacher"),
    )
    visitor = ticket_service.add_companion(
        db_session_e2e,
        registration,
        CompanionTicketRequest(category_id=drawing.id, name="Mrs Ade", role="visitor"),
    )
    assert teacher.holder_key == "TEACHER-1"
    assert visitor.holder_key == "VISITOR-1"

    with pytest.raises(ConstraintViolation):
        ticket_service.add_companion(
            db_session_e2e,
            registration,
            CompanionTicketRequest(category_id=drawing.id, name="Mr Obi", role="teacher"),
        )

    # The other category has its own allowance
    other = ticket_service.add_companion(
        db_session_e2e,
        registration,
        CompanionTicketRequest(category_id=music.id, name="Mr Obi", role="teacher"),
    )
    assert other.holder_key == "TEACHER-2"
    assert other.category_id == music.id


def test_companion_category_must_be_selected(db_session_e2e):
    selected = create_random_category(db_session_e2e)
    other = create_random_category(db_session_e2e)
    registration = make_verified(db_session_e2e, create_school(db_session_e2e, [selected]))

    with pytest.raises(ConstraintViolation) as exc_info:
        ticket_service.add_companion(
            db_session_e2e,
            registration,
            CompanionTicketRequest(category_id=other.id, name="Mr Ade", role="teacher"),
        )

    assert exc_info.value.field == "category_id"


def test_check_in_then_second_scan_is_rejected(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))
    ticket = ticket_service.issue_ticket(db_session_e2e, registration)

    checked = ticket_service.check_in(db_session_e2e, ticket.ticket_number, operator="gate_1")
    assert checked.checked_in is True
    assert checked.checked_in_by == "gate_1"

    with pytest.raises(AlreadyCheckedIn) as exc_info:
        ticket_service.check_in(db_session_e2e, ticket.qr_payload, operator="gate_2")

    assert exc_info.value.extra["checked_in_by"] == "gate_1"
    assert exc_info.value.extra["checked_in_at"] is not None
    reloaded = crud.individual_ticket.reload(db_session_e2e, ticket.id)
    assert reloaded.checked_in_by == "gate_1"


def test_check_in_refuses_unverified_registration(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))
    ticket = ticket_service.issue_ticket(db_session_e2e, registration)
    # Verification withdrawn after the ticket was minted
    crud.individual_registration.compare_and_set(
        db_session_e2e,
        registration_id=registration.id,
        from_statuses=("paid",),
        values={"admin_verified": False},
    )
    db_session_e2e.commit()

    with pytest.raises(NotVerified):
        ticket_service.check_in(db_session_e2e, ticket.ticket_number, operator="gate_1")

    assert crud.individual_ticket.reload(db_session_e2e, ticket.id).checked_in is False


def test_qr_for_another_event_is_rejected(db_session_e2e):
    token = sign_ticket_qr("TK-CHAF-XXXXXX-MAIN", "CHAF-XXXXXX", "Ada", event_id="other-event")

    with pytest.raises(NotFound):
        ticket_service.check_in(db_session_e2e, token, operator="gate_1")


def test_tampered_qr_is_rejected(db_session_e2e):
    token = sign_ticket_qr("TK-CHAF-XXXXXX-MAIN", "CHAF-XXXXXX", "Ada")
    header, payload, signature = token.split(".")

    with pytest.raises(NotFound):
        ticket_service.check_in(
            db_session_e2e, f"{header}.{payload}.{signature[::-1]}", operator="gate_1"
        )


def test_validate_reports_without_checking_in(db_session_e2e):
    registration = make_verified(db_session_e2e, create_individual(db_session_e2e))
    ticket = ticket_service.issue_ticket(db_session_e2e, registration)

    result = ticket_service.validate(db_session_e2e, ticket.ticket_number)

    assert result["can_check_in"] is True
    assert result["tracking_number"] == registration.tracking_number
    assert crud.individual_ticket.reload(db_session_e2e, ticket.id).checked_in is False


def _verified_ticket_number(session_factory):
    db = session_factory()
    registration = make_verified(db, create_individual(db))
    return ticket_service.issue_ticket(db, registration).ticket_number


def test_stale_readers_cannot_both_check_in(committing_sessions):
    ticket_number = _verified_ticket_number(committing_sessions)
    gate_a, gate_b = committing_sessions(), committing_sessions()

    # Both gates load the ticket while it is still unused
    assert crud.individual_ticket.get_by_number(gate_a, ticket_number).checked_in is False
    assert crud.individual_ticket.get_by_number(gate_b, ticket_number).checked_in is False

    ticket_service.check_in(gate_a, ticket_number, operator="gate_a")
    with pytest.raises(AlreadyCheckedIn) as exc_info:
        ticket_service.check_in(gate_b, ticket_number, operator="gate_b")

    assert exc_info.value.extra["checked_in_by"] == "gate_a"


def test_concurrent_check_ins_have_one_winner(committing_sessions):
    ticket_number = _verified_ticket_number(committing_sessions)
    sessions = [committing_sessions() for _ in range(6)]

    def attempt(index):
        try:
            ticket_service.check_in(sessions[index], ticket_number, operator=f"gate_{index}")
            return "ok"
        except AlreadyCheckedIn:
            return "already_checked_in"

    with ThreadPoolExecutor(max_workers=len(sessions)) as pool:
        outcomes = list(pool.map(attempt, range(len(sessions))))

    assert outcomes.count("ok") == 1
    assert outcomes.count("already_checked_in") == len(sessions) - 1


def _verified_school_tracking_number(session_factory):
    db = session_factory()
    category = create_random_category(db)
    registration = make_verified(db, create_school(db, [category]))
    return registration.tracking_number, category.id


def test_stale_readers_cannot_exceed_companion_cap(committing_sessions, monkeypatch):
    monkeypatch.setattr(settings, "COMPANION_TICKETS_PER_CATEGORY", 1)
    tracking_number, category_id = _verified_school_tracking_number(committing_sessions)
    desk_a, desk_b = committing_sessions(), committing_sessions()

    # Both desks load the registration while no companion slot is taken
    school_a = lifecycle.find_registration(desk_a, tracking_number)
    school_b = lifecycle.find_registration(desk_b, tracking_number)

    ticket_service.add_companion(
        desk_a,
        school_a,
        CompanionTicketRequest(category_id=category_id, name="Mr Ade", role="teacher"),
    )
    with pytest.raises(ConstraintViolation):
        ticket_service.add_companion(
            desk_b,
            school_b,
            CompanionTicketRequest(category_id=category_id, name="Mr Obi", role="teacher"),
        )

    tickets = crud.ticket.get_by_registration(desk_a, school_a.id)
    assert [t.holder_key for t in tickets if t.role == TicketRole.TEACHER] == ["TEACHER-1"]


def test_concurrent_companion_requests_respect_cap(committing_sessions, monkeypatch):
    monkeypatch.setattr(settings, "COMPANION_TICKETS_PER_CATEGORY", 1)
    tracking_number, category_id = _verified_school_tracking_number(committing_sessions)
    sessions = [committing_sessions() for _ in range(4)]

    def attempt(index):
        db = sessions[index]
        registration = lifecycle.find_registration(db, tracking_number)
        try:
            ticket_service.add_companion(
                db,
                registration,
                CompanionTicketRequest(
                    category_id=category_id, name=f"Teacher {index}", role="teacher"
                ),
            )
            return "ok"
        except ConstraintViolation:
            return "capped"

    with ThreadPoolExecutor(max_workers=len(sessions)) as pool:
        outcomes = list(pool.map(attempt, range(len(sessions))))

    assert outcomes.count("ok") == 1
    assert outcomes.count("capped") == len(sessions) - 1
    db = committing_sessions()
    registration = lifecycle.find_registration(db, tracking_number)
    companions = crud.ticket.count_by_role(db, registration_id=registration.id, role="teacher")
    assert companions == 1

# tests/api/test_registration_flow.py

from fastapi.testclient import TestClient

from tests.utils.auth import get_admin_authentication_headers

API = "/api/v1"


def _create_category(client: TestClient, name: str, fee: int = 5000, max_participants: int = 3):
    response = client.post(
        f"{API}/admin/categories",
        headers=get_admin_authentication_headers(),
        json={"name": name, "fee": fee, "max_participants": max_participants},
    )
    assert response.status_code == 201
    return response.json()


def test_school_registration_to_certificate(test_client_e2e: TestClient) -> None:
    admin_headers = get_admin_authentication_headers(user_id="gate_operator")
    drawing = _create_category(test_client_e2e, "Drawing", fee=5000)
    music = _create_category(test_client_e2e, "Music", fee=7000)

    response = test_client_e2e.post(
        f"{API}/registrations/school",
        json={
            "school_name": "Unity Model School",
            "contact_name": "Mrs Bello",
            "contact_phone": "0802 000 1111",
            "contact_email": "office@unity.example.com",
            "category_ids": [drawing["id"], music["id"]],
            "participants": [
                {"name": "Tolu", "class_name": "JSS 1", "category_id": drawing["id"]},
                {"name": "Emeka", "class_name": "JSS 2", "category_id": music["id"]},
            ],
        },
    )
    assert response.status_code == 201
    created = response.json()
    tracking_number = created["tracking_number"]
    assert created["amount_due"] == 12000
    assert created["payment_status"] == "pending"

    # Nothing to download before the payment is verified
    status_body = test_client_e2e.get(f"{API}/registrations/{tracking_number}").json()
    assert status_body["access_granted"] is False
    assert status_body["ticket_url"] is None
    response = test_client_e2e.get(f"{API}/registrations/{tracking_number}/ticket")
    assert response.status_code == 409
    assert response.json()["code"] == "processing"

    # No gateway configured: bank transfer instructions instead
    response = test_client_e2e.post(
        f"{API}/payments/initialize", json={"tracking_number": tracking_number}
    )
    assert response.status_code == 200
    assert response.json()["mode"] == "manual"
    assert response.json()["bank_transfer"]["narration"] == tracking_number

    response = test_client_e2e.post(f"{API}/registrations/{tracking_number}/attest-payment")
    assert response.json()["payment_status"] == "awaiting_verification"
    assert response.json()["display_status"] == "processing"

    response = test_client_e2e.post(
        f"{API}/admin/registrations/{tracking_number}/verify",
        headers=admin_headers,
        json={"approve": True},
    )
    assert response.status_code == 200
    assert response.json()["access_granted"] is True
    assert response.json()["ticket_url"].endswith(f"/registrations/{tracking_number}/ticket")

    response = test_client_e2e.get(f"{API}/registrations/{tracking_number}/tickets")
    assert response.status_code == 200
    tickets = response.json()["tickets"]
    assert len(tickets) == 3
    group_pass = next(t for t in tickets if t["role"] == "group")
    assert group_pass["ticket_number"] == f"TK-{tracking_number}-GROUP"

    response = test_client_e2e.get(f"{API}/registrations/{tracking_number}/certificate")
    assert response.status_code == 409
    assert response.json()["code"] == "not_yet_eligible"

    response = test_client_e2e.post(
        f"{API}/admin/check-in", headers=admin_headers, json={"code": group_pass["qr_payload"]}
    )
    assert response.status_code == 200
    assert response.json()["checked_in_by"] == "gate_operator"

    response = test_client_e2e.post(
        f"{API}/admin/check-in",
        headers=admin_headers,
        json={"code": group_pass["ticket_number"]},
    )
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "already_checked_in"
    assert body["checked_in_by"] == "gate_operator"

    response = test_client_e2e.get(f"{API}/registrations/{tracking_number}/certificate")
    assert response.status_code == 200
    assert response.json()["school_name"] == "Unity Model School"

    response = test_client_e2e.get(f"{API}/registrations/{tracking_number}/certificate.pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"

    response = test_client_e2e.get(f"{API}/tickets/{group_pass['ticket_number']}/qr.png")
    assert response.status_code == 200
    assert response.content.startswith(b"\x89PNG")


def test_individual_duplicate_phone_returns_existing_tracking_number(
    test_client_e2e: TestClient,
) -> None:
    data = {"full_name": "Ada Obi", "phone_number": "08030001111", "amount": 50}

    first = test_client_e2e.post(f"{API}/registrations/individual", json=data)
    assert first.status_code == 201
    assert first.json()["amount_due"] == 3000

    second = test_client_e2e.post(
        f"{API}/registrations/individual",
        json={**data, "phone_number": "0803 000 1111"},
    )
    assert second.status_code == 409
    assert second.json()["code"] == "duplicate_registration"
    assert second.json()["tracking_number"] == first.json()["tracking_number"]


def test_recover_tracking_numbers_by_phone(test_client_e2e: TestClient) -> None:
    created = test_client_e2e.post(
        f"{API}/registrations/individual",
        json={"full_name": "Ada Obi", "phone_number": "08030002222"},
    ).json()

    response = test_client_e2e.get(f"{API}/registrations/recover", params={"phone": "0803-000-2222"})

    assert response.status_code == 200
    assert [r["tracking_number"] for r in response.json()] == [created["tracking_number"]]


def test_category_cap_rejects_whole_submission(test_client_e2e: TestClient) -> None:
    category = _create_category(test_client_e2e, "Dance", max_participants=1)

    response = test_client_e2e.post(
        f"{API}/registrations/school",
        json={
            "school_name": "Unity Model School",
            "contact_name": "Mrs Bello",
            "contact_phone": "08020002222",
            "category_ids": [category["id"]],
            "participants": [
                {"name": "Tolu", "category_id": category["id"]},
                {"name": "Emeka", "category_id": category["id"]},
            ],
        },
    )

    assert response.status_code == 422
    assert response.json()["code"] == "constraint_violation"
    recovered = test_client_e2e.get(
        f"{API}/registrations/recover", params={"phone": "08020002222"}
    ).json()
    assert recovered == []


def test_unknown_tracking_number_is_404(test_client_e2e: TestClient) -> None:
    response = test_client_e2e.get(f"{API}/registrations/CHAF-NOPE00")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_ticket_pdf_needs_verified_payment(test_client_e2e: TestClient) -> None:
    created = test_client_e2e.post(
        f"{API}/registrations/individual",
        json={"full_name": "Ada Obi", "phone_number": "08030003333"},
    ).json()
    tracking_number = created["tracking_number"]

    response = test_client_e2e.get(f"{API}/tickets/TK-{tracking_number}-MAIN/pdf")
    assert response.status_code == 404

    test_client_e2e.post(f"{API}/registrations/{tracking_number}/attest-payment")
    test_client_e2e.post(
        f"{API}/admin/registrations/{tracking_number}/verify",
        headers=get_admin_authentication_headers(),
        json={"approve": True},
    )
    ticket = test_client_e2e.get(f"{API}/registrations/{tracking_number}/ticket").json()

    response = test_client_e2e.get(f"{API}/tickets/{ticket['ticket_number']}/pdf")
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_individual_registration_to_certificate(test_client_e2e: TestClient) -> None:
    admin_headers = get_admin_authentication_headers(user_id="gate_2")
    created = test_client_e2e.post(
        f"{API}/registrations/individual",
        json={"full_name": "Ada Obi", "phone_number": "08030004444", "state": "Lagos"},
    ).json()
    tracking_number = created["tracking_number"]

    for _ in range(2):
        response = test_client_e2e.post(f"{API}/registrations/{tracking_number}/attest-payment")
        assert response.json()["payment_status"] == "awaiting_verification"

    test_client_e2e.post(
        f"{API}/admin/registrations/{tracking_number}/verify",
        headers=admin_headers,
        json={"approve": True},
    )
    first = test_client_e2e.get(f"{API}/registrations/{tracking_number}/ticket").json()
    second = test_client_e2e.get(f"{API}/registrations/{tracking_number}/ticket").json()
    assert first["ticket_number"] == second["ticket_number"] == f"TK-{tracking_number}-MAIN"

    response = test_client_e2e.post(
        f"{API}/admin/check-in", headers=admin_headers, json={"code": first["ticket_number"]}
    )
    assert response.status_code == 200
    response = test_client_e2e.post(
        f"{API}/admin/check-in", headers=admin_headers, json={"code": first["qr_payload"]}
    )
    assert response.status_code == 409
    assert response.json()["code"] == "already_checked_in"

    certificate = test_client_e2e.get(f"{API}/registrations/{tracking_number}/certificate").json()
    assert certificate["participant_name"] == "Ada Obi"
    assert certificate["state"] == "Lagos"

import pytest
from fastapi import status
from sqlalchemy.exc import IntegrityError

from default_registry import models, util
from default_registry.settings import app_settings
from tests import assert_error, assert_ok
from tests.conftest import APPLICATION_PAYLOAD


def test_get_renewal_reasons(client, renewal_reasons):
    # No authentication is required.
    response = client.get("/renewal-reasons")

    assert_ok(response)
    assert response.json()["data"] == [
        {"id": 1, "reason": "Debts repaid", "enabled": True},
        {"id": 2, "reason": "Restructured", "enabled": True},
    ]


def test_create_renewal(client, session, operator_header, renewal_reasons, defaulted_customer):
    response = client.post(
        "/renewals",
        json={"customer_id": defaulted_customer, "renewal_reason": 2, "remark": "Paid in full"},
        headers=operator_header,
    )
    assert_ok(response, status.HTTP_201_CREATED)
    assert response.json()["message"] == "Renewal application submitted"
    data = response.json()["data"]
    assert data["renewal_id"].startswith("REN")
    assert len(data["renewal_id"]) == 3 + 13 + 4
    assert data["customer_id"] == defaulted_customer
    assert data["customer_name"] == "Acme Co"
    assert data["renewal_reason"] == {"id": 2, "reason": "Restructured"}
    assert data["status"] == models.ApplicationStatus.PENDING
    assert data["applicant"] == "alice"
    assert data["remark"] == "Paid in full"
    assert data["approver"] is None

    log = models.OperationLog.first_by(session, "object_id", data["renewal_id"])
    assert log.type == models.OperationType.RENEWAL_CREATED

    # At most one PENDING renewal per customer.
    response = client.post(
        "/renewals", json={"customer_id": defaulted_customer, "renewal_reason": 1}, headers=operator_header
    )
    assert_error(response, status.HTTP_400_BAD_REQUEST, "Customer already has a pending renewal application")
    assert session.query(models.Renewal).count() == 1


def test_create_renewal_invalid(client, session, operator_header, renewal_reasons, submitted_application):
    # The customer exists, but isn't in default.
    response = client.post(
        "/renewals",
        json={"customer_id": submitted_application["customer_id"], "renewal_reason": 1},
        headers=operator_header,
    )
    assert_error(response, status.HTTP_400_BAD_REQUEST, "Customer does not exist or is not in default status")

    response = client.post("/renewals", json={"customer_id": 999, "renewal_reason": 1}, headers=operator_header)
    assert_error(response, status.HTTP_400_BAD_REQUEST, "Customer does not exist or is not in default status")

    response = client.post("/renewals", json={"customer_id": 0, "renewal_reason": 1}, headers=operator_header)
    assert_error(response, status.HTTP_400_BAD_REQUEST, "Invalid request parameters")

    assert session.query(models.Renewal).count() == 0


def test_create_renewal_reason(client, session, operator_header, renewal_reasons, defaulted_customer):
    response = client.post(
        "/renewals", json={"customer_id": defaulted_customer, "renewal_reason": 99}, headers=operator_header
    )
    assert_error(response, status.HTTP_400_BAD_REQUEST, "Renewal reason not found")

    app_settings.reject_disabled_reasons = True

    response = client.post(
        "/renewals", json={"customer_id": defaulted_customer, "renewal_reason": 3}, headers=operator_header
    )
    assert_error(response, status.HTTP_400_BAD_REQUEST, "Renewal reason is disabled")

    assert session.query(models.Renewal).count() == 0


def test_create_renewal_roles(client, auditor_header, user_header, renewal_reasons, defaulted_customer):
    payload = {"customer_id": defaulted_customer, "renewal_reason": 1}

    response = client.post("/renewals", json=payload)
    assert_error(response, status.HTTP_401_UNAUTHORIZED)

    for header in (auditor_header, user_header):
        response = client.post("/renewals", json=payload, headers=header)
        assert_error(response, status.HTTP_403_FORBIDDEN, "User is not authorized")


def test_approve_renewal(client, session, operator_header, auditor_header, renewal_reasons, pending_renewal):
    renewal_id = pending_renewal["renewal_id"]
    customer_id = pending_renewal["customer_id"]

    response = client.post(
        f"/renewals/{renewal_id}/approve", json={"approved": True, "remark": "verified"}, headers=auditor_header
    )
    assert_ok(response)
    assert response.json()["message"] == "Renewal application approved"

    renewal = models.Renewal.first_by(session, "renewal_id", renewal_id)
    assert renewal.status == models.ApplicationStatus.APPROVED
    assert renewal.approver == "carol"
    assert renewal.approve_remark == "verified"
    assert renewal.approve_time is not None

    # The customer leaves default.
    assert models.Customer.get(session, customer_id).status == models.CustomerStatus.NORMAL
    assert models.DefaultCustomer.active(session).filter_by(customer_id=customer_id).count() == 0
    assert models.DefaultCustomer.filter_by(session, "customer_id", customer_id).count() == 1

    response = client.get(f"/default-customers/{customer_id}", headers=auditor_header)
    assert_error(response, status.HTTP_404_NOT_FOUND)

    # A renewal is decided only once.
    response = client.post(f"/renewals/{renewal_id}/approve", json={"approved": False}, headers=auditor_header)
    assert_error(response, status.HTTP_400_BAD_REQUEST, "has already been decided (APPROVED)")

    # A customer that isn't in default can't be renewed.
    response = client.post(
        "/renewals", json={"customer_id": customer_id, "renewal_reason": 1}, headers=operator_header
    )
    assert_error(response, status.HTTP_400_BAD_REQUEST, "Customer does not exist or is not in default status")


def test_reject_renewal(client, session, operator_header, auditor_header, renewal_reasons, pending_renewal):
    renewal_id = pending_renewal["renewal_id"]
    customer_id = pending_renewal["customer_id"]

    response = client.post(
        f"/renewals/{renewal_id}/approve", json={"approved": False, "remark": "still overdue"}, headers=auditor_header
    )
    assert_ok(response)
    assert response.json()["message"] == "Renewal application rejected"

    renewal = models.Renewal.first_by(session, "renewal_id", renewal_id)
    assert renewal.status == models.ApplicationStatus.REJECTED
    assert renewal.approve_remark == "still overdue"

    # The customer remains in default.
    assert models.Customer.get(session, customer_id).status == models.CustomerStatus.DEFAULT
    assert models.DefaultCustomer.active_for_customer(session, customer_id) is not None

    # A new renewal can be submitted.
    response = client.post(
        "/renewals", json={"customer_id": customer_id, "renewal_reason": 1}, headers=operator_header
    )
    assert_ok(response, status.HTTP_201_CREATED)


def test_approve_renewal_not_found(client, operator_header, auditor_header, pending_renewal):
    response = client.post("/renewals/REN0000000000000XXXX/approve", json={"approved": True}, headers=auditor_header)
    assert_error(response, status.HTTP_404_NOT_FOUND, "Renewal not found")

    response = client.post(
        f"/renewals/{pending_renewal['renewal_id']}/approve", json={"approved": True}, headers=operator_header
    )
    assert_error(response, status.HTTP_403_FORBIDDEN)


def test_batch_approve_renewals(client, session, operator_header, auditor_header, renewal_reasons, default_reasons):
    renewal_ids = []
    for name in ("Acme Co", "Globex"):
        response = client.post(
            "/default-applications", json={**APPLICATION_PAYLOAD, "customer_name": name}, headers=operator_header
        )
        data = response.json()["data"]
        client.post(
            f"/default-applications/{data['application_id']}/approve", json={"approved": True}, headers=auditor_header
        )
        response = client.post(
            "/renewals", json={"customer_id": data["customer_id"], "renewal_reason": 1}, headers=operator_header
        )
        renewal_ids.append(response.json()["data"]["renewal_id"])

    response = client.post(
        "/renewals/batch-approve",
        json={
            "renewals": [
                {"renewal_id": renewal_ids[0], "approved": True},
                {"renewal_id": "REN0000000000000XXXX", "approved": True},
                {"renewal_id": renewal_ids[1], "approved": False},
                {"renewal_id": renewal_ids[0], "approved": False},
            ]
        },
        headers=auditor_header,
    )
    assert_ok(response)
    assert response.json()["message"] == "Batch approval finished: 2 succeeded, 2 failed"
    data = response.json()["data"]
    assert data["success_count"] == 2
    assert data["fail_count"] == 2
    assert [(detail["renewal_id"], detail["success"], detail["message"]) for detail in data["details"][:3]] == [
        (renewal_ids[0], True, "Approved"),
        ("REN0000000000000XXXX", False, "Renewal not found"),
        (renewal_ids[1], True, "Rejected"),
    ]
    assert "has already been decided" in data["details"][3]["message"]

    statuses = {customer.customer_name: customer.status for customer in session.query(models.Customer)}
    assert statuses == {"Acme Co": models.CustomerStatus.NORMAL, "Globex": models.CustomerStatus.DEFAULT}


def test_get_renewal(
    client, operator_header, other_operator_header, auditor_header, user_header, renewal_reasons, pending_renewal
):
    renewal_id = pending_renewal["renewal_id"]

    for header in (operator_header, auditor_header):
        response = client.get(f"/renewals/{renewal_id}", headers=header)
        assert_ok(response)
        data = response.json()["data"]
        assert data["renewal_id"] == renewal_id
        assert data["customer_name"] == "Acme Co"
        assert data["renewal_reason"] == {"id": 1, "reason": "Debts repaid"}
        assert data["customer_info"] == {"industry": None, "region": None, "latest_external_rating": None}
        assert data["original_default_reasons"] == [
            {"id": 1, "reason": "Overdue principal"},
            {"id": 2, "reason": "Overdue interest"},
        ]

    response = client.get(f"/renewals/{renewal_id}", headers=other_operator_header)
    assert_error(response, status.HTTP_403_FORBIDDEN, "No permission to view this renewal application")

    response = client.get(f"/renewals/{renewal_id}", headers=user_header)
    assert_error(response, status.HTTP_404_NOT_FOUND)

    response = client.get("/renewals/REN0000000000000XXXX", headers=auditor_header)
    assert_error(response, status.HTTP_404_NOT_FOUND, "Renewal not found")


def test_get_renewals(
    client, operator_header, other_operator_header, auditor_header, user_header, renewal_reasons, default_reasons
):
    for name, header in (("Acme Co", operator_header), ("Globex", other_operator_header)):
        response = client.post(
            "/default-applications", json={**APPLICATION_PAYLOAD, "customer_name": name}, headers=header
        )
        data = response.json()["data"]
        client.post(
            f"/default-applications/{data['application_id']}/approve", json={"approved": True}, headers=auditor_header
        )
        client.post("/renewals", json={"customer_id": data["customer_id"], "renewal_reason": 1}, headers=header)

    def names(header, **params):
        response = client.get("/renewals", params=params, headers=header)
        assert_ok(response)
        return [item["customer_name"] for item in response.json()["data"]["list"]]

    assert names(operator_header) == ["Acme Co"]
    assert names(operator_header, applicant="bob") == ["Acme Co"]
    assert names(other_operator_header) == ["Globex"]
    assert names(auditor_header) == ["Globex", "Acme Co"]
    assert names(auditor_header, applicant="alice") == ["Acme Co"]
    assert names(auditor_header, customer_name="glob") == ["Globex"]
    assert names(auditor_header, status="APPROVED") == []
    assert names(user_header) == []

    response = client.get("/renewals", headers=auditor_header)
    item = response.json()["data"]["list"][0]
    assert item["customer"] == {"industry": None, "region": None}
    assert item["renewal_reason"] == {"id": 1, "reason": "Debts repaid"}


def test_get_renewable_customers(client, operator_header, auditor_header, default_reasons, renewal_reasons):
    customer_ids = []
    for name in ("Acme Co", "Globex"):
        response = client.post(
            "/default-applications", json={**APPLICATION_PAYLOAD, "customer_name": name}, headers=operator_header
        )
        data = response.json()["data"]
        client.post(
            f"/default-applications/{data['application_id']}/approve", json={"approved": True}, headers=auditor_header
        )
        customer_ids.append(data["customer_id"])

    response = client.get("/default-customers/renewable", headers=operator_header)
    assert_ok(response)
    assert response.json()["data"]["total"] == 2

    client.post("/renewals", json={"customer_id": customer_ids[0], "renewal_reason": 1}, headers=operator_header)

    response = client.get("/default-customers/renewable", headers=operator_header)
    assert_ok(response)
    assert [item["customer_name"] for item in response.json()["data"]["list"]] == ["Globex"]

    response = client.get("/default-customers/renewable", params={"customer_name": "acme"}, headers=operator_header)
    assert response.json()["data"]["total"] == 0

    response = client.get("/default-customers/renewable", headers=auditor_header)
    assert_error(response, status.HTTP_403_FORBIDDEN)


def test_pending_renewal_unique_index(session, renewal_reasons, defaulted_customer, pending_renewal):
    with pytest.raises(IntegrityError):
        models.Renewal.create(
            session,
            renewal_id=util.generate_renewal_id(),
            customer_id=defaulted_customer,
            customer_name="Acme Co",
            renewal_reason_id=renewal_reasons[0].id,
            status=models.ApplicationStatus.PENDING,
            applicant="alice",
        )


def test_create_renewal_concurrent_duplicate(
    client, session, monkeypatch, operator_header, renewal_reasons, defaulted_customer, pending_renewal
):
    # Another transaction committed its PENDING renewal after this one looked for it.
    monkeypatch.setattr(models.Renewal, "pending_for_customer", lambda session, customer_id: None)

    response = client.post(
        "/renewals", json={"customer_id": defaulted_customer, "renewal_reason": 1}, headers=operator_header
    )

    assert_error(response, status.HTTP_400_BAD_REQUEST, "Customer already has a pending renewal application")
    session.expire_all()
    assert session.query(models.Renewal).count() == 1
    assert models.Renewal.first_by(session, "renewal_id", pending_renewal["renewal_id"]).status == "PENDING"

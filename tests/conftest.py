import os
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from default_registry import db, models
from default_registry.db import get_db
from default_registry.main import app
from default_registry.settings import app_settings
from tests import auth_header, get_test_db

APPLICATION_PAYLOAD = {
    "customer_name": "Acme Co",
    "severity": "HIGH",
    "default_reasons": [1, 2],
}


@pytest.fixture(autouse=True)
def reset_settings():
    reject_disabled_reasons = app_settings.reject_disabled_reasons
    yield
    app_settings.reject_disabled_reasons = reject_disabled_reasons


# PostgreSQL if TEST_DATABASE_URL is set (like CI). Otherwise, a new SQLite database per test.
@pytest.fixture
def engine(tmp_path):
    if url := os.getenv("TEST_DATABASE_URL"):
        engine = create_engine(url)
    else:
        engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")

        # https://docs.sqlalchemy.org/en/20/dialects/sqlite.html#foreign-key-support
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    models.SQLModel.metadata.create_all(engine)
    yield engine
    models.SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, Any, None]:
    with sessionmaker(expire_on_commit=False, bind=engine)() as session:
        yield session


# The CLI uses default_registry.db.get_db directly.
@pytest.fixture
def cli_db(engine, monkeypatch):
    monkeypatch.setattr(db, "SessionLocal", sessionmaker(expire_on_commit=False, bind=engine))


@pytest.fixture
def client(engine) -> Generator[TestClient, Any, None]:
    app.dependency_overrides[get_db] = get_test_db(engine)

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_header():
    return auth_header("admin", models.Role.ADMIN)


@pytest.fixture
def operator_header():
    return auth_header("alice", models.Role.OPERATOR)


@pytest.fixture
def other_operator_header():
    return auth_header("bob", models.Role.OPERATOR)


@pytest.fixture
def auditor_header():
    return auth_header("carol", models.Role.AUDITOR)


@pytest.fixture
def user_header():
    return auth_header("dave", models.Role.USER)


@pytest.fixture
def default_reasons(session):
    reasons = [
        models.DefaultReason.create(session, reason="Overdue principal", detail="Overdue 90 days", sort_order=1),
        models.DefaultReason.create(session, reason="Overdue interest", detail="Overdue 90 days", sort_order=2),
        models.DefaultReason.create(session, reason="Bankruptcy", detail="Filed", enabled=False, sort_order=3),
    ]
    session.commit()
    return reasons


@pytest.fixture
def renewal_reasons(session):
    reasons = [
        models.RenewalReason.create(session, reason="Debts repaid", sort_order=1),
        models.RenewalReason.create(session, reason="Restructured", sort_order=2),
        models.RenewalReason.create(session, reason="Retired reason", enabled=False, sort_order=3),
    ]
    session.commit()
    return reasons


@pytest.fixture
def submitted_application(client, operator_header, default_reasons):
    response = client.post("/default-applications", json=APPLICATION_PAYLOAD, headers=operator_header)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


@pytest.fixture
def defaulted_customer(client, auditor_header, submitted_application):
    response = client.post(
        f"/default-applications/{submitted_application['application_id']}/approve",
        json={"approved": True, "remark": "confirmed"},
        headers=auditor_header,
    )
    assert response.status_code == 200, response.json()
    return submitted_application["customer_id"]


@pytest.fixture
def pending_renewal(client, operator_header, renewal_reasons, defaulted_customer):
    response = client.post(
        "/renewals",
        json={"customer_id": defaulted_customer, "renewal_reason": renewal_reasons[0].id},
        headers=operator_header,
    )
    assert response.status_code == 201, response.json()
    return response.json()["data"]

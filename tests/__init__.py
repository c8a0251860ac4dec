import os
from typing import Any, Generator

import jwt
from sqlalchemy.orm import Session, sessionmaker

# The settings are loaded on import, and the secret is required.
os.environ.setdefault("JWT_SECRET", "a-secret-of-at-least-32-bytes-for-hs256-tokens")

from default_registry.settings import app_settings  # noqa: E402


def get_test_db(engine):
    factory = sessionmaker(expire_on_commit=False, bind=engine)

    def inner() -> Generator[Session, None, None]:
        session = factory()
        try:
            yield session
        finally:
            session.close()

    return inner


def make_token(username: str, role: str, **claims: Any) -> str:
    return jwt.encode(
        {"username": username, "role": role, **claims}, app_settings.jwt_secret, algorithm=app_settings.jwt_algorithm
    )


def auth_header(username: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(username, role)}"}


def assert_ok(response, status_code=200):
    assert response.status_code == status_code, f"{response.status_code}: {response.json()}"
    assert response.json()["code"] == status_code


def assert_error(response, status_code, message=None):
    assert response.status_code == status_code, f"{response.status_code}: {response.json()}"
    body = response.json()
    assert body["code"] == status_code
    if message is not None:
        assert message in body["message"], body["message"]

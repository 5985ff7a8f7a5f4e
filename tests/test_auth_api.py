import logging

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from models import Role
from security import hash_password

SIGNUP = {
    "username": "jdoe",
    "email": "j@x.com",
    "password": "secret1",
    "role": "doctor",
    "firstName": "J",
    "lastName": "Doe",
}


def test_signup_creates_account_and_returns_token(client, db):
    response = client.post("/api/auth/signup", json=SIGNUP)

    assert response.status_code == 201
    data = response.json()
    assert data["token"]
    assert data["user"]["role"] == "doctor"
    assert data["user"]["email"] == "j@x.com"
    assert set(data["user"]) == {"id", "firstName", "lastName", "email", "role"}

    stored = db.find_account("jdoe")
    assert stored.password_hash != "secret1"
    assert stored.is_active


def test_signup_defaults_role_to_patient(client):
    body = {key: value for key, value in SIGNUP.items() if key != "role"}
    response = client.post("/api/auth/signup", json=body)

    assert response.status_code == 201
    assert response.json()["user"]["role"] == "patient"


def test_signup_stores_email_lowercased(client, db):
    response = client.post("/api/auth/signup", json=dict(SIGNUP, email="J.Doe@X.COM"))

    assert response.status_code == 201
    assert db.find_account("jdoe").email == "j.doe@x.com"


@pytest.mark.parametrize("field,value,message", [
    ("username", "jd", "Username must be at least 3 characters long"),
    ("email", "not-an-email", "Please enter a valid email"),
    ("password", "short", "Password must be at least 6 characters long"),
    ("password", "x" * 73, "Password must be at most 72 bytes long"),
    ("role", "nurse", "Invalid role"),
    ("firstName", "   ", "First name is required"),
    ("lastName", "", "Last name is required"),
])
def test_signup_rejects_invalid_input(client, db, field, value, message):
    response = client.post("/api/auth/signup", json=dict(SIGNUP, **{field: value}))

    assert response.status_code == 400
    assert response.json() == {"message": message}
    assert db.find_account("jdoe") is None


def test_signup_reports_missing_fields(client):
    response = client.post("/api/auth/signup", json={})

    assert response.status_code == 400
    assert response.json()["message"] == "Username must be at least 3 characters long"


@pytest.mark.parametrize("duplicate", [
    {"username": "JDOE", "email": "other@x.com"},
    {"username": "someone", "email": "J@X.com"},
])
def test_signup_rejects_existing_identity(client, duplicate):
    assert client.post("/api/auth/signup", json=SIGNUP).status_code == 201

    response = client.post("/api/auth/signup", json=dict(SIGNUP, **duplicate))

    assert response.status_code == 400
    assert response.json() == {"message": "User already exists"}


def test_signup_without_signing_secret_is_a_server_error(tmp_path):
    app = create_app(Settings(database_path=str(tmp_path / "nosecret.db"), jwt_secret=None))
    client = TestClient(app)

    response = client.post("/api/auth/signup", json=SIGNUP)

    assert response.status_code == 500
    assert response.json() == {"message": "Server configuration error"}
    assert app.state.db.find_account("jdoe") is None


def test_login_without_signing_secret_is_a_server_error(tmp_path):
    app = create_app(Settings(database_path=str(tmp_path / "nosecret.db"), jwt_secret=None))
    app.state.db.create_account("jdoe", "j@x.com", hash_password("secret1"), Role.DOCTOR, "John", "Doe")
    client = TestClient(app)

    response = client.post("/api/auth/login", json={"email": "jdoe", "password": "secret1"})

    assert response.status_code == 500
    assert response.json() == {"message": "Server configuration error"}
    assert app.state.db.find_account("jdoe").last_login is None


@pytest.mark.parametrize("identifier", ["j@x.com", "J@X.COM", "jdoe", "JDoe"])
def test_login_accepts_username_or_email(client, identifier):
    client.post("/api/auth/signup", json=SIGNUP)

    response = client.post("/api/auth/login", json={"email": identifier, "password": "secret1"})

    assert response.status_code == 200
    data = response.json()
    assert data["token"]
    assert data["user"]["email"] == "j@x.com"
    assert data["user"]["role"] == "doctor"


def test_login_records_last_login(client, db):
    client.post("/api/auth/signup", json=SIGNUP)
    assert db.find_account("jdoe").last_login is None

    client.post("/api/auth/login", json={"email": "jdoe", "password": "secret1"})

    assert db.find_account("jdoe").last_login is not None


def test_login_failures_share_one_message(client):
    client.post("/api/auth/signup", json=SIGNUP)

    wrong_password = client.post("/api/auth/login", json={"email": "j@x.com", "password": "wrong-pass"})
    unknown_account = client.post("/api/auth/login", json={"email": "nobody@x.com", "password": "secret1"})

    assert wrong_password.status_code == 400
    assert unknown_account.status_code == 400
    assert wrong_password.json() == unknown_account.json() == {"message": "Invalid credentials"}


@pytest.mark.parametrize("body,message", [
    ({"password": "secret1"}, "Email or username is required"),
    ({"email": "j@x.com"}, "Password is required"),
])
def test_login_requires_both_fields(client, body, message):
    response = client.post("/api/auth/login", json=body)

    assert response.status_code == 400
    assert response.json() == {"message": message}


def test_login_refused_for_deactivated_account(client, db):
    user = client.post("/api/auth/signup", json=SIGNUP).json()["user"]
    db.set_active(user["id"], False)

    response = client.post("/api/auth/login", json={"email": "jdoe", "password": "secret1"})

    assert response.status_code == 401
    assert response.json() == {"message": "Account is deactivated"}


def test_passwords_never_reach_the_logs(client, caplog):
    caplog.set_level(logging.DEBUG)

    client.post("/api/auth/signup", json=SIGNUP)
    client.post("/api/auth/login", json={"email": "jdoe", "password": "secret1"})
    client.post("/api/auth/login", json={"email": "jdoe", "password": "wrong-pass"})

    assert "secret1" not in caplog.text
    assert "wrong-pass" not in caplog.text
    assert "$2b$" not in caplog.text


def test_me_returns_profile_without_secrets(client, doctor):
    response = client.get("/api/auth/me", headers=doctor["headers"])

    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "doctor1"
    assert data["role"] == "doctor"
    assert data["isActive"] is True
    assert "passwordHash" not in data
    assert "password_hash" not in data


def test_profile_update_changes_allowed_fields(client, patient):
    response = client.patch(
        "/api/auth/me",
        json={"firstName": "Pat", "phoneNumber": "555-0100"},
        headers=patient["headers"],
    )

    assert response.status_code == 200
    data = response.json()
    assert data["firstName"] == "Pat"
    assert data["phoneNumber"] == "555-0100"
    assert data["lastName"] == "Tester"


@pytest.mark.parametrize("body,message", [
    ({"role": "admin"}, "Unknown field: role"),
    ({"email": "new@clinic.org"}, "Unknown field: email"),
    ({"firstName": ""}, "First name is required"),
    ({}, "No changes provided"),
])
def test_profile_update_rejects_other_fields(client, patient, body, message):
    response = client.patch("/api/auth/me", json=body, headers=patient["headers"])

    assert response.status_code == 400
    assert response.json() == {"message": message}
    assert client.get("/api/auth/me", headers=patient["headers"]).json()["role"] == "patient"


def test_password_change(client, patient):
    response = client.post(
        "/api/auth/me/password",
        json={"currentPassword": "secret1", "newPassword": "better-secret"},
        headers=patient["headers"],
    )
    assert response.status_code == 204

    old = client.post("/api/auth/login", json={"email": "patient1", "password": "secret1"})
    new = client.post("/api/auth/login", json={"email": "patient1", "password": "better-secret"})
    assert old.status_code == 400
    assert new.status_code == 200


def test_password_change_checks_current_password(client, patient):
    response = client.post(
        "/api/auth/me/password",
        json={"currentPassword": "wrong-pass", "newPassword": "better-secret"},
        headers=patient["headers"],
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Current password is incorrect"}


def test_password_change_validates_new_password(client, patient):
    response = client.post(
        "/api/auth/me/password",
        json={"currentPassword": "secret1", "newPassword": "abc"},
        headers=patient["headers"],
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Password must be at least 6 characters long"}

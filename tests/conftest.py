import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

TEST_SECRET = "test-signing-secret"
DEFAULT_PASSWORD = "secret1"


@pytest.fixture
def settings(tmp_path):
    return Settings(database_path=str(tmp_path / "clinic_test.db"), jwt_secret=TEST_SECRET)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def db(app):
    return app.state.db


@pytest.fixture
def register(client):
    """Sign up an account and return the response body plus ready-made auth headers"""
    def _register(username, role="patient", password=DEFAULT_PASSWORD, **fields):
        body = {
            "username": username,
            "email": f"{username}@clinic.org",
            "password": password,
            "firstName": username.capitalize(),
            "lastName": "Tester",
            "role": role,
        }
        body.update(fields)
        response = client.post("/api/auth/signup", json=body)
        assert response.status_code == 201, response.json()
        data = response.json()
        data["headers"] = {"Authorization": f"Bearer {data['token']}"}
        return data
    return _register


@pytest.fixture
def admin(register):
    return register("admin1", role="admin")


@pytest.fixture
def doctor(register):
    return register("doctor1", role="doctor")


@pytest.fixture
def patient(register):
    return register("patient1", role="patient")

import os
import tempfile
import uuid

# The engine is built when ``repo`` is imported, so the URL must be set first.
_DB_PATH = os.path.join(tempfile.gettempdir(), f"notifications-test-{uuid.uuid4().hex}.sqlite3")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import repo  # noqa: E402
from main import app  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_tables():
    repo.Base.metadata.drop_all(repo.engine)
    repo.Base.metadata.create_all(repo.engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def alert_body():
    return {
        "recipients": [
            {"email": "ana@example.com", "full_name": "Ana"},
            {"email": "bo@example.com"},
        ],
        "product": {
            "id": "3f1c2f5e-0000-4000-8000-000000000001",
            "name": "Desk lamp",
            "description": "Brass",
            "stock": 2,
            "price": "19.90",
        },
    }

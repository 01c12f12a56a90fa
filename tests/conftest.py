import mongomock
import pytest
from fastapi.testclient import TestClient

from catalog import Catalog
from errors import UpstreamServiceError
from main import create_app
from schemas import ProductIn
from seed import seed_products
from storage import MemoryStorage, MongoStorage

ADDRESS = {
    "fullName": "Ann Lee",
    "streetAddress": "12 Market St",
    "city": "Portland",
    "state": "OR",
    "zipCode": "97201",
    "country": "US",
}


class FakeChatClient:
    """Stands in for the AI provider. Offline unless given a reply."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete_json(self, system, prompt):
        self.calls.append((system, prompt))
        if self.error is not None:
            raise self.error
        if self.reply is None:
            raise UpstreamServiceError("AI provider offline")
        return self.reply


def make_product(storage, **overrides):
    data = {
        "title": "Plain Tee",
        "description": "Everyday cotton tee.",
        "price": 2500,
        "category": "men",
        "sub_category": "shirts",
        "images": ["https://img.example/tee.jpg"],
        "sizes": ["S", "M", "L"],
        "colors": [{"name": "White", "code": "#FFFFFF"}],
        "inventory": 10,
    }
    data.update(overrides)
    return storage.create_product(ProductIn(**data))


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["trendhive_test"]


@pytest.fixture(params=["memory", "mongo"])
def storage(request):
    if request.param == "mongo":
        return MongoStorage(request.getfixturevalue("mongo_db"))
    return MemoryStorage()


@pytest.fixture
def seeded(storage):
    seed_products(storage)
    return storage


@pytest.fixture
def catalog(seeded):
    return Catalog(seeded)


@pytest.fixture
def ai():
    return FakeChatClient()


@pytest.fixture
def app(seeded, ai):
    return create_app(storage=seeded, ai_client=ai, seed=False)


@pytest.fixture
def client(app):
    return TestClient(app)


def register(client, email="ann@trendhive.io", name="Ann", password="secret123"):
    res = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert res.status_code == 201, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return register(client)

"""Pytest fixtures for Stampcard tests."""

import os

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

import pytest
from fastapi.testclient import TestClient

from fakes import FakeAuthProvider, FakeDirectory
from stampcard.main import create_app
from stampcard.session_router import SessionRouter
from stampcard.sessions import SessionContext, SessionRegistry


@pytest.fixture
def auth():
    return FakeAuthProvider()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def registry(auth, directory):
    async def factory(session_id: str) -> SessionContext:
        router = SessionRouter(auth, directory, timeout=1.0)
        return SessionContext(id=session_id, auth=auth, directory=directory, router=router)

    return SessionRegistry(factory)


@pytest.fixture
def client(registry):
    app = create_app(registry)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def restaurant_owner(auth, directory):
    """A signed-up restaurant with an active stamp program."""
    user_id = auth.register("luca@example.com", "pasta123")
    restaurant = directory.add_restaurant(user_id)
    directory.stamp_programs.append(
        {
            "id": "p-1",
            "restaurant_id": restaurant["id"],
            "name": "Pasta card",
            "stamps_required": 10,
            "reward_value": "Free pasta",
            "is_active": True,
        }
    )
    return restaurant


@pytest.fixture
def staff_client(client, restaurant_owner):
    """A client whose browser session is logged in as the restaurant."""
    response = client.post("/api/auth/restaurant/login", json={"email": "luca@example.com", "password": "pasta123"})
    assert response.status_code == 200
    assert response.json()["view"] == "restaurant-dashboard"
    return client

"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against an in-memory SQLite database by default, or against
    TEST_DATABASE_URL when it is set (e.g. a PostgreSQL kashta_test DB).
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - make_participant(client, ...)   → participant dict
  - make_item(client, ...)          → item dict
  - make_event(client, ...)         → event dict
  - add_to_event(client, ...)       → HTTP response
  - make_contribution(client, ...)  → HTTP response
  - get_settlement(client, ...)     → settlement data dict

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from kashta.app import create_app
from kashta.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the whole session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test, children before parents.

    settlement_activity_logs has no FKs; it is cleared like the rest so the
    audit-log tests only see their own rows.
    """
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM settlement_activity_logs"))
            conn.execute(text("DELETE FROM settlement_records"))
            conn.execute(text("DELETE FROM contributions"))
            conn.execute(text("DELETE FROM event_participants"))
            conn.execute(text("DELETE FROM events"))
            conn.execute(text("DELETE FROM items"))
            conn.execute(text("DELETE FROM participants"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_participant(client, name: str = "Ann", phone: str | None = None) -> dict:
    resp = client.post("/api/v1/participants/", json={"name": name, "phone": phone})
    assert resp.status_code == 201, f"make_participant failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_item(client, name: str = "Tent") -> dict:
    resp = client.post("/api/v1/items/", json={"name": name})
    assert resp.status_code == 201, f"make_item failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_event(
    client,
    title: str = "Wadi Rum",
    date: str = "2026-05-01T08:00:00Z",
) -> dict:
    resp = client.post("/api/v1/events/", json={"title": title, "date": date})
    assert resp.status_code == 201, f"make_event failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_to_event(client, event_id: int, participant_id: str, role: str = "member"):
    """Adds a participant to an event. Returns the HTTP response."""
    return client.post(
        f"/api/v1/events/{event_id}/participants",
        json={"participant_id": participant_id, "role": role},
    )


def make_contribution(
    client,
    event_id: int,
    item_id: str,
    participant_id: str | None,
    cost: str,
    quantity: int = 1,
):
    """Adds an item to an event, paid by participant_id (None = unassigned)."""
    return client.post(
        f"/api/v1/events/{event_id}/contributions",
        json={
            "item_id": item_id,
            "participant_id": participant_id,
            "cost": cost,
            "quantity": quantity,
        },
    )


def get_settlement(client, event_id: int) -> dict:
    resp = client.get(f"/api/v1/events/{event_id}/settlement")
    assert resp.status_code == 200, f"get_settlement failed: {resp.get_json()}"
    return resp.get_json()["data"]


def setup_trip(client, *names: str, title: str = "Wadi Rum") -> tuple[dict, dict[str, dict], dict]:
    """
    Creates an event, one participant per name (all joined), and one item.

    Returns (event, {name: participant}, item).
    """
    event = make_event(client, title=title)
    people = {}
    for name in names:
        person = make_participant(client, name)
        resp = add_to_event(client, event["id"], person["id"])
        assert resp.status_code == 201, resp.get_json()
        people[name] = person
    item = make_item(client)
    return event, people, item

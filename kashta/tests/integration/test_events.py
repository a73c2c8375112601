"""
tests/integration/test_events.py — Integration tests for events, membership and contributions.

Endpoints covered:
  POST/GET /participants, /items, /events
  DELETE   /events/:id, /participants/:id   → 200 / 404 / 409 (deletion guards)
  GET      /events/:id/can-delete, /participants/:id/can-delete
  POST     /events/:id/participants         → 201 / 404 / 409
  DELETE   /events/:id/participants/:pid    → 200 (cascade) / 422
  POST/GET /events/:id/contributions        → 201 (enrolls outside payer) / 404
  PATCH    /contributions/:id               → 200
  POST     /contributions/:id/unassign      → 200 (prunes idle payer)
  DELETE   /contributions/:id               → 200 (prunes idle payer)
"""

from __future__ import annotations

from .conftest import (
    add_to_event,
    get_settlement,
    make_contribution,
    make_event,
    make_item,
    make_participant,
    setup_trip,
)


def _event_participant_ids(client, event_id: int) -> list[str]:
    data = client.get(f"/api/v1/events/{event_id}").get_json()["data"]
    return [p["participant_id"] for p in data["participants"]]


# ═══════════════════════════════════════════════════════════════════════════
# Participants, items, events
# ═══════════════════════════════════════════════════════════════════════════

class TestBasics:

    def test_create_and_list_participants(self, client):
        ann = make_participant(client, "Ann")
        assert ann["trip_count"] == 0

        data = client.get("/api/v1/participants/").get_json()["data"]
        assert [p["id"] for p in data] == [ann["id"]]

    def test_unknown_participant_returns_404(self, client):
        resp = client.get("/api/v1/participants/does-not-exist")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PARTICIPANT_NOT_FOUND"

    def test_blank_participant_name_returns_400(self, client):
        resp = client.post("/api/v1/participants/", json={"name": "  "})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "name"

    def test_missing_event_date_returns_400(self, client):
        resp = client.post("/api/v1/events/", json={"title": "Trip"})
        assert resp.status_code == 400
        body = resp.get_json()["error"]
        assert body["code"] == "MISSING_FIELD"
        assert body["field"] == "date"

    def test_events_listed_newest_first(self, client):
        old = make_event(client, "Old", "2025-01-01T00:00:00Z")
        new = make_event(client, "New", "2026-01-01T00:00:00Z")

        data = client.get("/api/v1/events/").get_json()["data"]
        assert [e["id"] for e in data] == [new["id"], old["id"]]

    def test_unknown_route_is_json_404(self, client):
        resp = client.get("/api/v1/nowhere")
        assert resp.status_code == 404
        assert "error" in resp.get_json()


# ═══════════════════════════════════════════════════════════════════════════
# Membership
# ═══════════════════════════════════════════════════════════════════════════

class TestMembership:

    def test_join_bumps_trip_count(self, client):
        event = make_event(client)
        ann = make_participant(client, "Ann")

        resp = add_to_event(client, event["id"], ann["id"], role="organizer")
        assert resp.status_code == 201
        assert resp.get_json()["data"]["role"] == "organizer"

        fetched = client.get(f"/api/v1/participants/{ann['id']}").get_json()["data"]
        assert fetched["trip_count"] == 1

    def test_join_twice_returns_409(self, client):
        event = make_event(client)
        ann = make_participant(client, "Ann")
        add_to_event(client, event["id"], ann["id"])

        resp = add_to_event(client, event["id"], ann["id"])
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "ALREADY_IN_EVENT"

    def test_join_unknown_event_returns_404(self, client):
        ann = make_participant(client, "Ann")
        resp = add_to_event(client, 999999, ann["id"])
        assert resp.status_code == 404

    def test_joining_lowers_everyones_share(self, client):
        event, p, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "30.00")
        assert get_settlement(client, event["id"])["fair_share"] == "15.00"

        c = make_participant(client, "C")
        add_to_event(client, event["id"], c["id"])
        assert get_settlement(client, event["id"])["fair_share"] == "10.00"

    def test_remove_cascades_contributions_and_records(self, client):
        event, p, item = setup_trip(client, "A", "B", "C")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "30.00")
        make_contribution(client, event["id"], item["id"], p["B"]["id"], "6.00")

        resp = client.delete(f"/api/v1/events/{event['id']}/participants/{p['B']['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"removed": True, "contributions_deleted": 1}

        s = get_settlement(client, event["id"])
        assert s["participant_count"] == 2
        assert s["fair_share"] == "15.00"
        records = client.get("/api/v1/settlement-records").get_json()["data"]
        assert all(p["B"]["id"] not in (r["debtor_id"], r["creditor_id"]) for r in records)

        fetched = client.get(f"/api/v1/participants/{p['B']['id']}").get_json()["data"]
        assert fetched["trip_count"] == 0

    def test_remove_non_member_returns_422(self, client):
        event = make_event(client)
        ann = make_participant(client, "Ann")

        resp = client.delete(f"/api/v1/events/{event['id']}/participants/{ann['id']}")
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "PARTICIPANT_NOT_IN_EVENT"


# ═══════════════════════════════════════════════════════════════════════════
# Contributions
# ═══════════════════════════════════════════════════════════════════════════

class TestContributions:

    def test_create_returns_amount_as_string(self, client):
        event, p, item = setup_trip(client, "A")

        resp = make_contribution(client, event["id"], item["id"], p["A"]["id"], "2.50", quantity=4)
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["cost"] == "2.50"
        assert data["amount"] == "10.00"
        assert data["status"] == "pending"

    def test_payer_outside_event_is_enrolled(self, client):
        event, p, item = setup_trip(client, "A")
        outsider = make_participant(client, "Zed")

        resp = make_contribution(client, event["id"], item["id"], outsider["id"], "6.00")
        assert resp.status_code == 201

        assert outsider["id"] in _event_participant_ids(client, event["id"])
        zed = client.get(f"/api/v1/participants/{outsider['id']}").get_json()["data"]
        assert zed["trip_count"] == 1

        s = get_settlement(client, event["id"])
        assert s["participant_count"] == 2
        assert [(t["debtor_id"], t["creditor_id"], t["amount"]) for t in s["transactions"]] == [
            (p["A"]["id"], outsider["id"], "3.00"),
        ]

    def test_reassigning_to_outsider_enrolls_them(self, client):
        event, p, item = setup_trip(client, "A", "B")
        outsider = make_participant(client, "Zed")
        cid = make_contribution(client, event["id"], item["id"], p["A"]["id"], "9.00").get_json()["data"]["id"]

        resp = client.patch(f"/api/v1/contributions/{cid}", json={"participant_id": outsider["id"]})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["participant_id"] == outsider["id"]

        ids = _event_participant_ids(client, event["id"])
        assert outsider["id"] in ids
        assert p["A"]["id"] in ids

        s = get_settlement(client, event["id"])
        assert s["fair_share"] == "3.00"
        assert {t["creditor_id"] for t in s["transactions"]} == {outsider["id"]}

    def test_unknown_payer_returns_404(self, client):
        event, _, item = setup_trip(client, "A")

        resp = make_contribution(client, event["id"], item["id"], "no-such-person", "5.00")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PARTICIPANT_NOT_FOUND"

    def test_cost_precision_returns_400(self, client):
        event, p, item = setup_trip(client, "A")

        resp = make_contribution(client, event["id"], item["id"], p["A"]["id"], "1.005")
        assert resp.status_code == 400
        body = resp.get_json()["error"]
        assert body["code"] == "INVALID_AMOUNT_PRECISION"
        assert body["field"] == "cost"

    def test_list_contributions(self, client):
        event, p, item = setup_trip(client, "A")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "1.00")
        make_contribution(client, event["id"], item["id"], None, "2.00")

        data = client.get(f"/api/v1/events/{event['id']}/contributions").get_json()["data"]
        assert sorted(c["cost"] for c in data) == ["1.00", "2.00"]

    def test_patch_empty_body_returns_400(self, client):
        event, p, item = setup_trip(client, "A")
        cid = make_contribution(client, event["id"], item["id"], p["A"]["id"], "1.00").get_json()["data"]["id"]

        resp = client.patch(f"/api/v1/contributions/{cid}", json={})
        assert resp.status_code == 400

    def test_unassign_prunes_idle_payer(self, client):
        event, p, item = setup_trip(client, "A", "B")
        cid = make_contribution(client, event["id"], item["id"], p["B"]["id"], "10.00").get_json()["data"]["id"]

        resp = client.post(f"/api/v1/contributions/{cid}/unassign")
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"unassigned": True, "participant_pruned": True}

        assert _event_participant_ids(client, event["id"]) == [p["A"]["id"]]
        s = get_settlement(client, event["id"])
        assert s["unassigned_costs"] == "0.00"
        assert s["transactions"] == []

    def test_unassign_keeps_payer_with_other_contributions(self, client):
        event, p, item = setup_trip(client, "A", "B")
        first = make_contribution(client, event["id"], item["id"], p["B"]["id"], "10.00").get_json()["data"]["id"]
        make_contribution(client, event["id"], item["id"], p["B"]["id"], "4.00")

        resp = client.post(f"/api/v1/contributions/{first}/unassign")
        assert resp.get_json()["data"]["participant_pruned"] is False
        assert p["B"]["id"] in _event_participant_ids(client, event["id"])

    def test_delete_prunes_idle_payer(self, client):
        event, p, item = setup_trip(client, "A", "B")
        cid = make_contribution(client, event["id"], item["id"], p["B"]["id"], "10.00").get_json()["data"]["id"]

        resp = client.delete(f"/api/v1/contributions/{cid}")
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"deleted": True, "participant_pruned": True}
        assert client.get("/api/v1/settlement-records").get_json()["data"] == []

    def test_delete_unknown_contribution_returns_404(self, client):
        resp = client.delete("/api/v1/contributions/not-a-real-id")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "CONTRIBUTION_NOT_FOUND"

    def test_items_are_shared_across_events(self, client):
        tent = make_item(client, "Tent")
        first, p1, _ = setup_trip(client, "A", title="One")
        second, p2, _ = setup_trip(client, "B", title="Two")

        assert make_contribution(client, first["id"], tent["id"], p1["A"]["id"], "1.00").status_code == 201
        assert make_contribution(client, second["id"], tent["id"], p2["B"]["id"], "1.00").status_code == 201


# ═══════════════════════════════════════════════════════════════════════════
# Deleting events and participants
# ═══════════════════════════════════════════════════════════════════════════

class TestEventDeletion:

    def test_delete_event_without_costs(self, client):
        event, p, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], None, "0.00")

        check = client.get(f"/api/v1/events/{event['id']}/can-delete").get_json()["data"]
        assert check == {"can_delete": True, "code": None, "reason": None}

        resp = client.delete(f"/api/v1/events/{event['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"deleted": True}

        assert client.get(f"/api/v1/events/{event['id']}").status_code == 404
        ann = client.get(f"/api/v1/participants/{p['A']['id']}").get_json()["data"]
        assert ann["trip_count"] == 0

    def test_settlement_records_block_deletion(self, client):
        event, p, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "20.00")

        check = client.get(f"/api/v1/events/{event['id']}/can-delete").get_json()["data"]
        assert check["can_delete"] is False
        assert check["code"] == "EVENT_HAS_SETTLEMENTS"

        resp = client.delete(f"/api/v1/events/{event['id']}")
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "EVENT_HAS_SETTLEMENTS"
        assert client.get(f"/api/v1/events/{event['id']}").status_code == 200

    def test_paid_records_still_block_deletion(self, client):
        event, p, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "20.00")
        client.patch(f"/api/v1/events/{event['id']}/settlements/{p['B']['id']}/{p['A']['id']}")

        resp = client.delete(f"/api/v1/events/{event['id']}")
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "EVENT_HAS_SETTLEMENTS"

    def test_unassigned_cost_blocks_deletion(self, client):
        event, _, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], None, "5.00")

        resp = client.delete(f"/api/v1/events/{event['id']}")
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "EVENT_HAS_COSTS"

    def test_delete_unknown_event_returns_404(self, client):
        resp = client.delete("/api/v1/events/987654")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "EVENT_NOT_FOUND"


class TestParticipantDeletion:

    def test_delete_participant_without_events(self, client):
        zed = make_participant(client, "Zed")

        resp = client.delete(f"/api/v1/participants/{zed['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"deleted": True, "contributions_unassigned": 0}
        assert client.get(f"/api/v1/participants/{zed['id']}").status_code == 404

    def test_unpaid_debt_blocks_both_sides(self, client):
        event, p, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "20.00")

        check = client.get(f"/api/v1/participants/{p['B']['id']}/can-delete").get_json()["data"]
        assert check["can_delete"] is False
        assert check["code"] == "PARTICIPANT_HAS_DEBTS"

        for name in ("A", "B"):
            resp = client.delete(f"/api/v1/participants/{p[name]['id']}")
            assert resp.status_code == 409
            assert resp.get_json()["error"]["code"] == "PARTICIPANT_HAS_DEBTS"

    def test_paid_debtor_can_be_deleted(self, client):
        event, p, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "20.00")
        client.patch(f"/api/v1/events/{event['id']}/settlements/{p['B']['id']}/{p['A']['id']}")

        resp = client.delete(f"/api/v1/participants/{p['B']['id']}")
        assert resp.status_code == 200

        assert _event_participant_ids(client, event["id"]) == [p["A"]["id"]]
        s = get_settlement(client, event["id"])
        assert s["participant_count"] == 1
        assert s["transactions"] == []
        assert client.get("/api/v1/settlement-records").get_json()["data"] == []

    def test_deleted_payer_leaves_cost_unassigned(self, client):
        event, p, item = setup_trip(client, "A", "B")
        make_contribution(client, event["id"], item["id"], p["A"]["id"], "20.00")
        client.patch(f"/api/v1/events/{event['id']}/settlements/{p['B']['id']}/{p['A']['id']}")

        resp = client.delete(f"/api/v1/participants/{p['A']['id']}")
        assert resp.get_json()["data"] == {"deleted": True, "contributions_unassigned": 1}

        s = get_settlement(client, event["id"])
        assert s["participant_count"] == 1
        assert s["assigned_costs"] == "0.00"
        assert s["unassigned_costs"] == "20.00"

    def test_delete_unknown_participant_returns_404(self, client):
        resp = client.delete("/api/v1/participants/nobody")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PARTICIPANT_NOT_FOUND"

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import get_household_service, get_report_service
from app.api.error_handlers import register_exception_handlers
from app.api.routes.budgets import router as budgets_router
from app.api.routes.households import router as households_router
from app.api.routes.reports import router as reports_router
from app.models.enums import HouseholdRole
from app.services.access_control import AccessControlGate
from app.services.household_service import HouseholdService
from app.services.report_service import ReportService
from app.services.summary_service import SummaryAggregator

from fakes import (
    FakeBudgets,
    FakeCategories,
    FakeMemberships,
    FakeReceipts,
    budget,
    category,
    receipt,
)

ALICE, BOB, CAROL, DAVE = 1, 2, 3, 4
HOME, CABIN, OTHER = 10, 20, 30


@pytest.fixture
def client():
    memberships = FakeMemberships()
    memberships.add(HOME, ALICE, HouseholdRole.OWNER)
    memberships.add(CABIN, ALICE, HouseholdRole.MEMBER)
    memberships.add(HOME, BOB, HouseholdRole.VIEWER)
    memberships.add(HOME, CAROL, HouseholdRole.MEMBER)
    memberships.add(OTHER, CAROL, HouseholdRole.OWNER)
    memberships.users.add(DAVE)

    categories = FakeCategories(
        [category(1, "Food", household_id=HOME), category(2, "Rent", household_id=HOME),
         category(3, "Food", household_id=CABIN), category(4, "Misc", household_id=OTHER)]
    )
    receipts = FakeReceipts(
        [
            receipt(HOME, 1, "30.00", dt.date(2024, 3, 2)),
            receipt(HOME, 1, "20.00", dt.date(2024, 3, 9)),
            receipt(HOME, 2, "50.00", dt.date(2024, 3, 1)),
            receipt(CABIN, 3, "60.00", dt.date(2024, 3, 15)),
            receipt(OTHER, 4, "999.00", dt.date(2024, 3, 15)),
        ]
    )
    budgets = FakeBudgets(
        [budget(1, "40", dt.date(2024, 3, 1), dt.date(2024, 3, 31), category_id=1, household_id=HOME)]
    )
    gate = AccessControlGate(memberships)
    report_service = ReportService(gate, SummaryAggregator(receipts, categories), budgets, categories)
    household_service = HouseholdService(gate, memberships)

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(reports_router)
    app.include_router(budgets_router)
    app.include_router(households_router)
    app.dependency_overrides[get_report_service] = lambda: report_service
    app.dependency_overrides[get_household_service] = lambda: household_service
    test_client = TestClient(app)
    test_client.memberships = memberships
    return test_client


def _as(user_id):
    return {"X-User-Id": str(user_id)}


def test_missing_identity_is_unauthorized(client):
    assert client.get("/reports/summary").status_code == 401
    assert client.get("/reports/summary", headers={"X-User-Id": "abc"}).status_code == 401


def test_summary_merges_all_member_households(client):
    r = client.get("/reports/summary", headers=_as(ALICE))
    assert r.status_code == 200
    body = r.json()
    assert body["total_receipts"] == 4
    assert Decimal(body["total_amount"]) == Decimal("160.00")
    assert Decimal(body["average_amount"]) == Decimal("40.00")


def test_summary_drops_inaccessible_households(client):
    r = client.get("/reports/summary", params={"household_ids": [HOME, OTHER]}, headers=_as(ALICE))
    assert r.status_code == 200
    body = r.json()
    assert Decimal(body["total_amount"]) == Decimal("100.00")
    assert [e["category"]["name"] for e in body["by_category"]] == ["Food", "Rent"]


def test_summary_with_only_inaccessible_households_is_zero(client):
    r = client.get("/reports/summary", headers={**_as(ALICE), "X-Household-Ids": f"{OTHER}"})
    assert r.status_code == 200
    assert r.json()["total_receipts"] == 0


def test_summary_filters_from_query(client):
    r = client.get(
        "/reports/summary",
        params={"category_ids": [1], "start_date": "2024-03-05"},
        headers=_as(ALICE),
    )
    assert Decimal(r.json()["total_amount"]) == Decimal("20.00")


def test_household_summary_requires_membership(client):
    assert client.get(f"/reports/households/{HOME}/summary", headers=_as(BOB)).status_code == 200
    r = client.get(f"/reports/households/{OTHER}/summary", headers=_as(ALICE))
    assert r.status_code == 403
    assert r.json()["error"] == "PermissionDenied"


def test_budget_overview(client):
    r = client.get("/budgets/overview", params={"household_id": HOME, "as_of": "2024-03-31"}, headers=_as(BOB))
    assert r.status_code == 200
    body = r.json()
    assert body["total_budgets"] == 1
    assert body["over_budget_count"] == 1
    assert body["budgets"][0]["status"] == "Over Budget"


def test_budget_suggestions(client):
    r = client.get(
        "/budgets/suggestions",
        params={"household_id": HOME, "months": 1, "as_of": "2024-04-15"},
        headers=_as(ALICE),
    )
    assert r.status_code == 200
    body = r.json()
    assert [s["category"]["name"] for s in body] == ["Food", "Rent"]
    assert Decimal(body[0]["suggestions"]["monthly"]) == Decimal("55.00")

    excluded = client.get(
        "/budgets/suggestions",
        params={"household_id": HOME, "months": 1, "as_of": "2024-03-20", "exclude_budgeted": True},
        headers=_as(ALICE),
    )
    assert [s["category"]["name"] for s in excluded.json()] == ["Rent"]


def test_budget_suggestions_rejects_zero_months(client):
    r = client.get("/budgets/suggestions", params={"household_id": HOME, "months": 0}, headers=_as(ALICE))
    assert r.status_code == 422


def test_create_budget_permissions_and_overlap(client):
    payload = {"name": "Rent", "amount": "900", "start_date": "2024-03-01", "end_date": "2024-03-31", "category_id": 2}
    assert client.post("/budgets", params={"household_id": HOME}, json=payload, headers=_as(BOB)).status_code == 403

    created = client.post("/budgets", params={"household_id": HOME}, json=payload, headers=_as(CAROL))
    assert created.status_code == 201
    assert created.json()["category_id"] == 2

    again = client.post("/budgets", params={"household_id": HOME}, json=payload, headers=_as(CAROL))
    assert again.status_code == 400

    missing = client.post(
        "/budgets", params={"household_id": HOME}, json={**payload, "category_id": 4}, headers=_as(CAROL)
    )
    assert missing.status_code == 404


def test_remove_member_rules(client):
    # owner cannot be removed, even by an admin
    client.memberships.add(HOME, BOB, HouseholdRole.ADMIN)
    assert client.delete(f"/households/{HOME}/members/{ALICE}", headers=_as(BOB)).status_code == 403
    # members cannot remove anyone
    assert client.delete(f"/households/{HOME}/members/{BOB}", headers=_as(CAROL)).status_code == 403

    assert client.delete(f"/households/{HOME}/members/{CAROL}", headers=_as(BOB)).status_code == 204
    assert client.memberships.rows[(HOME, CAROL)].is_active is False
    assert client.delete(f"/households/{HOME}/members/{CAROL}", headers=_as(BOB)).status_code == 404


def test_change_role_rules(client):
    client.memberships.add(HOME, BOB, HouseholdRole.ADMIN)
    r = client.put(f"/households/{HOME}/members/{CAROL}/role", json={"role": "owner"}, headers=_as(BOB))
    assert r.status_code == 403
    r = client.put(f"/households/{HOME}/members/{CAROL}/role", json={"role": "viewer"}, headers=_as(BOB))
    assert r.status_code == 204
    assert client.memberships.rows[(HOME, CAROL)].role == HouseholdRole.VIEWER


def test_malformed_household_header_is_rejected(client):
    r = client.get("/reports/summary", headers={**_as(ALICE), "X-Household-Ids": "not-a-household"})
    assert r.status_code == 422
    assert "total_receipts" not in r.json()

    r = client.get("/reports/summary", headers={**_as(ALICE), "X-Household-Ids": f"{HOME},abc"})
    assert r.status_code == 422


def test_blank_household_header_means_all_households(client):
    r = client.get("/reports/summary", headers={**_as(ALICE), "X-Household-Ids": " , "})
    assert r.status_code == 200
    assert r.json()["total_receipts"] == 4


def test_update_budget(client):
    params = {"household_id": HOME}
    assert client.put("/budgets/1", params=params, json={"amount": "60"}, headers=_as(BOB)).status_code == 403
    assert client.put("/budgets/99", params=params, json={"amount": "60"}, headers=_as(ALICE)).status_code == 404

    # moving its own dates does not collide with itself
    r = client.put("/budgets/1", params=params, json={"start_date": "2024-03-05", "amount": "60"}, headers=_as(ALICE))
    assert r.status_code == 200
    assert r.json()["start_date"] == "2024-03-05"
    assert Decimal(r.json()["amount"]) == Decimal("60")
    assert r.json()["category_id"] == 1

    r = client.put("/budgets/1", params=params, json={"end_date": "2024-03-01"}, headers=_as(ALICE))
    assert r.status_code == 400
    r = client.put("/budgets/1", params=params, json={"category_id": 4}, headers=_as(ALICE))
    assert r.status_code == 404


def test_update_budget_rejects_overlap_with_another_budget(client):
    payload = {"name": "Rent", "amount": "900", "start_date": "2024-03-01", "end_date": "2024-03-31", "category_id": 2}
    created = client.post("/budgets", params={"household_id": HOME}, json=payload, headers=_as(ALICE))
    budget_id = created.json()["id"]

    r = client.put(f"/budgets/{budget_id}", params={"household_id": HOME}, json={"category_id": 1}, headers=_as(ALICE))
    assert r.status_code == 400

    # an inactive budget may share the range
    r = client.put(
        f"/budgets/{budget_id}",
        params={"household_id": HOME},
        json={"category_id": 1, "is_active": False},
        headers=_as(ALICE),
    )
    assert r.status_code == 200


def test_delete_budget(client):
    params = {"household_id": HOME}
    assert client.delete("/budgets/1", params=params, headers=_as(BOB)).status_code == 403
    assert client.delete("/budgets/1", params={"household_id": CABIN}, headers=_as(ALICE)).status_code == 404
    assert client.delete("/budgets/1", params=params, headers=_as(CAROL)).status_code == 204
    assert client.delete("/budgets/1", params=params, headers=_as(CAROL)).status_code == 404

    overview = client.get("/budgets/overview", params=params, headers=_as(ALICE))
    assert overview.json()["total_budgets"] == 0


def test_add_member_rules(client):
    url = f"/households/{HOME}/members"
    # members and viewers cannot invite
    assert client.post(url, json={"user_id": DAVE}, headers=_as(CAROL)).status_code == 403
    assert client.post(url, json={"user_id": DAVE}, headers=_as(BOB)).status_code == 403
    # only an owner may add another owner
    client.memberships.add(HOME, BOB, HouseholdRole.ADMIN)
    assert client.post(url, json={"user_id": DAVE, "role": "owner"}, headers=_as(BOB)).status_code == 403

    assert client.post(url, json={"user_id": 404}, headers=_as(ALICE)).status_code == 404
    assert client.post(url, json={"user_id": CAROL}, headers=_as(ALICE)).status_code == 409

    r = client.post(url, json={"user_id": DAVE, "role": "viewer"}, headers=_as(BOB))
    assert r.status_code == 201
    assert r.json() == {"household_id": HOME, "user_id": DAVE, "role": "viewer", "is_active": True}
    assert client.get(f"/reports/households/{HOME}/summary", headers=_as(DAVE)).status_code == 200


def test_add_member_reactivates_removed_member(client):
    assert client.delete(f"/households/{HOME}/members/{CAROL}", headers=_as(ALICE)).status_code == 204
    r = client.post(f"/households/{HOME}/members", json={"user_id": CAROL}, headers=_as(ALICE))
    assert r.status_code == 201
    assert client.memberships.rows[(HOME, CAROL)].is_active is True
    assert client.memberships.rows[(HOME, CAROL)].role == HouseholdRole.MEMBER

"""
HTTP tests through the FastAPI app.

Covers:
    POST /auth/login, /auth/refresh, /auth/change-password, GET /auth/me, /auth/me/role
    POST /pins/give, /pins/cancel, GET /pins/allowance, /pins/rankings, /pins/weekly, /pins/participants
    POST /assessment/submit, GET /assessment/my-assignments
    GET  /results/weighted, /results/team-performance
    /admin/* period, triwulan and user management
    /triwulan/* candidates, votes, ratings and winner
"""
from datetime import timedelta

import pytest

from app.services.periods import utcnow
from conftest import PASSWORD


async def _current_pin_period(make_period):
    today = utcnow().date()
    return await make_period(
        kind="pin", start=today - timedelta(days=1), end=today + timedelta(days=1),
        month=today.month, year=today.year,
    )


# ── Auth ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_login_and_me(client, make_user):
    user = await make_user("Dewi", email="dewi@bps.go.id", role="supervisor")

    resp = await client.post("/auth/login", json={"email": "dewi@bps.go.id", "password": PASSWORD})
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["id"] == user.id

    resp = await client.get("/auth/me/role", headers={"Authorization": f"Bearer {token}"})
    assert resp.json()["role"] == "supervisor"


@pytest.mark.asyncio
async def test_refresh_token_issues_new_pair(client, make_user):
    await make_user(email="gita@bps.go.id")
    tokens = (await client.post("/auth/login", json={"email": "gita@bps.go.id", "password": PASSWORD})).json()

    # a refresh token is not an access token
    resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert resp.status_code == 401

    resp = await client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "gita@bps.go.id"

    resp = await client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_change_password(client, make_user, headers):
    user = await make_user(email="hana@bps.go.id")

    resp = await client.post("/auth/change-password", headers=headers(user), json={
        "current_password": "wrong-one", "new_password": "baru12345",
    })
    assert resp.status_code == 400

    resp = await client.post("/auth/change-password", headers=headers(user), json={
        "current_password": PASSWORD, "new_password": PASSWORD,
    })
    assert resp.status_code == 400

    resp = await client.post("/auth/change-password", headers=headers(user), json={
        "current_password": PASSWORD, "new_password": "baru12345",
    })
    assert resp.json() == {"success": True}

    old = await client.post("/auth/login", json={"email": "hana@bps.go.id", "password": PASSWORD})
    assert old.status_code == 401
    new = await client.post("/auth/login", json={"email": "hana@bps.go.id", "password": "baru12345"})
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password(client, make_user):
    await make_user(email="eko@bps.go.id")
    resp = await client.post("/auth/login", json={"email": "eko@bps.go.id", "password": "nope"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client):
    resp = await client.get("/pins/allowance")
    assert resp.status_code in (401, 403)


# ── Pins ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_give_and_cancel_pin(client, make_user, make_period, headers):
    await _current_pin_period(make_period)
    giver, receiver = await make_user(), await make_user()

    resp = await client.post("/pins/give", json={"receiver_id": receiver.id}, headers=headers(giver))
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "allowance": {"pins_remaining": 3, "pins_used": 1}}

    resp = await client.get("/pins/history", headers=headers(giver))
    [pin] = resp.json()["pins"]
    assert pin["receiver"]["id"] == receiver.id

    resp = await client.post("/pins/cancel", json={"pin_id": pin["id"]}, headers=headers(receiver))
    assert resp.status_code == 403

    resp = await client.post("/pins/cancel", json={"pin_id": pin["id"]}, headers=headers(giver))
    assert resp.status_code == 200
    assert resp.json()["allowance"]["pins_remaining"] == 4

    resp = await client.get("/pins/allowance", headers=headers(giver))
    assert resp.json()["pins_used"] == 0


@pytest.mark.asyncio
async def test_give_pin_rules_at_the_boundary(client, make_user, make_period, headers):
    await _current_pin_period(make_period)
    giver, admin = await make_user(), await make_user(role="admin")

    resp = await client.post("/pins/give", json={"receiver_id": giver.id}, headers=headers(giver))
    assert resp.status_code == 400

    resp = await client.post("/pins/give", json={"receiver_id": admin.id}, headers=headers(giver))
    assert resp.status_code == 400

    resp = await client.post("/pins/give", json={"receiver_id": 12345}, headers=headers(giver))
    assert resp.status_code == 404

    resp = await client.post("/pins/give", json={}, headers=headers(giver))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_give_pin_without_period_reports_domain_error(client, make_user, headers):
    giver, receiver = await make_user(), await make_user()
    resp = await client.post("/pins/give", json={"receiver_id": receiver.id}, headers=headers(giver))
    assert resp.status_code == 400
    assert resp.json() == {"detail": "No active pin period"}


@pytest.mark.asyncio
async def test_rankings_reject_bad_filter(client, make_user, headers):
    user = await make_user()
    resp = await client.get("/pins/rankings", params={"period": "yesterday"}, headers=headers(user))
    assert resp.status_code == 400


# ── Assessment and results ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_supervisor_submission_and_results(client, make_user, make_period, headers):
    await make_period(kind="assessment")
    supervisor, staff, peer = await make_user(role="supervisor"), await make_user(), await make_user()

    resp = await client.post("/assessment/submit", headers=headers(supervisor), json={
        "assessee_id": staff.id,
        "responses": [{"aspect": "kolaboratif", "indicator": "Membangun sinergi", "rating": 9}],
    })
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    resp = await client.get("/results/weighted", params={"user_id": staff.id}, headers=headers(supervisor))
    assert resp.status_code == 200
    body = resp.json()
    assert body["overall_score"] == pytest.approx(9.0)
    assert body["supervisor_feedback_count"] == 1

    resp = await client.get("/results/weighted", params={"user_id": staff.id}, headers=headers(peer))
    assert resp.status_code == 403

    resp = await client.get("/results/team-performance", params={"user_id": staff.id}, headers=headers(staff))
    assert resp.status_code == 200
    assert resp.json()["performance"]["average_rating"] == pytest.approx(0.6 * 9)


@pytest.mark.asyncio
async def test_submission_validation(client, make_user, headers):
    user = await make_user()
    resp = await client.post("/assessment/submit", headers=headers(user), json={
        "assignment_id": 1,
        "responses": [{"aspect": "kolaboratif", "indicator": "x", "rating": 15}],
    })
    assert resp.status_code == 422

    resp = await client.post("/assessment/submit", headers=headers(user), json={
        "responses": [{"aspect": "kolaboratif", "indicator": "x", "rating": 5}],
    })
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_my_assignments_without_active_period(client, make_user, headers):
    user = await make_user()
    resp = await client.get("/assessment/my-assignments", headers=headers(user))
    assert resp.status_code == 200
    assert resp.json() == []


# ── Admin ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_routes_require_admin(client, make_user, headers):
    user = await make_user()
    resp = await client.get("/admin/users", headers=headers(user))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_period_lifecycle(client, make_user, headers):
    admin = await make_user(role="admin")
    payload = {"month": 9, "year": 2025, "start_date": "2025-09-01", "end_date": "2025-09-30"}

    first = (await client.post("/admin/periods/pin", json=payload, headers=headers(admin))).json()
    payload.update(month=10, start_date="2025-10-01", end_date="2025-10-31")
    second = (await client.post("/admin/periods/pin", json=payload, headers=headers(admin))).json()
    assert second["is_active"] is True

    periods = (await client.get("/admin/periods/pin", headers=headers(admin))).json()
    assert {p["id"]: p["is_active"] for p in periods} == {first["id"]: False, second["id"]: True}

    resp = await client.post(f"/admin/periods/pin/{first['id']}/activate", headers=headers(admin))
    assert resp.json()["is_active"] is True

    resp = await client.patch(
        f"/admin/periods/pin/{first['id']}", json={"end_date": "2025-08-01"}, headers=headers(admin)
    )
    assert resp.status_code == 400

    resp = await client.post(f"/admin/periods/pin/{first['id']}/reset", headers=headers(admin))
    assert resp.json() == {"pins_deleted": 0, "allowances_reset": 0}

    resp = await client.delete(f"/admin/periods/pin/{second['id']}", headers=headers(admin))
    assert resp.status_code == 200
    resp = await client.delete(f"/admin/periods/pin/{second['id']}", headers=headers(admin))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_assessment_period_requires_month(client, make_user, headers):
    admin = await make_user(role="admin")
    resp = await client.post(
        "/admin/periods/assessment",
        json={"start_date": "2025-09-01", "end_date": "2025-09-30"},
        headers=headers(admin),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_supervisor_lists_assessment_periods(client, make_user, make_period, headers):
    period = await make_period(kind="assessment")
    supervisor, staff = await make_user(role="supervisor"), await make_user()
    await client.post("/assessment/submit", headers=headers(supervisor), json={
        "assessee_id": staff.id,
        "responses": [{"aspect": "loyal", "indicator": "Menjaga nama baik", "rating": 8}],
    })

    resp = await client.get("/admin/periods/assessment", headers=headers(supervisor))
    [summary] = resp.json()
    assert summary["id"] == period.id
    assert (summary["assigned_count"], summary["completed_count"]) == (1, 1)


@pytest.mark.asyncio
async def test_admin_manages_users(client, make_user, make_period, headers):
    await _current_pin_period(make_period)
    admin = await make_user(role="admin")

    resp = await client.post("/admin/users", headers=headers(admin), json={
        "email": "fajar@bps.go.id", "name": "Fajar", "password": "rahasia123", "department": "IPDS",
    })
    assert resp.status_code == 200
    fajar = resp.json()
    assert fajar["role"] == "user"

    resp = await client.patch(
        f"/admin/users/{fajar['id']}/role", json={"role": "supervisor"}, headers=headers(admin)
    )
    assert resp.json()["role"] == "supervisor"

    other = await make_user()
    await client.post("/pins/give", json={"receiver_id": fajar["id"]}, headers=headers(other))

    resp = await client.delete(f"/admin/users/{fajar['id']}", headers=headers(admin))
    assert resp.json() == {"success": True, "pins_deleted": 1}

    users = (await client.get("/admin/users", headers=headers(admin))).json()
    assert fajar["id"] not in {u["id"] for u in users}


@pytest.mark.asyncio
async def test_deleting_a_receiver_gives_pins_back(client, make_user, make_period, headers):
    await _current_pin_period(make_period)
    admin, giver = await make_user(role="admin"), await make_user()
    leaving, staying = await make_user(), await make_user()

    for _ in range(4):
        resp = await client.post("/pins/give", json={"receiver_id": leaving.id}, headers=headers(giver))
        assert resp.status_code == 200
    resp = await client.post("/pins/give", json={"receiver_id": staying.id}, headers=headers(giver))
    assert resp.json() == {"detail": "No pins remaining"}

    resp = await client.delete(f"/admin/users/{leaving.id}", headers=headers(admin))
    assert resp.json() == {"success": True, "pins_deleted": 4}

    resp = await client.post("/pins/give", json={"receiver_id": staying.id}, headers=headers(giver))
    assert resp.status_code == 200
    assert resp.json()["allowance"] == {"pins_remaining": 3, "pins_used": 1}

    resp = await client.get("/pins/allowance", headers=headers(giver))
    assert (resp.json()["pins_remaining"], resp.json()["pins_used"]) == (3, 1)


@pytest.mark.asyncio
async def test_pin_participants_and_weekly_board(client, make_user, make_period, headers):
    await _current_pin_period(make_period)
    admin = await make_user("Admin", role="admin")
    bayu, ani = await make_user("Bayu"), await make_user("Ani")
    await client.post("/pins/give", json={"receiver_id": bayu.id}, headers=headers(ani))

    resp = await client.get("/pins/participants", headers=headers(bayu))
    assert [p["name"] for p in resp.json()] == ["Ani", "Bayu"]
    assert admin.id not in {p["id"] for p in resp.json()}

    resp = await client.get("/pins/weekly", headers=headers(bayu))
    assert [(r["user_id"], r["pin_count"], r["rank"]) for r in resp.json()] == [(bayu.id, 1, 1)]

    resp = await client.get("/pins/monthly", params={"month": 1, "year": 2000}, headers=headers(bayu))
    assert resp.json() == []


# ── Triwulan ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_triwulan_round_trip(client, make_user, headers):
    supervisor = await make_user(role="supervisor")
    sari, rudi, voter = await make_user("Sari"), await make_user("Rudi"), await make_user("Voter")

    resp = await client.post("/admin/triwulan/periods", headers=headers(voter), json={
        "year": 2025, "quarter": 3, "start_date": "2025-07-01", "end_date": "2025-09-30",
    })
    assert resp.status_code == 403

    resp = await client.post("/admin/triwulan/periods", headers=headers(supervisor), json={
        "year": 2025, "quarter": 3, "start_date": "2025-07-01", "end_date": "2025-09-30",
    })
    period = resp.json()
    assert period["code"] == "2025-Q3"
    base = f"/triwulan/{period['id']}"

    resp = await client.patch(
        f"/admin/triwulan/periods/{period['id']}", json={"is_active": True}, headers=headers(supervisor)
    )
    assert resp.json()["is_active"] is True
    resp = await client.get("/triwulan/periods", params={"active": True})
    assert [p["id"] for p in resp.json()] == [period["id"]]

    resp = await client.post(f"/admin/triwulan/{period['id']}/deficiencies", headers=headers(supervisor), json={
        "rows": [
            {"user_id": sari.id, "year": 2025, "month": 7, "deficiency_hours": 0},
            {"user_id": rudi.id, "year": 2025, "month": 8, "deficiency_hours": 1.5},
        ],
    })
    assert resp.json() == {"success": True, "saved": 2}
    resp = await client.get(f"/admin/triwulan/{period['id']}/deficiencies", headers=headers(supervisor))
    assert {(d["user_id"], d["deficiency_hours"]) for d in resp.json()} == {(sari.id, 0), (rudi.id, 1.5)}

    resp = await client.get(f"{base}/candidates", headers=headers(voter))
    assert [c["user_id"] for c in resp.json()] == [sari.id]

    resp = await client.post(f"{base}/votes", json={"candidate_ids": []}, headers=headers(voter))
    assert resp.status_code == 422
    resp = await client.post(f"{base}/votes", json={"candidate_ids": [sari.id]}, headers=headers(voter))
    assert resp.json() == {"votes": [sari.id]}
    resp = await client.post(f"{base}/votes/complete", headers=headers(voter))
    assert resp.json() == {"completed": True}
    resp = await client.get(f"{base}/votes/status", headers=headers(voter))
    assert resp.json()["completed_user_ids"] == [voter.id]
    resp = await client.get(f"{base}/votes/top", headers=headers(voter))
    assert [(t["candidate_id"], t["vote_count"]) for t in resp.json()] == [(sari.id, 1)]

    resp = await client.post(f"{base}/ratings", headers=headers(voter), json={
        "candidate_id": sari.id, "scores": [4] * 12,
    })
    assert resp.status_code == 422
    resp = await client.post(f"{base}/ratings", headers=headers(voter), json={
        "candidate_id": sari.id, "scores": [4] * 13,
    })
    assert resp.json() == {"success": True}
    resp = await client.get(f"{base}/ratings", params={"candidate_id": sari.id}, headers=headers(voter))
    assert resp.json() == {"scores": [4.0] * 13}
    resp = await client.get(f"{base}/ratings/scores", headers=headers(voter))
    [score] = resp.json()
    assert (score["candidate_id"], score["num_raters"]) == (sari.id, 1)
    assert score["score_percent"] == pytest.approx(80.0)

    resp = await client.post(f"{base}/winner", json={"winner_id": sari.id}, headers=headers(voter))
    assert resp.status_code == 403
    resp = await client.post(
        f"{base}/winner", json={"winner_id": sari.id, "total_score": 52}, headers=headers(supervisor)
    )
    assert resp.status_code == 200
    resp = await client.get(f"{base}/winner")
    assert resp.json() == {"period_id": period["id"], "winner_id": sari.id, "total_score": 52.0}

    resp = await client.delete(f"/admin/triwulan/periods/{period['id']}", headers=headers(supervisor))
    assert resp.json() == {"success": True}
    resp = await client.get(f"{base}/winner")
    assert resp.status_code == 404

"""
API tests for the lottery, member profile, algorithm config, maintenance
and restriction routers.
"""

from datetime import date

from fastapi.testclient import TestClient
from sqlmodel import Session

LOTTERY_DATE = date(2025, 11, 10)
DATE_STR = "2025-11-10"


def _post_entry(client, organizer_id, preferred="MORNING", **extra):
    body = {"organizer_id": organizer_id, "lottery_date": DATE_STR, "preferred_window": preferred}
    body.update(extra)
    return client.post("/api/lottery/entries", json=body)


def test_health(client: TestClient):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ============================================================================
# Entries
# ============================================================================


def test_submit_entry(client: TestClient, make_member):
    member = make_member()

    response = _post_entry(client, member.id, alternate_window="MIDDAY")

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["member_ids"] == [member.id]
    assert data["alternate_window"] == "MIDDAY"


def test_submit_duplicate_returns_error_code(client: TestClient, make_member):
    member = make_member()
    assert _post_entry(client, member.id).status_code == 201

    response = _post_entry(client, member.id, preferred="EVENING")

    assert response.status_code == 400
    assert response.json()["detail"]["error_code"] == "DUPLICATE_INDIVIDUAL_ENTRY"


def test_submit_invalid_window(client: TestClient, make_member):
    member = make_member()

    response = _post_entry(client, member.id, preferred="DAWN")

    assert response.status_code == 400
    assert response.json()["detail"]["error_code"] == "INVALID_WINDOW"


def test_submit_group_with_fill(client: TestClient, make_member):
    organizer, friend = make_member(), make_member()

    response = _post_entry(
        client,
        organizer.id,
        member_ids=[friend.id],
        fills=[{"fill_type": "GUEST", "custom_name": "Sam"}],
    )

    assert response.status_code == 201
    assert response.json()["member_ids"] == [organizer.id, friend.id]


def test_cancel_and_member_lookup(client: TestClient, make_member):
    member = make_member()
    entry_id = _post_entry(client, member.id).json()["id"]

    found = client.get(f"/api/lottery/members/{member.id}/entry", params={"date": DATE_STR})
    assert found.status_code == 200
    assert found.json()["type"] == "individual"
    assert found.json()["entry"]["id"] == entry_id

    cancelled = client.post(f"/api/lottery/entries/{entry_id}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"

    assert client.get(f"/api/lottery/members/{member.id}/entry", params={"date": DATE_STR}).json() is None
    assert client.post("/api/lottery/entries/9999/cancel").status_code == 404


def test_update_entry(client: TestClient, make_member):
    member = make_member()
    entry_id = _post_entry(client, member.id).json()["id"]

    response = client.put(
        f"/api/lottery/entries/{entry_id}",
        json={"preferred_window": "AFTERNOON", "alternate_window": "EVENING"},
    )
    assert response.status_code == 200
    assert response.json()["preferred_window"] == "AFTERNOON"

    invalid = client.put(f"/api/lottery/entries/{entry_id}", json={"preferred_window": "NOON"})
    assert invalid.status_code == 422


def test_manual_assign(client: TestClient, make_member, make_teesheet):
    _, _, (block,) = make_teesheet(LOTTERY_DATE, starts=("09:00",))
    member = make_member()
    entry_id = _post_entry(client, member.id).json()["id"]

    response = client.post(f"/api/lottery/entries/{entry_id}/assign", json={"time_block_id": block.id})
    assert response.status_code == 200
    assert response.json()["status"] == "ASSIGNED"
    assert response.json()["assigned_time_block_id"] == block.id

    again = client.post(f"/api/lottery/entries/{entry_id}/assign", json={"time_block_id": block.id})
    assert again.status_code == 400


# ============================================================================
# Processing and per-date views
# ============================================================================


def test_process_without_teesheet(client: TestClient, make_member):
    member = make_member()
    assert _post_entry(client, member.id).status_code == 201

    response = client.post(f"/api/lottery/{DATE_STR}/process")

    assert response.status_code == 200
    result = response.json()
    assert result["success"] is False
    assert result["error"] == "No available time blocks for this date"
    assert result["total_entries"] == 1
    found = client.get(f"/api/lottery/members/{member.id}/entry", params={"date": DATE_STR}).json()
    assert found["entry"]["status"] == "PENDING"


def test_process_disabled_lottery(client: TestClient, session: Session, make_teesheet):
    teesheet, _, _ = make_teesheet(LOTTERY_DATE)
    teesheet.lottery_enabled = False
    session.add(teesheet)
    session.commit()

    response = client.post(f"/api/lottery/{DATE_STR}/process")

    assert response.status_code == 400


def test_process_and_inspect(client: TestClient, make_member, make_teesheet):
    make_teesheet(LOTTERY_DATE, starts=("08:00", "08:10"))
    members = [make_member() for _ in range(3)]
    for m in members:
        assert _post_entry(client, m.id).status_code == 201

    before = client.get(f"/api/lottery/{DATE_STR}").json()
    assert before["stats"]["total_entries"] == 3
    assert before["stats"]["pending_entries"] == 3
    assert before["stats"]["available_spots"] == 8

    response = client.post(f"/api/lottery/{DATE_STR}/process")
    assert response.status_code == 200
    result = response.json()
    assert result["success"] is True
    assert result["processed_count"] == 3
    assert result["bookings_created"] == 3

    after = client.get(f"/api/lottery/{DATE_STR}").json()
    assert after["stats"]["assigned_entries"] == 3
    assert after["stats"]["available_spots"] == 5

    runs = client.get(f"/api/lottery/{DATE_STR}/runs").json()
    assert len(runs) == 1
    assert runs[0]["assigned_count"] == 3
    assert len(runs[0]["entries"]) == 3


def test_process_without_blocks_reports_failure(client: TestClient, make_member, make_teesheet):
    make_teesheet(LOTTERY_DATE, starts=())
    _post_entry(client, make_member().id)

    result = client.post(f"/api/lottery/{DATE_STR}/process").json()

    assert result["success"] is False
    assert result["message"] == "No available time blocks for this date"


def test_time_windows(client: TestClient, make_teesheet):
    make_teesheet(LOTTERY_DATE, start_time="08:00", end_time="16:00")

    data = client.get(f"/api/lottery/{DATE_STR}/time-windows").json()

    assert data["lottery_available"] is True
    assert [w["value"] for w in data["windows"]] == ["MORNING", "MIDDAY", "AFTERNOON", "EVENING"]
    assert data["windows"][0]["time_range"] == "8:00 AM-10:00 AM"


def test_time_windows_without_teesheet(client: TestClient):
    data = client.get(f"/api/lottery/{DATE_STR}/time-windows").json()

    assert data == {"date": DATE_STR, "lottery_available": False, "windows": []}


# ============================================================================
# Member profiles
# ============================================================================


def test_member_profiles_list_defaults(client: TestClient, make_member):
    make_member(last_name="Zed")
    make_member(last_name="Adams")

    data = client.get("/api/lottery/member-profiles").json()

    assert [p["name"].split()[-1] for p in data] == ["Adams", "Zed"]
    assert all(p["speed_tier"] == "AVERAGE" for p in data)


def test_member_profile_update(client: TestClient, make_member):
    member = make_member()

    response = client.put(
        f"/api/lottery/member-profiles/{member.id}",
        json={"speed_tier": "FAST", "admin_priority_adjustment": 5},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["speed_tier"] == "FAST"
    assert data["manual_override"] is True
    assert data["admin_priority_adjustment"] == 5


def test_member_profile_validation(client: TestClient, make_member):
    member = make_member()

    assert client.put(f"/api/lottery/member-profiles/{member.id}", json={"speed_tier": "BLAZING"}).status_code == 422
    assert (
        client.put(f"/api/lottery/member-profiles/{member.id}", json={"admin_priority_adjustment": 21}).status_code
        == 422
    )
    assert client.put("/api/lottery/member-profiles/9999", json={"speed_tier": "FAST"}).status_code == 404


def test_record_round_and_reset(client: TestClient, make_member):
    member, partner = make_member(), make_member()

    response = client.post(
        f"/api/lottery/member-profiles/{member.id}/rounds",
        json={"round_minutes": 230, "partner_ids": [partner.id]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["recorded"] is True
    assert {p["member_id"] for p in data["profiles"]} == {member.id, partner.id}
    assert all(p["speed_tier"] == "FAST" for p in data["profiles"])

    client.put(f"/api/lottery/member-profiles/{member.id}", json={"admin_priority_adjustment": -3})
    reset = client.post("/api/lottery/member-profiles/reset-adjustments").json()
    assert reset == {"reset_count": 1}

    reclassified = client.post("/api/lottery/member-profiles/reclassify").json()
    assert reclassified["success"] is True


# ============================================================================
# Algorithm config
# ============================================================================


def test_algorithm_config_defaults_and_update(client: TestClient):
    data = client.get("/api/lottery/algorithm-config").json()
    assert data["fast_threshold_minutes"] == 235
    assert data["average_threshold_minutes"] == 245
    assert len(data["speed_bonuses"]) == 4

    response = client.put(
        "/api/lottery/algorithm-config",
        json={"fast_threshold_minutes": 220, "prefer_best_fit": False, "updated_by": "pro shop"},
    )
    assert response.status_code == 200
    assert response.json()["fast_threshold_minutes"] == 220
    assert response.json()["prefer_best_fit"] is False
    assert response.json()["updated_by"] == "pro shop"


def test_algorithm_config_rejects_inverted_thresholds(client: TestClient):
    response = client.put(
        "/api/lottery/algorithm-config",
        json={"fast_threshold_minutes": 250, "average_threshold_minutes": 240},
    )

    assert response.status_code == 400
    assert client.get("/api/lottery/algorithm-config").json()["fast_threshold_minutes"] == 235


# ============================================================================
# Maintenance
# ============================================================================


def test_monthly_maintenance_runs_once(client: TestClient, make_member):
    make_member()
    make_member()

    first = client.post("/api/lottery/maintenance/monthly", params={"month": "2025-11"}).json()
    second = client.post("/api/lottery/maintenance/monthly", params={"month": "2025-11"}).json()

    assert first["records_affected"] == 2
    assert first["already_run"] is False
    assert second["success"] is True
    assert second["already_run"] is True
    assert second["records_affected"] == 0
    assert second["notes"] == "Maintenance already completed for 2025-11"


def test_maintenance_rejects_bad_month(client: TestClient):
    assert client.post("/api/lottery/maintenance/monthly", params={"month": "2025-13"}).status_code == 400
    assert client.post("/api/lottery/maintenance/manual", params={"month": "Nov"}).status_code == 400


def test_manual_maintenance_can_repeat(client: TestClient):
    first = client.post("/api/lottery/maintenance/manual", params={"month": "2025-11"})
    second = client.post("/api/lottery/maintenance/manual", params={"month": "2025-11"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["maintenance_type"] == "MANUAL_MAINTENANCE"


# ============================================================================
# Restrictions
# ============================================================================


def test_create_restriction_and_override(client: TestClient, make_member):
    member = make_member(member_class="SOCIAL")

    created = client.post(
        "/api/restrictions",
        json={
            "name": "Social mornings",
            "restriction_category": "MEMBER_CLASS",
            "restriction_type": "TIME",
            "member_classes": ["SOCIAL"],
            "start_time": "07:00",
            "end_time": "10:00",
            "days_of_week": [0, 6],
        },
    )
    assert created.status_code == 201
    restriction_id = created.json()["id"]

    override = client.post(
        f"/api/restrictions/{restriction_id}/overrides",
        json={"overridden_by": "pro shop", "member_id": member.id, "reason": "Member-guest"},
    )
    assert override.status_code == 201
    assert override.json()["member_id"] == member.id

    listed = client.get("/api/restrictions", params={"active_only": True}).json()
    assert [r["id"] for r in listed] == [restriction_id]


def test_restriction_errors(client: TestClient):
    missing_dates = client.post(
        "/api/restrictions",
        json={"name": "Closed", "restriction_category": "COURSE_AVAILABILITY", "restriction_type": "AVAILABILITY"},
    )
    assert missing_dates.status_code == 400

    unknown_type = client.post(
        "/api/restrictions",
        json={"name": "Bad", "restriction_category": "MEMBER_CLASS", "restriction_type": "WEATHER"},
    )
    assert unknown_type.status_code == 422

    assert client.post("/api/restrictions/9999/overrides", json={"overridden_by": "admin"}).status_code == 404

"""
Tests for monthly maintenance idempotence
"""

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from teelottery.models.member_fairness_score import MemberFairnessScore
from teelottery.models.member_speed_profile import MemberSpeedProfile
from teelottery.models.system_maintenance import MANUAL_MAINTENANCE, MONTHLY_RESET, SystemMaintenance
from teelottery.services import maintenance
from teelottery.services.fairness import record_preference_outcome
from teelottery.services.maintenance import (
    MANUAL_FAILURE_MESSAGE,
    MONTHLY_FAILURE_MESSAGE,
    check_and_run_monthly_maintenance,
    current_month,
    trigger_manual_maintenance,
)
from teelottery.services.speed_profiles import record_completed_round


def test_monthly_reset_runs_once(session: Session, make_member):
    for _ in range(3):
        make_member()

    first = check_and_run_monthly_maintenance(session, "2025-11")
    second = check_and_run_monthly_maintenance(session, "2025-11")

    assert first.success is True
    assert first.records_affected == 3
    assert first.already_run is False
    assert second.success is True
    assert second.records_affected == 0
    assert second.already_run is True
    assert second.notes == "Maintenance already completed for 2025-11"

    markers = session.exec(select(SystemMaintenance).where(SystemMaintenance.maintenance_type == MONTHLY_RESET)).all()
    assert len(markers) == 1
    assert markers[0].month == "2025-11"


def test_new_month_leaves_previous_rows_untouched(session: Session, make_member):
    member = make_member()
    record_preference_outcome(session, member.id, "2025-10", granted=False)

    result = check_and_run_monthly_maintenance(session, "2025-11")

    assert result.records_affected == 1
    october = session.get(MemberFairnessScore, (member.id, "2025-10"))
    november = session.get(MemberFairnessScore, (member.id, "2025-11"))
    assert october.total_entries_month == 1
    assert october.fairness_score == 22
    assert november.total_entries_month == 0
    assert november.fairness_score == 0


def test_speed_profiles_not_reset(session: Session, make_member):
    member = make_member()
    record_completed_round(session, [member.id], 230)

    check_and_run_monthly_maintenance(session, "2025-11")

    profile = session.get(MemberSpeedProfile, member.id)
    assert profile.round_count == 1
    assert profile.speed_tier == "FAST"


def test_manual_maintenance_bypasses_check(session: Session, make_member):
    make_member()
    check_and_run_monthly_maintenance(session, "2025-11")
    make_member()

    manual = trigger_manual_maintenance(session, "2025-11")
    again = trigger_manual_maintenance(session, "2025-11")

    assert manual.success is True
    assert manual.maintenance_type == MANUAL_MAINTENANCE
    assert manual.records_affected == 1
    assert again.records_affected == 0

    markers = session.exec(
        select(SystemMaintenance).where(SystemMaintenance.maintenance_type == MANUAL_MAINTENANCE)
    ).all()
    assert len(markers) == 1


@pytest.mark.parametrize("month", ["2025-13", "2025-1", "November", ""])
def test_invalid_month_rejected(session: Session, month):
    with pytest.raises(ValueError):
        check_and_run_monthly_maintenance(session, month)


def test_current_month_format():
    month = current_month()
    assert len(month) == 7
    assert month[4] == "-"


def _fail_ensure_month_rows(*args, **kwargs):
    raise OperationalError("INSERT INTO memberfairnessscore", {}, Exception("database is locked"))


def test_monthly_reset_storage_error_returns_failure(session: Session, make_member, monkeypatch):
    make_member()
    monkeypatch.setattr(maintenance, "ensure_month_rows", _fail_ensure_month_rows)

    result = check_and_run_monthly_maintenance(session, "2025-11")

    assert result.success is False
    assert result.error == MONTHLY_FAILURE_MESSAGE
    assert result.to_dict()["error"] == MONTHLY_FAILURE_MESSAGE
    assert session.exec(select(SystemMaintenance)).all() == []

    # No marker was written, so a later run still does the reset
    monkeypatch.undo()
    retry = check_and_run_monthly_maintenance(session, "2025-11")
    assert retry.success is True
    assert retry.records_affected == 1


def test_manual_maintenance_storage_error_returns_failure(session: Session, monkeypatch):
    monkeypatch.setattr(maintenance, "ensure_month_rows", _fail_ensure_month_rows)

    result = trigger_manual_maintenance(session, "2025-11")

    assert result.success is False
    assert result.maintenance_type == MANUAL_MAINTENANCE
    assert result.error == MANUAL_FAILURE_MESSAGE

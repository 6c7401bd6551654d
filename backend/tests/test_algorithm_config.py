"""
Tests for the algorithm configuration singleton and its frozen snapshot
"""

import pytest
from sqlmodel import Session, select

from teelottery.models.lottery_algorithm_config import LotteryAlgorithmConfig
from teelottery.services.algorithm_config import (
    AlgorithmConfigSnapshot,
    ConfigurationError,
    get_config_snapshot,
    get_or_create_config,
    update_config,
    validate_config_values,
)


def test_defaults_created_once(session: Session):
    first = get_or_create_config(session)
    second = get_or_create_config(session)

    assert first.id == second.id == 1
    assert first.fast_threshold_minutes == 235
    assert first.average_threshold_minutes == 245
    assert len(session.exec(select(LotteryAlgorithmConfig)).all()) == 1


def test_snapshot_bonus_lookup(session: Session):
    snapshot = get_config_snapshot(session)

    assert snapshot.speed_bonus_for("MORNING", "FAST") == 5
    assert snapshot.speed_bonus_for("MORNING", "AVERAGE") == 2
    assert snapshot.speed_bonus_for("MORNING", None) == 2
    assert snapshot.speed_bonus_for("MORNING", "SLOW") == 0
    assert snapshot.speed_bonus_for("EVENING", "FAST") == 0
    assert snapshot.speed_bonus_for(None, "FAST") == 0


def test_snapshot_is_detached_from_later_updates(session: Session):
    snapshot = get_config_snapshot(session)

    update_config(session, fast_threshold_minutes=200)

    assert snapshot.fast_threshold_minutes == 235
    assert get_config_snapshot(session).fast_threshold_minutes == 200


def test_partial_update_keeps_other_fields(session: Session):
    update_config(
        session,
        speed_bonuses=[{"window": "EVENING", "fast_bonus": 10, "average_bonus": 4, "slow_bonus": 1}],
        updated_by="admin",
    )
    config = update_config(session, process_groups_first=False)

    assert config.process_groups_first is False
    assert config.prefer_best_fit is True
    assert config.speed_bonuses == [{"window": "EVENING", "fast_bonus": 10, "average_bonus": 4, "slow_bonus": 1}]
    assert get_config_snapshot(session).speed_bonus_for("MORNING", "FAST") == 0


@pytest.mark.parametrize(
    "fast, average, bonuses",
    [
        (0, 245, []),
        (235, 601, []),
        (245, 245, []),
        (235, 245, [{"window": "NIGHT"}]),
        (235, 245, [{"window": "MORNING"}, {"window": "MORNING"}]),
        (235, 245, [{"window": "MORNING", "fast_bonus": 51}]),
        (235, 245, [{"window": "MORNING", "slow_bonus": -1}]),
        (235, 245, [{"window": "MORNING", "average_bonus": 2.5}]),
    ],
)
def test_invalid_values_rejected(fast, average, bonuses):
    with pytest.raises(ConfigurationError):
        validate_config_values(fast, average, bonuses)


def test_invalid_update_leaves_row_unchanged(session: Session):
    with pytest.raises(ConfigurationError):
        update_config(session, fast_threshold_minutes=300)

    session.expire_all()
    assert get_or_create_config(session).fast_threshold_minutes == 235


def test_snapshot_defaults():
    snapshot = AlgorithmConfigSnapshot(fast_threshold_minutes=235, average_threshold_minutes=245)

    assert snapshot.process_groups_first is True
    assert snapshot.prefer_best_fit is True
    assert snapshot.speed_bonus_for("MORNING", "FAST") == 0

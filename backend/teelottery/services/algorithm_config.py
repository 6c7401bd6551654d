"""
Lottery algorithm configuration (singleton row id=1).

The engine never reads the table mid-pass: get_config_snapshot() returns a
frozen copy taken once at the start of a processing run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session

from teelottery.models.lottery_algorithm_config import (
    SINGLETON_ID,
    LotteryAlgorithmConfig,
    default_speed_bonuses,
)
from teelottery.models.member_speed_profile import SpeedTier
from teelottery.services.time_windows import VALID_WINDOWS

logger = logging.getLogger(__name__)

MIN_THRESHOLD_MINUTES = 1
MAX_THRESHOLD_MINUTES = 600
MIN_SPEED_BONUS = 0
MAX_SPEED_BONUS = 50

_BONUS_KEYS = {
    SpeedTier.FAST.value: "fast_bonus",
    SpeedTier.AVERAGE.value: "average_bonus",
    SpeedTier.SLOW.value: "slow_bonus",
}


class ConfigurationError(Exception):
    """Invalid algorithm configuration"""

    pass


@dataclass(frozen=True)
class AlgorithmConfigSnapshot:
    fast_threshold_minutes: int
    average_threshold_minutes: int
    # ((window, fast, average, slow), ...)
    speed_bonuses: Tuple[Tuple[str, int, int, int], ...] = field(default_factory=tuple)
    process_groups_first: bool = True
    prefer_best_fit: bool = True

    def speed_bonus_for(self, window: Optional[str], tier: Optional[str]) -> int:
        """Bonus for a request's preferred window and the organizer's speed tier (0 if unknown)."""
        if not window:
            return 0
        tier = tier or SpeedTier.AVERAGE.value
        for bonus_window, fast, average, slow in self.speed_bonuses:
            if bonus_window != window:
                continue
            if tier == SpeedTier.FAST.value:
                return fast
            if tier == SpeedTier.SLOW.value:
                return slow
            return average
        return 0


def get_or_create_config(session: Session) -> LotteryAlgorithmConfig:
    """Load the singleton, creating it with defaults if missing."""
    config = session.get(LotteryAlgorithmConfig, SINGLETON_ID)
    if config is None:
        logger.info("ALGORITHM_CONFIG: singleton missing, creating defaults")
        config = LotteryAlgorithmConfig(id=SINGLETON_ID)
        session.add(config)
        session.commit()
        session.refresh(config)
    return config


def snapshot_config(config: LotteryAlgorithmConfig) -> AlgorithmConfigSnapshot:
    bonuses = []
    for b in config.speed_bonuses or []:
        bonuses.append(
            (
                b.get("window"),
                int(b.get("fast_bonus", 0)),
                int(b.get("average_bonus", 0)),
                int(b.get("slow_bonus", 0)),
            )
        )
    return AlgorithmConfigSnapshot(
        fast_threshold_minutes=config.fast_threshold_minutes,
        average_threshold_minutes=config.average_threshold_minutes,
        speed_bonuses=tuple(bonuses),
        process_groups_first=config.process_groups_first,
        prefer_best_fit=config.prefer_best_fit,
    )


def get_config_snapshot(session: Session) -> AlgorithmConfigSnapshot:
    return snapshot_config(get_or_create_config(session))


def validate_config_values(
    fast_threshold_minutes: int,
    average_threshold_minutes: int,
    speed_bonuses: List[Dict[str, Any]],
) -> None:
    """Raise ConfigurationError describing the first invalid value."""
    for name, value in (
        ("fast_threshold_minutes", fast_threshold_minutes),
        ("average_threshold_minutes", average_threshold_minutes),
    ):
        if not (MIN_THRESHOLD_MINUTES <= value <= MAX_THRESHOLD_MINUTES):
            raise ConfigurationError(
                f"{name} must be between {MIN_THRESHOLD_MINUTES} and {MAX_THRESHOLD_MINUTES}"
            )
    if fast_threshold_minutes >= average_threshold_minutes:
        raise ConfigurationError("fast_threshold_minutes must be less than average_threshold_minutes")

    seen = set()
    for bonus in speed_bonuses:
        window = bonus.get("window")
        if window not in VALID_WINDOWS:
            raise ConfigurationError(f"Unknown window in speed_bonuses: {window}")
        if window in seen:
            raise ConfigurationError(f"Duplicate window in speed_bonuses: {window}")
        seen.add(window)
        for key in _BONUS_KEYS.values():
            value = bonus.get(key, 0)
            if not isinstance(value, int) or not (MIN_SPEED_BONUS <= value <= MAX_SPEED_BONUS):
                raise ConfigurationError(
                    f"{key} for {window} must be an integer between {MIN_SPEED_BONUS} and {MAX_SPEED_BONUS}"
                )


def update_config(
    session: Session,
    fast_threshold_minutes: Optional[int] = None,
    average_threshold_minutes: Optional[int] = None,
    speed_bonuses: Optional[List[Dict[str, Any]]] = None,
    process_groups_first: Optional[bool] = None,
    prefer_best_fit: Optional[bool] = None,
    updated_by: Optional[str] = None,
) -> LotteryAlgorithmConfig:
    """
    Partially update the singleton. Unspecified fields keep their value.

    Speed tiers are NOT reclassified here; call reclassify_all_speed_tiers()
    after changing thresholds.
    """
    config = get_or_create_config(session)

    fast = fast_threshold_minutes if fast_threshold_minutes is not None else config.fast_threshold_minutes
    average = (
        average_threshold_minutes if average_threshold_minutes is not None else config.average_threshold_minutes
    )
    bonuses = speed_bonuses if speed_bonuses is not None else (config.speed_bonuses or default_speed_bonuses())
    validate_config_values(fast, average, bonuses)

    config.fast_threshold_minutes = fast
    config.average_threshold_minutes = average
    # Reassign a fresh list so the JSON column is flagged dirty
    config.speed_bonuses = [
        {
            "window": b["window"],
            "fast_bonus": b.get("fast_bonus", 0),
            "average_bonus": b.get("average_bonus", 0),
            "slow_bonus": b.get("slow_bonus", 0),
        }
        for b in bonuses
    ]
    if process_groups_first is not None:
        config.process_groups_first = process_groups_first
    if prefer_best_fit is not None:
        config.prefer_best_fit = prefer_best_fit
    config.updated_by = updated_by
    config.updated_at = datetime.utcnow()

    session.add(config)
    session.commit()
    session.refresh(config)

    logger.info(
        "ALGORITHM_CONFIG: updated fast=%s average=%s groups_first=%s best_fit=%s by=%s",
        config.fast_threshold_minutes,
        config.average_threshold_minutes,
        config.process_groups_first,
        config.prefer_best_fit,
        updated_by,
    )
    return config

from teelottery.models.lottery_algorithm_config import LotteryAlgorithmConfig
from teelottery.models.lottery_entry import EntryStatus, LotteryEntry, LotteryEntryFill
from teelottery.models.lottery_processing_run import LotteryProcessingEntryLog, LotteryProcessingRun
from teelottery.models.member import Member
from teelottery.models.member_fairness_score import MemberFairnessScore
from teelottery.models.member_speed_profile import MemberSpeedProfile, SpeedTier
from teelottery.models.system_maintenance import SystemMaintenance
from teelottery.models.teesheet import ConfigType, Teesheet, TeesheetConfig, TimeBlock, TimeBlockFill, TimeBlockMember
from teelottery.models.timeblock_restriction import (
    RestrictionCategory,
    RestrictionType,
    TimeblockOverride,
    TimeblockRestriction,
)

__all__ = [
    "Member",
    "TeesheetConfig",
    "ConfigType",
    "Teesheet",
    "TimeBlock",
    "TimeBlockMember",
    "TimeBlockFill",
    "LotteryEntry",
    "LotteryEntryFill",
    "EntryStatus",
    "MemberSpeedProfile",
    "SpeedTier",
    "MemberFairnessScore",
    "LotteryAlgorithmConfig",
    "SystemMaintenance",
    "TimeblockRestriction",
    "TimeblockOverride",
    "RestrictionCategory",
    "RestrictionType",
    "LotteryProcessingRun",
    "LotteryProcessingEntryLog",
]

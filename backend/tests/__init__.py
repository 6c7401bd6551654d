# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from teelottery.models.lottery_algorithm_config import LotteryAlgorithmConfig  # noqa: F401
from teelottery.models.lottery_entry import LotteryEntry, LotteryEntryFill  # noqa: F401
from teelottery.models.lottery_processing_run import LotteryProcessingEntryLog, LotteryProcessingRun  # noqa: F401
from teelottery.models.member import Member  # noqa: F401
from teelottery.models.member_fairness_score import MemberFairnessScore  # noqa: F401
from teelottery.models.member_speed_profile import MemberSpeedProfile  # noqa: F401
from teelottery.models.system_maintenance import SystemMaintenance  # noqa: F401
from teelottery.models.teesheet import Teesheet, TeesheetConfig, TimeBlock  # noqa: F401
from teelottery.models.timeblock_restriction import TimeblockOverride, TimeblockRestriction  # noqa: F401

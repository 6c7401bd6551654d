"""
Time-Window Calculator

Divides a regular teesheet's operating day into four contiguous windows
(MORNING, MIDDAY, AFTERNOON, EVENING) used both to interpret a member's
stated preference and to test which window a time block falls in.

Rules:
- window length = floor(total_minutes / 4); the last window absorbs the remainder
- window[i].end_minutes == window[i + 1].start_minutes (no gaps, no overlaps)
- CUSTOM configurations have no windows (lottery disabled for the day)
- missing/invalid/inverted start or end time yields no windows, never an exception
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from teelottery.models.teesheet import ConfigType, TeesheetConfig
from teelottery.utils.time_format import format_minutes_12h, parse_hhmm


class TimeWindowValue(str, Enum):
    MORNING = "MORNING"
    MIDDAY = "MIDDAY"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"


WINDOW_ORDER: List[TimeWindowValue] = [
    TimeWindowValue.MORNING,
    TimeWindowValue.MIDDAY,
    TimeWindowValue.AFTERNOON,
    TimeWindowValue.EVENING,
]

VALID_WINDOWS = {w.value for w in WINDOW_ORDER}

_WINDOW_TEXT = {
    TimeWindowValue.MORNING: ("Morning", "Early times"),
    TimeWindowValue.MIDDAY: ("Midday", "Mid-day times"),
    TimeWindowValue.AFTERNOON: ("Afternoon", "Later times"),
    TimeWindowValue.EVENING: ("Evening", "Latest times"),
}


@dataclass(frozen=True)
class TimeWindowInfo:
    value: str
    label: str
    description: str
    time_range: str
    start_minutes: int
    end_minutes: int

    def contains(self, minutes: int, inclusive_end: bool = False) -> bool:
        """Half-open [start, end) membership test; end is inclusive for the last window."""
        if inclusive_end:
            return self.start_minutes <= minutes <= self.end_minutes
        return self.start_minutes <= minutes < self.end_minutes

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def format_time_range(start_minutes: int, end_minutes: int) -> str:
    return f"{format_minutes_12h(start_minutes)}-{format_minutes_12h(end_minutes)}"


def is_lottery_available(config: Optional[TeesheetConfig]) -> bool:
    """Lottery participation is disabled only for custom (non-uniform) configurations."""
    if config is None:
        return False
    return config.config_type != ConfigType.CUSTOM


def calculate_time_windows(config: Optional[TeesheetConfig]) -> List[TimeWindowInfo]:
    """
    Split [start_time, end_time) of a regular config into the four lottery windows.

    Returns [] for custom configs and for missing/invalid times.
    """
    if config is None or config.config_type == ConfigType.CUSTOM:
        return []

    start = parse_hhmm(config.start_time)
    end = parse_hhmm(config.end_time)
    if start is None or end is None or end <= start:
        return []

    window_minutes = (end - start) // 4

    windows: List[TimeWindowInfo] = []
    for index, value in enumerate(WINDOW_ORDER):
        w_start = start + window_minutes * index
        w_end = end if index == len(WINDOW_ORDER) - 1 else w_start + window_minutes
        label, description = _WINDOW_TEXT[value]
        windows.append(
            TimeWindowInfo(
                value=value.value,
                label=label,
                description=description,
                time_range=format_time_range(w_start, w_end),
                start_minutes=w_start,
                end_minutes=w_end,
            )
        )
    return windows


def get_window(windows: List[TimeWindowInfo], value: Optional[str]) -> Optional[TimeWindowInfo]:
    if not value:
        return None
    for w in windows:
        if w.value == value:
            return w
    return None


def block_in_window(windows: List[TimeWindowInfo], value: Optional[str], start_minutes: int) -> bool:
    """True if a block starting at start_minutes falls in the named window."""
    window = get_window(windows, value)
    if window is None:
        return False
    is_last = windows and windows[-1].value == window.value
    return window.contains(start_minutes, inclusive_end=bool(is_last))


def find_window_for_time(windows: List[TimeWindowInfo], start_minutes: int) -> Optional[TimeWindowInfo]:
    for index, w in enumerate(windows):
        if w.contains(start_minutes, inclusive_end=index == len(windows) - 1):
            return w
    return None

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

logger = logging.getLogger(__name__)

ALL_TIME = "All Time"


@dataclass(frozen=True)
class TimeWindow:
    label: str
    days: Optional[int]

    @property
    def is_unbounded(self) -> bool:
        return self.days is None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.days is None:
            return None
        return timedelta(days=self.days)


WINDOWS: tuple[TimeWindow, ...] = (
    TimeWindow("1 Month", 30),
    TimeWindow("3 Months", 90),
    TimeWindow("6 Months", 180),
    TimeWindow("1 Year", 365),
    TimeWindow("5 Years", 1825),
    TimeWindow(ALL_TIME, None),
)

_BY_LABEL = {window.label: window for window in WINDOWS}


def available_windows() -> list[str]:
    return [window.label for window in WINDOWS]


def resolve_window(label: Optional[str]) -> TimeWindow:
    """Look up a lookback window by its display label.

    Unknown or empty labels resolve to "All Time" so a bad selection never
    hides spending behind a zero-length window.
    """
    if label:
        window = _BY_LABEL.get(label.strip())
        if window is not None:
            return window
        logger.info(f"window_fallback: label={label!r} resolved={ALL_TIME}")
    return _BY_LABEL[ALL_TIME]


def window_duration(label: Optional[str]) -> Optional[timedelta]:
    return resolve_window(label).duration

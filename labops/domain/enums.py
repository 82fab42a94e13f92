from __future__ import annotations

from enum import Enum


class Tier(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ToolOutcome(str, Enum):
    SUCCESS = "success"
    SUCCESS_WITH_WARNINGS = "success_with_warnings"
    FAILURE = "failure"

    @property
    def succeeded(self) -> bool:
        return self is not ToolOutcome.FAILURE


class RobocopyStatus(str, Enum):
    NO_CHANGE = "no_change"
    COPIED = "copied"
    COPIED_WITH_EXTRAS = "copied_with_extras"
    MISMATCH = "mismatch"
    FAILED = "failed"


class TargetRunStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


# English names regardless of locale; index matches date.weekday()
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

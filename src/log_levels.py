"""
Rolling Logger Options
Severity levels and the enumerated rolling thresholds.
"""

from enum import Enum, IntEnum
from typing import Union


class LogLevel(IntEnum):
    """Record severities, ordered from least to most severe."""

    Debug = 0
    Info = 1
    Warn = 2
    Error = 3
    Critical = 4

    @classmethod
    def parse(cls, value: Union["LogLevel", int, str]) -> "LogLevel":
        """Accept a member, its integer value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Unsupported log level {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            name = value.strip().lower()
            if name == "warning":
                name = "warn"
            for member in cls:
                if member.name.lower() == name:
                    return member
        raise ValueError(f"Unsupported log level {value!r}")

    @staticmethod
    def to_string(level: "LogLevel") -> str:
        return LogLevel(level).name.upper()


class RollingTimeOption(Enum):
    """Calendar units after which the active file is rotated."""

    Minute = "minute"
    Hour = "hour"
    Day = "day"
    Week = "week"
    Month = "month"
    Year = "year"

    @classmethod
    def parse(cls, value: Union["RollingTimeOption", str]) -> "RollingTimeOption":
        """Accept a member, its value or its name; "Hourly" style names too."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().lower()
            aliases = {"hourly": "hour", "daily": "day", "weekly": "week",
                       "monthly": "month", "yearly": "year", "minutely": "minute"}
            name = aliases.get(name, name)
            for member in cls:
                if member.value == name:
                    return member
        raise ValueError(f"Unsupported rolling time option {value!r}")


class RollingSizeOptions:
    """Common size thresholds in bytes."""

    OneKB = 1024
    FiveKB = 5 * 1024
    TenKB = 10 * 1024
    TwentyKB = 20 * 1024
    FiftyKB = 50 * 1024
    HundredKB = 100 * 1024

    HalfMB = 512 * 1024
    OneMB = 1024 * 1024
    FiveMB = 5 * 1024 * 1024
    TenMB = 10 * 1024 * 1024
    TwentyMB = 20 * 1024 * 1024
    FiftyMB = 50 * 1024 * 1024
    HundredMB = 100 * 1024 * 1024

    # Smallest threshold accepted by RollingConfig
    MINIMUM = 100

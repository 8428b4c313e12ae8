"""
Rolling Logger Rotation Policy
Calendar-boundary and size-based rotation decisions.
"""

from datetime import datetime, timezone
from typing import Tuple

from pydantic import BaseModel

from log_config import RollingConfig
from log_levels import RollingTimeOption


class RotationReason:
    """Why the active file must be replaced."""

    NONE = "none"
    TIME = "time"
    SIZE = "size"


class RotationDecision(BaseModel):
    """Result of a rotation check."""

    rotate: bool
    reason: str
    rationale: str


def to_utc(moment: datetime) -> datetime:
    """Normalize to UTC; naive datetimes are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def calendar_unit(moment: datetime, interval: RollingTimeOption) -> Tuple[int, ...]:
    """
    Identify the calendar unit containing `moment`.

    Two instants fall in the same unit exactly when their keys are equal, so
    month lengths and leap years need no arithmetic. Weeks are ISO weeks.
    """
    moment = to_utc(moment)
    if interval == RollingTimeOption.Minute:
        return (moment.year, moment.month, moment.day, moment.hour, moment.minute)
    if interval == RollingTimeOption.Hour:
        return (moment.year, moment.month, moment.day, moment.hour)
    if interval == RollingTimeOption.Day:
        return (moment.year, moment.month, moment.day)
    if interval == RollingTimeOption.Week:
        iso = moment.isocalendar()
        return (iso[0], iso[1])
    if interval == RollingTimeOption.Month:
        return (moment.year, moment.month)
    if interval == RollingTimeOption.Year:
        return (moment.year,)
    raise ValueError(f"Unsupported rolling time option {interval!r}")


class RotationPolicy:
    """Stateless rotation checks run before every write."""

    def evaluate(
        self,
        active_file,
        thresholds: RollingConfig,
        now: datetime,
        pending_size: int = 0,
    ) -> RotationDecision:
        """
        Decide whether `active_file` must be replaced before the next write.

        Args:
            active_file: Anything exposing `opened_at` and `bytes_written`
            thresholds: Interval and size limits
            now: Current instant
            pending_size: Size in bytes of the record about to be written

        Returns:
            Decision with the triggering reason
        """
        opened_unit = calendar_unit(active_file.opened_at, thresholds.time_interval)
        current_unit = calendar_unit(now, thresholds.time_interval)
        if opened_unit != current_unit:
            return RotationDecision(
                rotate=True,
                reason=RotationReason.TIME,
                rationale=f"{thresholds.time_interval.value} boundary crossed ({opened_unit} -> {current_unit})",
            )

        # An empty file takes the record even when it alone exceeds the limit
        projected = active_file.bytes_written + pending_size
        if active_file.bytes_written > 0 and projected > thresholds.max_bytes:
            return RotationDecision(
                rotate=True,
                reason=RotationReason.SIZE,
                rationale=f"Size limit reached ({projected} > {thresholds.max_bytes})",
            )

        return RotationDecision(
            rotate=False,
            reason=RotationReason.NONE,
            rationale="Within interval and size limits",
        )

    def should_rotate(
        self,
        active_file,
        thresholds: RollingConfig,
        now: datetime,
        pending_size: int = 0,
    ) -> bool:
        return self.evaluate(active_file, thresholds, now, pending_size).rotate


_default_policy = RotationPolicy()


def should_rotate(active_file, thresholds: RollingConfig, now: datetime, pending_size: int = 0) -> bool:
    """Module-level shorthand for RotationPolicy().should_rotate()."""
    return _default_policy.should_rotate(active_file, thresholds, now, pending_size)

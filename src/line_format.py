"""
Rolling Logger Records
Immutable log records and their textual line format.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from log_levels import LogLevel
from rotation import to_utc


class LogRecord(BaseModel):
    """One submitted log entry."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    level: LogLevel
    caller: str = ""
    message: str


class LineFormatter:
    """Render `[<UTC ms>Z] [<LEVEL>]: <caller> <message>` plus a newline."""

    def format(self, record: LogRecord) -> str:
        stamp = to_utc(record.timestamp).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        prefix = f"[{stamp}] [{LogLevel.to_string(record.level)}]:"
        if record.caller:
            return f"{prefix} {record.caller} {record.message}\n"
        return f"{prefix} {record.message}\n"

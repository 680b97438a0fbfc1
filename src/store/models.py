"""Persisted records: recurring messages/tasks, known servers, moderation rules."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from src.config import get_embed_color


def _new_id() -> str:
    return uuid.uuid4().hex


class DayOfWeek(str, Enum):
    """Day a recurring task fires on, or every day."""

    SUN = "SUN"
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    EVERY_DAY = "EVERY_DAY"


@dataclass
class RecurringMessage:
    """What a recurring task posts, and where.

    Attributes:
        id: Unique identifier (UUID hex).
        channel_id: Discord channel the message is sent to.
        text: Body text (embed description when ``send_as_embed``).
        send_as_embed: Send as a rich embed instead of plain text.
        embed_color: Embed color as an int; None means the default amber. Rows
            written as text (``"#RRGGBB"``) are parsed on load.
    """

    channel_id: str
    text: str
    send_as_embed: bool = False
    embed_color: int | None = None
    id: str = field(default_factory=_new_id)

    def to_row(self) -> tuple:
        return (
            self.id,
            self.channel_id,
            self.text,
            int(self.send_as_embed),
            self.embed_color,
        )

    @classmethod
    def from_row(cls, row: tuple) -> RecurringMessage:
        return cls(
            id=row[0],
            channel_id=row[1],
            text=row[2],
            send_as_embed=bool(row[3]),
            embed_color=get_embed_color(row[4]),
        )


@dataclass
class RecurringTask:
    """When a recurring message is sent. All times are UTC.

    Attributes:
        id: Unique identifier (UUID hex).
        message_id: The RecurringMessage this task sends.
        day_of_week: A single weekday, or ``EVERY_DAY``.
        hour: Hour of day, 0-23.
        minute: Minute of hour, 0-59.
    """

    message_id: str
    day_of_week: DayOfWeek | str
    hour: int
    minute: int
    id: str = field(default_factory=_new_id)

    def to_row(self) -> tuple:
        day = self.day_of_week
        return (
            self.id,
            self.message_id,
            day.value if isinstance(day, DayOfWeek) else day,
            self.hour,
            self.minute,
        )

    @classmethod
    def from_row(cls, row: tuple) -> RecurringTask:
        # Unknown day names are kept as-is; the schedule compiler rejects them.
        try:
            day: DayOfWeek | str = DayOfWeek(row[2])
        except ValueError:
            day = row[2]
        return cls(
            id=row[0],
            message_id=row[1],
            day_of_week=day,
            hour=row[3],
            minute=row[4],
        )


@dataclass(frozen=True)
class KnownServer:
    """A guild the bot is (or was) a member of."""

    server_id: str
    name: str


@dataclass(frozen=True)
class Keyword:
    """A required message prefix for a channel."""

    id: int
    server_id: str
    channel_id: str
    text: str
    kind: str = "startswith"


@dataclass(frozen=True)
class WhitelistedEmoji:
    """An emoji members may react with in a server."""

    id: int
    server_id: str
    emoji: str

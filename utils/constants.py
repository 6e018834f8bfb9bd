# utils/constants.py
from datetime import datetime
from typing import NamedTuple
from zoneinfo import ZoneInfo

from utils.config import TIMEZONE
from utils.statuses import S_PENDING, S_ACCEPTED, S_READY, S_DELIVERED, S_REJECTED

status_map = {
    S_PENDING: "In attesa",
    S_ACCEPTED: "Accettato",
    S_READY: "Rider in arrivo",
    S_DELIVERED: "Consegnato",
    S_REJECTED: "Rifiutato",
}

color_map = {
    S_PENDING: "yellow",
    S_ACCEPTED: "blue",
    S_READY: "indigo",
    S_DELIVERED: "green",
    S_REJECTED: "red",
}

NEUTRAL_COLOR = "gray"

# Telegram has no colors, badges are drawn with emoji
color_emoji = {
    "yellow": "🟡",
    "blue": "🔵",
    "indigo": "🟣",
    "green": "🟢",
    "red": "🔴",
    NEUTRAL_COLOR: "⚪️",
}


class StatusBadge(NamedTuple):
    label: str
    color: str

    @property
    def emoji(self) -> str:
        return color_emoji.get(self.color, color_emoji[NEUTRAL_COLOR])

    def __str__(self) -> str:
        return f"{self.emoji} {self.label}"


def project_status(status: str) -> StatusBadge:
    """
    Badge shown for an order status, both on the staff dashboard and in the
    customer's list. Unknown statuses are echoed as-is in a neutral color.
    """
    if status in status_map:
        return StatusBadge(status_map[status], color_map[status])
    return StatusBadge(str(status), NEUTRAL_COLOR)


def to_local(moment: datetime) -> datetime:
    """Store timestamps are UTC, screens show the pharmacy's local time."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(TIMEZONE))

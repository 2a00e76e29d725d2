"""Greeting of the day: stable for a given user within one calendar day."""

from __future__ import annotations

import hashlib
from datetime import datetime

GREETING_TEMPLATES = [
    "{holiday}{time_of_day}{name}! How's your trading going today?",
    "{holiday}{time_of_day}{name}! Ready to analyze some trades?",
    "{holiday}{time_of_day}{name}! What's on your trading radar today?",
    "{holiday}{time_of_day}{name}! Any exciting market moves catching your eye?",
]

_HOLIDAYS = {
    (12, 25): "🎄 Merry Christmas! ",
    (1, 1): "🎉 Happy New Year! ",
    (10, 31): "🎃 Happy Halloween! ",
}


def time_of_day_greeting(hour: int) -> str:
    if hour < 12:
        return "Good morning"
    if hour < 17:
        return "Good afternoon"
    return "Good evening"


def _template_index(user_id: str, now: datetime) -> int:
    day = now.timetuple().tm_yday
    digest = hashlib.sha256(f"{now.year}:{day}:{user_id}".encode()).digest()
    return int.from_bytes(digest[:4], "big") % len(GREETING_TEMPLATES)


def daily_greeting(user_id: str, user_name: str | None = None, now: datetime | None = None) -> str:
    now = now or datetime.now()
    template = GREETING_TEMPLATES[_template_index(user_id, now)]
    return template.format(
        holiday=_HOLIDAYS.get((now.month, now.day), ""),
        time_of_day=time_of_day_greeting(now.hour),
        name=f" {user_name}" if user_name else "",
    )

"""Daily check-in reminder timing.

Only decides whether a reminder is due; delivering it is up to the host.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class UserProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    notifications_enabled: bool = False
    notification_time: str | None = None  # "HH:MM", 24h
    last_reminded_on: date | None = None

    @field_validator("notification_time")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            return None
        if not _HHMM.match(cleaned):
            raise ValueError("notification_time must be HH:MM (24h)")
        return cleaned


def reminder_due(profile: UserProfile, now: datetime, last_sent_on: date | None) -> bool:
    """True when the current minute matches and nothing was sent today yet."""
    if not profile.notifications_enabled or not profile.notification_time:
        return False
    if last_sent_on == now.date():
        return False
    return now.strftime("%H:%M") == profile.notification_time

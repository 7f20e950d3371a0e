"""Delivery eligibility: decide whether a recipient should be pushed at all."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

DEFAULT_COOLDOWN_MINUTES = 1.0

SUPPRESSION_REASON = "User is in chat or within cooldown period"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def should_notify(
    is_in_chat: bool,
    last_activity: datetime | None,
    cooldown_minutes: float = DEFAULT_COOLDOWN_MINUTES,
    now: datetime | None = None,
) -> bool:
    """Return False when the recipient is viewing the chat or was active within the cooldown.

    Any recorded activity restarts the cooldown, including a "left chat"
    signal. A recipient with no activity record is always eligible.
    """
    if is_in_chat:
        return False

    if last_activity is not None:
        current = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        if current - _as_utc(last_activity) < timedelta(minutes=cooldown_minutes):
            return False

    return True

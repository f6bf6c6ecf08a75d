import math

from .models.deposit import Deposit, Remaining, UnlockStatus

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60


def compute_unlock(deposit_time: int, lock_duration: int, now: float) -> UnlockStatus:
    """Remaining lock time for a deposit at ``now``; pure, no scheduling state."""
    remaining = max(0, int(deposit_time) + int(lock_duration) - math.floor(now))

    days, rest = divmod(remaining, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes, seconds = divmod(rest, SECONDS_PER_MINUTE)

    return UnlockStatus(
        remaining=Remaining(
            days=days,
            hours=hours,
            minutes=minutes,
            seconds=seconds,
            total_seconds=remaining,
        ),
        is_expired=remaining == 0,
    )


def unlock_for(deposit: Deposit, now: float) -> UnlockStatus:
    return compute_unlock(deposit.deposit_time, deposit.lock_duration, now)


def format_duration(seconds: int) -> str:
    """Compact form, e.g. ``2d 3h`` or ``5m 10s``."""
    seconds = max(0, int(seconds))
    if seconds < SECONDS_PER_MINUTE:
        return f"{seconds}s"

    days, rest = divmod(seconds, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes, secs = divmod(rest, SECONDS_PER_MINUTE)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    # seconds are noise once the lock is measured in days
    if secs > 0 and days == 0:
        parts.append(f"{secs}s")
    return " ".join(parts) or "0s"


def format_duration_long(seconds: int) -> str:
    """Worded form, e.g. ``1 day, 2 hours``."""
    seconds = max(0, int(seconds))
    days, rest = divmod(seconds, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes = rest // SECONDS_PER_MINUTE

    parts = []
    if days > 0:
        parts.append(f"{days} day{'s' if days != 1 else ''}")
    if hours > 0:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if minutes > 0 and days == 0:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    return ", ".join(parts) or "Less than a minute"

"""
PracticeOps Core Time — Injectable Clock
==========================================
Services never call datetime.now() directly. Acceptance dates,
due dates, payment timestamps and expiry sweeps all read time
through a Clock so tests can pin it.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


# ══════════════════════════════════════════════════════════════
# CLOCK PROTOCOL
# ══════════════════════════════════════════════════════════════

class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class SystemClock:
    """Production clock — real system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Test clock — returns a pinned timestamp until advanced.

    Usage:
        clock = FixedClock(datetime(2026, 2, 21, 9, 0, tzinfo=timezone.utc))
        clock.advance(days=31)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt

    def now_utc(self) -> datetime:
        return self._fixed_dt

    def advance(self, *, days: int = 0, seconds: float = 0) -> None:
        self._fixed_dt = self._fixed_dt + timedelta(days=days, seconds=seconds)


# ══════════════════════════════════════════════════════════════
# DEFAULT CLOCK
# ══════════════════════════════════════════════════════════════

_default_clock: Clock = SystemClock()


def set_default_clock(clock: Clock) -> None:
    """Override the default clock (testing only)."""
    global _default_clock
    _default_clock = clock


def get_default_clock() -> Clock:
    return _default_clock


def now_utc() -> datetime:
    return _default_clock.now_utc()


def today_utc(clock: Clock | None = None) -> date:
    """Calendar date in UTC, used for issue and due dates."""
    return (clock or _default_clock).now_utc().date()

import time
from collections.abc import Callable
from datetime import UTC, datetime

URGENT_THRESHOLD_SECONDS = 60
TICK_SECONDS = 1.0


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class BookingTimer:
    """Countdown for a held slot.

    ``tick()`` recomputes the remaining time from the clock. ``on_expire`` is
    called exactly once, on the first tick at which the clock is past
    ``expires_at``. Calling ``update()`` with the same expiry keeps the current
    state; a different expiry re-arms the timer.
    """

    def __init__(
        self,
        expires_at: datetime,
        on_expire: Callable[[], None],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._expires_at = _as_utc(expires_at)
        self._on_expire = on_expire
        self._clock = clock
        self._fired = False
        self._remaining = self._compute_remaining()

    @property
    def expires_at(self) -> datetime:
        return self._expires_at

    @property
    def expired(self) -> bool:
        return self._fired

    @property
    def is_urgent(self) -> bool:
        return self._remaining < URGENT_THRESHOLD_SECONDS

    def _compute_remaining(self) -> float:
        return (self._expires_at - _as_utc(self._clock())).total_seconds()

    def remaining(self) -> float:
        return max(0.0, self._remaining)

    def tick(self) -> float:
        self._remaining = self._compute_remaining()
        if self._remaining < 0 and not self._fired:
            self._fired = True
            self._on_expire()
        return self.remaining()

    def update(self, expires_at: datetime) -> None:
        new_expiry = _as_utc(expires_at)
        if new_expiry == self._expires_at:
            return
        self._expires_at = new_expiry
        self._fired = False
        self._remaining = self._compute_remaining()

    def display(self) -> str:
        hours, rest = divmod(int(self.remaining()), 3600)
        minutes, seconds = divmod(rest, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"

    def run(self, sleep: Callable[[float], None] = time.sleep) -> None:
        while True:
            self.tick()
            if self._fired:
                return
            sleep(TICK_SECONDS)

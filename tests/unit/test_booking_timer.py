from datetime import UTC, datetime, timedelta

from consultbook.services.booking_timer import BookingTimer

START = datetime(2030, 1, 7, 4, 30, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def test_timer_counts_down_and_fires_once():
    clock = FakeClock(START)
    fired: list[int] = []
    timer = BookingTimer(START + timedelta(seconds=90), on_expire=lambda: fired.append(1), clock=clock)

    assert timer.tick() == 90
    assert timer.display() == "01:30"
    assert timer.is_urgent is False

    clock.advance(45)
    assert timer.tick() == 45
    assert timer.is_urgent is True

    clock.advance(45)
    assert timer.tick() == 0
    assert fired == []

    clock.advance(1)
    timer.tick()
    clock.advance(10)
    timer.tick()

    assert fired == [1]
    assert timer.expired is True
    assert timer.remaining() == 0
    assert timer.display() == "00:00"


def test_update_with_same_expiry_keeps_fired_state():
    clock = FakeClock(START)
    fired: list[int] = []
    expires_at = START + timedelta(seconds=5)
    timer = BookingTimer(expires_at, on_expire=lambda: fired.append(1), clock=clock)

    clock.advance(6)
    timer.tick()
    timer.update(expires_at)
    timer.tick()

    assert fired == [1]
    assert timer.expired is True


def test_update_with_new_expiry_rearms_timer():
    clock = FakeClock(START)
    fired: list[int] = []
    timer = BookingTimer(START + timedelta(seconds=5), on_expire=lambda: fired.append(1), clock=clock)

    clock.advance(6)
    timer.tick()
    timer.update(clock.now + timedelta(minutes=10))

    assert timer.expired is False
    assert timer.display() == "10:00"

    clock.advance(601)
    timer.tick()
    assert fired == [1, 1]


def test_naive_expiry_is_treated_as_utc():
    clock = FakeClock(START)
    timer = BookingTimer((START + timedelta(minutes=2)).replace(tzinfo=None), on_expire=lambda: None, clock=clock)

    assert timer.expires_at.tzinfo is UTC
    assert timer.tick() == 120


def test_run_ticks_every_second_until_expiry():
    clock = FakeClock(START)
    fired: list[int] = []
    sleeps: list[float] = []
    timer = BookingTimer(START + timedelta(seconds=3), on_expire=lambda: fired.append(1), clock=clock)

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.advance(seconds)

    timer.run(sleep=fake_sleep)

    assert fired == [1]
    assert sleeps == [1.0, 1.0, 1.0, 1.0]


def test_display_includes_hours_for_long_holds():
    clock = FakeClock(START)
    long_hold = BookingTimer(START + timedelta(minutes=61), on_expire=lambda: None, clock=clock)
    short_hold = BookingTimer(START + timedelta(minutes=10), on_expire=lambda: None, clock=clock)

    assert long_hold.display() == "1:01:00"
    assert short_hold.display() == "10:00"

    clock.advance(61)
    long_hold.tick()
    assert long_hold.display() == "59:59"

from datetime import datetime, timedelta, timezone


class FixedRandom:
    """Stands in for random.Random; always returns the same draw."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


class MutableClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now

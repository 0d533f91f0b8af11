"""Clock abstraction so default dates stay testable"""

from datetime import date


class Clock:
    """Source of 'today' for operations that default a date"""

    def today(self) -> date:
        raise NotImplementedError


class SystemClock(Clock):
    def today(self) -> date:
        return date.today()


class FixedClock(Clock):
    """Clock pinned to one day, for tests and replays"""

    def __init__(self, fixed_day: date):
        self.fixed_day = fixed_day

    def today(self) -> date:
        return self.fixed_day

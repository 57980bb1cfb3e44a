from datetime import datetime, timezone


class Clock:
    """Source of "now" for expiry checks and solve timing."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = Clock()

def get_clock() -> Clock:
    return system_clock

from enum import Enum


class TimeUnit(Enum):
    """Units accepted by collectors and menus for their lifetime."""

    MILLISECOND = 0.001
    SECOND = 1
    MINUTE = 60
    HOUR = 3600
    DAY = 86400

    def to_seconds(self, amount: float) -> float:
        return amount * self.value

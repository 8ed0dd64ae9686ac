import datetime as dt
from dataclasses import dataclass

from agenda.domain.datetime_helpers import as_utc
from agenda.domain.exceptions import InvalidRangeError, ValidationError


@dataclass(frozen=True)
class TimeInterval:
    """A half-open range of UTC instants, ``[start, end)``.

    Construction rejects empty or inverted ranges with ``InvalidRangeError``,
    so every interval that exists has ``start < end``.
    """

    start: dt.datetime
    end: dt.datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if self.start >= self.end:
            raise InvalidRangeError(self.start, self.end)

    def overlaps(self, other: "TimeInterval") -> bool:
        """True if the two ranges share any instant. Touching endpoints do not."""
        return self.start < other.end and other.start < self.end

    def split(self, step: dt.timedelta) -> list["TimeInterval"]:
        """Partition into contiguous ``step``-long pieces; a short tail piece is dropped."""
        if step <= dt.timedelta(0):
            raise ValidationError("Slot length must be positive")
        pieces: list[TimeInterval] = []
        cursor = self.start
        while cursor + step <= self.end:
            pieces.append(TimeInterval(cursor, cursor + step))
            cursor += step
        return pieces

"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterator, Self

CENT = Decimal("0.01")


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ReminderKind(str, Enum):
    REMINDER_48H = "reminder_48h"
    REMINDER_24H = "reminder_24h"
    REMINDER_2H = "reminder_2h"
    POST_EVENT = "post_event"


class NoticeKind(str, Enum):
    """Transactional emails sent when a purchase changes state."""

    PURCHASE_CONFIRMED = "purchase_confirmed"
    PURCHASE_FAILED = "purchase_failed"
    PURCHASE_CANCELLED = "purchase_cancelled"


class ReminderStatus(str, Enum):
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, order=True)
class Money:
    """Non-negative amount, always held to two decimal places."""

    amount: Decimal

    def __post_init__(self) -> None:
        amount = Decimal(self.amount).quantize(CENT, rounding=ROUND_HALF_UP)
        if amount < 0:
            raise ValueError("Money amount cannot be negative")
        object.__setattr__(self, "amount", amount)

    @classmethod
    def zero(cls) -> Self:
        return cls(Decimal("0"))

    @classmethod
    def of(cls, value: Decimal | int | str) -> Self:
        return cls(Decimal(str(value)))

    def __add__(self, other: "Money") -> "Money":
        return Money(self.amount + other.amount)

    def __sub__(self, other: "Money") -> "Money":
        return Money(self.amount - other.amount)

    def __mul__(self, quantity: int) -> "Money":
        return Money(self.amount * quantity)

    def percentage(self, percent: Decimal) -> "Money":
        return Money(self.amount * Decimal(percent) / Decimal(100))

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("Date range end cannot be before its start")

    @classmethod
    def single(cls, day: date) -> Self:
        return cls(start=day, end=day)

    @classmethod
    def spanning(cls, start: date, days: int) -> Self:
        if days < 1:
            raise ValueError("Date range must span at least one day")
        return cls(start=start, end=start + timedelta(days=days - 1))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, other: "DateRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class ReminderOffset:
    """When a reminder fires, relative to the event start or end."""

    kind: ReminderKind
    delta: timedelta
    anchor: str = "start"

    def __post_init__(self) -> None:
        if self.anchor not in ("start", "end"):
            raise ValueError("Reminder offset anchor must be 'start' or 'end'")

"""
Pricing value objects and marketplace policies.

Money amounts are Decimals quantized to cents. Policies are plain classes
configured from AppSettings so tests can build them with explicit rates.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional, Union

from arreglame_api.core.errors import BadUserInputError
from arreglame_api.core.settings import AppSettings, get_app_settings
from arreglame_api.db.base import as_utc, utcnow
from arreglame_api.db.models.enums import DifficultyLevel, ServiceRequestStatus

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
Number = Union[int, float, Decimal, str]


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Money:
    """Immutable non-negative amount in a currency."""

    amount: Decimal
    currency: str = "ARS"

    def __post_init__(self) -> None:
        try:
            amount = _to_decimal(self.amount)
            if not amount.is_finite():
                raise InvalidOperation(amount)
            amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise BadUserInputError(f"Monto inválido: {self.amount}")
        if amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        object.__setattr__(self, "amount", amount)

    @classmethod
    def of(cls, amount: Number, currency: str = "ARS") -> "Money":
        return cls(_to_decimal(amount), currency)

    @classmethod
    def zero(cls, currency: str = "ARS") -> "Money":
        return cls(Decimal("0"), currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")

    def add(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def subtract(self, other: "Money") -> "Money":
        self._check_currency(other)
        if other.amount > self.amount:
            raise ValueError("Subtraction would result in negative amount")
        return Money(self.amount - other.amount, self.currency)

    def multiply(self, factor: Number) -> "Money":
        factor = _to_decimal(factor)
        if factor < 0:
            raise ValueError("Multiplier cannot be negative")
        return Money(self.amount * factor, self.currency)

    def divide(self, divisor: Number) -> "Money":
        divisor = _to_decimal(divisor)
        if divisor <= 0:
            raise ValueError("Divisor must be positive")
        return Money(self.amount / divisor, self.currency)

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:.2f}"


@dataclass(frozen=True)
class CommissionBreakdown:
    """Split of a total between worker, platform and taxes. The parts always sum to the total."""

    total: Money
    worker_net: Money
    platform_commission: Money
    taxes: Money = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.taxes is None:
            object.__setattr__(self, "taxes", Money.zero(self.total.currency))
        parts = self.worker_net.add(self.platform_commission).add(self.taxes)
        if parts != self.total:
            raise ValueError(
                f"Commission breakdown does not add up: {parts.amount} != {self.total.amount}"
            )

    @classmethod
    def calculate(cls, total: Money, commission_rate: Number, tax_rate: Number = 0) -> "CommissionBreakdown":
        commission = total.multiply(commission_rate)
        taxes = total.multiply(tax_rate)
        # the net absorbs rounding so the parts stay exact
        worker_net = total.subtract(commission).subtract(taxes)
        return cls(total, worker_net, commission, taxes)

    def as_dict(self) -> dict:
        return {
            "total": self.total.amount,
            "worker_net": self.worker_net.amount,
            "platform_commission": self.platform_commission.amount,
            "taxes": self.taxes.amount,
            "currency": self.total.currency,
        }


@dataclass(frozen=True)
class Estimation:
    """Result of a pricing engine run."""

    difficulty_score: float
    estimated_hours: float
    suggested_base_price: float
    estimated_m2: Optional[float] = None
    obstacles: List[str] = field(default_factory=list)
    reasoning: str = ""

    def as_dict(self) -> dict:
        return {
            "estimated_m2": self.estimated_m2,
            "difficulty_score": self.difficulty_score,
            "estimated_hours": self.estimated_hours,
            "suggested_base_price": self.suggested_base_price,
            "obstacles": list(self.obstacles),
            "reasoning": self.reasoning,
        }


class CommissionPolicy:
    """Platform commission and taxes taken from each job total."""

    def __init__(self, commission_rate: Number = "0.25", tax_rate: Number = "0") -> None:
        self.commission_rate = _to_decimal(commission_rate)
        self.tax_rate = _to_decimal(tax_rate)

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "CommissionPolicy":
        settings = settings or get_app_settings()
        return cls(settings.COMMISSION_RATE, settings.TAX_RATE)

    # PUBLIC_INTERFACE
    def calculate_from(self, total: Money) -> CommissionBreakdown:
        """Split a total into worker net, platform commission and taxes."""
        return CommissionBreakdown.calculate(total, self.commission_rate, self.tax_rate)

    # PUBLIC_INTERFACE
    def total_from_worker_net(self, worker_net: Money) -> Money:
        """Gross total needed so the worker receives worker_net."""
        return worker_net.divide(Decimal("1") - self.commission_rate - self.tax_rate)


class CancellationPolicy:
    """
    Cancellation fee rules.

    - IN_PROGRESS: in-progress penalty.
    - Scheduled with more notice than the window: free.
    - Scheduled inside the window: late penalty.
    - ASSIGNED without a schedule: late penalty.
    - Anything earlier (OPEN): free.

    The fee goes entirely to the platform; the worker receives nothing.
    """

    def __init__(
        self,
        window_hours: float = 24,
        penalty_rate: Number = "0.30",
        in_progress_rate: Number = "0.50",
    ) -> None:
        self.window_hours = window_hours
        self.penalty_rate = _to_decimal(penalty_rate)
        self.in_progress_rate = _to_decimal(in_progress_rate)

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "CancellationPolicy":
        settings = settings or get_app_settings()
        return cls(
            settings.CANCELLATION_WINDOW_HOURS,
            settings.CANCELLATION_PENALTY_RATE,
            settings.IN_PROGRESS_PENALTY_RATE,
        )

    def _hours_until(self, scheduled_at: datetime, now: datetime) -> float:
        return (as_utc(scheduled_at) - now).total_seconds() / 3600

    def _penalty(self, total: Money, rate: Decimal) -> CommissionBreakdown:
        fee = total.multiply(rate)
        return CommissionBreakdown(fee, Money.zero(total.currency), fee)

    def _free(self, total: Money) -> CommissionBreakdown:
        zero = Money.zero(total.currency)
        return CommissionBreakdown(zero, zero, zero)

    # PUBLIC_INTERFACE
    def calculate_fee(
        self,
        total: Money,
        scheduled_at: Optional[datetime],
        status: str,
        now: Optional[datetime] = None,
    ) -> CommissionBreakdown:
        """Return the fee breakdown for cancelling a job in the given state."""
        now = now or utcnow()
        if status == ServiceRequestStatus.IN_PROGRESS.value:
            logger.info("Cancellation during IN_PROGRESS: %s penalty", self.in_progress_rate)
            return self._penalty(total, self.in_progress_rate)

        if scheduled_at is not None:
            hours = self._hours_until(scheduled_at, now)
            if hours > self.window_hours:
                logger.info("Free cancellation with %.1fh notice", hours)
                return self._free(total)
            logger.info("Late cancellation with %.1fh notice", hours)
            return self._penalty(total, self.penalty_rate)

        if status == ServiceRequestStatus.ASSIGNED.value:
            return self._penalty(total, self.penalty_rate)

        return self._free(total)

    # PUBLIC_INTERFACE
    def can_cancel_free(self, scheduled_at: Optional[datetime], status: str, now: Optional[datetime] = None) -> bool:
        """True when cancelling now costs nothing."""
        now = now or utcnow()
        if status == ServiceRequestStatus.IN_PROGRESS.value:
            return False
        if scheduled_at is not None:
            return self._hours_until(scheduled_at, now) > self.window_hours
        return status == ServiceRequestStatus.OPEN.value


class EstimationPolicy:
    """Turns an engine estimation into a job price."""

    def __init__(self, rate_per_m2: Number = 150, rate_per_hour: Number = 2000, currency: str = "ARS") -> None:
        self.rate_per_m2 = _to_decimal(rate_per_m2)
        self.rate_per_hour = _to_decimal(rate_per_hour)
        self.currency = currency

    # PUBLIC_INTERFACE
    def validate(self, estimation: Estimation) -> None:
        """Reject estimations outside sane bounds with BadUserInputError."""
        if not 0 <= estimation.difficulty_score <= 10:
            raise BadUserInputError(f"Invalid difficulty score: {estimation.difficulty_score}")
        if not 0 < estimation.estimated_hours <= 24:
            raise BadUserInputError(f"Invalid estimated hours: {estimation.estimated_hours}")
        if not 0 <= estimation.suggested_base_price <= 1_000_000:
            raise BadUserInputError(f"Invalid suggested price: {estimation.suggested_base_price}")

    # PUBLIC_INTERFACE
    def base_price(self, estimation: Estimation, square_meters: float) -> Money:
        """Suggested price (or area formula) times 1 + difficulty/10, floored at hours * hourly rate."""
        amount = _to_decimal(estimation.suggested_base_price)
        if amount <= 0:
            amount = _to_decimal(square_meters) * self.rate_per_m2
        adjusted = amount * (Decimal("1") + _to_decimal(estimation.difficulty_score) / Decimal("10"))
        minimum = _to_decimal(estimation.estimated_hours) * self.rate_per_hour
        return Money.of(max(adjusted, minimum), self.currency)


DIFFICULTY_MULTIPLIERS = {
    DifficultyLevel.EASY: Decimal("1.0"),
    DifficultyLevel.MEDIUM: Decimal("1.3"),
    DifficultyLevel.HARD: Decimal("1.7"),
}
QUICK_QUOTE_BASE = Decimal("500")
QUICK_QUOTE_RATE_PER_M2 = Decimal("150")
MAX_SQUARE_METERS = 100_000


# PUBLIC_INTERFACE
def quick_quote(square_meters: float, difficulty: DifficultyLevel, currency: str = "ARS") -> Money:
    """Flat estimate shown before booking: 500 + m2 * 150 * difficulty multiplier."""
    if not math.isfinite(square_meters) or square_meters <= 0:
        raise BadUserInputError("Los metros cuadrados deben ser mayores a 0")
    if square_meters > MAX_SQUARE_METERS:
        raise BadUserInputError(f"Los metros cuadrados no pueden superar {MAX_SQUARE_METERS}")
    multiplier = DIFFICULTY_MULTIPLIERS[DifficultyLevel(difficulty)]
    amount = QUICK_QUOTE_BASE + _to_decimal(square_meters) * QUICK_QUOTE_RATE_PER_M2 * multiplier
    return Money.of(amount, currency)


class PriceIncrementPolicy:
    """
    Lets a client raise the offer on a job nobody has accepted yet.

    Each increment is a fixed share of the base (pre-increment) price, rounded
    to whole currency units, up to max_increments times.
    """

    def __init__(self, rate: Number = "0.10", max_increments: int = 3) -> None:
        self.rate = _to_decimal(rate)
        self.max_increments = max_increments

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "PriceIncrementPolicy":
        settings = settings or get_app_settings()
        return cls(settings.PRICE_INCREMENT_RATE, settings.MAX_PRICE_INCREMENTS)

    # PUBLIC_INTERFACE
    def next_increment(self, base: Money, count: int) -> Money:
        """Amount to add for the next increment; BadUserInputError once the limit is reached."""
        if count >= self.max_increments:
            raise BadUserInputError(f"Límite de incrementos alcanzado ({self.max_increments})")
        increment = (base.amount * self.rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return Money(increment, base.currency)

"""Table-driven fee computation for authority submissions.

A category's ``fee_schedule`` is a JSON document of decimal strings::

    {
        "currency": "MYR",
        "base_fee": "1500.00",
        "area_rate": "2.50",
        "min_fee": "1500.00",
        "max_fee": "50000.00",
        "processing_fee": "300.00",
        "late_fee": {"grace_days": 30, "rate": "0.10"},
        "expedite": {"rate": "0.50"},
        "sst_rate": "0.06"
    }

Only ``base_fee`` is required. Surcharges take either a fixed ``amount`` or a
``rate`` applied to the base line. :func:`calculate_fees` is deterministic:
the same schedule, attributes and ``submission_date`` always give the same
lines in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from archflow.exceptions import ValidationError
from archflow.models.submission import FeeType

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _decimal(rules: dict, key: str, errors: list[dict], prefix: str = "") -> Decimal | None:
    raw = rules.get(key)
    if raw is None:
        return None
    try:
        value = Decimal(str(raw))
        if not value.is_finite():
            raise InvalidOperation(raw)
    except InvalidOperation:
        errors.append({"field": f"{prefix}{key}", "message": "must be a decimal"})
        return None
    if value < 0:
        errors.append({"field": f"{prefix}{key}", "message": "must not be negative"})
        return None
    return value


@dataclass(frozen=True)
class Surcharge:
    amount: Decimal | None = None
    rate: Decimal | None = None

    def apply(self, base: Decimal) -> Decimal:
        if self.amount is not None:
            return _money(self.amount)
        return _money(base * (self.rate or ZERO))

    def describe(self, base: Decimal) -> str:
        if self.amount is not None:
            return f"fixed {_money(self.amount)}"
        return f"{self.rate} x base {base}"


@dataclass(frozen=True)
class FeeSchedule:
    base_fee: Decimal
    currency: str = "MYR"
    area_rate: Decimal | None = None
    min_fee: Decimal | None = None
    max_fee: Decimal | None = None
    processing_fee: Decimal | None = None
    late_fee: Surcharge | None = None
    late_grace_days: int = 0
    expedite: Surcharge | None = None
    sst_rate: Decimal | None = None

    @classmethod
    def from_rules(cls, rules: dict[str, Any], default_currency: str = "MYR"):
        """Parse a category fee schedule, reporting every malformed entry."""
        if not isinstance(rules, dict):
            raise ValidationError(
                "Fee schedule must be an object",
                details=[{"field": "fee_schedule", "message": "must be an object"}],
            )
        errors: list[dict] = []
        base_fee = _decimal(rules, "base_fee", errors)
        if rules.get("base_fee") is None:
            errors.append({"field": "base_fee", "message": "is required"})
        min_fee = _decimal(rules, "min_fee", errors)
        max_fee = _decimal(rules, "max_fee", errors)
        if min_fee is not None and max_fee is not None and min_fee > max_fee:
            errors.append({"field": "max_fee", "message": "must be >= min_fee"})

        late_fee = None
        late_grace_days = 0
        if rules.get("late_fee") is not None:
            late_rules = rules["late_fee"]
            late_fee = cls._surcharge(late_rules, "late_fee", errors)
            grace = late_rules.get("grace_days", 0) if isinstance(late_rules, dict) else 0
            if not isinstance(grace, int) or grace < 0:
                errors.append(
                    {"field": "late_fee.grace_days", "message": "must be an integer >= 0"}
                )
            else:
                late_grace_days = grace

        expedite = None
        if rules.get("expedite") is not None:
            expedite = cls._surcharge(rules["expedite"], "expedite", errors)

        schedule_kwargs = dict(
            currency=str(rules.get("currency") or default_currency).upper(),
            area_rate=_decimal(rules, "area_rate", errors),
            min_fee=min_fee,
            max_fee=max_fee,
            processing_fee=_decimal(rules, "processing_fee", errors),
            sst_rate=_decimal(rules, "sst_rate", errors),
        )
        if errors:
            raise ValidationError("Invalid fee schedule", details=errors)
        return cls(
            base_fee=base_fee,
            late_fee=late_fee,
            late_grace_days=late_grace_days,
            expedite=expedite,
            **schedule_kwargs,
        )

    @staticmethod
    def _surcharge(rules: Any, name: str, errors: list[dict]) -> Surcharge | None:
        if not isinstance(rules, dict):
            errors.append({"field": name, "message": "must be an object"})
            return None
        amount = _decimal(rules, "amount", errors, prefix=f"{name}.")
        rate = _decimal(rules, "rate", errors, prefix=f"{name}.")
        if (amount is None) == (rate is None):
            errors.append(
                {"field": name, "message": "set exactly one of amount or rate"}
            )
            return None
        return Surcharge(amount=amount, rate=rate)


@dataclass(frozen=True)
class FeeLine:
    fee_type: FeeType
    description: str
    amount: Decimal
    currency: str
    calculation: str


@dataclass(frozen=True)
class FeeCalculation:
    fees: tuple[FeeLine, ...]
    currency: str

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.fees), ZERO)


def calculate_fees(
    rules: dict[str, Any],
    *,
    submission_date: date,
    built_up_area: Decimal | None = None,
    lodgement_deadline: date | None = None,
    expedite: bool = False,
    default_currency: str = "MYR",
) -> FeeCalculation:
    """Compute the ordered fee lines for one submission."""
    schedule = FeeSchedule.from_rules(rules, default_currency=default_currency)
    currency = schedule.currency
    lines: list[FeeLine] = []

    base = schedule.base_fee
    calculation = f"base {_money(schedule.base_fee)}"
    if schedule.area_rate is not None and built_up_area is not None:
        base = base + schedule.area_rate * Decimal(built_up_area)
        calculation += f" + {schedule.area_rate} x {built_up_area} sqm"
    if schedule.min_fee is not None and base < schedule.min_fee:
        base = schedule.min_fee
        calculation += f", raised to minimum {_money(schedule.min_fee)}"
    if schedule.max_fee is not None and base > schedule.max_fee:
        base = schedule.max_fee
        calculation += f", capped at maximum {_money(schedule.max_fee)}"
    base = _money(base)
    lines.append(
        FeeLine(FeeType.base, "Submission fee", base, currency, calculation)
    )

    if schedule.processing_fee:
        lines.append(
            FeeLine(
                FeeType.processing,
                "Processing fee",
                _money(schedule.processing_fee),
                currency,
                f"fixed {_money(schedule.processing_fee)}",
            )
        )

    if schedule.late_fee is not None and lodgement_deadline is not None:
        grace_end = lodgement_deadline + timedelta(days=schedule.late_grace_days)
        if submission_date > grace_end:
            days_late = (submission_date - grace_end).days
            lines.append(
                FeeLine(
                    FeeType.late,
                    "Late lodgement surcharge",
                    schedule.late_fee.apply(base),
                    currency,
                    f"{schedule.late_fee.describe(base)}; "
                    f"{days_late} day(s) after grace period ending {grace_end.isoformat()}",
                )
            )

    if expedite:
        if schedule.expedite is None:
            raise ValidationError(
                "This category does not offer expedited processing",
                details=[{"field": "expedite", "message": "not offered"}],
            )
        lines.append(
            FeeLine(
                FeeType.expedite,
                "Expedited processing surcharge",
                schedule.expedite.apply(base),
                currency,
                schedule.expedite.describe(base),
            )
        )

    if schedule.sst_rate:
        taxable = sum((line.amount for line in lines), ZERO)
        lines.append(
            FeeLine(
                FeeType.sst,
                "Sales and service tax",
                _money(taxable * schedule.sst_rate),
                currency,
                f"{schedule.sst_rate} x {taxable}",
            )
        )

    return FeeCalculation(fees=tuple(lines), currency=currency)

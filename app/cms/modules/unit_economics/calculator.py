"""
Unit-economics formulas behind the calculator widget and the contact-form teaser.

Everything here is pure arithmetic over plain numbers; no Flask, no database.
Rounding follows the widget: money to 2 decimals, percentages to 1 decimal,
halves rounded up.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Mapping

CURRENCIES = ("EUR", "USD", "RUB")

# Marketplace commission bands, percent of the sale price.
CATEGORY_COMMISSIONS: dict[str, tuple[float, float]] = {
    "electronics": (8, 15),
    "clothing": (12, 25),
    "books": (5, 8),
    "cosmetics": (15, 30),
    "home": (10, 20),
    "sports": (12, 18),
}

# Projected cost reductions; costs not listed stay as they are.
OPTIMIZATION_FACTORS = {
    "marketplace_commission": 0.9,
    "advertising": 0.8,
    "returns": 0.7,
    "fulfillment": 0.95,
}

IMPROVEMENT_SHARE = 0.25
DEFAULT_ESTIMATE_REVENUE = 50000
DEFAULT_ESTIMATE_MARGIN = 15

# camelCase keys sent by the widget, and the older per-marketplace name.
_ALIASES = {
    "ozonCommission": "marketplace_commission",
    "ozon_commission": "marketplace_commission",
    "marketplaceCommission": "marketplace_commission",
    "monthlyRevenue": "monthly_revenue",
    "currentMargin": "current_margin",
    "averageOrderValue": "average_order_value",
    "conversionRate": "conversion_rate",
}


class CalculatorInputError(ValueError):
    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half toward +infinity at `digits` places, so 2.5 becomes 3 and -2.5 becomes -2."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _number(raw: Any, name: str, errors: list[str]) -> float | None:
    if isinstance(raw, bool):
        errors.append(f"{name} must be a number.")
        return None
    try:
        n = float(raw)
    except (TypeError, ValueError):
        errors.append(f"{name} must be a number.")
        return None
    if math.isnan(n) or math.isinf(n):
        errors.append(f"{name} must be a finite number.")
        return None
    return n


def _canonical(data: Mapping[str, Any]) -> dict[str, Any]:
    return {_ALIASES.get(k, k): v for k, v in data.items()}


@dataclass(frozen=True)
class UnitInputs:
    revenue: float = 100
    cogs: float = 45
    marketplace_commission: float = 12
    fulfillment: float = 8
    advertising: float = 15
    returns: float = 5
    storage: float = 2
    payment: float = 2
    packaging: float = 3
    other: float = 2

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UnitInputs":
        """Missing keys take the widget defaults; present keys are validated."""
        data = _canonical(data)
        errors: list[str] = []
        values: dict[str, float] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] in (None, ""):
                continue
            n = _number(data[f.name], f.name, errors)
            if n is not None:
                values[f.name] = n
        inputs = cls(**values)
        if not errors:
            errors = inputs.validate()
        if errors:
            raise CalculatorInputError(errors)
        return inputs

    def costs(self) -> dict[str, float]:
        return {k: v for k, v in asdict(self).items() if k != "revenue"}

    def validate(self) -> list[str]:
        errors = []
        if self.revenue <= 0:
            errors.append("revenue must be greater than 0.")
        for name, value in self.costs().items():
            if value < 0:
                errors.append(f"{name} must not be negative.")
        return errors


@dataclass(frozen=True)
class BasicInputs:
    monthly_revenue: float = 50000
    current_margin: float = 15
    average_order_value: float = 75
    conversion_rate: float = 2.5

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BasicInputs":
        data = _canonical(data)
        errors: list[str] = []
        values: dict[str, float] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] in (None, ""):
                continue
            n = _number(data[f.name], f.name, errors)
            if n is not None:
                values[f.name] = n
        inputs = cls(**values)
        if not errors:
            errors = inputs.validate()
        if errors:
            raise CalculatorInputError(errors)
        return inputs

    def validate(self) -> list[str]:
        errors = []
        if self.monthly_revenue < 0:
            errors.append("monthly_revenue must not be negative.")
        if not 0 <= self.current_margin < 100:
            errors.append("current_margin must be between 0 and 100 (exclusive).")
        if self.average_order_value < 0:
            errors.append("average_order_value must not be negative.")
        if not 0 <= self.conversion_rate <= 100:
            errors.append("conversion_rate must be between 0 and 100.")
        return errors


def calculate_unit_economics(inputs: UnitInputs) -> dict[str, Any]:
    errors = inputs.validate()
    if errors:
        raise CalculatorInputError(errors)

    costs = inputs.costs()
    total_costs = sum(costs.values())
    profit = inputs.revenue - total_costs
    margin = profit / inputs.revenue * 100
    roi = profit / total_costs * 100 if total_costs else None

    optimized = {k: v * OPTIMIZATION_FACTORS.get(k, 1) for k, v in costs.items()}
    optimized_total = sum(optimized.values())
    optimized_profit = inputs.revenue - optimized_total
    optimized_margin = optimized_profit / inputs.revenue * 100
    improvement = optimized_profit - profit

    advertising = inputs.advertising
    optimized_advertising = optimized["advertising"]

    return {
        "total_costs": round_half_up(total_costs, 2),
        "profit": round_half_up(profit, 2),
        "margin": round_half_up(margin, 1),
        "roi": round_half_up(roi, 1) if roi is not None else None,
        "optimized_costs": {k: round_half_up(v, 2) for k, v in optimized.items()},
        "optimized_total_costs": round_half_up(optimized_total, 2),
        "optimized_profit": round_half_up(optimized_profit, 2),
        "optimized_margin": round_half_up(optimized_margin, 1),
        "improvement": round_half_up(improvement, 2),
        "improvement_percent": int(round_half_up(improvement / profit * 100)) if profit else None,
        "roas": round_half_up(inputs.revenue / advertising, 2) if advertising else None,
        "optimized_roas": (
            round_half_up(inputs.revenue / optimized_advertising, 2) if optimized_advertising else None
        ),
    }


def calculate_basic_metrics(inputs: BasicInputs) -> dict[str, Any]:
    errors = inputs.validate()
    if errors:
        raise CalculatorInputError(errors)

    current_profit = inputs.monthly_revenue * (inputs.current_margin / 100)
    potential_improvement = current_profit * IMPROVEMENT_SHARE
    optimized_margin = inputs.current_margin * (1 + IMPROVEMENT_SHARE)
    break_even_price = inputs.average_order_value / (1 - inputs.current_margin / 100)

    return {
        "current_profit": int(round_half_up(current_profit)),
        "potential_improvement": int(round_half_up(potential_improvement)),
        "optimized_margin": round_half_up(optimized_margin, 1),
        "break_even_price": round_half_up(break_even_price, 2),
        "annual_potential": int(round_half_up(potential_improvement * 12)),
    }


def estimate_improvement(revenue: Any = None, margin: Any = None) -> int:
    """Monthly gain teaser on the contact form: a quarter of current profit."""
    errors: list[str] = []
    rev = DEFAULT_ESTIMATE_REVENUE if revenue in (None, "") else _number(revenue, "revenue", errors)
    mar = DEFAULT_ESTIMATE_MARGIN if margin in (None, "") else _number(margin, "margin", errors)
    if not errors:
        if rev < 0:
            errors.append("revenue must not be negative.")
        if not 0 <= mar < 100:
            errors.append("margin must be between 0 and 100 (exclusive).")
    if errors:
        raise CalculatorInputError(errors)
    return int(round_half_up(rev * (mar / 100) * IMPROVEMENT_SHARE))


def commission_range(category: str) -> dict[str, Any]:
    key = (category or "").strip().lower()
    if key not in CATEGORY_COMMISSIONS:
        raise CalculatorInputError(
            f"Unknown category {category!r}. Must be one of: {', '.join(CATEGORY_COMMISSIONS)}"
        )
    lo, hi = CATEGORY_COMMISSIONS[key]
    return {"category": key, "min": lo, "max": hi}


def build_report(
    *,
    currency: str,
    category: str,
    basic: BasicInputs,
    unit: UnitInputs,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Export payload for the "download report" button."""
    errors = []
    cur = (currency or "").strip().upper()
    if cur not in CURRENCIES:
        errors.append(f"Unknown currency {currency!r}. Must be one of: {', '.join(CURRENCIES)}")
    cat = (category or "").strip().lower()
    if cat not in CATEGORY_COMMISSIONS:
        errors.append(f"Unknown category {category!r}. Must be one of: {', '.join(CATEGORY_COMMISSIONS)}")
    if errors:
        raise CalculatorInputError(errors)

    ts = now or datetime.now(timezone.utc)
    return {
        "timestamp": ts.isoformat(),
        "filename": f"unit-economics-report-{ts.date().isoformat()}.json",
        "currency": cur,
        "category": cat,
        "commission_range": commission_range(cat),
        "basic_data": asdict(basic),
        "unit_economics": asdict(unit),
        "calculations": {
            "basic": calculate_basic_metrics(basic),
            "unit": calculate_unit_economics(unit),
        },
    }

"""
Derived Financials Calculator

Profit, technician commission and shop profit for a maintenance job.

compute_derived() is the single source of truth for stored job financials:
- Inputs coerced to numbers, anything non-numeric counts as 0
- profit = amount_charged - part_cost (may be negative)
- tech_commission = max(0, profit * tech_percent) (never negative)
- shop_profit = profit - tech_commission
- No rounding; presentation layers round

calc_profit / calc_tech_commission / calc_shop_profit are the older helpers
kept for existing call sites. They round to 2 decimals and calc_profit floors
at 0, so on losses they disagree with compute_derived.
"""

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Mapping, Optional


@dataclass
class DerivedFinancials:
    """Derived job financials"""
    profit: float
    tech_commission: float
    shop_profit: float

    def to_record(self) -> Dict[str, float]:
        return asdict(self)


def to_number(value: Any) -> float:
    """Coerce a stored/user value to float; None, NaN and junk become 0"""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return 0.0
    else:
        return 0.0
    return 0.0 if math.isnan(number) else number


def compute_derived(part_cost: Any, amount_charged: Any, tech_percent: Any = 0) -> DerivedFinancials:
    pc = to_number(part_cost)
    ac = to_number(amount_charged)
    tp = to_number(tech_percent)  # default 0% unless explicitly set

    profit = ac - pc
    tech_commission = max(0.0, profit * tp)
    shop_profit = profit - tech_commission
    return DerivedFinancials(profit=profit, tech_commission=tech_commission, shop_profit=shop_profit)


def sum_part_costs(parts: Iterable[Any]) -> float:
    """Total of part_cost over a parts list; parts may be dicts or JobPart models"""
    total = 0.0
    for part in parts:
        if isinstance(part, Mapping):
            total += to_number(part.get("part_cost"))
        else:
            total += to_number(getattr(part, "part_cost", None))
    return total


def derive_total_part_cost(changes: Mapping[str, Any], current: Optional[Mapping[str, Any]] = None) -> float:
    """
    Resolve the total part cost for a job write.

    Precedence, checked in `changes` first and then in `current`:
    non-empty parts list (summed), explicit total_part_cost, legacy part_cost.
    Falls back to 0.
    """
    for source in (changes, current):
        if not source:
            continue
        parts = source.get("parts")
        if isinstance(parts, list) and len(parts) > 0:
            return sum_part_costs(parts)
        if "total_part_cost" in source:
            return to_number(source["total_part_cost"])
        if "part_cost" in source:
            return to_number(source["part_cost"])
    return 0.0


# ============== Legacy helpers ==============

def calc_profit(part_cost: Any, amount_charged: Any) -> float:
    return max(0.0, round(to_number(amount_charged) - to_number(part_cost), 2))


def calc_tech_commission(profit: Any, percent: Any) -> float:
    return round(to_number(profit) * to_number(percent), 2)


def calc_shop_profit(profit: Any, tech_commission: Any) -> float:
    return round(to_number(profit) - to_number(tech_commission), 2)

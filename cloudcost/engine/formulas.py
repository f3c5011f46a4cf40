"""Cost formulas shared by the pricing resolvers.

Everything here is pure arithmetic. Unbounded results (runway with no net
burn, burn multiple with no new revenue) are returned as ``math.inf``; the
resolvers turn those into JSON-safe sentinels before anything is serialized.
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

Tier = Tuple[float, float]  # (cumulative limit in GB, rate per GB)


# AI models

def calculate_ai_model_cost(input_tokens: float, output_tokens: float,
                            input_per_million: float, output_per_million: float) -> Dict[str, float]:
    input_cost = round(input_tokens / 1_000_000 * input_per_million, 4)
    output_cost = round(output_tokens / 1_000_000 * output_per_million, 4)
    return {
        "input_cost": input_cost,
        "output_cost": output_cost,
        "total_cost": round(input_cost + output_cost, 4),
    }


def calculate_cost_per_million(input_per_million: float, output_per_million: float,
                               input_ratio: float = 0.5) -> float:
    """Blended rate for a million tokens split ``input_ratio`` / rest."""
    return input_per_million * input_ratio + output_per_million * (1 - input_ratio)


def calculate_batch_savings(normal_cost: float, discount: float) -> Dict[str, float]:
    batch_cost = normal_cost * (1 - discount)
    return {
        "batch_cost": round(batch_cost, 2),
        "savings": round(normal_cost - batch_cost, 2),
        "savings_percent": discount * 100,
    }


# Compute

def calculate_compute_cost(hourly_rate: float, hours: float, region_multiplier: float = 1.0) -> Dict[str, float]:
    adjusted = hourly_rate * region_multiplier
    monthly = adjusted * hours
    return {
        "hourly": round(adjusted, 4),
        "monthly": round(monthly, 2),
        "yearly": round(monthly * 12, 2),
    }


def calculate_reserved_savings(on_demand_monthly: float, discount: float) -> Dict[str, float]:
    reserved = on_demand_monthly * (1 - discount)
    savings = on_demand_monthly - reserved
    return {
        "reserved_monthly": round(reserved, 2),
        "monthly_savings": round(savings, 2),
        "yearly_savings": round(savings * 12, 2),
    }


# Storage

def calculate_storage_cost(gb: float, rate_per_gb: float, months: int = 1) -> Dict[str, float]:
    total = gb * rate_per_gb * months
    return {
        "total_cost": round(total, 2),
        "monthly_average": round(total / months, 2) if months else 0.0,
    }


def calculate_tiering_savings(total_gb: float, hot_fraction: float,
                              hot_rate: float, cold_rate: float) -> Dict[str, float]:
    """Savings from keeping ``hot_fraction`` hot and archiving the rest."""
    current = total_gb * hot_rate
    optimized = total_gb * hot_fraction * hot_rate + total_gb * (1 - hot_fraction) * cold_rate
    return {
        "current_cost": round(current, 2),
        "optimized_cost": round(optimized, 2),
        "savings": round(current - optimized, 2),
    }


# Bandwidth

def _gb_label(value: float) -> str:
    return f"{value:g}"


def calculate_bandwidth_cost(gb: float, tiers: Sequence[Tier]) -> Dict[str, Any]:
    """Bill ``gb`` against cumulative tiers, filling each before the next.

    Tiers must be in ascending limit order. The last limit may be
    ``math.inf``. GB beyond the last finite limit are not billed.
    """
    remaining = gb
    total = 0.0
    previous = 0.0
    breakdown: List[Dict[str, Any]] = []

    for limit, rate in tiers:
        if remaining <= 0:
            break
        in_tier = min(remaining, limit - previous)
        if in_tier > 0:
            cost = in_tier * rate
            label = f"{_gb_label(previous)}+ GB" if math.isinf(limit) else f"{_gb_label(previous)}-{_gb_label(limit)} GB"
            breakdown.append({"tier": label, "gb": in_tier, "rate": rate, "cost": round(cost, 2)})
            total += cost
            remaining -= in_tier
        previous = limit

    return {"total_cost": round(total, 2), "breakdown": breakdown}


# Forecasting and runway

def forecast_cost(base_cost: float, growth_rate: float, months: int) -> Dict[str, Any]:
    projections = []
    total = 0.0
    for month in range(1, months + 1):
        cost = base_cost * (1 + growth_rate) ** month
        projections.append({"month": month, "cost": round(cost, 2)})
        total += cost
    return {
        "projected_cost": projections[-1]["cost"] if projections else round(base_cost, 2),
        "total_spend": round(total, 2),
        "projections": projections,
    }


def calculate_runway(cash: float, monthly_burn: float, monthly_revenue: float = 0) -> Dict[str, Any]:
    """Months of runway at the current net burn.

    ``break_even_month`` estimates when revenue covers burn assuming 10%
    month-over-month revenue growth; it is None when that can't be known.
    """
    net_burn = monthly_burn - monthly_revenue
    if net_burn <= 0:
        return {"runway_months": math.inf, "net_burn": round(net_burn, 2), "break_even_month": 0}

    break_even: Optional[int] = None
    if monthly_revenue > 0 and monthly_burn > monthly_revenue:
        break_even = math.ceil(math.log(monthly_burn / monthly_revenue) / math.log(1.1))

    return {
        "runway_months": round(cash / net_burn, 1),
        "net_burn": round(net_burn, 2),
        "break_even_month": break_even,
    }


def calculate_burn_multiple(net_burn: float, new_mrr: float) -> Dict[str, Any]:
    if new_mrr <= 0:
        return {"burn_multiple": math.inf, "efficiency": "concerning"}

    multiple = net_burn / new_mrr
    if multiple < 1:
        efficiency = "excellent"
    elif multiple < 2:
        efficiency = "good"
    elif multiple < 3:
        efficiency = "fair"
    else:
        efficiency = "concerning"
    return {"burn_multiple": round(multiple, 2), "efficiency": efficiency}


# Break-even

def calculate_break_even(option_a: Dict[str, float], option_b: Dict[str, float]) -> Dict[str, Any]:
    """Month at which two (upfront, monthly) cost options cross.

    ``break_even_months`` is None when the lines never cross; ``winner`` is
    "A", "B" or None when neither option dominates.
    """
    up_a, mo_a = option_a["upfront"], option_a["monthly"]
    up_b, mo_b = option_b["upfront"], option_b["monthly"]

    if mo_a == mo_b:
        if up_a == up_b:
            return {"break_even_months": 0, "winner": None,
                    "description": "Options cost the same upfront and monthly"}
        winner = "A" if up_a < up_b else "B"
        return {"break_even_months": 0, "winner": winner,
                "description": f"Option {winner} has lower upfront cost with equal monthly costs"}

    months = (up_b - up_a) / (mo_a - mo_b)

    if months < 0:
        if up_a <= up_b and mo_a <= mo_b:
            return {"break_even_months": None, "winner": "A", "description": "Option A is always cheaper"}
        if up_b <= up_a and mo_b <= mo_a:
            return {"break_even_months": None, "winner": "B", "description": "Option B is always cheaper"}
        return {"break_even_months": None, "winner": None, "description": "No break-even point"}

    # After the crossover the option with the lower monthly cost is ahead.
    winner = "A" if mo_a < mo_b else "B"
    return {
        "break_even_months": round(months, 1),
        "winner": winner,
        "description": f"Break-even at {math.ceil(months)} months",
    }


_QUALITY_WEIGHTS = {
    "flagship": 1.0,
    "reasoning": 1.2,
    "balanced": 0.9,
    "cost_optimized": 0.7,
    "embedding": 0.5,
}


def calculate_efficiency_score(cost_per_million: float, category: str) -> int:
    """0-100 score where cheaper models score higher, weighted by model class."""
    base = max(0.0, 100 - cost_per_million * 5)
    return round(base * _QUALITY_WEIGHTS.get(category, 1.0))

# Database tier and break-even tools
import math
from typing import Any, Dict

from ..engine import formulas, pricing
from ..engine.catalog import catalog_from
from ..engine.insights import insight
from .ai_models import INSIGHTS_SCHEMA

DB_PROVIDERS = ["supabase", "mongodb", "neon", "planetscale"]

RECOMMEND_TIER_SCHEMA = {
  "title": "Database Tier Recommendation",
  "description": "Cheapest managed database tier that holds current storage, with a six month growth projection",
  "inputSchema": {
    "type": "object",
    "properties": {
      "provider": { "type": "string", "enum": DB_PROVIDERS, "default": "supabase" },
      "current_usage": {
        "type": "object",
        "properties": {
          "storage_gb": { "type": "number", "minimum": 0, "default": 1 },
          "connection_count": { "type": "number", "minimum": 0, "default": 10 },
          "queries_per_second": { "type": "number", "minimum": 0 }
        },
        "required": ["storage_gb"],
        "default": {}
      },
      "expected_growth": { "type": "number", "minimum": 0, "maximum": 10, "default": 0.2 }
    },
    "required": ["provider", "current_usage"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "recommended_tier": { "type": "string" },
      "recommended_cost": { "type": "number" },
      "growth_buffer": { "type": "string" },
      "next_scale_point": { "type": "string" },
      "projected_usage": { "type": "object" },
      "alternatives": { "type": "array" },
      "degraded": { "type": "boolean" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["recommended_tier", "recommended_cost"]
  }
}


def recommend_tier(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    provider = args["provider"]
    tiers = catalog_from(ctx).plans(provider)
    usage = args["current_usage"]
    storage = float(usage["storage_gb"])
    growth = float(args["expected_growth"])

    def first_holding(gb: float):
        for t in tiers:
            if t.limits.get("storage", 0) >= gb:
                return t
        return None

    best = first_holding(storage)
    degraded = best is None
    if degraded:
        best = tiers[-1]

    projected = storage * (1 + growth) ** 6
    future = first_holding(projected) or tiers[-1]

    limit = best.limits.get("storage")
    insights = [insight("action", f"Use {best.name} tier (${best.monthly_cost:g}/mo) for current needs")]
    if limit is None:
        growth_buffer = "Storage limit not published for this tier"
        insights.append(insight("warning", f"{provider} {best.name} has no published storage limit; verify capacity"))
    else:
        headroom = pricing.safe_ratio(limit - storage, limit) * 100
        growth_buffer = f"{round(headroom)}% headroom before needing upgrade"

    # Months until current storage outgrows the tier at the expected growth rate
    if limit is not None and limit <= storage:
        upgrade_in = 0
    elif limit is None or math.isinf(limit) or storage <= 0 or growth <= 0:
        upgrade_in = pricing.UNBOUNDED
    else:
        upgrade_in = math.ceil(math.log(limit / storage) / math.log(1 + growth))
    if upgrade_in == pricing.UNBOUNDED:
        insights.append(insight("prediction", "No tier upgrade expected at the current growth rate"))
    else:
        insights.append(insight("prediction", f"At {round(growth * 100)}% growth, "
                                              f"expect tier upgrade in ~{upgrade_in} months"))
    if degraded:
        insights.insert(0, insight("warning", f"No {provider} tier holds {storage:g} GB; "
                                              f"showing the largest tier ({best.name})"))

    return {
        "provider": provider,
        "current_usage": usage,
        "recommended_tier": best.name,
        "recommended_cost": best.monthly_cost,
        "tier_limits": best.limits_for_output(),
        "growth_buffer": growth_buffer,
        "next_scale_point": f"Upgrade to {future.name} (${future.monthly_cost:g}/mo) in ~6 months at current growth"
        if future.name != best.name else "Current tier supports growth for 12+ months",
        "months_until_upgrade": upgrade_in,
        "projected_usage": {
            "in_six_months": round(projected, 2),
            "tier": future.name,
            "cost": future.monthly_cost,
        },
        "alternatives": [
            {
                "option": t.name,
                "why_not": "Insufficient capacity for current usage" if t.monthly_cost < best.monthly_cost
                else "Over-provisioned for current needs",
                "cost_difference": round(t.monthly_cost - best.monthly_cost, 2),
            }
            for t in tiers if t.name != best.name
        ],
        "degraded": degraded,
        "degraded_reason": f"Usage exceeds every {provider} tier" if degraded else None,
        "insights": insights,
    }


def _option(description: str, default: Dict[str, Any]) -> Dict[str, Any]:
    return {
      "type": "object",
      "description": description,
      "properties": {
        "name": { "type": "string" },
        "upfront_cost": { "type": "number", "minimum": 0 },
        "monthly_cost": { "type": "number", "minimum": 0 }
      },
      "required": ["name", "upfront_cost", "monthly_cost"],
      "default": default
    }


BREAK_EVEN_SCHEMA = {
  "title": "Break-even Analysis",
  "description": "When an upfront-plus-monthly option pays off against another, with totals over a horizon",
  "inputSchema": {
    "type": "object",
    "properties": {
      "option_a": _option("First option", { "name": "On-demand", "upfront_cost": 0, "monthly_cost": 500 }),
      "option_b": _option("Second option", { "name": "Reserved", "upfront_cost": 3000, "monthly_cost": 200 }),
      "time_horizon": { "type": "integer", "minimum": 1, "maximum": 60, "default": 24 }
    },
    "required": ["option_a", "option_b"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "break_even_point": { "type": ["number", "null"] },
      "winner": { "type": "string" },
      "savings_over_period": { "type": "number" },
      "sensitivity_analysis": { "type": "array" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["break_even_point", "winner"]
  }
}


def break_even(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    a, b = args["option_a"], args["option_b"]
    horizon = int(args["time_horizon"])
    result = formulas.calculate_break_even(
        {"upfront": float(a["upfront_cost"]), "monthly": float(a["monthly_cost"])},
        {"upfront": float(b["upfront_cost"]), "monthly": float(b["monthly_cost"])},
    )
    months = result["break_even_months"]

    total_a = a["upfront_cost"] + a["monthly_cost"] * horizon
    total_b = b["upfront_cost"] + b["monthly_cost"] * horizon
    if total_a == total_b:
        winner = "tie"
    else:
        winner = a["name"] if total_a < total_b else b["name"]
    savings = abs(total_a - total_b)

    sensitivity = []
    if months is not None:
        sensitivity = [
            {"variable": "Time horizon +50%", "change_percent": 50, "new_break_even": round(months * 0.67, 1)},
            {"variable": "Monthly cost +20%", "change_percent": 20, "new_break_even": round(months * 1.2, 1)},
            {"variable": "Monthly cost -20%", "change_percent": -20, "new_break_even": round(months * 0.8, 1)},
        ]

    if winner == "tie":
        framework = f"Both options cost ${round(total_a)} over {horizon} months; choose on other factors."
    elif months is not None and months < horizon:
        framework = (f"Break-even at {math.ceil(months)} months. If planning to use for {horizon} months, "
                     f"{winner} saves ${round(savings)}.")
    else:
        framework = f"{winner} is better across typical time horizons."

    return {
        "option_a": {**a, "total_cost_at_horizon": round(total_a, 2)},
        "option_b": {**b, "total_cost_at_horizon": round(total_b, 2)},
        "break_even_point": months,
        "break_even_description": result["description"],
        "time_horizon": horizon,
        "winner": winner,
        "savings_over_period": round(savings, 2),
        "decision_framework": framework,
        "sensitivity_analysis": sensitivity,
        "insights": [
            insight("action", f"Choose {winner} for ${round(savings)} savings over {horizon} months"
                    if winner != "tie" else f"No cost difference over {horizon} months"),
            insight("prediction", f"Investment pays off after {math.ceil(months)} months"
                    if months else "One option dominates across all scenarios"),
        ],
    }

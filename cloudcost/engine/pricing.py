"""Pricing resolvers: catalog lookups combined with the cost formulas.

Resolvers are pure functions of ``(catalog, request)``. Lookup misses raise
:class:`~cloudcost.errors.UnknownIdentifierError`; degraded answers are
flagged in the returned dict instead of raised.
"""

import math
from typing import Any, Dict, List, Optional

from . import formulas
from .catalog import CLOUD_PROVIDERS, ModelPrice, PriceCatalog
from .insights import (compare_providers, compute_insights, cost_reductions, insight,
                       model_insights, runway_insights)

UNBOUNDED = "unbounded"
NOT_APPLICABLE = "not_applicable"

LATENCY_ORDER = ["low", "medium", "high"]

# Rough hourly rates used when an equivalent instance isn't in a provider's
# catalog. Any use is reported in ``fallback_pricing``.
ESTIMATED_HOURLY = {"aws": 0.0416, "azure": 0.0448, "gcp": 0.0386}

INSTANCE_EQUIVALENTS = {
    "t3.micro": {"aws": "t3.micro", "azure": "B1s", "gcp": "e2-micro"},
    "t3.small": {"aws": "t3.small", "azure": "B1ms", "gcp": "e2-small"},
    "t3.medium": {"aws": "t3.medium", "azure": "B2s", "gcp": "e2-medium"},
    "t3.large": {"aws": "t3.large", "azure": "B2ms", "gcp": "e2-standard-2"},
    "m6i.large": {"aws": "m6i.large", "azure": "D2s_v5", "gcp": "n2-standard-2"},
    "m6i.xlarge": {"aws": "m6i.xlarge", "azure": "D4s_v5", "gcp": "n2-standard-4"},
}

# Per-GB monthly hot storage and small managed database rates for comparisons
STORAGE_COMPARE_RATES = {"aws": 0.023, "azure": 0.0184, "gcp": 0.020}
DATABASE_COMPARE_RATES = {
    "aws": {"hourly": 0.017, "per_gb": 0.115},
    "azure": {"hourly": 0.018, "per_gb": 0.115},
    "gcp": {"hourly": 0.0105, "per_gb": 0.17},
}

HIDDEN_COSTS = [
    {"provider": "aws", "item": "NAT Gateway", "monthly_cost": 45, "description": "Required for private subnet internet access"},
    {"provider": "azure", "item": "Load Balancer", "monthly_cost": 22, "description": "Standard LB charges per rule"},
    {"provider": "gcp", "item": "Cloud NAT", "monthly_cost": 32, "description": "NAT gateway for private GKE"},
]

CREDIT_PROGRAMS = [
    {"provider": "aws", "program": "AWS Activate", "value": "$100k", "eligibility": "VC-backed or accelerator"},
    {"provider": "azure", "program": "Azure for Startups", "value": "$150k", "eligibility": "Through partners"},
    {"provider": "gcp", "program": "Google for Startups", "value": "$200k", "eligibility": "Series A or earlier"},
]


def finite_or(value: float, sentinel: str = UNBOUNDED):
    """Replace inf/NaN with a JSON-safe sentinel string."""
    if isinstance(value, float) and (math.isinf(value) or math.isnan(value)):
        return sentinel
    return value


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    if not denominator:
        return default
    return numerator / denominator


# AI models

def _blended(m: ModelPrice, input_ratio: float = 0.5) -> float:
    return formulas.calculate_cost_per_million(m.input_per_million, m.output_per_million, input_ratio)


def _compare_note(alt_cost: float, current: float) -> str:
    if current <= 0:
        return "same cost" if alt_cost == current else "more expensive"
    if alt_cost < current:
        return f"{round((1 - alt_cost / current) * 100)}% cheaper"
    return f"{round((alt_cost / current - 1) * 100)}% more expensive"


def rank_alternatives(catalog: PriceCatalog, provider: str, current: ModelPrice,
                      input_tokens: float, output_tokens: float) -> List[Dict[str, Any]]:
    """Every other model from the same provider priced for the same request, cheapest first."""
    ranked = []
    for m in catalog.models.get(provider, {}).values():
        if m.name == current.name:
            continue
        cost = formulas.calculate_ai_model_cost(input_tokens, output_tokens,
                                                m.input_per_million, m.output_per_million)["total_cost"]
        ranked.append({"model": m.name, "cost": cost})
    ranked.sort(key=lambda a: a["cost"])
    return ranked


def estimate_token_cost(catalog: PriceCatalog, provider: str, model: str,
                        input_tokens: float, output_tokens: float, top_n: int = 3) -> Dict[str, Any]:
    price = catalog.model(provider, model)
    costs = formulas.calculate_ai_model_cost(input_tokens, output_tokens,
                                             price.input_per_million, price.output_per_million)
    total = costs["total_cost"]

    ranked = rank_alternatives(catalog, provider, price, input_tokens, output_tokens)
    top = ranked[:top_n]
    insights = model_insights(price.name, input_tokens + output_tokens, total, top)

    if provider == "anthropic":
        discount = price.batch_discount if price.batch_discount is not None else 0.5
        batch = formulas.calculate_batch_savings(total, discount)
        if batch["savings"] > 0:
            insights.insert(0, insight("opportunity",
                                       f"Batch API saves ${batch['savings']:.2f} ({round(discount * 100)}% discount)",
                                       batch["savings"]))
        tips = [
            f"Batch API offers {round(discount * 100)}% discount for async processing",
            "Use prompt caching for repeated system prompts",
            "Claude 3.5 Haiku is ideal for high-volume simple tasks",
        ]
    else:
        tips = [
            "Use prompt caching for repeated context (up to 90% savings)",
            "Batch non-urgent requests for 50% discount",
            "Consider fine-tuning for specialized tasks",
        ]

    return {
        "model": price.name,
        "requested_model": model,
        "provider": provider,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        **costs,
        "currency": "USD",
        "cost_per_1m": round(_blended(price), 4),
        "alternatives": [
            {
                "option": a["model"],
                "why_not": _compare_note(a["cost"], total),
                "cost_difference": round(a["cost"] - total, 4),
            }
            for a in top
        ],
        "switch_candidates": [a for a in ranked if a["cost"] < total],
        "insights": insights,
        "optimization_tips": tips,
    }


def _model_quality(m: ModelPrice) -> int:
    if m.provider == "anthropic":
        return {"flagship": 92, "premium": 95}.get(m.category, 72)
    return {"flagship": 90, "reasoning": 95}.get(m.category, 70)


def _chat_models(catalog: PriceCatalog) -> List[ModelPrice]:
    return [m for p in ("openai", "anthropic") for m in catalog.models.get(p, {}).values() if _blended(m) > 0]


def recommend_model(task_type: str, budget: float, latency: str,
                    candidates: List[Dict[str, Any]]) -> Dict[str, Any]:
    max_latency = LATENCY_ORDER.index(latency)
    eligible = [m for m in candidates if LATENCY_ORDER.index(m["latency"]) <= max_latency]
    affordable = [m for m in eligible if m["cost"] <= budget]

    if not affordable:
        cheapest = sorted(eligible, key=lambda m: m["cost"])
        return {
            "model": cheapest[0]["name"] if cheapest else None,
            "reasoning": "Budget constraint too tight - recommending cheapest option that meets latency requirement",
            "confidence": "low",
            "degraded": True,
            "degraded_reason": f"No model within ${budget:g}/1M budget",
            "alternatives": [
                {"option": m["name"], "why_not": f"Costs ${m['cost']:g}/1M tokens vs ${budget:g} budget",
                 "cost_difference": round(m["cost"] - budget, 4)}
                for m in cheapest[1:4]
            ],
        }

    for m in affordable:
        fit = 50 if task_type in m["best_for"] else 0
        m["score"] = fit + m["quality"] - safe_ratio(m["cost"], budget) * 20
    affordable.sort(key=lambda m: m["score"], reverse=True)
    winner = affordable[0]
    fits = task_type in winner["best_for"]

    return {
        "model": winner["name"],
        "reasoning": f"Best cost/performance for {task_type} within budget" if fits
        else "Best available option within constraints",
        "confidence": "high" if fits else "medium",
        "degraded": False,
        "alternatives": [
            {
                "option": m["name"],
                "why_not": f"Higher cost (${m['cost']:g}/1M) for similar performance" if task_type in m["best_for"]
                else f"Not optimized for {task_type} tasks",
                "cost_difference": round(m["cost"] - winner["cost"], 4),
            }
            for m in affordable[1:4]
        ],
    }


def suggest_model(catalog: PriceCatalog, task_type: str, budget: float, latency: str) -> Dict[str, Any]:
    candidates = [
        {"name": m.name, "provider": m.provider, "cost": _blended(m), "latency": m.latency
         if m.latency in LATENCY_ORDER else "medium", "quality": _model_quality(m), "best_for": m.best_for}
        for m in _chat_models(catalog)
    ]
    result = recommend_model(task_type, budget, latency, candidates)
    if result["model"] is None:
        return {
            "recommended_model": None,
            "provider": None,
            "reasoning": f"No model meets the '{latency}' latency requirement",
            "confidence": "low",
            "degraded": True,
            "degraded_reason": f"No model meets the '{latency}' latency requirement",
            "alternatives": [],
            "insights": [insight("warning", "Relax the latency requirement to get a recommendation")],
        }

    selected = next(c for c in candidates if c["name"] == result["model"])
    return {
        "recommended_model": selected["name"],
        "provider": selected["provider"],
        "reasoning": result["reasoning"],
        "confidence": result["confidence"],
        "degraded": result["degraded"],
        "degraded_reason": result.get("degraded_reason"),
        "cost_per_1m": round(selected["cost"], 4),
        "alternatives": result["alternatives"],
        "break_even_point": f"Switch to higher-tier model if accuracy improvement >5% is worth "
                            f"${max(budget - selected['cost'], 0):.2f}/1M tokens",
        "insights": [
            insight("action", f"For {task_type} tasks, {selected['name']} offers best value at "
                              f"${selected['cost']:.2f}/1M tokens"),
            insight("benchmark", f"{selected['name']} handles {', '.join(selected['best_for'])} well"),
        ],
    }


QUALITY_COST_MATRIX = [
    {"model": "gpt-4o / claude-3-5-sonnet", "quality": "high", "cost_tier": "moderate",
     "recommendation": "Complex tasks requiring nuanced understanding"},
    {"model": "o1 / claude-3-opus", "quality": "high", "cost_tier": "expensive",
     "recommendation": "Only for advanced reasoning and research"},
    {"model": "gpt-4o-mini / claude-3-5-haiku", "quality": "medium", "cost_tier": "cheap",
     "recommendation": "High-volume production workloads"},
]


def compare_models(catalog: PriceCatalog, task_type: str, limit: int = 10) -> Dict[str, Any]:
    scored = []
    for m in _chat_models(catalog):
        cost = _blended(m)
        score = (100 if task_type in m.best_for else 50) - cost
        scored.append((score, cost, m))
    scored.sort(key=lambda s: s[0], reverse=True)

    if not scored:
        return {
            "rankings": [],
            "winner": None,
            "reasoning": "No models available for comparison",
            "quality_cost_matrix": [],
            "insights": [insight("warning", "No models found matching the criteria")],
        }

    _, win_cost, winner = scored[0]
    return {
        "rankings": [
            {
                "rank": i + 1,
                "model": m.name,
                "provider": m.provider,
                "cost_per_1m": round(cost, 4),
                "efficiency_score": round(score),
                "best_for": m.best_for,
            }
            for i, (score, cost, m) in enumerate(scored[:limit])
        ],
        "winner": winner.name,
        "reasoning": f"{winner.name} is optimized for {task_type} at ${win_cost:.2f}/1M tokens"
        if task_type in winner.best_for else f"{winner.name} offers best overall value for this task type",
        "quality_cost_matrix": QUALITY_COST_MATRIX,
        "insights": [
            insight("action", f"Use {winner.name} as your primary model for {task_type}"),
            insight("opportunity", "Route simple requests to cheaper models for 70%+ savings"),
        ],
    }


# Compute

def estimate_compute(catalog: PriceCatalog, provider: str, instance_type: str,
                     hours: float, region: Optional[str] = None,
                     utilization_percent: Optional[float] = None) -> Dict[str, Any]:
    pricing = catalog.compute_pricing(provider)
    instance = pricing.find_instance(instance_type)
    multiplier, known_region = pricing.region_multiplier(region)

    cost = formulas.calculate_compute_cost(instance.hourly_rate, hours, multiplier)
    one_year = formulas.calculate_reserved_savings(cost["monthly"], pricing.reserved_discounts["1_year"])
    three_year = formulas.calculate_reserved_savings(cost["monthly"], pricing.reserved_discounts["3_year"])

    insights = compute_insights(instance_type, cost["monthly"], utilization_percent)
    if not known_region:
        insights.insert(0, insight("warning", f"No price multiplier for region '{region}'; "
                                              f"priced at the base rate"))
    if pricing.assumed_discounts:
        insights.append(insight("warning", "Reserved pricing uses assumed 30%/50% discounts"))

    return {
        "provider": provider,
        "instance_type": instance_type,
        "region": region,
        "region_multiplier": multiplier,
        "region_fallback": not known_region,
        "hourly_cost": cost["hourly"],
        "monthly_cost": cost["monthly"],
        "yearly_cost": cost["yearly"],
        "specs": {"vcpu": instance.vcpu, "memory_gb": instance.memory_gb, "category": instance.category},
        "reserved_savings": {
            "one_year": one_year["reserved_monthly"],
            "three_year": three_year["reserved_monthly"],
            "one_year_yearly_savings": one_year["yearly_savings"],
            "three_year_yearly_savings": three_year["yearly_savings"],
        },
        "recommendations": [
            {
                "action": f"Consider {instance_type} reserved instance",
                "reasoning": "Predictable workloads benefit from reservations",
                "confidence": "medium",
                "savings_estimate": one_year["yearly_savings"],
                "implementation_effort": "trivial",
                "tradeoffs": ["Commitment required", "Less flexibility"],
            }
        ],
        "insights": insights,
    }


def compare_cloud_cost(catalog: PriceCatalog, service_type: str, usage: Dict[str, Any]) -> Dict[str, Any]:
    hours = usage.get("hours") or 730
    gb = usage.get("gb") or 100
    costs: Dict[str, float] = {}
    fallback: List[str] = []

    if service_type == "compute":
        instance_type = usage.get("instance_type") or "t3.medium"
        mapping = INSTANCE_EQUIVALENTS.get(instance_type, {p: instance_type for p in CLOUD_PROVIDERS})
        for provider in CLOUD_PROVIDERS:
            pricing = catalog.compute_pricing(provider)
            try:
                instance = pricing.find_instance(mapping[provider])
            except LookupError:
                costs[provider] = round(hours * ESTIMATED_HOURLY[provider], 2)
                fallback.append(provider)
                continue
            costs[provider] = formulas.calculate_compute_cost(instance.hourly_rate, hours)["monthly"]
    elif service_type == "storage":
        costs = {p: round(gb * rate, 2) for p, rate in STORAGE_COMPARE_RATES.items()}
    else:
        costs = {p: round(hours * r["hourly"] + gb * r["per_gb"], 2) for p, r in DATABASE_COMPARE_RATES.items()}

    comparison = compare_providers(costs, usage.get("workload_type") or "web-app")
    used_defaults = not any(usage.get(k) for k in ("instance_type", "hours", "gb"))
    prefix = "Based on typical usage (730 hrs, 100GB): " if used_defaults else ""

    insights = [
        insight("action", comparison["considerations"][0]),
        insight("opportunity", comparison["considerations"][2]),
    ]
    if fallback:
        insights.insert(0, insight("warning", f"No equivalent instance in the {', '.join(fallback)} catalog; "
                                              f"monthly cost is an estimate"))
    if used_defaults:
        insights.append(insight("action", "Provide instance_type, hours, and gb for more accurate comparison"))

    return {
        "service_type": service_type,
        "winner": comparison["winner"],
        "monthly_cost": costs,
        "fallback_pricing": fallback,
        "reasoning": prefix + comparison["reasoning"],
        "hidden_costs": HIDDEN_COSTS,
        "credit_programs": CREDIT_PROGRAMS,
        "insights": insights,
    }


# Runway and burn

BURN_BENCHMARKS = {
    "excellent": "Top 10% of startups",
    "good": "Top quartile",
    "fair": "Median",
    "concerning": "Below median",
}


def forecast_runway(monthly_cost: float, monthly_revenue: float, cash: float,
                    growth_rate: float = 0.1) -> Dict[str, Any]:
    runway = formulas.calculate_runway(cash, monthly_cost, monthly_revenue)
    # New MRR approximated as 10% of current revenue
    multiple = formulas.calculate_burn_multiple(monthly_cost - monthly_revenue, monthly_revenue * 0.1)
    projection = formulas.forecast_cost(monthly_cost, growth_rate, 12)
    months = runway["runway_months"]

    if math.isinf(months):
        decision_points = []
    else:
        decision_points = [
            {"month": max(1, math.floor(months - 6)), "event": "Start fundraising",
             "action": "Begin investor outreach"},
            {"month": max(1, math.floor(months - 3)), "event": "Critical runway",
             "action": "Aggressive cost cutting or bridge round"},
        ]

    if growth_rate > 0.05:
        trajectory = "increasing"
    elif growth_rate < -0.05:
        trajectory = "decreasing"
    else:
        trajectory = "stable"

    return {
        "runway_months": finite_or(months),
        "net_burn": runway["net_burn"],
        "break_even_month": runway["break_even_month"],
        "burn_rate": {
            "current": runway["net_burn"],
            "projected": round(projection["projected_cost"] - monthly_revenue * (1 + growth_rate) ** 12, 2),
        },
        "trajectory": trajectory,
        "decision_points": decision_points,
        "investor_metrics": {
            "burn_multiple": finite_or(multiple["burn_multiple"], NOT_APPLICABLE),
            "efficiency": multiple["efficiency"],
            "benchmark": BURN_BENCHMARKS[multiple["efficiency"]],
        },
        "insights": runway_insights(months, monthly_cost, growth_rate),
    }


def _time_to_implement(effort: str) -> str:
    return {"trivial": "1-2 days", "moderate": "1-2 weeks"}.get(effort, "1+ month")


def recommend_cost_reduction(services: List[Dict[str, Any]], target_reduction: float = 0.2) -> Dict[str, Any]:
    total_burn = sum(s["cost"] for s in services)
    strategies = [
        {
            "strategy": r["action"],
            "annual_savings": r["savings_estimate"],
            "implementation_effort": r["implementation_effort"],
            "time_to_implement": _time_to_implement(r["implementation_effort"]),
            "risks": r["tradeoffs"],
            "priority": i + 1,
        }
        for i, r in enumerate(cost_reductions(services, total_burn))
    ]
    quick_wins = [s for s in strategies if s["implementation_effort"] == "trivial"]
    total_savings = round(sum(s["annual_savings"] for s in strategies), 2)
    reduction = safe_ratio(total_savings / 12, total_burn)

    return {
        "monthly_burn": total_burn,
        "strategies": strategies,
        "total_potential_savings": total_savings,
        "quick_wins": quick_wins,
        "meets_target": reduction >= target_reduction,
        "insights": [
            insight("action", f"Start with quick wins for immediate "
                              f"${sum(q['annual_savings'] for q in quick_wins):.0f} annual savings"),
            insight("prediction", f"Full optimization could reduce burn by {round(reduction * 100)}%"),
        ],
    }

# SaaS and startup burn tools
from typing import Any, Dict, List

from ..engine import pricing
from ..engine.catalog import Plan, catalog_from
from ..engine.insights import insight, stage_recommendations
from .ai_models import INSIGHTS_SCHEMA

CATEGORIES = ["ai", "compute", "storage", "database", "saas", "other"]
SAAS_SERVICES = ["vercel", "supabase", "mongodb", "cloudflare", "railway", "neon", "planetscale"]
USAGE_METRICS = ["requests", "storage", "bandwidth", "compute", "connections", "functions"]

# Monthly USD by category for early-stage startups
CATEGORY_BENCHMARKS = {
    "ai": {"median": 500, "p75": 2000},
    "compute": {"median": 800, "p75": 3000},
    "storage": {"median": 100, "p75": 500},
    "database": {"median": 200, "p75": 800},
    "saas": {"median": 300, "p75": 1000},
}
_DEFAULT_BENCHMARK = {"median": 500, "p75": 2000}

OPTIMIZATION_POTENTIAL = {"ai": 0.4, "compute": 0.35}

CALCULATE_BURN_SCHEMA = {
  "title": "SaaS Burn Calculator",
  "description": "Total monthly burn with category breakdown, top cost drivers and benchmarks",
  "inputSchema": {
    "type": "object",
    "properties": {
      "services": {
        "type": "array",
        "items": {
          "type": "object",
          "properties": {
            "name": { "type": "string" },
            "monthly_cost": { "type": "number", "minimum": 0 },
            "category": { "type": "string", "enum": CATEGORIES }
          },
          "required": ["name", "monthly_cost", "category"]
        }
      }
    },
    "required": ["services"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "monthly_burn": { "type": "number" },
      "annual_burn": { "type": "number" },
      "top_cost_drivers": { "type": "array" },
      "category_breakdown": { "type": "object" },
      "benchmark_comparison": { "type": "object" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["monthly_burn", "annual_burn", "category_breakdown"]
  }
}


def _burn_percentile(total: float) -> str:
    if total < 2000:
        return "Below median"
    if total < 5000:
        return "Median range"
    if total < 15000:
        return "Above median"
    return "Top quartile"


def calculate_burn(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    services = args["services"]
    total = sum(float(s["monthly_cost"]) for s in services)

    breakdown: Dict[str, float] = {}
    for s in services:
        breakdown[s["category"]] = breakdown.get(s["category"], 0) + float(s["monthly_cost"])

    ranked = sorted(services, key=lambda s: s["monthly_cost"], reverse=True)
    drivers = [
        {
            "service": s["name"],
            "category": s["category"],
            "monthly_cost": s["monthly_cost"],
            "percentage_of_total": round(pricing.safe_ratio(s["monthly_cost"], total) * 100),
            "optimization_potential": OPTIMIZATION_POTENTIAL.get(s["category"], 0.2),
        }
        for s in ranked[:3]
    ]

    benchmark_notes = []
    for category, cost in breakdown.items():
        bench = CATEGORY_BENCHMARKS.get(category, _DEFAULT_BENCHMARK)
        if cost > bench["p75"]:
            benchmark_notes.append(f"{category} spend (${cost:g}) is above 75th percentile - review for optimization")
        elif cost > bench["median"]:
            benchmark_notes.append(f"{category} spend is slightly above median - monitor closely")

    recommendations = []
    if drivers and drivers[0]["category"] == "ai":
        recommendations.append("Audit AI model usage - use cheaper models for simple tasks")
    if breakdown.get("compute", 0) > 500:
        recommendations.append("Consider reserved instances for stable workloads")
    if breakdown.get("storage", 0) > 100:
        recommendations.append("Implement lifecycle policies for cold data")

    top_share = sum(d["percentage_of_total"] for d in drivers)
    return {
        "monthly_burn": round(total, 2),
        "annual_burn": round(total * 12, 2),
        "top_cost_drivers": drivers,
        "category_breakdown": breakdown,
        "benchmark_comparison": {
            "total_burn_percentile": _burn_percentile(total),
            "insights": benchmark_notes,
        },
        "insights": [
            insight("benchmark", f"Total burn of ${total:g}/mo is "
                                 f"{'typical for early-stage' if total < 5000 else 'elevated for early-stage startups'}"),
            insight("opportunity", f"Top {len(drivers)} services account for {top_share}% of spend",
                    sum(d["monthly_cost"] * d["optimization_potential"] for d in drivers)),
            insight("action", "Focus optimization on top cost drivers for maximum impact"),
        ],
        "recommendations": recommendations,
    }


SUGGEST_PLAN_SCHEMA = {
  "title": "SaaS Plan Advisor",
  "description": "Cheapest plan of a service that fits the given monthly usage, with utilization of the current plan",
  "inputSchema": {
    "type": "object",
    "properties": {
      "service_name": { "type": "string", "enum": SAAS_SERVICES },
      "current_plan": { "type": "string", "minLength": 1 },
      "monthly_usage": {
        "type": "object",
        "properties": { m: { "type": "number", "minimum": 0 } for m in USAGE_METRICS },
        "additionalProperties": False,
        "default": {}
      }
    },
    "required": ["service_name", "current_plan", "monthly_usage"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "recommended_plan": { "type": "string" },
      "monthly_savings": { "type": "number" },
      "usage_analysis": { "type": "array" },
      "unverified_metrics": { "type": "array", "items": { "type": "string" } },
      "degraded": { "type": "boolean" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["recommended_plan", "monthly_savings", "usage_analysis"]
  }
}


def _plan_fits(plan: Plan, usage: Dict[str, float]) -> bool:
    # A metric the catalog has no limit for does not disqualify the plan.
    return all(plan.limits.get(metric, amount) >= amount for metric, amount in usage.items())


def suggest_plan(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    catalog = catalog_from(ctx)
    service = args["service_name"]
    plans = catalog.plans(service)
    current = catalog.plan(service, args["current_plan"])
    usage = {m: float(v) for m, v in args["monthly_usage"].items() if v}

    analysis: List[Dict[str, Any]] = []
    for metric, amount in usage.items():
        limit = current.limits.get(metric)
        if limit is None:
            continue
        analysis.append({
            "metric": metric,
            "usage": amount,
            "limit": pricing.finite_or(limit, "unlimited"),
            "utilization": round(pricing.safe_ratio(amount, limit) * 100, 1),
            "over_limit": amount > limit,
        })

    fitting = [p for p in plans if _plan_fits(p, usage)]
    degraded = not fitting
    optimal = fitting[0] if fitting else plans[-1]
    unverified = sorted(m for m in usage if m not in optimal.limits)

    savings = max(current.monthly_cost - optimal.monthly_cost, 0.0)
    over_limit = any(a["over_limit"] for a in analysis)

    insights = [
        insight("opportunity", f"Switch to {optimal.name} to save ${savings:g}/month", savings * 12)
        if savings > 0 else insight("benchmark", "Already on optimal plan for your usage"),
        insight("action", "Warning: Currently exceeding plan limits - overage charges may apply"
                if over_limit else "Usage within plan limits"),
    ]
    if degraded:
        insights.insert(0, insight("warning", f"No {service} plan covers this usage; "
                                              f"showing the largest plan ({optimal.name})"))
    if unverified:
        insights.append(insight("warning", f"{service} {optimal.name} publishes no limit for "
                                           f"{', '.join(unverified)}; verify before switching"))

    return {
        "service": service,
        "current_plan": current.name,
        "current_cost": current.monthly_cost,
        "recommended_plan": optimal.name,
        "recommended_cost": optimal.monthly_cost,
        "recommended_limits": optimal.limits_for_output(),
        "monthly_savings": savings,
        "annual_savings": savings * 12,
        "usage_analysis": analysis,
        "unverified_metrics": unverified,
        "degraded": degraded,
        "degraded_reason": f"Usage exceeds every {service} plan" if degraded else None,
        "features_lost": ["Some premium features"] if savings > 0 else [],
        "when_to_upgrade": "Consider upgrading soon - usage at 80%+ capacity"
        if any(a["utilization"] > 80 for a in analysis) else "Current plan adequate for foreseeable future",
        "insights": insights,
    }


FORECAST_RUNWAY_SCHEMA = {
  "title": "Runway Forecast",
  "description": "Months of runway, burn trajectory, fundraising decision points and burn multiple",
  "inputSchema": {
    "type": "object",
    "properties": {
      "monthly_infra_cost": { "type": "number", "minimum": 0 },
      "monthly_revenue": { "type": "number", "minimum": 0, "default": 0 },
      "cash_in_bank": { "type": "number", "minimum": 0 },
      "monthly_growth_rate": { "type": "number", "minimum": -1, "maximum": 10, "default": 0.1 }
    },
    "required": ["monthly_infra_cost", "monthly_revenue", "cash_in_bank"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "runway_months": { "type": ["number", "string"] },
      "burn_rate": { "type": "object" },
      "trajectory": { "type": "string", "enum": ["increasing", "stable", "decreasing"] },
      "decision_points": { "type": "array" },
      "investor_metrics": { "type": "object" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["runway_months", "trajectory", "investor_metrics"]
  }
}


def forecast_runway(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    return pricing.forecast_runway(float(args["monthly_infra_cost"]), float(args["monthly_revenue"]),
                                   float(args["cash_in_bank"]), float(args["monthly_growth_rate"]))


COST_BREAKDOWN_SCHEMA = {
  "title": "Cost Breakdown by Service",
  "description": "Group costs by category and compare against the budget for a startup stage",
  "inputSchema": {
    "type": "object",
    "properties": {
      "services": {
        "type": "array",
        "items": {
          "type": "object",
          "properties": {
            "name": { "type": "string" },
            "monthly_cost": { "type": "number", "minimum": 0 },
            "category": { "type": "string" }
          },
          "required": ["name", "monthly_cost", "category"]
        }
      },
      "stage": { "type": "string", "enum": ["pre-seed", "seed", "series-a", "scaling"], "default": "seed" }
    },
    "required": ["services", "stage"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "total_monthly_cost": { "type": "number" },
      "recommended_max_for_stage": { "type": "number" },
      "is_over_budget": { "type": "boolean" },
      "category_breakdown": { "type": "array" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["total_monthly_cost", "is_over_budget", "category_breakdown"]
  }
}


def cost_breakdown(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    stage = args["stage"]
    rec = stage_recommendations(stage)
    services = args["services"]
    total = sum(float(s["monthly_cost"]) for s in services)

    grouped: Dict[str, Dict[str, Any]] = {}
    for s in services:
        group = grouped.setdefault(s["category"], {"services": [], "total": 0.0})
        group["services"].append(s)
        group["total"] += float(s["monthly_cost"])

    over = total > rec["max_monthly_spend"]
    over_by = total - rec["max_monthly_spend"] if over else 0
    return {
        "stage": stage,
        "total_monthly_cost": round(total, 2),
        "recommended_max_for_stage": rec["max_monthly_spend"],
        "is_over_budget": over,
        "over_budget_by": round(over_by, 2),
        "category_breakdown": [
            {
                "category": category,
                "services": data["services"],
                "total_cost": round(data["total"], 2),
                "percent_of_burn": round(pricing.safe_ratio(data["total"], total) * 100),
            }
            for category, data in grouped.items()
        ],
        "stage_recommendations": rec["recommended_services"],
        "warnings": rec["warnings"],
        "insights": [
            insight("warning", f"Spending ${over_by:g}/mo over recommended for {stage}")
            if over else insight("benchmark", f"Infrastructure spend appropriate for {stage} stage"),
            insight("action", f"For {stage}: {rec['warnings'][0]}"),
        ],
    }


COST_REDUCTION_SCHEMA = {
  "title": "Cost Reduction Strategies",
  "description": "Prioritized cost reduction strategies with effort, savings and quick wins",
  "inputSchema": {
    "type": "object",
    "properties": {
      "services": {
        "type": "array",
        "items": {
          "type": "object",
          "properties": {
            "name": { "type": "string" },
            "cost": { "type": "number", "minimum": 0 },
            "category": { "type": "string" }
          },
          "required": ["name", "cost", "category"]
        }
      },
      "target_reduction": { "type": "number", "minimum": 0, "maximum": 1, "default": 0.2 }
    },
    "required": ["services"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "strategies": { "type": "array" },
      "total_potential_savings": { "type": "number" },
      "quick_wins": { "type": "array" },
      "meets_target": { "type": "boolean" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["strategies", "total_potential_savings"]
  }
}


def cost_reduction(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    services = [{**s, "cost": float(s["cost"])} for s in args["services"]]
    return pricing.recommend_cost_reduction(services, float(args["target_reduction"]))

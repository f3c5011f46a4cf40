# Cloud infrastructure cost tools
import math
from typing import Any, Dict

from ..engine import formulas, pricing
from ..engine.catalog import catalog_from
from ..engine.insights import insight
from ..errors import UnknownIdentifierError
from .ai_models import INSIGHTS_SCHEMA

PROVIDERS = ["aws", "azure", "gcp"]
WORKLOADS = ["api-heavy", "batch-processing", "ml-training", "web-app", "realtime"]

COMPARE_COST_SCHEMA = {
  "title": "Cloud Cost Comparison",
  "description": "Monthly cost of the same compute, storage or database footprint on AWS, Azure and GCP",
  "inputSchema": {
    "type": "object",
    "properties": {
      "service_type": { "type": "string", "enum": ["compute", "storage", "database"], "default": "compute" },
      "usage_profile": {
        "type": "object",
        "properties": {
          "instance_type": { "type": "string" },
          "hours": { "type": "number", "minimum": 0 },
          "gb": { "type": "number", "minimum": 0 },
          "workload_type": { "type": "string", "enum": WORKLOADS }
        },
        "default": {}
      }
    },
    "required": ["service_type"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "winner": { "type": "string", "enum": PROVIDERS },
      "monthly_cost": { "type": "object" },
      "fallback_pricing": { "type": "array", "items": { "type": "string" } },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["winner", "monthly_cost"]
  }
}


def compare_cost(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    return pricing.compare_cloud_cost(catalog_from(ctx), args["service_type"], args.get("usage_profile") or {})


ESTIMATE_COMPUTE_SCHEMA = {
  "title": "Compute Cost Estimator",
  "description": "Hourly, monthly and yearly cost of an instance with reserved pricing; "
                 "accepts t3.large, B2ms or e2-medium style names",
  "inputSchema": {
    "type": "object",
    "properties": {
      "provider": { "type": "string", "enum": PROVIDERS, "default": "aws" },
      "instance_type": { "type": "string", "minLength": 1, "default": "t3.medium" },
      "hours": { "type": "number", "minimum": 0, "default": 730 },
      "region": { "type": "string" },
      "utilization_percent": { "type": "number", "minimum": 0, "maximum": 100 }
    },
    "required": ["provider", "instance_type", "hours"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "hourly_cost": { "type": "number" },
      "monthly_cost": { "type": "number" },
      "yearly_cost": { "type": "number" },
      "reserved_savings": { "type": "object" },
      "region_fallback": { "type": "boolean" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["monthly_cost"]
  }
}


def estimate_compute(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    return pricing.estimate_compute(catalog_from(ctx), args["provider"], args["instance_type"],
                                    float(args["hours"]), args.get("region"), args.get("utilization_percent"))


ESTIMATE_STORAGE_SCHEMA = {
  "title": "Storage Cost Estimator",
  "description": "Object/block storage cost with lifecycle tiering savings",
  "inputSchema": {
    "type": "object",
    "properties": {
      "provider": { "type": "string", "enum": PROVIDERS, "default": "aws" },
      "storage_type": { "type": "string", "enum": ["standard", "ssd", "archive"], "default": "standard" },
      "gb": { "type": "number", "minimum": 0, "default": 100 },
      "duration_months": { "type": "integer", "minimum": 1, "default": 1 }
    },
    "required": ["provider", "storage_type", "gb"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "total_cost": { "type": "number" },
      "cost_per_gb": { "type": "number" },
      "potential_savings": { "type": "object" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["total_cost", "cost_per_gb"]
  }
}


def estimate_storage(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    rates = catalog_from(ctx).storage_rates(args["provider"])
    storage_type = args["storage_type"]
    gb = float(args["gb"])
    months = int(args["duration_months"])
    if storage_type not in rates:
        raise UnknownIdentifierError("service", storage_type, rates, hint=f"No {args['provider']} storage tier")

    rate = rates[storage_type]
    cost = formulas.calculate_storage_cost(gb, rate, months)
    tiering = 0.0
    if storage_type != "archive" and "archive" in rates:
        # Assume 60% of data is cold enough to archive
        tiering = formulas.calculate_tiering_savings(gb, 0.4, rate, rates["archive"])["savings"]

    return {
        "provider": args["provider"],
        "storage_type": storage_type,
        "gb": gb,
        "duration_months": months,
        **cost,
        "cost_per_gb": rate,
        "tier_recommendation": "Implement lifecycle policies to auto-move old data to archive tier"
        if gb > 100 else "Current setup is appropriate for this scale",
        "potential_savings": {
            "with_tiering": tiering,
            "with_compression": round(cost["total_cost"] * 0.3, 2),
        },
        "insights": [
            insight("opportunity", f"Archive cold data to save ~${tiering:.2f}/month", tiering)
            if tiering > 10 else insight("benchmark", "Storage costs optimized at current scale"),
            insight("action", "Enable compression for significant savings" if gb > 500
                    else "Consider intelligent tiering for automatic optimization"),
        ],
    }


ESTIMATE_BANDWIDTH_SCHEMA = {
  "title": "Bandwidth Cost Estimator",
  "description": "Tiered data transfer cost with per-tier breakdown and CDN savings",
  "inputSchema": {
    "type": "object",
    "properties": {
      "provider": { "type": "string", "enum": PROVIDERS, "default": "aws" },
      "gb_transfer": { "type": "number", "minimum": 0, "default": 100 },
      "direction": { "type": "string", "enum": ["egress", "ingress", "inter-region"], "default": "egress" }
    },
    "required": ["provider", "gb_transfer"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "total_cost": { "type": "number" },
      "breakdown": { "type": "array" },
      "potential_savings": { "type": "number" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["total_cost", "breakdown"]
  }
}


def estimate_bandwidth(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    tiers = catalog_from(ctx).bandwidth_tiers(args["provider"])
    gb = float(args["gb_transfer"])
    direction = args["direction"]
    result = formulas.calculate_bandwidth_cost(gb, tiers)
    cdn_savings = round(result["total_cost"] * 0.4, 2) if gb > 500 else 0.0

    strategies = []
    if gb > 100:
        strategies.append("Use CDN to reduce origin egress")
    if gb > 1000:
        strategies.append("Consider a CDN with free egress")
    strategies.append("Enable compression for text-based content")
    if direction == "inter-region":
        strategies.append("Colocate services to eliminate inter-region traffic")

    return {
        "provider": args["provider"],
        "gb_transferred": gb,
        "direction": direction,
        **result,
        "optimization_strategies": strategies,
        "cdn_recommendation": "A CDN plan with free egress saves more than bandwidth cost"
        if gb > 500 else "CDN may not be cost-effective at this scale",
        "potential_savings": cdn_savings,
        "insights": [
            insight("opportunity", f"CDN could save ${cdn_savings:.2f}/month on egress", cdn_savings)
            if cdn_savings > 0 else insight("benchmark", "Bandwidth costs are reasonable for your usage"),
        ],
    }


FORECAST_SCALING_SCHEMA = {
  "title": "Scaling Cost Forecast",
  "description": "Compounding monthly cost forecast with cost cliff warnings",
  "inputSchema": {
    "type": "object",
    "properties": {
      "provider": { "type": "string", "enum": PROVIDERS, "default": "aws" },
      "current_monthly_cost": { "type": "number", "minimum": 0, "default": 1000 },
      "growth_rate": { "type": "number", "minimum": -1, "maximum": 10, "default": 0.1 },
      "months": { "type": "integer", "minimum": 1, "maximum": 36, "default": 12 }
    },
    "required": ["current_monthly_cost", "growth_rate", "months"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "projected_final_cost": { "type": "number" },
      "total_spend_over_period": { "type": "number" },
      "monthly_projections": { "type": "array" },
      "cost_cliff_warnings": { "type": "array" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["projected_final_cost", "total_spend_over_period", "monthly_projections"]
  }
}


def forecast_scaling(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    base = float(args["current_monthly_cost"])
    growth = float(args["growth_rate"])
    months = int(args["months"])
    forecast = formulas.forecast_cost(base, growth, months)
    final = forecast["projected_cost"]

    cliffs = []
    prior = base
    for p in forecast["projections"]:
        if prior > 0 and p["cost"] > prior * 1.5:
            cliffs.append({
                "month": p["month"],
                "cost": p["cost"],
                "increase_percent": round((p["cost"] / prior - 1) * 100),
                "action": "Review infrastructure and negotiate enterprise pricing",
            })
        prior = p["cost"]

    reserve = base > 500
    return {
        "provider": args["provider"],
        "current_monthly_cost": base,
        "growth_rate": growth,
        "forecast_months": months,
        "projected_final_cost": final,
        "total_spend_over_period": forecast["total_spend"],
        "monthly_projections": [
            {**p, "growth_from_base": round(pricing.safe_ratio(p["cost"] - base, base) * 100, 1)}
            for p in forecast["projections"]
        ],
        "cost_cliff_warnings": cliffs,
        "renegotiation_point": "Negotiate enterprise agreement when reaching $5k/mo"
        if base > 1000 else "Consider reserved instances at $500/mo baseline",
        "reserved_instance_recommendation": {
            "recommendation": "Consider 1-year reserved instances",
            "break_even_months": 4,
            "estimated_savings": round(forecast["total_spend"] * 0.3, 2),
        } if reserve else None,
        "insights": [
            insight("prediction", f"At {growth * 100:.0f}% monthly growth, costs will reach "
                                  f"${final:.0f}/mo in {months} months"),
            insight("warning", "Consider infrastructure optimization before scaling 5x")
            if final > base * 5 else insight("benchmark", "Growth trajectory is manageable"),
            insight("action", f"Lock in reserved instances now to save ~35% over {months} months"
                    if reserve else "Stay flexible with on-demand until usage stabilizes"),
        ],
    }


RESERVED_SAVINGS_SCHEMA = {
  "title": "Reserved Instance Savings",
  "description": "1-year and 3-year reserved pricing against on-demand spend, with break-even and risk",
  "inputSchema": {
    "type": "object",
    "properties": {
      "provider": { "type": "string", "enum": PROVIDERS, "default": "aws" },
      "instance_type": { "type": "string", "default": "t3.large" },
      "current_monthly_spend": { "type": "number", "minimum": 0, "default": 500 },
      "usage_pattern": { "type": "string", "enum": ["steady", "variable", "spiky"], "default": "steady" }
    },
    "required": ["provider", "current_monthly_spend", "usage_pattern"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "with_reserved": { "type": "object" },
      "monthly_savings": { "type": "object" },
      "annual_savings": { "type": "object" },
      "recommendation": { "type": "string" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["with_reserved", "annual_savings", "recommendation"]
  }
}


def reserved_savings(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    compute = catalog_from(ctx).compute_pricing(args["provider"])
    discounts = {"one_year": compute.reserved_discounts["1_year"],
                 "three_year": compute.reserved_discounts["3_year"]}
    spend = float(args["current_monthly_spend"])
    one = formulas.calculate_reserved_savings(spend, discounts["one_year"])
    three = formulas.calculate_reserved_savings(spend, discounts["three_year"])
    pattern = args["usage_pattern"]

    if pattern == "steady":
        recommendation = "3-year reserved"
        reasoning = "Steady usage pattern indicates reliable long-term needs - maximize savings with 3-year commitment"
    elif pattern == "variable":
        recommendation = "1-year reserved"
        reasoning = "Variable usage suggests some uncertainty - 1-year offers savings with flexibility"
    else:
        recommendation = "Savings Plans"
        reasoning = "Spiky usage benefits from flexible commitment options like Savings Plans"

    one_be = math.ceil(12 * (1 - discounts["one_year"]))
    three_be = math.ceil(36 * (1 - discounts["three_year"]))
    headline = three["yearly_savings"] if pattern == "steady" else one["yearly_savings"]

    return {
        "provider": args["provider"],
        "instance_type": args.get("instance_type"),
        "current_monthly_spend": spend,
        "usage_pattern": pattern,
        "assumed_discounts": compute.assumed_discounts,
        "with_reserved": {"one_year": one["reserved_monthly"], "three_year": three["reserved_monthly"]},
        "monthly_savings": {"one_year": one["monthly_savings"], "three_year": three["monthly_savings"]},
        "annual_savings": {"one_year": one["yearly_savings"], "three_year": three["yearly_savings"]},
        "savings_percent": {
            "one_year": round(discounts["one_year"] * 100),
            "three_year": round(discounts["three_year"] * 100),
        },
        "recommendation": recommendation,
        "reasoning": reasoning,
        "break_even": {"one_year": f"{one_be} months", "three_year": f"{three_be} months"},
        "risk_analysis": {
            "downside_scenario": f"If you pivot/downsize, potential loss up to "
                                 f"${round(spend * (36 - three_be) * (1 - discounts['three_year']))} for 3-year",
            "upside_scenario": f"Stable usage saves ${round(three['yearly_savings'] * 3)} over 3 years",
        },
        "insights": [
            insight("action", f"{recommendation} saves ${round(headline)}/year"),
            insight("opportunity", "Consider mix of reserved (baseline) + on-demand (peaks)", one["yearly_savings"]),
        ] + ([insight("warning", "Reserved pricing uses assumed 30%/50% discounts")]
             if compute.assumed_discounts else []),
    }


WORKLOAD_WEIGHTS = {
    "api-heavy": {"aws": 0.4, "gcp": 0.35, "azure": 0.25},
    "batch-processing": {"gcp": 0.45, "aws": 0.35, "azure": 0.2},
    "ml-training": {"gcp": 0.5, "aws": 0.35, "azure": 0.15},
    "web-app": {"aws": 0.4, "gcp": 0.35, "azure": 0.25},
    "realtime": {"gcp": 0.45, "aws": 0.35, "azure": 0.2},
}

PROVIDER_STRENGTHS = {
    "aws": "Widest service selection and most mature ecosystem",
    "gcp": "Best for compute-heavy workloads with sustained use discounts",
    "azure": "Excellent for enterprise integrations and hybrid scenarios",
}

MULTI_CLOUD_SCHEMA = {
  "title": "Multi-Cloud Optimization",
  "description": "Workload-weighted spend distribution across providers with a migration roadmap and risks",
  "inputSchema": {
    "type": "object",
    "properties": {
      "workload_profile": {
        "type": "object",
        "properties": {
          "workload_type": { "type": "string", "enum": WORKLOADS, "default": "web-app" },
          "monthly_budget": { "type": "number", "minimum": 0, "default": 2000 },
          "primary_provider": { "type": "string", "enum": PROVIDERS, "default": "aws" }
        },
        "default": {}
      },
      "current_costs": {
        "type": "object",
        "properties": {
          "aws": { "type": "number", "minimum": 0 },
          "azure": { "type": "number", "minimum": 0 },
          "gcp": { "type": "number", "minimum": 0 }
        },
        "additionalProperties": False,
        "default": { "aws": 1000, "gcp": 500 }
      }
    }
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "current_total_spend": { "type": "number" },
      "optimized_total_spend": { "type": "number" },
      "optimal_distribution": { "type": "array" },
      "migration_roadmap": { "type": "array" },
      "risk_assessment": { "type": "array" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["current_total_spend", "optimal_distribution"]
  }
}


def multi_cloud_optimization(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    workload = args["workload_profile"]["workload_type"]
    total = sum(float(v or 0) for v in args["current_costs"].values())
    factor = 0.2
    optimized = total * (1 - factor)
    savings = total - optimized

    distribution = [
        {
            "provider": provider,
            "percentage": round(weight * 100),
            "estimated_cost": round(optimized * weight, 2),
            "reasoning": PROVIDER_STRENGTHS[provider],
        }
        for provider, weight in WORKLOAD_WEIGHTS[workload].items()
    ]

    return {
        "workload_type": workload,
        "current_total_spend": round(total, 2),
        "optimized_total_spend": round(optimized, 2),
        "potential_savings": round(savings, 2),
        "savings_percent": round(factor * 100),
        "optimal_distribution": distribution,
        "migration_roadmap": [
            {"phase": 1, "action": "Identify workloads suitable for each cloud", "timeframe": "2 weeks", "savings": 0},
            {"phase": 2, "action": "Migrate batch/dev workloads to cheapest provider", "timeframe": "4 weeks",
             "savings": round(savings * 0.3)},
            {"phase": 3, "action": "Move production workloads with proper testing", "timeframe": "8 weeks",
             "savings": round(savings * 0.5)},
            {"phase": 4, "action": "Optimize remaining workloads and negotiate contracts", "timeframe": "12 weeks",
             "savings": round(savings * 0.2)},
        ],
        "risk_assessment": [
            {"category": "Complexity", "description": "Multi-cloud adds operational complexity", "severity": "medium",
             "mitigation": "Use infrastructure-as-code and standardized tooling"},
            {"category": "Vendor Lock-in", "description": "Some services are cloud-specific", "severity": "low",
             "mitigation": "Use cloud-agnostic services where possible"},
            {"category": "Latency", "description": "Cross-cloud communication adds latency", "severity": "high",
             "mitigation": "Keep tightly-coupled services on same cloud"},
        ],
        "insights": [
            insight("opportunity", f"Multi-cloud strategy could save ${round(savings)}/month", savings * 12),
            insight("action", "Start by moving dev/test environments to cheaper provider"),
            insight("warning", "Ensure team has expertise across chosen providers"),
        ],
    }

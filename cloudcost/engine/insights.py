"""Rule-based insights attached to resolver output.

Each generator is a flat list of independent threshold checks. Insights
never change the numbers they annotate.
"""

import math
from typing import Any, Dict, List, Optional, Sequence

INSIGHT_TYPES = ("warning", "opportunity", "prediction", "benchmark", "action")

Insight = Dict[str, Any]


def insight(kind: str, message: str, impact: Optional[float] = None) -> Insight:
    if kind not in INSIGHT_TYPES:
        raise ValueError(f"Unknown insight type: {kind}")
    out: Insight = {"type": kind, "message": message}
    if impact is not None:
        out["impact"] = round(impact, 2)
    return out


def model_insights(model: str, monthly_tokens: float, monthly_cost: float,
                   alternatives: Sequence[Dict[str, Any]]) -> List[Insight]:
    insights = []
    for alt in alternatives:
        if alt["cost"] < monthly_cost * 0.7:
            savings = monthly_cost - alt["cost"]
            insights.append(insight("opportunity", f"Switching to {alt['model']} could save ${savings:.2f}/month", savings))

    if monthly_tokens > 10_000_000:
        insights.append(insight("opportunity",
                                "At your volume, consider Batch API for 50% cost reduction on non-realtime tasks",
                                monthly_cost * 0.5))

    if monthly_tokens > 50_000_000 and "mini" in model:
        insights.append(insight("warning",
                                "High volume on smaller models may hit rate limits - consider provisioned throughput"))

    if monthly_cost > 5000:
        insights.append(insight("benchmark", f"${monthly_cost:.0f}/mo is in the top 20% of AI API spend for seed-stage startups"))

    return insights


def compute_insights(instance_type: str, monthly_cost: float,
                     utilization_percent: Optional[float] = None) -> List[Insight]:
    insights = []
    if utilization_percent is not None and utilization_percent < 30:
        insights.append(insight("warning",
                                f"Instance utilization at {utilization_percent:g}% suggests overprovisioning - consider downsizing",
                                monthly_cost * 0.4))

    if monthly_cost > 200:
        reserved = monthly_cost * 0.35
        insights.append(insight("opportunity",
                                f"Reserved instances could save ~${reserved:.0f}/month with 1-year commitment",
                                reserved * 12))

    lowered = instance_type.lower()
    if "batch" in lowered or "worker" in lowered:
        insights.append(insight("action", "Batch workloads can use Spot/Preemptible instances for 60-90% savings",
                                monthly_cost * 0.7))
    return insights


def runway_insights(runway_months: float, monthly_burn: float, growth_rate: float) -> List[Insight]:
    insights = []
    if runway_months < 6:
        insights.append(insight("warning", "Critical: Less than 6 months runway - immediate action required"))
    elif runway_months < 12:
        insights.append(insight("warning", "Runway below 12 months - start fundraising conversations now"))

    # A 20% cut in burn stretches a finite runway by a fifth.
    if monthly_burn > 0 and not math.isinf(runway_months):
        extension = runway_months * 0.2
        if extension > 2:
            insights.append(insight("action", f"Cutting costs by 20% extends runway by {extension:.1f} months",
                                    monthly_burn * 0.2 * runway_months))

    if growth_rate > 0.15:
        doubling = math.ceil(math.log(2) / math.log(1 + growth_rate))
        insights.append(insight("prediction",
                                f"At {growth_rate * 100:.0f}% MoM growth, burn will double in {doubling} months"))
    return insights


def cost_reductions(services: Sequence[Dict[str, Any]], total_burn: float) -> List[Dict[str, Any]]:
    """Rule-based strategies, largest annual savings first."""

    def total(category: str) -> float:
        return sum(s["cost"] for s in services if s.get("category") == category)

    recs = []
    compute = total("compute")
    if compute > 500:
        recs.append({
            "action": "Convert on-demand compute to 1-year reserved instances",
            "reasoning": "Steady workload pattern indicates predictable compute needs",
            "confidence": "high",
            "savings_estimate": round(compute * 0.35 * 12, 2),
            "implementation_effort": "trivial",
            "tradeoffs": ["Less flexibility if needs change", "Upfront commitment required"],
        })
    ai = total("ai")
    if ai > 200:
        recs.append({
            "action": "Audit AI model usage - consider cheaper models for simple tasks",
            "reasoning": "Most API calls may not require flagship models",
            "confidence": "medium",
            "savings_estimate": round(ai * 0.4 * 12, 2),
            "implementation_effort": "moderate",
            "tradeoffs": ["Potential quality degradation", "Testing required"],
        })
    storage = total("storage")
    if storage > 100:
        recs.append({
            "action": "Implement storage lifecycle policies - move cold data to cheaper tiers",
            "reasoning": "Typically 60-80% of stored data is rarely accessed",
            "confidence": "high",
            "savings_estimate": round(storage * 0.5 * 12, 2),
            "implementation_effort": "moderate",
            "tradeoffs": ["Retrieval latency for cold data", "Initial setup time"],
        })
    if total_burn > 10000:
        recs.append({
            "action": "Conduct infrastructure audit with cloud provider",
            "reasoning": "At your spend level, you may qualify for enterprise discounts",
            "confidence": "medium",
            "savings_estimate": round(total_burn * 0.15 * 12, 2),
            "implementation_effort": "moderate",
            "tradeoffs": ["Negotiation time", "May require commitment"],
        })
    return sorted(recs, key=lambda r: r["savings_estimate"], reverse=True)


STAGES = {
    "pre-seed": {
        "max_monthly_spend": 500,
        "recommended_services": [
            "Vercel/Railway free tiers",
            "Supabase free tier",
            "GPT-4o-mini or Claude Haiku",
            "Cloudflare free CDN",
        ],
        "warnings": [
            "Avoid reserved instances - too early for commitments",
            "Use free tiers aggressively",
            "Don't over-engineer infrastructure",
        ],
    },
    "seed": {
        "max_monthly_spend": 3000,
        "recommended_services": [
            "Vercel Pro or Railway Pro",
            "Supabase Pro or PlanetScale",
            "Mix of GPT-4o-mini and GPT-4o",
            "Consider reserved instances for stable workloads",
        ],
        "warnings": ["Watch for cost creep as you scale", "Set up billing alerts", "Review spend monthly"],
    },
    "series-a": {
        "max_monthly_spend": 15000,
        "recommended_services": [
            "Direct cloud providers (AWS/GCP) for flexibility",
            "Managed databases with HA",
            "Model selection based on task complexity",
            "1-year reserved instances for baseline load",
        ],
        "warnings": [
            "Negotiate enterprise agreements",
            "Apply for startup credits",
            "Build cost allocation by team/feature",
        ],
    },
    "scaling": {
        "max_monthly_spend": 100000,
        "recommended_services": [
            "Multi-cloud for resilience",
            "Spot instances for batch workloads",
            "Consider self-hosted models for high volume",
            "3-year reserved for predictable workloads",
        ],
        "warnings": ["Hire dedicated FinOps", "Implement chargeback by team", "Quarterly optimization reviews"],
    },
}


def stage_recommendations(stage: str) -> Dict[str, Any]:
    return STAGES[stage]


WORKLOAD_NOTES = {
    "api-heavy": {
        "aws": "Best API Gateway and Lambda integration",
        "gcp": "Excellent Cloud Run for containerized APIs",
        "azure": "Strong API Management offering",
    },
    "batch-processing": {
        "aws": "Mature Spot instance market",
        "gcp": "Best preemptible pricing with sustained use",
        "azure": "Good Batch service integration",
    },
    "ml-training": {
        "aws": "Widest GPU selection",
        "gcp": "TPU access and competitive GPU pricing",
        "azure": "Best if using Azure ML ecosystem",
    },
    "web-app": {
        "aws": "Most mature ecosystem",
        "gcp": "Excellent global network",
        "azure": "Best .NET integration",
    },
    "realtime": {
        "aws": "Strong WebSocket and IoT support",
        "gcp": "Best global latency network",
        "azure": "Good SignalR for .NET apps",
    },
}

CREDIT_PROGRAMS = {
    "aws": "AWS Activate offers up to $100k in credits",
    "azure": "Azure for Startups offers up to $150k in credits",
    "gcp": "GCP for Startups offers up to $200k in credits",
}


def compare_providers(costs: Dict[str, float], workload: str = "web-app") -> Dict[str, Any]:
    ranked = sorted(costs.items(), key=lambda kv: kv[1])
    winner, lowest = ranked[0]
    second = ranked[1][1] if len(ranked) > 1 else lowest
    savings = second - lowest

    considerations = [
        WORKLOAD_NOTES[workload][winner],
        f"Saves ${savings:.2f}/month vs next cheapest" if savings > 0 else "All providers have similar pricing",
        CREDIT_PROGRAMS[winner],
    ]

    percent = round((1 - lowest / second) * 100) if second > 0 and lowest >= 0 else 0
    if percent > 0:
        reasoning = f"{winner.upper()} is {percent}% cheaper for this workload"
    elif lowest == 0 and second == 0:
        reasoning = "All providers offer this service - provide instance type and hours for accurate comparison"
    else:
        reasoning = f"{winner.upper()} offers best value for this workload"

    return {"winner": winner, "reasoning": reasoning, "considerations": considerations}

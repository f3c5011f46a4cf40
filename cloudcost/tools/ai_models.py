# AI model cost tools
from typing import Any, Dict

from ..engine import formulas, pricing
from ..engine.catalog import catalog_from
from ..engine.classifier import TaskClassifier
from ..engine.insights import insight

TASK_TYPES = ["chat", "code", "embedding", "vision", "reasoning", "classification",
              "extraction", "audio", "video", "development"]

INSIGHTS_SCHEMA = {
  "type": "array",
  "items": {
    "type": "object",
    "properties": {
      "type": { "type": "string", "enum": ["warning", "opportunity", "prediction", "benchmark", "action"] },
      "message": { "type": "string" },
      "impact": { "type": "number" }
    },
    "required": ["type", "message"]
  }
}

TOKEN_COST_OUTPUT = {
  "type": "object",
  "properties": {
    "model": { "type": "string" },
    "provider": { "type": "string" },
    "input_cost": { "type": "number" },
    "output_cost": { "type": "number" },
    "total_cost": { "type": "number" },
    "cost_per_1m": { "type": "number" },
    "alternatives": { "type": "array" },
    "switch_candidates": { "type": "array" },
    "insights": INSIGHTS_SCHEMA,
    "optimization_tips": { "type": "array", "items": { "type": "string" } }
  },
  "required": ["model", "total_cost", "input_cost", "output_cost"]
}


def _token_input(model_default: str, description: str) -> Dict[str, Any]:
    return {
      "type": "object",
      "properties": {
        "model": { "type": "string", "minLength": 1, "default": model_default, "description": description },
        "input_tokens": { "type": "number", "minimum": 0, "default": 1000 },
        "output_tokens": { "type": "number", "minimum": 0, "default": 500 }
      },
      "required": ["model", "input_tokens", "output_tokens"]
    }


ESTIMATE_OPENAI_SCHEMA = {
  "title": "OpenAI Cost Estimator",
  "description": "Cost of an OpenAI API workload with cheaper alternatives and optimization tips",
  "inputSchema": _token_input("gpt-4o", "OpenAI model name (e.g. gpt-4o, gpt-4o-mini, o1, o3-mini)"),
  "outputSchema": TOKEN_COST_OUTPUT
}

ESTIMATE_ANTHROPIC_SCHEMA = {
  "title": "Anthropic Cost Estimator",
  "description": "Cost of a Claude API workload including batch API savings; accepts short aliases like 'sonnet'",
  "inputSchema": _token_input("claude-3-5-sonnet", "Anthropic model name or alias (e.g. claude-3-5-sonnet, haiku)"),
  "outputSchema": TOKEN_COST_OUTPUT
}


def estimate_openai_cost(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    return pricing.estimate_token_cost(catalog_from(ctx), "openai", args["model"],
                                       float(args["input_tokens"]), float(args["output_tokens"]))


def estimate_anthropic_cost(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    return pricing.estimate_token_cost(catalog_from(ctx), "anthropic", args["model"],
                                       float(args["input_tokens"]), float(args["output_tokens"]))


SUGGEST_MODEL_SCHEMA = {
  "title": "Model Recommender",
  "description": "Best model for a task type within a per-million-token budget and latency tolerance",
  "inputSchema": {
    "type": "object",
    "properties": {
      "task_type": { "type": "string", "enum": TASK_TYPES, "default": "chat" },
      "budget": { "type": "number", "minimum": 0, "default": 10, "description": "Max blended USD per 1M tokens" },
      "latency_requirement": { "type": "string", "enum": ["low", "medium", "high"], "default": "medium" }
    },
    "required": ["task_type", "budget", "latency_requirement"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "recommended_model": { "type": ["string", "null"] },
      "provider": { "type": ["string", "null"] },
      "confidence": { "type": "string" },
      "degraded": { "type": "boolean" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["recommended_model", "confidence"]
  }
}


def suggest_model(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    return pricing.suggest_model(catalog_from(ctx), args["task_type"], float(args["budget"]),
                                 args["latency_requirement"])


COMPARE_MODELS_SCHEMA = {
  "title": "Model Comparison",
  "description": "Rank all models for a task type by fit and blended cost",
  "inputSchema": {
    "type": "object",
    "properties": {
      "task_type": { "type": "string", "enum": TASK_TYPES, "default": "code" }
    },
    "required": ["task_type"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "rankings": { "type": "array" },
      "winner": { "type": ["string", "null"] },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["rankings", "winner"]
  }
}


def compare_models(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    return pricing.compare_models(catalog_from(ctx), args["task_type"])


RANK_BY_EFFICIENCY_SCHEMA = {
  "title": "Cost Efficiency Ranking",
  "description": "Infer the task type from a free-text description and rank models by value for money",
  "inputSchema": {
    "type": "object",
    "properties": {
      "task": { "type": "string", "minLength": 1, "default": "building a web app with React" }
    },
    "required": ["task"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "task": { "type": "string" },
      "inferred_task_type": { "type": "string" },
      "classification": { "type": "object" },
      "efficiency_rankings": { "type": "array" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["inferred_task_type", "efficiency_rankings"]
  }
}


def _recommendation_for_rank(rank: int) -> str:
    if rank == 1:
        return "Best choice for this task"
    if rank <= 3:
        return "Good alternative"
    return "Consider only if specific features needed"


def rank_by_cost_efficiency(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    classifier = (ctx or {}).get("classifier") or TaskClassifier()
    classification = classifier.classify(args["task"])
    comparison = pricing.compare_models(catalog_from(ctx), classification.category)
    models = {m.name: m for m in catalog_from(ctx).all_models()}

    rankings = [
        {
            "rank": r["rank"],
            "model": r["model"],
            "provider": r["provider"],
            "cost_per_1m": r["cost_per_1m"],
            "efficiency_score": r["efficiency_score"],
            "value_score": formulas.calculate_efficiency_score(r["cost_per_1m"], models[r["model"]].category),
            "recommendation": _recommendation_for_rank(r["rank"]),
        }
        for r in comparison["rankings"]
    ]
    insights = list(comparison["insights"])
    if rankings:
        insights.append(insight("action", f'For "{args["task"]}", prioritize {rankings[0]["model"]} '
                                          f"for best cost-efficiency"))
    return {
        "task": args["task"],
        "inferred_task_type": classification.category,
        "classification": classification.to_dict(),
        "efficiency_rankings": rankings,
        "insights": insights,
    }


PERFORMANCE_PROFILES = {
    "chat": {"avg_latency_ms": 800, "tokens_per_second": 80},
    "code": {"avg_latency_ms": 1200, "tokens_per_second": 60},
    "embedding": {"avg_latency_ms": 100, "tokens_per_second": 1000},
    "vision": {"avg_latency_ms": 2000, "tokens_per_second": 40},
    "reasoning": {"avg_latency_ms": 5000, "tokens_per_second": 30},
    "classification": {"avg_latency_ms": 300, "tokens_per_second": 150},
    "extraction": {"avg_latency_ms": 500, "tokens_per_second": 100},
}

ESTIMATE_PERFORMANCE_SCHEMA = {
  "title": "Performance Estimator",
  "description": "Expected latency and throughput for a request size and task type",
  "inputSchema": {
    "type": "object",
    "properties": {
      "task_type": { "type": "string", "enum": TASK_TYPES, "default": "chat" },
      "token_size": { "type": "number", "minimum": 0, "default": 1000 }
    },
    "required": ["task_type", "token_size"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "estimated_latency_ms": { "type": "number" },
      "estimated_throughput": { "type": "object" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["estimated_latency_ms", "estimated_throughput"]
  }
}


def estimate_performance(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    task_type = args["task_type"]
    tokens = float(args["token_size"])
    profile = PERFORMANCE_PROFILES.get(task_type, PERFORMANCE_PROFILES["chat"])
    latency = profile["avg_latency_ms"] + tokens / profile["tokens_per_second"] * 1000
    per_minute = 60000 / latency

    bottlenecks = []
    if tokens > 4000:
        bottlenecks.append("Large context may cause increased latency")
    if task_type == "reasoning":
        bottlenecks.append("Reasoning models have higher latency by design")
    if task_type == "vision":
        bottlenecks.append("Image processing adds overhead")

    scaling = []
    if latency > 3000:
        scaling.append("Consider async processing for requests >3s")
    if tokens > 8000:
        scaling.append("Implement request chunking for large contexts")
    scaling.append("Use connection pooling for high throughput")

    return {
        "task_type": task_type,
        "token_size": tokens,
        "profile_fallback": task_type not in PERFORMANCE_PROFILES,
        "estimated_latency_ms": round(latency),
        "estimated_throughput": {
            "requests_per_minute": round(per_minute),
            "tokens_per_minute": round(per_minute * tokens),
        },
        "bottlenecks": bottlenecks,
        "scaling_recommendations": scaling,
        "insights": [
            insight("prediction", f"At {round(per_minute)} req/min, you can handle "
                                  f"~{round(per_minute * 60 * 24)} requests/day"),
        ],
    }


CATEGORY_QUALITY = {
    "flagship": 95,
    "flagship-efficient": 92,
    "premium": 96,
    "reasoning": 98,
    "balanced": 90,
    "code": 92,
    "efficient": 82,
    "speed": 75,
    "realtime": 85,
}

MIN_QUALITY = {"highest": 95, "high": 88, "medium": 80, "acceptable": 70}

MODEL_SWITCH_SCHEMA = {
  "title": "Model Switch Savings",
  "description": "Savings from moving a monthly token volume to a cheaper model that meets a quality floor",
  "inputSchema": {
    "type": "object",
    "properties": {
      "current_model": { "type": "string", "minLength": 1, "default": "gpt-4o" },
      "current_provider": { "type": "string", "enum": ["openai", "anthropic", "google"], "default": "openai" },
      "monthly_tokens": { "type": "number", "minimum": 0, "default": 1000000 },
      "quality_requirement": { "type": "string", "enum": list(MIN_QUALITY), "default": "high" }
    },
    "required": ["current_model", "current_provider", "monthly_tokens", "quality_requirement"]
  },
  "outputSchema": {
    "type": "object",
    "properties": {
      "current_monthly_cost": { "type": "number" },
      "best_alternative": { "type": ["object", "null"] },
      "all_alternatives": { "type": "array" },
      "insights": INSIGHTS_SCHEMA
    },
    "required": ["current_monthly_cost", "best_alternative"]
  }
}


def _quality(m) -> int:
    if m.category in CATEGORY_QUALITY:
        return CATEGORY_QUALITY[m.category]
    if any(k in m.name for k in ("gpt-4", "opus", "sonnet")):
        return 95
    return 80


def model_switch_savings(args: Dict[str, Any], ctx: Dict[str, Any]) -> Dict[str, Any]:
    catalog = catalog_from(ctx)
    current = catalog.model(args["current_provider"], args["current_model"])
    millions = float(args["monthly_tokens"]) / 1_000_000

    def monthly(m) -> float:
        # 3:1 input:output blend, typical for chat traffic
        return millions * formulas.calculate_cost_per_million(m.input_per_million, m.output_per_million, 0.75)

    current_cost = monthly(current)
    floor = MIN_QUALITY[args["quality_requirement"]]
    alternatives = []
    for m in catalog.all_models():
        if m.name == current.name or _quality(m) < floor:
            continue
        cost = monthly(m)
        if cost < current_cost:
            alternatives.append({
                "model": m.name,
                "provider": m.provider,
                "monthly_cost": round(cost, 2),
                "savings": round(current_cost - cost, 2),
                "quality_impact": _quality(current) - _quality(m),
            })
    alternatives.sort(key=lambda a: a["savings"], reverse=True)
    best = alternatives[0] if alternatives else None

    if best:
        insights = [insight("opportunity", f"Switch to {best['model']} for ${round(best['savings'])}/mo savings",
                            best["savings"] * 12)]
        ab_plan = [
            f"Run parallel evaluation on 1% of traffic with {best['model']}",
            "Measure key metrics: latency, accuracy, user satisfaction",
            "If metrics within 5% of baseline, gradually increase to 25%",
            "Full rollout after 2 weeks of stable performance",
        ]
        steps = [
            "Create adapter pattern to support multiple model backends",
            "Implement A/B testing infrastructure",
            "Set up monitoring for quality metrics",
            "Gradual rollout with fallback capability",
        ]
    else:
        insights = [insight("benchmark", "Current model is cost-optimal for quality requirements")]
        ab_plan = ["Current model is optimal for quality requirements"]
        steps = []
    insights.append(insight("action", "Implement model routing to use cheaper models for simple tasks"))

    return {
        "current_model": current.name,
        "current_provider": current.provider,
        "current_monthly_cost": round(current_cost, 2),
        "monthly_tokens": args["monthly_tokens"],
        "quality_requirement": args["quality_requirement"],
        "best_alternative": {
            "model": best["model"],
            "provider": best["provider"],
            "monthly_cost": best["monthly_cost"],
            "monthly_savings": best["savings"],
            "annual_savings": round(best["savings"] * 12, 2),
            "quality_delta": best["quality_impact"],
        } if best else None,
        "all_alternatives": alternatives[:5],
        "ab_test_plan": ab_plan,
        "implementation_steps": steps,
        "insights": insights,
    }

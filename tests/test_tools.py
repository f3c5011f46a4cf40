"""
Tool registry and handler tests

Calls go through the registry so argument validation, defaults and error
mapping are exercised the same way the MCP transports exercise them.
"""

import json
import os

import httpx
import pytest

from cloudcost.engine.catalog import PriceCatalog
from cloudcost.engine.classifier import TaskClassifier, ZeroShotFallback
from cloudcost.errors import ErrorCode, ToolArgumentError, UnknownIdentifierError, UnknownToolError
from cloudcost.tools.registry import TOOLS, call_tool, get_handler, list_tools


@pytest.fixture
def ctx(catalog):
    """Tool context with the bundled catalog and an offline classifier."""
    offline = ZeroShotFallback(api_key="", transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    return {"catalog": catalog, "classifier": TaskClassifier(fallback=offline)}


# Registry

def test_all_tools_registered():
    """Every tool advertises a title and both schemas."""
    tools = list_tools()
    assert len(tools) == 21
    for tool in tools:
        assert tool["title"]
        assert tool["inputSchema"]["type"] == "object"
        assert tool["outputSchema"]["type"] == "object"
    assert {t["name"].split(".")[0] for t in tools} == {"ai", "cloud", "saas", "db", "finance"}


def test_unknown_tool():
    """Unknown tool names raise before any handler runs."""
    with pytest.raises(UnknownToolError):
        get_handler("ai.estimate_mistral_cost")
    with pytest.raises(UnknownToolError):
        call_tool("ai.estimate_mistral_cost", {})


def test_defaults_applied(ctx):
    """Omitted arguments take their schema defaults."""
    result = call_tool("ai.estimate_openai_cost", {}, ctx)
    assert result["model"] == "gpt-4o"
    assert result["total_cost"] == 0.0075


def test_negative_tokens_rejected(ctx):
    """Validation errors name the offending field."""
    with pytest.raises(ToolArgumentError) as exc:
        call_tool("ai.estimate_openai_cost", {"input_tokens": -5}, ctx)
    assert exc.value.field == "input_tokens"
    assert exc.value.to_payload()["error"] == "validation_error"


def test_missing_required_argument(ctx):
    """Required arguments without defaults are reported by name."""
    with pytest.raises(ToolArgumentError) as exc:
        call_tool("saas.suggest_plan", {}, ctx)
    assert exc.value.field == "service_name"


def test_nested_field_path(ctx):
    """Nested validation errors use a dotted path."""
    args = {"service_name": "supabase", "current_plan": "pro", "monthly_usage": {"storage": -1}}
    with pytest.raises(ToolArgumentError) as exc:
        call_tool("saas.suggest_plan", args, ctx)
    assert exc.value.field == "monthly_usage.storage"


def test_arguments_must_be_object(ctx):
    """A non-object arguments value is rejected as a whole."""
    with pytest.raises(ToolArgumentError) as exc:
        call_tool("ai.estimate_openai_cost", ["gpt-4o"], ctx)
    assert exc.value.field == ""


def test_handler_errors_propagate(ctx):
    """Catalog misses surface as structured errors."""
    with pytest.raises(UnknownIdentifierError) as exc:
        call_tool("ai.estimate_openai_cost", {"model": "gpt-9"}, ctx)
    assert exc.value.code == ErrorCode.UNKNOWN_MODEL


# AI tools

def test_anthropic_alias_tool(ctx):
    """The Anthropic estimator accepts short aliases."""
    result = call_tool("ai.estimate_anthropic_cost", {"model": "haiku"}, ctx)
    assert result["model"] == "claude-3-5-haiku-20241022"


def test_rank_by_cost_efficiency_infers_task(ctx):
    """The task description is classified before ranking."""
    result = call_tool("ai.rank_by_cost_efficiency", {"task": "debug my python function"}, ctx)
    assert result["inferred_task_type"] == "code"
    assert result["efficiency_rankings"][0]["rank"] == 1
    assert result["efficiency_rankings"][0]["recommendation"] == "Best choice for this task"


def test_compare_models(ctx):
    """Rankings are numbered from one and name a winner."""
    result = call_tool("ai.compare_models", {"task_type": "code"}, ctx)
    assert result["winner"] == result["rankings"][0]["model"]
    assert len(result["rankings"]) <= 10


def test_estimate_performance(ctx):
    """Latency grows with token size."""
    result = call_tool("ai.estimate_performance", {"task_type": "chat", "token_size": 1000}, ctx)
    assert result["estimated_latency_ms"] == 13300
    assert result["estimated_throughput"]["requests_per_minute"] == 5


def test_model_switch_savings(ctx):
    """The largest saving that meets the quality floor is picked."""
    result = call_tool("ai.model_switch_savings", {"current_model": "gpt-4o", "current_provider": "openai",
                                                   "monthly_tokens": 1_000_000, "quality_requirement": "high"}, ctx)
    assert result["current_monthly_cost"] == pytest.approx(4.38, abs=0.01)
    assert result["best_alternative"]["model"] == "o3-mini"
    assert all(a["savings"] > 0 for a in result["all_alternatives"])


def test_model_switch_no_cheaper_model(ctx):
    """The cheapest qualifying model has no alternative."""
    result = call_tool("ai.model_switch_savings", {"current_model": "gpt-4o-mini", "current_provider": "openai",
                                                   "monthly_tokens": 1_000_000, "quality_requirement": "highest"}, ctx)
    assert result["best_alternative"] is None
    assert result["implementation_steps"] == []


# Cloud tools

def test_estimate_storage_tiering(ctx):
    """Standard storage reports archive tiering savings."""
    result = call_tool("cloud.estimate_storage", {"provider": "aws", "storage_type": "standard", "gb": 1000}, ctx)
    assert result["total_cost"] == 23.0
    assert result["potential_savings"]["with_tiering"] == pytest.approx(11.4)
    assert result["potential_savings"]["with_compression"] == pytest.approx(6.9)
    assert result["insights"][0]["type"] == "opportunity"


def test_estimate_storage_archive_has_no_tiering(ctx):
    """Archive data can't be tiered further."""
    result = call_tool("cloud.estimate_storage", {"provider": "aws", "storage_type": "archive", "gb": 1000}, ctx)
    assert result["potential_savings"]["with_tiering"] == 0.0


def test_estimate_bandwidth_tiers(ctx):
    """Transfer spills across AWS egress tiers."""
    result = call_tool("cloud.estimate_bandwidth", {"provider": "aws", "gb_transfer": 15000}, ctx)
    assert result["total_cost"] == pytest.approx(1325.0)
    assert len(result["breakdown"]) == 2
    assert result["potential_savings"] == pytest.approx(530.0)


def test_forecast_scaling_cliffs(ctx):
    """A month costing more than 1.5x the month before is a cliff."""
    result = call_tool("cloud.forecast_scaling", {"current_monthly_cost": 1000, "growth_rate": 0.6, "months": 3}, ctx)
    assert [p["cost"] for p in result["monthly_projections"]] == [1600.0, 2560.0, 4096.0]
    assert [c["month"] for c in result["cost_cliff_warnings"]] == [1, 2, 3]
    assert result["reserved_instance_recommendation"] is not None


def test_forecast_scaling_steady_growth(ctx):
    """Ordinary growth has no cliffs."""
    result = call_tool("cloud.forecast_scaling", {"current_monthly_cost": 200, "growth_rate": 0.1, "months": 12}, ctx)
    assert result["cost_cliff_warnings"] == []
    assert result["reserved_instance_recommendation"] is None
    assert result["monthly_projections"][0]["growth_from_base"] == 10.0


def test_reserved_savings_steady(ctx):
    """Steady usage recommends a 3-year term."""
    result = call_tool("cloud.reserved_savings", {"provider": "aws", "current_monthly_spend": 1000,
                                                  "usage_pattern": "steady"}, ctx)
    assert result["with_reserved"] == {"one_year": 650.0, "three_year": 450.0}
    assert result["monthly_savings"]["three_year"] == 550.0
    assert result["annual_savings"]["three_year"] == 6600.0
    assert result["recommendation"] == "3-year reserved"
    assert result["break_even"] == {"one_year": "8 months", "three_year": "17 months"}


def test_reserved_savings_spiky(ctx):
    """Spiky usage points to Savings Plans."""
    result = call_tool("cloud.reserved_savings", {"provider": "gcp", "current_monthly_spend": 1000,
                                                  "usage_pattern": "spiky"}, ctx)
    assert result["recommendation"] == "Savings Plans"


def test_reserved_savings_follows_catalog_discounts(pricing_dir):
    """Reserved savings and compute estimates read the same catalog discounts."""
    path = os.path.join(pricing_dir, "aws_compute.json")
    with open(path) as f:
        doc = json.load(f)
    doc["reserved_discounts"] = {"1_year": 0.4, "3_year": 0.6}
    with open(path, "w") as f:
        json.dump(doc, f)
    edited = {"catalog": PriceCatalog.load(pricing_dir)}

    compute = call_tool("cloud.estimate_compute", {"provider": "aws", "instance_type": "t3.medium", "hours": 730}, edited)
    result = call_tool("cloud.reserved_savings", {"provider": "aws", "current_monthly_spend": compute["monthly_cost"],
                                                  "usage_pattern": "steady"}, edited)
    assert result["savings_percent"] == {"one_year": 40, "three_year": 60}
    assert result["assumed_discounts"] is False
    assert result["with_reserved"]["one_year"] == compute["reserved_savings"]["one_year"]
    assert result["with_reserved"]["three_year"] == compute["reserved_savings"]["three_year"]


def test_compare_cost_tool(ctx):
    """The compare tool reports fallback providers."""
    result = call_tool("cloud.compare_cost", {"service_type": "compute",
                                              "usage_profile": {"instance_type": "t3.medium", "hours": 730}}, ctx)
    assert result["winner"] == "gcp"
    assert result["fallback_pricing"] == []


def test_multi_cloud_defaults(ctx):
    """Nested defaults fill the workload profile."""
    result = call_tool("cloud.multi_cloud_optimization", {}, ctx)
    assert result["workload_type"] == "web-app"
    assert result["current_total_spend"] == 1500
    assert result["optimized_total_spend"] == 1200
    assert sum(d["percentage"] for d in result["optimal_distribution"]) == 100


def test_multi_cloud_no_spend(ctx):
    """Zero spend still produces a plan."""
    result = call_tool("cloud.multi_cloud_optimization", {"current_costs": {}}, ctx)
    assert result["current_total_spend"] == 0
    assert result["potential_savings"] == 0


def test_multi_cloud_rejects_unknown_provider(ctx):
    """Only aws, azure and gcp costs are accepted."""
    with pytest.raises(ToolArgumentError) as exc:
        call_tool("cloud.multi_cloud_optimization", {"current_costs": {"oracle": 100}}, ctx)
    assert exc.value.field == "current_costs"


# SaaS tools

def test_calculate_burn(ctx):
    """Burn is broken down by category with top drivers first."""
    result = call_tool("saas.calculate_burn", {"services": [
        {"name": "OpenAI", "monthly_cost": 3000, "category": "ai"},
        {"name": "AWS", "monthly_cost": 1000, "category": "compute"},
    ]}, ctx)
    assert result["monthly_burn"] == 4000
    assert result["annual_burn"] == 48000
    assert result["top_cost_drivers"][0]["service"] == "OpenAI"
    assert result["top_cost_drivers"][0]["percentage_of_total"] == 75
    assert result["category_breakdown"] == {"ai": 3000, "compute": 1000}
    assert result["benchmark_comparison"]["total_burn_percentile"] == "Median range"
    assert len(result["recommendations"]) == 2


def test_calculate_burn_no_services(ctx):
    """An empty service list has zero burn."""
    result = call_tool("saas.calculate_burn", {"services": []}, ctx)
    assert result["monthly_burn"] == 0
    assert result["top_cost_drivers"] == []


def test_suggest_plan_upgrade(ctx):
    """Usage over the current plan's limit recommends the first plan that fits."""
    result = call_tool("saas.suggest_plan", {"service_name": "supabase", "current_plan": "pro",
                                             "monthly_usage": {"storage": 20}}, ctx)
    assert result["recommended_plan"] == "team"
    assert result["monthly_savings"] == 0
    assert result["degraded"] is False
    assert result["usage_analysis"][0]["utilization"] == 250.0
    assert result["usage_analysis"][0]["over_limit"] is True


def test_suggest_plan_degraded(ctx):
    """When no plan fits, the largest plan is returned and flagged."""
    result = call_tool("saas.suggest_plan", {"service_name": "mongodb", "current_plan": "m10",
                                             "monthly_usage": {"storage": 100}}, ctx)
    assert result["recommended_plan"] == "m30"
    assert result["degraded"] is True
    assert result["degraded_reason"]
    assert result["insights"][0]["type"] == "warning"


def test_suggest_plan_unverified_metric(ctx):
    """A metric the catalog has no limit for is listed, not disqualifying."""
    result = call_tool("saas.suggest_plan", {"service_name": "supabase", "current_plan": "free",
                                             "monthly_usage": {"requests": 1000}}, ctx)
    assert result["recommended_plan"] == "free"
    assert result["unverified_metrics"] == ["requests"]
    assert result["insights"][-1]["type"] == "warning"


def test_suggest_plan_unlimited_limit(ctx):
    """Unlimited plans fit any amount and report 'unlimited'."""
    result = call_tool("saas.suggest_plan", {"service_name": "cloudflare", "current_plan": "free",
                                             "monthly_usage": {"requests": 500000}}, ctx)
    assert result["recommended_plan"] == "pro"
    assert result["recommended_limits"] == {"requests": "unlimited"}
    assert result["usage_analysis"][0]["over_limit"] is True


def test_suggest_plan_unknown_plan(ctx):
    """Unknown plan names list the valid ones."""
    with pytest.raises(UnknownIdentifierError) as exc:
        call_tool("saas.suggest_plan", {"service_name": "vercel", "current_plan": "enterprise",
                                        "monthly_usage": {}}, ctx)
    assert exc.value.code == ErrorCode.UNKNOWN_PLAN
    assert exc.value.valid == ["hobby", "pro"]


def test_forecast_runway_tool(ctx):
    """Profitable startups have unbounded runway."""
    result = call_tool("saas.forecast_runway", {"monthly_infra_cost": 5000, "monthly_revenue": 8000,
                                                "cash_in_bank": 10000}, ctx)
    assert result["runway_months"] == "unbounded"


def test_cost_breakdown_over_budget(ctx):
    """Seed-stage spend above $3k is over budget."""
    result = call_tool("saas.cost_breakdown", {"stage": "seed", "services": [
        {"name": "AWS", "monthly_cost": 3000, "category": "compute"},
        {"name": "OpenAI", "monthly_cost": 1000, "category": "ai"},
    ]}, ctx)
    assert result["is_over_budget"] is True
    assert result["over_budget_by"] == 1000
    assert [c["percent_of_burn"] for c in result["category_breakdown"]] == [75, 25]


def test_cost_breakdown_empty(ctx):
    """No services is within budget."""
    result = call_tool("saas.cost_breakdown", {"services": []}, ctx)
    assert result["stage"] == "seed"
    assert result["is_over_budget"] is False
    assert result["category_breakdown"] == []


def test_cost_reduction_tool(ctx):
    """The reduction tool returns prioritized strategies."""
    result = call_tool("saas.cost_reduction", {"services": [{"name": "EC2", "cost": 1000, "category": "compute"}]}, ctx)
    assert result["strategies"][0]["priority"] == 1
    assert result["meets_target"] is True


# Database and finance tools

def test_recommend_tier(ctx):
    """The cheapest tier holding current storage, with projected growth."""
    result = call_tool("db.recommend_tier", {"provider": "supabase", "current_usage": {"storage_gb": 5},
                                             "expected_growth": 0.2}, ctx)
    assert result["recommended_tier"] == "pro"
    assert result["growth_buffer"].startswith("38%")
    assert result["months_until_upgrade"] == 3
    assert result["projected_usage"]["tier"] == "team"
    assert result["degraded"] is False


def test_recommend_tier_degraded(ctx):
    """Storage beyond every tier returns the largest tier, already due for upgrade."""
    result = call_tool("db.recommend_tier", {"provider": "mongodb", "current_usage": {"storage_gb": 500}}, ctx)
    assert result["recommended_tier"] == "m30"
    assert result["degraded"] is True
    assert result["months_until_upgrade"] == 0


def test_recommend_tier_no_growth(ctx):
    """Zero growth never triggers an upgrade."""
    result = call_tool("db.recommend_tier", {"provider": "planetscale", "current_usage": {"storage_gb": 1},
                                             "expected_growth": 0}, ctx)
    assert result["recommended_tier"] == "hobby"
    assert result["months_until_upgrade"] == "unbounded"


def test_break_even_defaults(ctx):
    """Reserved beats on-demand after ten months over a two-year horizon."""
    result = call_tool("finance.break_even", {}, ctx)
    assert result["break_even_point"] == 10.0
    assert result["winner"] == "Reserved"
    assert result["savings_over_period"] == 4200
    assert result["option_a"]["total_cost_at_horizon"] == 12000
    assert len(result["sensitivity_analysis"]) == 3


def test_break_even_dominated(ctx):
    """A dominated option has no break-even and no sensitivity analysis."""
    result = call_tool("finance.break_even", {
        "option_a": {"name": "Cheap", "upfront_cost": 0, "monthly_cost": 100},
        "option_b": {"name": "Pricey", "upfront_cost": 100, "monthly_cost": 200},
    }, ctx)
    assert result["break_even_point"] is None
    assert result["winner"] == "Cheap"
    assert result["sensitivity_analysis"] == []


def test_break_even_tie_over_horizon(ctx):
    """Equal totals at the horizon are reported as a tie, not a win."""
    result = call_tool("finance.break_even", {"time_horizon": 10}, ctx)
    assert result["option_a"]["total_cost_at_horizon"] == result["option_b"]["total_cost_at_horizon"] == 5000
    assert result["winner"] == "tie"
    assert result["savings_over_period"] == 0
    assert result["decision_framework"].startswith("Both options cost $5000 over 10 months")
    assert result["insights"][0]["message"] == "No cost difference over 10 months"


def test_tool_schemas_cover_handlers():
    """Every registered handler is callable."""
    assert all(callable(t["handler"]) for t in TOOLS.values())

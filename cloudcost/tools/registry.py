# Tool registry for CloudCost MCP
import logging
import time
from typing import Any, Dict, Optional

from ..errors import CloudCostError, UnknownToolError
from ..metrics import tool_call_duration_seconds, tool_calls_total
from ..tracing import cloudcost_tracing
from . import ai_models, cloud_infra, optimization, saas_burn
from .validation import validate_arguments

logger = logging.getLogger(__name__)

TOOLS = {
    "ai.estimate_openai_cost": {
        "schema": ai_models.ESTIMATE_OPENAI_SCHEMA,
        "handler": ai_models.estimate_openai_cost
    },
    "ai.estimate_anthropic_cost": {
        "schema": ai_models.ESTIMATE_ANTHROPIC_SCHEMA,
        "handler": ai_models.estimate_anthropic_cost
    },
    "ai.suggest_model": {
        "schema": ai_models.SUGGEST_MODEL_SCHEMA,
        "handler": ai_models.suggest_model
    },
    "ai.compare_models": {
        "schema": ai_models.COMPARE_MODELS_SCHEMA,
        "handler": ai_models.compare_models
    },
    "ai.rank_by_cost_efficiency": {
        "schema": ai_models.RANK_BY_EFFICIENCY_SCHEMA,
        "handler": ai_models.rank_by_cost_efficiency
    },
    "ai.estimate_performance": {
        "schema": ai_models.ESTIMATE_PERFORMANCE_SCHEMA,
        "handler": ai_models.estimate_performance
    },
    "ai.model_switch_savings": {
        "schema": ai_models.MODEL_SWITCH_SCHEMA,
        "handler": ai_models.model_switch_savings
    },
    "cloud.estimate_compute": {
        "schema": cloud_infra.ESTIMATE_COMPUTE_SCHEMA,
        "handler": cloud_infra.estimate_compute
    },
    "cloud.compare_cost": {
        "schema": cloud_infra.COMPARE_COST_SCHEMA,
        "handler": cloud_infra.compare_cost
    },
    "cloud.estimate_storage": {
        "schema": cloud_infra.ESTIMATE_STORAGE_SCHEMA,
        "handler": cloud_infra.estimate_storage
    },
    "cloud.estimate_bandwidth": {
        "schema": cloud_infra.ESTIMATE_BANDWIDTH_SCHEMA,
        "handler": cloud_infra.estimate_bandwidth
    },
    "cloud.forecast_scaling": {
        "schema": cloud_infra.FORECAST_SCALING_SCHEMA,
        "handler": cloud_infra.forecast_scaling
    },
    "cloud.reserved_savings": {
        "schema": cloud_infra.RESERVED_SAVINGS_SCHEMA,
        "handler": cloud_infra.reserved_savings
    },
    "cloud.multi_cloud_optimization": {
        "schema": cloud_infra.MULTI_CLOUD_SCHEMA,
        "handler": cloud_infra.multi_cloud_optimization
    },
    "saas.calculate_burn": {
        "schema": saas_burn.CALCULATE_BURN_SCHEMA,
        "handler": saas_burn.calculate_burn
    },
    "saas.suggest_plan": {
        "schema": saas_burn.SUGGEST_PLAN_SCHEMA,
        "handler": saas_burn.suggest_plan
    },
    "saas.forecast_runway": {
        "schema": saas_burn.FORECAST_RUNWAY_SCHEMA,
        "handler": saas_burn.forecast_runway
    },
    "saas.cost_breakdown": {
        "schema": saas_burn.COST_BREAKDOWN_SCHEMA,
        "handler": saas_burn.cost_breakdown
    },
    "saas.cost_reduction": {
        "schema": saas_burn.COST_REDUCTION_SCHEMA,
        "handler": saas_burn.cost_reduction
    },
    "db.recommend_tier": {
        "schema": optimization.RECOMMEND_TIER_SCHEMA,
        "handler": optimization.recommend_tier
    },
    "finance.break_even": {
        "schema": optimization.BREAK_EVEN_SCHEMA,
        "handler": optimization.break_even
    }
}


def list_tools():
    """Return list of available tools for MCP tools/list"""
    return [
        {
            "name": name,
            **tool["schema"]
        }
        for name, tool in TOOLS.items()
    ]


def get_handler(tool_name: str):
    """Get handler function for a tool"""
    if tool_name not in TOOLS:
        raise UnknownToolError(tool_name)
    return TOOLS[tool_name]["handler"]


def call_tool(tool_name: str, args: Any, ctx: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Validate arguments, run the handler and record the outcome.

    Raises UnknownToolError, ToolArgumentError or the handler's own
    CloudCostError; anything else propagates unchanged.
    """
    handler = get_handler(tool_name)
    params = validate_arguments(TOOLS[tool_name]["schema"]["inputSchema"], args)

    t0 = time.time()
    status = "error"
    with cloudcost_tracing.trace_tool_call(tool_name) as span:
        try:
            result = handler(params, ctx or {})
            status = "ok"
            return result
        except CloudCostError as e:
            status = e.code.value
            raise
        finally:
            elapsed = time.time() - t0
            span.set_attribute("cloudcost.status", status)
            tool_calls_total.labels(tool=tool_name, status=status).inc()
            tool_call_duration_seconds.labels(tool=tool_name).observe(elapsed)
            logger.info(f"tool {tool_name} {status} in {elapsed * 1000:.1f}ms")

# Prometheus metrics shared by the MCP server and the pricing updater
from prometheus_client import Counter, Histogram

tool_calls_total = Counter(
    "cloudcost_tool_calls_total",
    "Tool invocations",
    ["tool", "status"],
)

tool_call_duration_seconds = Histogram(
    "cloudcost_tool_call_duration_seconds",
    "Tool handler latency",
    ["tool"],
)

price_updates_total = Counter(
    "cloudcost_price_updates_total",
    "Per-source pricing update outcomes",
    ["source", "status"],
)

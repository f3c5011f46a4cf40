"""CloudCost MCP: cost estimation tools for cloud, AI models and SaaS spend."""

__version__ = "0.1.0"

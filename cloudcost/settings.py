# Basic settings for CloudCost MCP
import os

_DATA_DIR = os.path.join(os.path.dirname(__file__), "data")


class Settings:
    # Catalog and classifier data
    PRICING_DIR: str = os.getenv("CLOUDCOST_PRICING_DIR", os.path.join(_DATA_DIR, "pricing"))
    KEYWORD_FILE: str = os.getenv("CLOUDCOST_KEYWORD_FILE", os.path.join(_DATA_DIR, "keyword_patterns.yaml"))

    # Zero-shot fallback for low-confidence classification
    HUGGINGFACE_API_KEY: str = os.getenv("HUGGINGFACE_API_KEY", "")
    CLASSIFIER_FALLBACK_URL: str = os.getenv(
        "CLASSIFIER_FALLBACK_URL",
        "https://api-inference.huggingface.co/models/facebook/bart-large-mnli",
    )
    CLASSIFIER_FALLBACK_TIMEOUT: float = float(os.getenv("CLASSIFIER_FALLBACK_TIMEOUT", "5"))
    CLASSIFIER_FALLBACK_MIN_SCORE: float = float(os.getenv("CLASSIFIER_FALLBACK_MIN_SCORE", "0.3"))

    # Pricing updater
    UPDATE_INTERVAL_HOURS: float = float(os.getenv("UPDATE_INTERVAL_HOURS", "6"))
    UPDATE_FETCH_TIMEOUT: float = float(os.getenv("UPDATE_FETCH_TIMEOUT", "8"))
    UPDATE_RETRY_DELAY: float = float(os.getenv("UPDATE_RETRY_DELAY", "1"))
    UPDATE_PORT: int = int(os.getenv("UPDATE_PORT", "3001"))
    UPDATE_SCHEDULER_ENABLED: bool = os.getenv("UPDATE_SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")

    # MCP server
    PORT: int = int(os.getenv("PORT", "3000"))
    MCP_MODE: str = os.getenv("MCP_MODE", "http")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Tracing
    OTEL_ENABLED: bool = os.getenv("OTEL_ENABLED", "false").lower() in ("1", "true", "yes")
    OTEL_SERVICE_NAME: str = os.getenv("OTEL_SERVICE_NAME", "cloudcost-mcp")
    OTEL_EXPORTER_OTLP_ENDPOINT: str = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "disabled")
    OTEL_CONSOLE_EXPORTER: bool = os.getenv("OTEL_CONSOLE_EXPORTER", "false").lower() == "true"


settings = Settings()

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import json
import logging
import time

from . import __version__
from .engine.catalog import get_catalog
from .rpc import handle_request, parse_error
from .settings import settings
from .tools.registry import TOOLS
from .tracing import cloudcost_tracing

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="CloudCost MCP Server",
    version=__version__,
    description="MCP server answering AI, cloud and SaaS cost questions from a local price catalog.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"]
)

if settings.OTEL_ENABLED:
    cloudcost_tracing.init_tracing(app)


@app.on_event("startup")
async def startup_event():
    catalog = get_catalog()
    logger.info(f"CloudCost MCP ready with {len(TOOLS)} tools, catalog at {catalog.source_dir}")


@app.get("/", tags=["Info"], summary="Server info")
async def root():
    return {
        "name": "cloudcost-mcp",
        "version": __version__,
        "transport": "http",
        "endpoint": "/mcp",
        "tools": len(TOOLS),
    }


@app.get("/healthz", tags=["Observability"], summary="Liveness probe")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/readyz", tags=["Observability"], summary="Readiness probe")
async def readiness_check():
    """Ready once the price catalog has loaded"""
    try:
        catalog = get_catalog()
    except (OSError, ValueError, KeyError) as e:
        logger.error(f"Price catalog failed to load: {e}")
        raise HTTPException(status_code=503, detail=f"Service not ready: {e}")
    return {
        "status": "ready",
        "timestamp": time.time(),
        "checks": {"catalog": "ok", "models": len(catalog.all_models())},
    }


@app.get("/metrics", tags=["Observability"], summary="Prometheus metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# MCP endpoint
@app.post("/mcp", tags=["MCP"], summary="MCP JSON-RPC endpoint",
          description="Implements initialize, tools/list and tools/call.")
async def mcp_endpoint(request: Request):
    """MCP JSON-RPC endpoint"""
    raw = await request.body()
    try:
        body = json.loads(raw)
    except ValueError:
        return JSONResponse(parse_error())

    # Tool calls may block on outbound HTTP (classifier fallback)
    reply = await run_in_threadpool(handle_request, body, {"transport": "http"})
    if reply is None:
        return Response(status_code=202)
    return JSONResponse(reply)

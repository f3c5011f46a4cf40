from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from typing import Optional
import asyncio
import logging

from .. import __version__
from ..errors import UpdateInProgressError
from ..settings import settings
from ..tracing import cloudcost_tracing
from .orchestrator import UpdateOrchestrator

logger = logging.getLogger(__name__)


def create_app(orchestrator: Optional[UpdateOrchestrator] = None,
               start_scheduler: Optional[bool] = None) -> FastAPI:
    """Pricing updater service around one orchestrator."""
    orchestrator = orchestrator or UpdateOrchestrator()
    if start_scheduler is None:
        start_scheduler = settings.UPDATE_SCHEDULER_ENABLED

    app = FastAPI(title="CloudCost Pricing Updater", version=__version__)
    app.state.orchestrator = orchestrator
    app.state.scheduler = None
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"]
    )
    if settings.OTEL_ENABLED:
        cloudcost_tracing.init_tracing(app)

    @app.on_event("startup")
    async def startup():
        if start_scheduler:
            logger.info(f"Pricing updater scheduled every {orchestrator.interval_hours:g}h")
            app.state.scheduler = asyncio.create_task(orchestrator.run_forever())

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.scheduler is not None:
            app.state.scheduler.cancel()

    @app.get("/")
    async def info():
        return {
            "service": "CloudCost Pricing Updater",
            "version": __version__,
            "endpoints": {
                "/health": "Health check",
                "/status": "Get update status and last results",
                "/trigger": "POST to manually trigger update",
                "/metrics": "Prometheus metrics",
            },
            "schedule": f"Every {orchestrator.interval_hours:g} hours",
        }

    @app.get("/health")
    async def health():
        last = orchestrator.last_result
        return {
            "status": "healthy",
            "service": "pricing-updater",
            "interval": f"{orchestrator.interval_hours:g}h",
            "last_update": last.timestamp if last else "never",
        }

    @app.get("/status")
    async def status():
        return orchestrator.status()

    @app.post("/trigger")
    async def trigger():
        try:
            result = await orchestrator.run_cycle()
        except UpdateInProgressError as e:
            return JSONResponse(e.to_payload(), status_code=409)
        return result.model_dump()

    @app.get("/metrics")
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()

"""Scheduled refresh of the price catalog files.

All sources run concurrently; one failing source never affects the others.
State lives on the orchestrator instance so the HTTP service, the CLI and
tests can each hold their own.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import httpx

from ..errors import UpdateInProgressError
from ..metrics import price_updates_total
from ..settings import settings
from ..tracing import cloudcost_tracing
from .models import SourceUpdate, UpdateResult, utc_now
from .sources import DEFAULT_SOURCES, Source

logger = logging.getLogger(__name__)


def _hours(value: float) -> str:
    return f"{value:g} hours"


class UpdateOrchestrator:
    def __init__(self, pricing_dir: Optional[str] = None, sources: Optional[Dict[str, Source]] = None,
                 interval_hours: Optional[float] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.pricing_dir = pricing_dir or settings.PRICING_DIR
        self.sources = dict(DEFAULT_SOURCES if sources is None else sources)
        self.interval_hours = settings.UPDATE_INTERVAL_HOURS if interval_hours is None else interval_hours
        self.timeout = settings.UPDATE_FETCH_TIMEOUT if timeout is None else timeout
        self.transport = transport
        self.is_updating = False
        self.last_result: Optional[UpdateResult] = None

    async def run_cycle(self) -> UpdateResult:
        if self.is_updating:
            raise UpdateInProgressError()
        self.is_updating = True
        try:
            logger.info(f"Starting pricing update of {len(self.sources)} sources in {self.pricing_dir}")
            with cloudcost_tracing.trace_update_cycle(len(self.sources)) as span:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    outcomes = await asyncio.gather(
                        *(source(self.pricing_dir, client) for source in self.sources.values()),
                        return_exceptions=True,
                    )
                span.set_attribute("cloudcost.failed_sources",
                                   sum(isinstance(o, BaseException) for o in outcomes))

            updates = []
            for name, outcome in zip(self.sources, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Pricing source {name} failed: {outcome!r}")
                    outcome = SourceUpdate.failed(name, str(outcome) or type(outcome).__name__)
                else:
                    logger.info(f"Pricing source {name}: {outcome.status} ({outcome.items_updated} items)")
                price_updates_total.labels(source=name, status=outcome.status).inc()
                updates.append(outcome)

            result = UpdateResult(timestamp=utc_now(), updates=updates,
                                  next_update_in=_hours(self.interval_hours))
            self.last_result = result
            logger.info(f"Update complete: {result.items_updated()} items updated")
            return result
        finally:
            self.is_updating = False

    def status(self) -> Dict[str, Any]:
        next_update = "pending"
        if self.last_result is not None:
            last = datetime.fromisoformat(self.last_result.timestamp)
            next_update = (last + timedelta(hours=self.interval_hours)).isoformat()
        return {
            "is_updating": self.is_updating,
            "last_update": self.last_result.model_dump() if self.last_result else None,
            "next_update": next_update,
        }

    async def run_forever(self) -> None:
        """Run a cycle now, then every ``interval_hours``; ticks that land on a running cycle are skipped."""
        while True:
            if self.is_updating:
                logger.info("Skipping scheduled update; a cycle is already running")
            else:
                try:
                    await self.run_cycle()
                except Exception:
                    logger.exception("Scheduled pricing update failed")
            await asyncio.sleep(self.interval_hours * 3600)

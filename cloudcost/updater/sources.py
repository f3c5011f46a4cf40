# Pricing sources refreshed by the update orchestrator
import asyncio
import json
import logging
import os
import tempfile
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..settings import settings
from .models import SourceUpdate, utc_now

logger = logging.getLogger(__name__)

AWS_REGION_INDEX_URL = "https://pricing.us-east-1.amazonaws.com/offers/v1.0/aws/AmazonEC2/current/region_index.json"
AZURE_RETAIL_PRICES_URL = "https://prices.azure.com/api/retail/prices"
AZURE_FILTER = ("serviceName eq 'Virtual Machines' and armRegionName eq 'eastus' "
                "and priceType eq 'Consumption'")

# No public pricing API exists for these providers; rates track the
# published price pages.
OPENAI_KNOWN_RATES = {
    "gpt-4o": {"input_per_million": 2.5, "output_per_million": 10, "context_window": 128000},
    "gpt-4o-mini": {"input_per_million": 0.15, "output_per_million": 0.6, "context_window": 128000},
    "gpt-4-turbo": {"input_per_million": 10, "output_per_million": 30, "context_window": 128000},
    "o1": {"input_per_million": 15, "output_per_million": 60, "context_window": 200000},
    "o1-mini": {"input_per_million": 3, "output_per_million": 12, "context_window": 128000},
    "o3-mini": {"input_per_million": 1.1, "output_per_million": 4.4, "context_window": 200000},
}

ANTHROPIC_KNOWN_RATES = {
    "claude-3-5-sonnet-20241022": {"input_per_million": 3, "output_per_million": 15},
    "claude-3-5-haiku-20241022": {"input_per_million": 0.8, "output_per_million": 4},
    "claude-3-opus-20240229": {"input_per_million": 15, "output_per_million": 75},
}

Source = Callable[[str, httpx.AsyncClient], Awaitable[SourceUpdate]]


def read_price_file(pricing_dir: str, name: str) -> Dict[str, Any]:
    with open(os.path.join(pricing_dir, name), "r", encoding="utf-8") as f:
        return json.load(f)


def write_price_file(pricing_dir: str, name: str, doc: Dict[str, Any]) -> None:
    """Replace a price file atomically so readers never see a partial write."""
    fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=pricing_dir)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=4)
            f.write("\n")
        os.replace(tmp_path, os.path.join(pricing_dir, name))
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


async def fetch(client: httpx.AsyncClient, url: str, params: Optional[Dict[str, str]] = None,
                retry_delay: Optional[float] = None) -> httpx.Response:
    """GET with a single retry on transport errors, 429 and 5xx."""
    delay = settings.UPDATE_RETRY_DELAY if retry_delay is None else retry_delay
    try:
        response = await client.get(url, params=params)
    except httpx.TransportError as e:
        logger.warning(f"GET {url} failed ({e!r}); retrying in {delay}s")
    else:
        if response.status_code != 429 and response.status_code < 500:
            return response
        logger.warning(f"GET {url} returned {response.status_code}; retrying in {delay}s")
    await asyncio.sleep(delay)
    return await client.get(url, params=params)


def merge_known_rates(doc: Dict[str, Any], known: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Apply known rates to models already in ``doc``; return what changed."""
    changes = []
    for model, rates in known.items():
        current = doc.get(model)
        if not isinstance(current, dict):
            continue
        if (current.get("input_per_million") != rates["input_per_million"]
                or current.get("output_per_million") != rates["output_per_million"]):
            changes.append({
                "item": model,
                "old": [current.get("input_per_million"), current.get("output_per_million")],
                "new": [rates["input_per_million"], rates["output_per_million"]],
            })
            doc[model] = {**current, **rates}
    return changes


def _known_rate_source(source: str, filename: str, known: Dict[str, Dict[str, Any]]) -> Source:
    async def update(pricing_dir: str, client: httpx.AsyncClient) -> SourceUpdate:
        doc = read_price_file(pricing_dir, filename)
        changes = merge_known_rates(doc, known)
        if changes:
            write_price_file(pricing_dir, filename, doc)
        return SourceUpdate(
            source=source,
            last_update=utc_now(),
            items_updated=len(changes),
            status="success" if changes else "no_change",
            details=changes,
        )

    update.__name__ = f"update_{filename.split('.')[0]}"
    return update


update_openai = _known_rate_source("OpenAI", "openai.json", OPENAI_KNOWN_RATES)
update_anthropic = _known_rate_source("Anthropic", "anthropic.json", ANTHROPIC_KNOWN_RATES)


async def update_aws(pricing_dir: str, client: httpx.AsyncClient) -> SourceUpdate:
    # The full EC2 offer file is hundreds of MB, so only the index is checked.
    response = await fetch(client, AWS_REGION_INDEX_URL)
    if response.status_code >= 400:
        return SourceUpdate(source="AWS EC2", last_update=utc_now(), status="no_change",
                            message=f"Using cached pricing (API returned {response.status_code})")
    try:
        published = response.json().get("publicationDate")
    except (ValueError, AttributeError):
        published = None
    return SourceUpdate(
        source="AWS EC2",
        last_update=utc_now(),
        status="no_change",
        message=f"Offer index published {published}" if published else "AWS pricing check completed",
    )


def _azure_sku(item: Dict[str, Any]) -> Optional[str]:
    meter = item.get("meterName") or ""
    product = item.get("productName") or ""
    if "Spot" in meter or "Low Priority" in meter or "Windows" in product:
        return None
    sku = item.get("armSkuName") or item.get("skuName") or ""
    if sku.startswith("Standard_"):
        sku = sku[len("Standard_"):]
    return sku or None


async def update_azure(pricing_dir: str, client: httpx.AsyncClient) -> SourceUpdate:
    response = await fetch(client, AZURE_RETAIL_PRICES_URL, params={"$filter": AZURE_FILTER})
    if response.status_code >= 400:
        return SourceUpdate(source="Azure VMs", last_update=utc_now(), status="failed",
                            message=f"API returned {response.status_code}")

    try:
        payload = response.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict) or not isinstance(payload.get("Items") or [], list):
        return SourceUpdate(source="Azure VMs", last_update=utc_now(), status="no_change",
                            message="Malformed response from Azure Retail Prices API; keeping cached pricing")

    items = payload.get("Items") or []
    doc = read_price_file(pricing_dir, "azure_compute.json")
    changes = []
    seen = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        sku = _azure_sku(item)
        price = item.get("retailPrice") or item.get("unitPrice")
        if not sku or not isinstance(price, (int, float)) or price <= 0 or sku in seen \
                or item.get("type", "Consumption") != "Consumption":
            continue
        seen.add(sku)
        for entries in doc.values():
            entry = entries.get(sku) if isinstance(entries, dict) else None
            if isinstance(entry, dict) and "hourly_rate" in entry and entry["hourly_rate"] != price:
                changes.append({"item": sku, "old": entry["hourly_rate"], "new": price})
                entry["hourly_rate"] = price

    if changes:
        write_price_file(pricing_dir, "azure_compute.json", doc)
    return SourceUpdate(
        source="Azure VMs",
        last_update=utc_now(),
        items_updated=len(changes),
        status="success" if changes else "no_change",
        message=f"Checked {len(items)} items",
        details=changes,
    )


async def update_gcp(pricing_dir: str, client: httpx.AsyncClient) -> SourceUpdate:
    return SourceUpdate(source="GCP Compute", last_update=utc_now(), status="no_change",
                        message="GCP requires service account authentication for live pricing")


DEFAULT_SOURCES: Dict[str, Source] = {
    "OpenAI": update_openai,
    "Anthropic": update_anthropic,
    "AWS EC2": update_aws,
    "Azure VMs": update_azure,
    "GCP Compute": update_gcp,
}

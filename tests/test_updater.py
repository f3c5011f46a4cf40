"""
Pricing updater tests

Runs update cycles against mocked upstream APIs and a temporary copy of
the pricing directory, and drives the updater HTTP service.
"""

import asyncio
import json
import os

import httpx
import pytest
from fastapi.testclient import TestClient

from cloudcost.errors import UpdateInProgressError
from cloudcost.settings import settings
from cloudcost.updater import sources
from cloudcost.updater.models import SourceUpdate, utc_now
from cloudcost.updater.orchestrator import UpdateOrchestrator
from cloudcost.updater.service import create_app

AZURE_ITEMS = [
    {"armSkuName": "Standard_B2ms", "retailPrice": 0.09, "type": "Consumption",
     "meterName": "B2ms", "productName": "Virtual Machines BS Series"},
    {"armSkuName": "Standard_B2ms", "retailPrice": 0.5, "type": "Consumption",
     "meterName": "B2ms", "productName": "Virtual Machines BS Series"},
    {"armSkuName": "Standard_B2s", "retailPrice": 0.01, "type": "Consumption",
     "meterName": "B2s Spot", "productName": "Virtual Machines BS Series"},
    {"armSkuName": "Standard_B1s", "retailPrice": 0.02, "type": "Consumption",
     "meterName": "B1s", "productName": "Virtual Machines BS Series Windows"},
]


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    """Retries happen immediately in tests."""
    monkeypatch.setattr(settings, "UPDATE_RETRY_DELAY", 0)


def upstream(aws=None, azure=None):
    """Mock transport answering the AWS index and Azure retail price APIs."""
    calls = {"aws": 0, "azure": 0}

    def handler(request):
        if request.url.host == "pricing.us-east-1.amazonaws.com":
            calls["aws"] += 1
            if aws:
                return aws(request, calls["aws"])
            return httpx.Response(200, json={"publicationDate": "2024-11-01T00:00:00Z"})
        if request.url.host == "prices.azure.com":
            calls["azure"] += 1
            if azure:
                return azure(request, calls["azure"])
            return httpx.Response(200, json={"Items": AZURE_ITEMS})
        return httpx.Response(404)

    return httpx.MockTransport(handler), calls


def read(pricing_dir, name):
    with open(os.path.join(pricing_dir, name)) as f:
        return json.load(f)


def by_source(result):
    return {u.source: u for u in result.updates}


def test_full_cycle(pricing_dir):
    """Every default source reports; Azure prices are written back."""
    transport, calls = upstream()
    orch = UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport, interval_hours=6)
    result = asyncio.run(orch.run_cycle())

    updates = by_source(result)
    assert list(updates) == ["OpenAI", "Anthropic", "AWS EC2", "Azure VMs", "GCP Compute"]
    assert updates["OpenAI"].status == "no_change"
    assert updates["Anthropic"].status == "no_change"
    assert updates["AWS EC2"].status == "no_change"
    assert "2024-11-01" in updates["AWS EC2"].message
    assert updates["GCP Compute"].status == "no_change"

    azure = updates["Azure VMs"]
    assert azure.status == "success"
    assert azure.items_updated == 1
    assert azure.details == [{"item": "B2ms", "old": 0.0832, "new": 0.09}]
    assert azure.message == "Checked 4 items"

    doc = read(pricing_dir, "azure_compute.json")
    assert doc["B"]["B2ms"]["hourly_rate"] == 0.09
    assert doc["B"]["B2s"]["hourly_rate"] == 0.0416
    assert doc["B"]["B1s"]["hourly_rate"] == 0.0104
    assert doc["reserved_discounts"] == {"1_year": 0.37, "3_year": 0.57}

    assert result.items_updated() == 1
    assert result.next_update_in == "6 hours"
    assert orch.last_result is result
    assert calls == {"aws": 1, "azure": 1}


def test_no_temp_files_left(pricing_dir):
    """Atomic writes leave only the real price files behind."""
    transport, _ = upstream()
    asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    assert not [name for name in os.listdir(pricing_dir) if name.endswith(".tmp")]


def test_known_rates_restore_changed_model(pricing_dir):
    """A drifted OpenAI rate is corrected and other fields are kept."""
    doc = read(pricing_dir, "openai.json")
    doc["gpt-4o"]["input_per_million"] = 5.0
    with open(os.path.join(pricing_dir, "openai.json"), "w") as f:
        json.dump(doc, f)

    transport, _ = upstream()
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    openai = by_source(result)["OpenAI"]
    assert openai.status == "success"
    assert openai.items_updated == 1
    assert openai.details[0]["item"] == "gpt-4o"

    updated = read(pricing_dir, "openai.json")["gpt-4o"]
    assert updated["input_per_million"] == 2.5
    assert updated["category"] == "flagship"


def test_failed_source_is_isolated(pricing_dir):
    """One source raising doesn't stop the others."""
    async def broken(pricing_dir, client):
        raise RuntimeError("upstream exploded")

    orch = UpdateOrchestrator(pricing_dir=pricing_dir,
                              sources={"Broken": broken, "GCP Compute": sources.update_gcp})
    result = asyncio.run(orch.run_cycle())
    updates = by_source(result)
    assert updates["Broken"].status == "failed"
    assert updates["Broken"].message == "upstream exploded"
    assert updates["GCP Compute"].status == "no_change"
    assert orch.is_updating is False


def test_timeout_is_retried_then_reported(pricing_dir):
    """A source that times out twice fails without affecting Azure."""
    def aws(request, attempt):
        raise httpx.ConnectTimeout("timed out", request=request)

    transport, calls = upstream(aws=aws)
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    updates = by_source(result)
    assert calls["aws"] == 2
    assert updates["AWS EC2"].status == "failed"
    assert updates["AWS EC2"].message == "timed out"
    assert updates["Azure VMs"].status == "success"


def test_server_error_retried_once(pricing_dir):
    """A 503 followed by a 200 succeeds on the retry."""
    def azure(request, attempt):
        if attempt == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"Items": []})

    transport, calls = upstream(azure=azure)
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    assert calls["azure"] == 2
    assert by_source(result)["Azure VMs"].status == "no_change"


def test_azure_client_error_fails_source(pricing_dir):
    """A 4xx from Azure is a failed update, not a retry."""
    transport, calls = upstream(azure=lambda request, attempt: httpx.Response(400))
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    azure = by_source(result)["Azure VMs"]
    assert calls["azure"] == 1
    assert azure.status == "failed"
    assert azure.message == "API returned 400"


@pytest.mark.parametrize("body", [
    {"content": b"<html>oops</html>"},
    {"json": ["not", "an", "object"]},
    {"json": {"Items": "nope"}},
])
def test_azure_malformed_body_keeps_cache(pricing_dir, body):
    """An unparseable Azure payload is reported as no change."""
    before = read(pricing_dir, "azure_compute.json")
    transport, _ = upstream(azure=lambda request, attempt: httpx.Response(200, **body))
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    azure = by_source(result)["Azure VMs"]
    assert azure.status == "no_change"
    assert azure.message.startswith("Malformed response")
    assert read(pricing_dir, "azure_compute.json") == before


def test_azure_skips_malformed_items(pricing_dir):
    """Non-object items and non-numeric prices are ignored; good items still apply."""
    items = ["x", None, {"armSkuName": "Standard_B2s", "retailPrice": "cheap", "type": "Consumption",
                         "meterName": "B2s", "productName": "Virtual Machines BS Series"}]
    transport, _ = upstream(azure=lambda request, attempt: httpx.Response(200, json={"Items": items}))
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    azure = by_source(result)["Azure VMs"]
    assert azure.status == "no_change"
    assert azure.items_updated == 0

    transport, _ = upstream(azure=lambda request, attempt: httpx.Response(200, json={"Items": items + AZURE_ITEMS[:1]}))
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    assert by_source(result)["Azure VMs"].status == "success"


def test_aws_unavailable_uses_cached_pricing(pricing_dir):
    """An AWS error keeps the cached file."""
    transport, _ = upstream(aws=lambda request, attempt: httpx.Response(403))
    result = asyncio.run(UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport).run_cycle())
    aws = by_source(result)["AWS EC2"]
    assert aws.status == "no_change"
    assert aws.message.startswith("Using cached pricing")


def test_cycle_is_not_reentrant(pricing_dir):
    """A second cycle while one is running is rejected."""
    orch = UpdateOrchestrator(pricing_dir=pricing_dir, sources={})
    inner = []

    async def probe(pricing_dir, client):
        with pytest.raises(UpdateInProgressError):
            await orch.run_cycle()
        inner.append(orch.is_updating)
        return SourceUpdate(source="Probe", last_update=utc_now(), status="no_change")

    orch.sources = {"Probe": probe}
    result = asyncio.run(orch.run_cycle())
    assert inner == [True]
    assert by_source(result)["Probe"].status == "no_change"
    assert orch.is_updating is False


def test_status_before_and_after(pricing_dir):
    """Status reports pending until the first cycle completes."""
    orch = UpdateOrchestrator(pricing_dir=pricing_dir, sources={"GCP Compute": sources.update_gcp})
    before = orch.status()
    assert before == {"is_updating": False, "last_update": None, "next_update": "pending"}

    asyncio.run(orch.run_cycle())
    after = orch.status()
    assert after["last_update"]["updates"][0]["source"] == "GCP Compute"
    assert after["next_update"] != "pending"


def test_write_price_file_replaces_atomically(tmp_path):
    """The written file is complete JSON and no temp file remains."""
    sources.write_price_file(str(tmp_path), "prices.json", {"a": {"hourly_rate": 1.0}})
    assert os.listdir(tmp_path) == ["prices.json"]
    assert read(str(tmp_path), "prices.json") == {"a": {"hourly_rate": 1.0}}


def test_merge_known_rates_ignores_unknown_models():
    """Only models already in the file are updated."""
    doc = {"gpt-4o": {"input_per_million": 2.5, "output_per_million": 10.0}}
    changes = sources.merge_known_rates(doc, sources.OPENAI_KNOWN_RATES)
    assert changes == []
    assert "o1" not in doc


# Service

@pytest.fixture
def service(pricing_dir):
    """Updater service around an orchestrator with mocked upstreams."""
    transport, _ = upstream()
    orch = UpdateOrchestrator(pricing_dir=pricing_dir, transport=transport)
    return orch, TestClient(create_app(orch, start_scheduler=False))


def test_service_health(service):
    """Health reports that no update has run yet."""
    _, client = service
    data = client.get("/health").json()
    assert data["status"] == "healthy"
    assert data["last_update"] == "never"


def test_service_trigger(service):
    """POST /trigger runs a cycle and returns the report."""
    orch, client = service
    response = client.post("/trigger")
    assert response.status_code == 200
    data = response.json()
    assert len(data["updates"]) == 5
    assert client.get("/status").json()["last_update"]["timestamp"] == data["timestamp"]
    assert orch.last_result is not None


def test_service_trigger_conflict(service):
    """A trigger during a running cycle is a 409."""
    orch, client = service
    orch.is_updating = True
    response = client.post("/trigger")
    assert response.status_code == 409
    assert response.json() == {"error": "update_in_progress", "detail": "Update already in progress"}


def test_service_metrics(service):
    """Per-source outcomes are exported."""
    _, client = service
    client.post("/trigger")
    response = client.get("/metrics")
    assert 'cloudcost_price_updates_total{source="Azure VMs",status="success"}' in response.text

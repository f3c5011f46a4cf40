# Static price catalog loaded from the JSON files in the pricing directory
import json
import logging
import math
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from ..errors import UnknownIdentifierError
from ..settings import settings

logger = logging.getLogger(__name__)

AI_PROVIDERS = ("openai", "anthropic", "google")
CLOUD_PROVIDERS = ("aws", "azure", "gcp")

_COMPUTE_FILES = {"aws": "aws_compute.json", "azure": "azure_compute.json", "gcp": "gcp_compute.json"}
_MODEL_META_KEYS = {"model_aliases", "prompt_caching", "extended_context"}
_COMPUTE_META_KEYS = {"reserved_discounts", "committed_use_discounts", "region_multipliers"}
_DEFAULT_DISCOUNTS = {"1_year": 0.30, "3_year": 0.50}

ANTHROPIC_ALIASES = {
    "claude-3-5-sonnet": "claude-3-5-sonnet-20241022",
    "claude-3.5-sonnet": "claude-3-5-sonnet-20241022",
    "claude-3-5-haiku": "claude-3-5-haiku-20241022",
    "claude-3.5-haiku": "claude-3-5-haiku-20241022",
    "claude-3-opus": "claude-3-opus-20240229",
    "claude-3-sonnet": "claude-3-sonnet-20240229",
    "claude-3-haiku": "claude-3-haiku-20240307",
    "claude-2": "claude-2.1",
    "claude-instant": "claude-instant-1.2",
    "sonnet": "claude-3-5-sonnet-20241022",
    "haiku": "claude-3-5-haiku-20241022",
    "opus": "claude-3-opus-20240229",
}

# SaaS price file keys -> limit names used by plan matching
_LIMIT_KEYS = {
    "storage_gb": "storage",
    "database_size_gb": "storage",
    "bandwidth_gb": "bandwidth",
    "connections": "connections",
    "requests": "requests",
    "compute_hours": "compute",
    "functions": "functions",
}


class ModelPrice:
    def __init__(self, name: str, provider: str, spec: Dict[str, Any]):
        self.name = name
        self.provider = provider
        self.input_per_million = float(spec["input_per_million"])
        self.output_per_million = float(spec["output_per_million"])
        self.category = spec.get("category", "unknown")
        self.best_for = list(spec.get("best_for") or [])
        self.latency = spec.get("latency", "medium")
        self.context_window = spec.get("context_window")
        self.batch_discount = spec.get("batch_discount")


class Instance:
    def __init__(self, family: str, key: str, spec: Dict[str, Any]):
        self.family = family
        self.key = key
        self.vcpu = spec.get("vcpu")
        self.memory_gb = spec.get("memory_gb")
        self.hourly_rate = float(spec["hourly_rate"])
        self.category = spec.get("category", "general")


class ComputePricing:
    def __init__(self, provider: str, families: Dict[str, Dict[str, Instance]],
                 reserved_discounts: Dict[str, float], region_multipliers: Dict[str, float],
                 assumed_discounts: bool = False):
        self.provider = provider
        self.families = families
        self.reserved_discounts = reserved_discounts
        self.region_multipliers = region_multipliers
        self.assumed_discounts = assumed_discounts

    def instance_names(self) -> List[str]:
        names = []
        for family, instances in self.families.items():
            for key in instances:
                names.append(key if key.startswith(family) else f"{family}.{key}")
        return names

    def find_instance(self, instance_type: str) -> Instance:
        """Resolve an instance name written as family.size, family-size or a bare SKU.

        Strategies are tried in a fixed order and the first one that names an
        existing catalog entry wins.
        """
        dot = instance_type.split(".")
        dash = instance_type.split("-")
        leading = instance_type
        for i, ch in enumerate(instance_type):
            if ch.isdigit():
                leading = instance_type[:i]
                break
        strategies = [
            (dot[0], dot[1] if len(dot) > 1 else None),    # t3.large
            (leading, instance_type),                       # B2ms
            (dash[0], instance_type),                       # e2-medium
            (instance_type[:1], instance_type),             # single-letter family
            (dash[0], "-".join(dash[1:]) or None),          # e2 family, "medium" size
        ]
        for family, key in strategies:
            if key and key in self.families.get(family, {}):
                return self.families[family][key]
        raise UnknownIdentifierError("instance", instance_type, self.instance_names(),
                                     hint=f"Not found in {self.provider} catalog")

    def region_multiplier(self, region: Optional[str]) -> Tuple[float, bool]:
        """Return (multiplier, known). Unknown regions price at 1.0."""
        if not region:
            return 1.0, True
        if region in self.region_multipliers:
            return float(self.region_multipliers[region]), True
        return 1.0, False


class Plan:
    def __init__(self, name: str, monthly_cost: float, limits: Dict[str, float]):
        self.name = name
        self.monthly_cost = monthly_cost
        self.limits = limits

    def limits_for_output(self) -> Dict[str, Any]:
        return {k: ("unlimited" if math.isinf(v) else v) for k, v in self.limits.items()}


def _limit_value(raw: Any) -> Optional[float]:
    if isinstance(raw, str) and raw.lower() == "unlimited":
        return math.inf
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    return None


def _normalize_plans(service: str, doc: Dict[str, Any]) -> List[Plan]:
    # Some services wrap their tiers in "plans", others list them directly.
    raw = doc.get("plans", doc) if isinstance(doc, dict) else {}
    plans = []
    for name, spec in raw.items():
        if not isinstance(spec, dict):
            continue
        cost = spec.get("monthly_cost")
        if not isinstance(cost, (int, float)) or isinstance(cost, bool):
            logger.debug(f"Skipping {service}.{name}: no list price")
            continue
        limits: Dict[str, float] = {}
        for key, limit_name in _LIMIT_KEYS.items():
            if key in spec:
                value = _limit_value(spec[key])
                if value is not None:
                    limits[limit_name] = value
        plans.append(Plan(name, float(cost), limits))
    plans.sort(key=lambda p: p.monthly_cost)
    return plans


def _normalize_compute(provider: str, doc: Dict[str, Any]) -> ComputePricing:
    families: Dict[str, Dict[str, Instance]] = {}
    for family, entries in doc.items():
        if family in _COMPUTE_META_KEYS or not isinstance(entries, dict):
            continue
        families[family] = {
            key: Instance(family, key, spec)
            for key, spec in entries.items()
            if isinstance(spec, dict) and "hourly_rate" in spec
        }

    raw_discounts = doc.get("reserved_discounts") or doc.get("committed_use_discounts") or {}
    discounts = {}
    assumed = False
    for term in ("1_year", "3_year"):
        value = raw_discounts.get(term, raw_discounts.get(f"{term}_no_upfront"))
        if value is None:
            value = _DEFAULT_DISCOUNTS[term]
            assumed = True
        discounts[term] = float(value)
    if assumed:
        logger.warning(f"{provider} compute pricing has no reserved discounts; assuming {discounts}")

    return ComputePricing(provider, families, discounts, dict(doc.get("region_multipliers") or {}), assumed)


class PriceCatalog:
    """In-memory view over the pricing directory.

    Source files differ in shape; everything is normalized here so the
    resolvers only ever see ModelPrice, ComputePricing and Plan objects.
    """

    def __init__(self, models: Dict[str, Dict[str, ModelPrice]], aliases: Dict[str, str],
                 compute: Dict[str, ComputePricing], storage: Dict[str, Dict[str, float]],
                 bandwidth: Dict[str, List[Tuple[float, float]]], saas: Dict[str, List[Plan]],
                 source_dir: Optional[str] = None):
        self.models = models
        self.aliases = aliases
        self.compute = compute
        self.storage = storage
        self.bandwidth = bandwidth
        self.saas = saas
        self.source_dir = source_dir

    @classmethod
    def load(cls, directory: Optional[str] = None) -> "PriceCatalog":
        directory = directory or settings.PRICING_DIR

        def read(name: str) -> Dict[str, Any]:
            with open(os.path.join(directory, name), "r") as f:
                return json.load(f)

        models: Dict[str, Dict[str, ModelPrice]] = {}
        aliases = dict(ANTHROPIC_ALIASES)
        for provider in ("openai", "anthropic"):
            doc = read(f"{provider}.json")
            if provider == "anthropic":
                aliases.update({k.lower(): v for k, v in (doc.get("model_aliases") or {}).items()})
            models[provider] = {
                name: ModelPrice(name, provider, spec)
                for name, spec in doc.items()
                if name not in _MODEL_META_KEYS and isinstance(spec, dict) and "input_per_million" in spec
            }
        google: Dict[str, ModelPrice] = {}
        for family in read("google.json").values():
            if isinstance(family, dict):
                for name, spec in family.items():
                    if isinstance(spec, dict) and "input_per_million" in spec:
                        google[name] = ModelPrice(name, "google", spec)
        models["google"] = google

        compute = {p: _normalize_compute(p, read(f)) for p, f in _COMPUTE_FILES.items()}
        storage = {p: {k: float(v) for k, v in rates.items()} for p, rates in read("storage.json").items()}
        bandwidth = {
            p: [(math.inf if t.get("limit") is None else float(t["limit"]), float(t["rate"])) for t in tiers]
            for p, tiers in read("bandwidth.json").items()
        }
        saas = {name: _normalize_plans(name, doc) for name, doc in read("saas_tools.json").items()}

        logger.info(f"Loaded price catalog from {directory}: "
                    f"{sum(len(m) for m in models.values())} models, {len(saas)} SaaS services")
        return cls(models, aliases, compute, storage, bandwidth, saas, source_dir=directory)

    # Lookups. Every miss raises UnknownIdentifierError listing valid keys.

    def model(self, provider: str, name: str) -> ModelPrice:
        catalog = self.models.get(provider)
        if catalog is None:
            raise UnknownIdentifierError("provider", provider, self.models)
        resolved = self.resolve_alias(provider, name)
        if resolved not in catalog:
            raise UnknownIdentifierError("model", name, catalog, hint=f"Not a known {provider} model")
        return catalog[resolved]

    def resolve_alias(self, provider: str, name: str) -> str:
        if provider == "anthropic":
            return self.aliases.get(name.lower(), name)
        return name

    def all_models(self) -> List[ModelPrice]:
        return [m for provider in AI_PROVIDERS for m in self.models.get(provider, {}).values()]

    def find_model(self, name: str) -> ModelPrice:
        """Look a model up across every provider."""
        for provider in AI_PROVIDERS:
            resolved = self.resolve_alias(provider, name)
            if resolved in self.models.get(provider, {}):
                return self.models[provider][resolved]
        raise UnknownIdentifierError("model", name, [m.name for m in self.all_models()])

    def compute_pricing(self, provider: str) -> ComputePricing:
        if provider not in self.compute:
            raise UnknownIdentifierError("provider", provider, self.compute)
        return self.compute[provider]

    def storage_rates(self, provider: str) -> Dict[str, float]:
        if provider not in self.storage:
            raise UnknownIdentifierError("provider", provider, self.storage)
        return self.storage[provider]

    def bandwidth_tiers(self, provider: str) -> List[Tuple[float, float]]:
        if provider not in self.bandwidth:
            raise UnknownIdentifierError("provider", provider, self.bandwidth)
        return self.bandwidth[provider]

    def plans(self, service: str) -> List[Plan]:
        plans = self.saas.get(service)
        if not plans:
            raise UnknownIdentifierError("service", service, [s for s, p in self.saas.items() if p])
        return plans

    def plan(self, service: str, name: str) -> Plan:
        for p in self.plans(service):
            if p.name == name:
                return p
        raise UnknownIdentifierError("plan", name, [p.name for p in self.plans(service)],
                                     hint=f"Not a {service} plan")


@lru_cache(maxsize=1)
def get_catalog() -> PriceCatalog:
    return PriceCatalog.load()


def reload_catalog() -> PriceCatalog:
    """Drop the cached catalog and read the pricing directory again."""
    get_catalog.cache_clear()
    return get_catalog()


def catalog_from(ctx: Optional[Dict[str, Any]]) -> PriceCatalog:
    """Catalog injected into a tool call context, else the process default."""
    return (ctx or {}).get("catalog") or get_catalog()

# Keyword task classifier with an optional zero-shot fallback
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

import httpx
import yaml

from ..settings import settings

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "chat"

# Candidate labels sent to the zero-shot model and the category each maps to.
ZERO_SHOT_LABELS = {
    "software development": "development",
    "code programming": "code",
    "audio voice": "audio",
    "video animation": "video",
    "image vision": "vision",
    "reasoning math": "reasoning",
    "text embedding search": "embedding",
    "classification": "classification",
    "data extraction": "extraction",
    "chat conversation": "chat",
}


class ClassificationResult:
    def __init__(self, category: str, confidence: str, matched_keywords: List[str],
                 scores: Dict[str, int], used_fallback: bool = False):
        self.category = category
        self.confidence = confidence
        self.matched_keywords = matched_keywords
        self.scores = scores
        self.used_fallback = used_fallback

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "confidence": self.confidence,
            "matched_keywords": list(self.matched_keywords),
            "scores": dict(self.scores),
            "used_fallback": self.used_fallback,
        }


class KeywordPatterns:
    """Ordered category -> trigger table. Declaration order is the tie-break."""

    def __init__(self, categories: Dict[str, List[str]], specific_domains: List[str]):
        self.categories = {name: [kw.lower() for kw in kws] for name, kws in categories.items()}
        self.specific_domains = list(specific_domains)

    @classmethod
    def from_file(cls, path: str) -> "KeywordPatterns":
        with open(path, "r") as f:
            doc = yaml.safe_load(f) or {}
        categories = doc.get("categories") or {}
        if not categories:
            raise ValueError(f"No categories defined in {path}")
        return cls(categories, doc.get("specific_domains", []))

    @property
    def order(self) -> List[str]:
        return list(self.categories)


@lru_cache(maxsize=8)
def load_patterns(path: Optional[str] = None) -> KeywordPatterns:
    return KeywordPatterns.from_file(path or settings.KEYWORD_FILE)


def classify_by_keywords(text: str, patterns: KeywordPatterns) -> ClassificationResult:
    lowered = text.lower() if isinstance(text, str) else ""
    scores: Dict[str, int] = {}
    matches: Dict[str, List[str]] = {}
    for category, keywords in patterns.categories.items():
        hits = []
        for kw in keywords:
            if kw in lowered and kw not in hits:
                hits.append(kw)
        scores[category] = len(hits)
        matches[category] = hits

    # sorted() is stable, so equal scores keep declaration order
    ranked = sorted(patterns.order, key=lambda c: scores[c], reverse=True)
    top = ranked[0]
    second = ranked[1] if len(ranked) > 1 else None
    top_score = scores[top]
    second_score = scores[second] if second else 0

    if top_score == 0:
        return ClassificationResult(DEFAULT_CATEGORY, "low", [], scores)

    if top_score >= 3:
        confidence = "high"
    elif top_score >= 2 or (top_score >= 1 and top_score > second_score):
        confidence = "medium"
    else:
        confidence = "low"

    # Generic build/app words must not shadow a named media domain.
    if top == "development" and second in patterns.specific_domains and second_score >= 1:
        return ClassificationResult(second, "medium", matches[second] + matches["development"], scores)

    return ClassificationResult(top, confidence, matches[top], scores)


class ZeroShotFallback:
    """Remote zero-shot classifier used only for low-confidence inputs.

    Every failure mode (no key, timeout, HTTP error, odd payload, low score)
    returns None so the keyword result stands.
    """

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None,
                 timeout: Optional[float] = None, min_score: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.api_key = settings.HUGGINGFACE_API_KEY if api_key is None else api_key
        self.url = url or settings.CLASSIFIER_FALLBACK_URL
        self.timeout = settings.CLASSIFIER_FALLBACK_TIMEOUT if timeout is None else timeout
        self.min_score = settings.CLASSIFIER_FALLBACK_MIN_SCORE if min_score is None else min_score
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def classify(self, text: str) -> Optional[str]:
        if not self.configured:
            return None
        payload = {"inputs": text, "parameters": {"candidate_labels": list(ZERO_SHOT_LABELS)}}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.post(self.url, json=payload, headers={"Authorization": f"Bearer {self.api_key}"})
            if r.status_code != 200:
                logger.info(f"Zero-shot fallback returned HTTP {r.status_code}")
                return None
            body = r.json()
            labels = body.get("labels") or []
            scores = body.get("scores") or []
            if not labels:
                return None
            if scores and float(scores[0]) < self.min_score:
                return None
            return ZERO_SHOT_LABELS.get(labels[0], DEFAULT_CATEGORY)
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.info(f"Zero-shot fallback unavailable: {e}")
            return None


class TaskClassifier:
    def __init__(self, patterns: Optional[KeywordPatterns] = None,
                 fallback: Optional[ZeroShotFallback] = None):
        self.patterns = patterns or load_patterns()
        self.fallback = fallback if fallback is not None else ZeroShotFallback()

    def classify(self, text: str, allow_fallback: bool = True) -> ClassificationResult:
        result = classify_by_keywords(text, self.patterns)
        if result.confidence != "low" or not allow_fallback or not isinstance(text, str) or not text.strip():
            return result
        category = self.fallback.classify(text)
        if category:
            result.category = category
            result.used_fallback = True
        return result


def classify_task(text: str, allow_fallback: bool = True) -> ClassificationResult:
    return TaskClassifier().classify(text, allow_fallback=allow_fallback)

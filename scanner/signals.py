"""
External signal sources for the confidence scorer.

NewsSignalSource searches NewsAPI for articles about a market question,
labels each article positive/negative/neutral with a word-list sentiment
model, and folds them into one relevance-weighted SignalBundle:

  ratio      = weighted share of the dominant sentiment
  direction  = bullish if positive ratio > 0.6, bearish if negative > 0.6
  confidence = min(0.95, ratio * avg_relevance + min(0.2, 0.02 * n_articles))

Neutral bundles carry confidence 0.5 before the same adjustment. Any fetch
failure yields None (no signal), never an exception.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx

from scanner.models import SignalBundle, SignalDirection, SignalItem

logger = logging.getLogger(__name__)

_TIMEOUT = 10.0
MIN_RELEVANCE = 0.3
DIRECTION_RATIO = 0.6
MAX_CONFIDENCE = 0.95
MAX_ARTICLES = 10
MAX_EVIDENCE = 5

POSITIVE_WORDS = frozenset({
    "win", "wins", "success", "profit", "gain", "gains", "up", "rise", "rises", "increase",
    "surge", "breakthrough", "achievement", "victory", "positive", "growth", "record",
    "improve", "better", "exceed", "outperform", "rally", "boom", "bullish", "optimistic",
    "strong", "robust", "healthy", "advance", "recovery", "expansion", "upgrade",
    "benefit", "opportunity", "leading", "approve", "approved", "pass", "passes",
})

NEGATIVE_WORDS = frozenset({
    "lose", "loses", "loss", "fail", "fails", "down", "fall", "falls", "decrease", "decline",
    "crash", "crisis", "defeat", "negative", "recession", "collapse", "plunge", "bearish",
    "worse", "underperform", "weak", "concern", "risk", "threat", "warning", "pessimistic",
    "vulnerable", "struggle", "deficit", "shortfall", "layoff", "bankruptcy", "default",
    "miss", "disappoint", "scandal", "reject", "rejected",
})

STOP_WORDS = frozenset({
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "i", "it", "for", "not",
    "on", "with", "he", "as", "you", "do", "at", "this", "but", "his", "by", "from",
    "will", "or", "what", "go", "can", "than", "if", "their", "said", "an", "each",
    "she", "which", "there", "been", "may", "after", "other", "into", "any", "before",
    "does", "did", "are", "was", "is", "end", "least", "more", "less", "who", "how",
})

_ENTITY_RE = re.compile(r"\b[A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+)*\b|\b(?:US|USA|UK|EU|UN|NATO|OPEC|IMF|WHO|FDA|Fed)\b")
_YEAR_RE = re.compile(r"\b20\d{2}\b")
_WORD_RE = re.compile(r"[a-z]+")
_QUESTION_LEADS = frozenset({"Will", "Does", "Did", "Is", "Are", "Can", "Who", "What", "When", "How", "Which"})


@dataclass(frozen=True)
class Keywords:
    entities: tuple[str, ...] = ()
    timeframes: tuple[str, ...] = ()
    words: tuple[str, ...] = ()

    def search_query(self) -> str:
        terms = list(self.entities[:2]) or list(self.words[:3])
        return " ".join(terms)


def extract_keywords(question: str) -> Keywords:
    """Pull proper nouns, years and significant words out of a market question."""
    entities: list[str] = []
    for match in _ENTITY_RE.findall(question):
        parts = match.split()
        if parts and parts[0] in _QUESTION_LEADS:
            parts = parts[1:]
        phrase = " ".join(parts)
        if phrase and phrase not in entities:
            entities.append(phrase)

    timeframes = list(dict.fromkeys(_YEAR_RE.findall(question)))
    words = [
        w for w in dict.fromkeys(_WORD_RE.findall(question.lower()))
        if len(w) > 2 and w not in STOP_WORDS
    ]
    return Keywords(entities=tuple(entities), timeframes=tuple(timeframes), words=tuple(words[:10]))


def relevance_score(text: str, keywords: Keywords) -> float:
    """Weighted keyword overlap in [0, 1]: entity 3, word 2, timeframe 1."""
    lower = text.lower()
    score = 3 * sum(1 for e in keywords.entities if e.lower() in lower)
    score += 2 * sum(1 for w in keywords.words if w in lower)
    score += sum(1 for t in keywords.timeframes if t in lower)
    max_score = 3 * len(keywords.entities) + 2 * len(keywords.words) + len(keywords.timeframes)
    if max_score == 0:
        return 0.0
    return min(1.0, score / max(10, max_score))


def classify_sentiment(text: str) -> str:
    """positive / negative / neutral by word-list counts with a margin of one."""
    tokens = _WORD_RE.findall(text.lower())
    pos = sum(1 for t in tokens if t in POSITIVE_WORDS)
    neg = sum(1 for t in tokens if t in NEGATIVE_WORDS)
    if pos > neg + 1:
        return "positive"
    if neg > pos + 1:
        return "negative"
    return "neutral"


def aggregate(query: str, items: list[SignalItem]) -> SignalBundle:
    """Fold scored articles into one bundle."""
    if not items:
        return SignalBundle(query=query, direction=SignalDirection.NEUTRAL, confidence=0.0)

    total = sum(i.relevance or 0.5 for i in items)
    pos = sum(i.relevance or 0.5 for i in items if i.sentiment == "positive") / total
    neg = sum(i.relevance or 0.5 for i in items if i.sentiment == "negative") / total

    if pos > DIRECTION_RATIO:
        direction, ratio = SignalDirection.BULLISH, pos
    elif neg > DIRECTION_RATIO:
        direction, ratio = SignalDirection.BEARISH, neg
    else:
        direction, ratio = SignalDirection.NEUTRAL, 0.5

    avg_relevance = sum(i.relevance for i in items) / len(items)
    count_bonus = min(0.2, 0.02 * len(items))
    confidence = min(MAX_CONFIDENCE, ratio * avg_relevance + count_bonus)
    return SignalBundle(query=query, direction=direction, confidence=confidence, items=tuple(items[:MAX_EVIDENCE]))


class NullSignalSource:
    """No external evidence. The scorer falls back to its default confidence."""

    def get_signal(self, question: str) -> SignalBundle | None:
        return None


@dataclass
class _CacheEntry:
    fetched_at: float
    articles: list[dict] = field(default_factory=list)


class NewsSignalSource:
    """
    NewsAPI-backed signal source with a per-query TTL cache.
    Satisfies the SignalSource protocol.
    """

    def __init__(
        self,
        api_key: str,
        host: str = "https://newsapi.org/v2",
        lookback_days: int = 7,
        cache_sec: float = 900.0,
        timeout: float = _TIMEOUT,
        clock=time.time,
    ):
        self._api_key = api_key
        self._host = host
        self._lookback_days = lookback_days
        self._cache_sec = cache_sec
        self._timeout = timeout
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get_signal(self, question: str) -> SignalBundle | None:
        keywords = extract_keywords(question)
        query = keywords.search_query()
        if not query:
            return None

        articles = self._search(query)
        if articles is None:
            return None

        items: list[SignalItem] = []
        for art in articles:
            title = art.get("title") or ""
            description = art.get("description") or ""
            if not title or not description:
                continue
            text = f"{title} {description}"
            relevance = relevance_score(text, keywords)
            if relevance < MIN_RELEVANCE:
                continue
            items.append(SignalItem(
                title=title,
                source=str((art.get("source") or {}).get("name", "")),
                url=str(art.get("url", "")),
                sentiment=classify_sentiment(text),
                relevance=relevance,
            ))

        items.sort(key=lambda i: i.relevance, reverse=True)
        bundle = aggregate(query, items[:MAX_ARTICLES])
        logger.debug(
            "News signal for %r: %s (%.2f) from %d articles",
            query, bundle.direction.value, bundle.confidence, len(bundle.items),
        )
        return bundle

    def _search(self, query: str) -> list[dict] | None:
        now = self._clock()
        with self._lock:
            cached = self._cache.get(query)
            if cached and now - cached.fetched_at < self._cache_sec:
                return cached.articles

        since = datetime.now(timezone.utc) - timedelta(days=self._lookback_days)
        try:
            resp = httpx.get(
                f"{self._host}/everything",
                params={
                    "q": query,
                    "language": "en",
                    "sortBy": "relevancy",
                    "pageSize": 50,
                    "from": since.strftime("%Y-%m-%dT%H:%M:%SZ"),
                },
                headers={"X-Api-Key": self._api_key},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            articles = resp.json().get("articles") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("News search failed for %r: %s", query, e)
            return cached.articles if cached else None

        with self._lock:
            self._cache[query] = _CacheEntry(fetched_at=now, articles=articles)
        return articles

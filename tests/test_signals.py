"""
Unit tests for scanner/signals.py -- keyword extraction, sentiment, aggregation, NewsAPI source.
"""

import httpx
import pytest
import respx

from scanner.models import SignalDirection, SignalItem
from scanner.signals import (
    MAX_CONFIDENCE,
    NewsSignalSource,
    NullSignalSource,
    aggregate,
    classify_sentiment,
    extract_keywords,
    relevance_score,
)


NEWS_HOST = "https://newsapi.org/v2"
QUESTION = "Will the Federal Reserve cut rates in December 2026?"


def _article(title, description, source="Reuters"):
    return {"title": title, "description": description, "url": "https://x", "source": {"name": source}}


def _item(sentiment, relevance=1.0):
    return SignalItem(title="t", sentiment=sentiment, relevance=relevance)


class TestKeywords:
    def test_entities_and_years(self):
        kw = extract_keywords(QUESTION)
        assert "Federal Reserve" in kw.entities
        assert "2026" in kw.timeframes
        assert "will" not in kw.words
        assert "rates" in kw.words

    def test_question_lead_stripped(self):
        kw = extract_keywords("Will Bitcoin reach 100k?")
        assert kw.entities[0] == "Bitcoin"

    def test_search_query_prefers_entities(self):
        assert extract_keywords(QUESTION).search_query().startswith("Federal Reserve")

    def test_search_query_falls_back_to_words(self):
        kw = extract_keywords("will rates rise by march?")
        assert kw.search_query() == "rates rise march"


class TestRelevance:
    def test_matching_text_scores(self):
        kw = extract_keywords(QUESTION)
        assert relevance_score("Federal Reserve signals December rates cut", kw) > 0.3

    def test_unrelated_text_scores_zero(self):
        kw = extract_keywords(QUESTION)
        assert relevance_score("Local team wins football match", kw) == 0.0

    def test_bounded(self):
        kw = extract_keywords(QUESTION)
        assert 0.0 <= relevance_score(QUESTION * 3, kw) <= 1.0


class TestSentiment:
    def test_positive(self):
        assert classify_sentiment("Strong growth and record gains lift optimistic traders") == "positive"

    def test_negative(self):
        assert classify_sentiment("Crisis deepens as losses and layoffs spark recession fears") == "negative"

    def test_margin_of_one_is_neutral(self):
        assert classify_sentiment("gain but loss and growth") == "neutral"


class TestAggregate:
    def test_empty_is_neutral_zero(self):
        bundle = aggregate("q", [])
        assert bundle.direction == SignalDirection.NEUTRAL
        assert bundle.confidence == 0.0

    def test_bullish(self):
        items = [_item("positive")] * 4 + [_item("neutral")]
        bundle = aggregate("q", items)
        assert bundle.direction == SignalDirection.BULLISH
        # ratio 0.8 * relevance 1.0 + bonus 0.1
        assert bundle.confidence == pytest.approx(0.9)

    def test_bearish(self):
        bundle = aggregate("q", [_item("negative", 0.5)] * 3)
        assert bundle.direction == SignalDirection.BEARISH
        assert bundle.confidence == pytest.approx(1.0 * 0.5 + 0.06)

    def test_mixed_is_neutral(self):
        bundle = aggregate("q", [_item("positive"), _item("negative")])
        assert bundle.direction == SignalDirection.NEUTRAL
        assert bundle.confidence == pytest.approx(0.5 + 0.04)

    def test_capped(self):
        bundle = aggregate("q", [_item("positive")] * 20)
        assert bundle.confidence == MAX_CONFIDENCE
        assert len(bundle.items) == 5


class TestNullSignalSource:
    def test_always_none(self):
        assert NullSignalSource().get_signal(QUESTION) is None


class TestNewsSignalSource:
    @respx.mock
    def test_builds_bundle(self):
        route = respx.get(f"{NEWS_HOST}/everything").mock(return_value=httpx.Response(200, json={
            "articles": [
                _article("Federal Reserve set to cut rates in December", "Strong growth, optimistic gains, record rally"),
                _article("Federal Reserve December rates decision", "Analysts see strong recovery and gains ahead"),
                _article("Celebrity news", "Nothing to do with anything"),
                _article("", "missing title"),
            ]
        }))
        src = NewsSignalSource(api_key="k", host=NEWS_HOST)
        bundle = src.get_signal(QUESTION)
        assert bundle is not None
        assert bundle.direction == SignalDirection.BULLISH
        assert len(bundle.items) == 2
        assert all(i.relevance >= 0.3 for i in bundle.items)
        request = route.calls.last.request
        assert request.headers["X-Api-Key"] == "k"
        assert request.url.params["language"] == "en"

    @respx.mock
    def test_cached_within_ttl(self):
        route = respx.get(f"{NEWS_HOST}/everything").mock(
            return_value=httpx.Response(200, json={"articles": []})
        )
        now = [1000.0]
        src = NewsSignalSource(api_key="k", host=NEWS_HOST, cache_sec=60, clock=lambda: now[0])
        src.get_signal(QUESTION)
        src.get_signal(QUESTION)
        assert route.call_count == 1
        now[0] += 61
        src.get_signal(QUESTION)
        assert route.call_count == 2

    @respx.mock
    def test_failure_returns_none(self):
        respx.get(f"{NEWS_HOST}/everything").mock(return_value=httpx.Response(429))
        src = NewsSignalSource(api_key="k", host=NEWS_HOST)
        assert src.get_signal(QUESTION) is None

    @respx.mock
    def test_failure_serves_stale_cache(self):
        route = respx.get(f"{NEWS_HOST}/everything")
        route.side_effect = [
            httpx.Response(200, json={"articles": [
                _article("Federal Reserve December rates cut", "strong growth gains record rally"),
            ]}),
            httpx.ConnectError("down"),
        ]
        now = [0.0]
        src = NewsSignalSource(api_key="k", host=NEWS_HOST, cache_sec=10, clock=lambda: now[0])
        first = src.get_signal(QUESTION)
        now[0] = 100.0
        second = src.get_signal(QUESTION)
        assert second is not None
        assert second.items == first.items

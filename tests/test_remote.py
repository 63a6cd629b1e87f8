"""Tests for the HTTP classifier and telemetry sink."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import asyncio
import json

import httpx
import pytest

from fieldguard.errors import ClassifierError, QuotaExceededError
from fieldguard.remote import HttpClassifier, HttpTelemetrySink
from fieldguard.types import Action, QueueItem


ANALYSIS = {
    "analysis": {
        "hasPII": True,
        "confidence": 92,
        "risk_level": "high",
        "detections": [
            {"type": "FULL_NAME", "value": "Jane Doe", "confidence": 88, "reason": "person name"},
            {"type": "ADDRESS", "value": None},
        ],
    }
}


def _classify(handler, text="ship to Jane Doe", context="shop.example", kind="address"):
    async def run():
        client = HttpClassifier("https://api.test/", "k-123", transport=httpx.MockTransport(handler))
        try:
            return await client.classify(text, context, kind)
        finally:
            await client.aclose()
    return asyncio.run(run())


# ── Classifier ───────────────────────────────────────────────────────

def test_classify_request_and_parse():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers["X-API-Key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=ANALYSIS)

    analysis = _classify(handler)
    assert seen["url"] == "https://api.test/v1/analyze-context"
    assert seen["key"] == "k-123"
    assert seen["body"] == {"text": "ship to Jane Doe", "context": "shop.example", "fieldType": "address"}
    assert analysis.has_sensitive_data
    assert analysis.risk_level == "high"
    assert [(d.category, d.value, d.confidence) for d in analysis.detections] == [("FULL_NAME", "Jane Doe", 88)]


def test_empty_context_is_omitted():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=ANALYSIS)

    _classify(handler, context="", kind="")
    assert seen["body"] == {"text": "ship to Jane Doe"}


def test_rate_limit_maps_to_quota_error():
    def handler(request):
        return httpx.Response(429, json={"error": "Too many requests"})

    with pytest.raises(QuotaExceededError) as info:
        _classify(handler)
    assert "limit" in str(info.value)


def test_subscription_required_maps_to_quota_error():
    def handler(request):
        return httpx.Response(403, json={"error": "Premium subscription required"})

    with pytest.raises(QuotaExceededError) as info:
        _classify(handler)
    assert "Premium" in str(info.value)


def test_server_error_maps_to_classifier_error():
    def handler(request):
        return httpx.Response(500, text="oops")

    with pytest.raises(ClassifierError) as info:
        _classify(handler)
    assert not isinstance(info.value, QuotaExceededError)


def test_transport_error_maps_to_classifier_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ClassifierError):
        _classify(handler)


def test_missing_analysis_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"ok": True})

    with pytest.raises(ClassifierError):
        _classify(handler)


# ── Telemetry sink ───────────────────────────────────────────────────

def test_sink_posts_batch():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True})

    sink = HttpTelemetrySink("https://api.test", "k-123", transport=httpx.MockTransport(handler))
    sink.send_batch([QueueItem("EMAIL", "shop.example", Action.OBSERVED, enqueued_at=2.0)])
    sink.close()

    assert seen["path"] == "/v1/detections/batch"
    assert seen["body"]["detections"] == [{
        "type": "EMAIL",
        "domain": "shop.example",
        "action": "detected",
        "metadata": {},
        "timestamp": 2000,
    }]


def test_sink_raises_on_http_error():
    sink = HttpTelemetrySink("https://api.test", "k", transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(httpx.HTTPStatusError):
        sink.send_batch([QueueItem("EMAIL", "x", Action.OBSERVED)])
    sink.close()

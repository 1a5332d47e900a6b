"""Tests for the cached trust-metrics reader."""
import httpx

from buildapp.services.trust_metrics import TrustMetricsReader
from buildapp.utils.ttl_cache import BoundedTTLCache


def _reader(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return TrustMetricsReader(
        cache=BoundedTTLCache(maxsize=10, ttl_seconds=60),
        base_url="http://trust.local/",
        http_client=client,
        **kwargs,
    )


class TestTrustMetricsReader:
    def test_fetches_and_caches(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json={
                "trust_score": 4.7, "on_time_rate": 0.96, "dispute_rate": 0.01,
                "completed_orders": 210, "internal_notes": "not exposed",
            })

        reader = _reader(handler)

        assert reader.get("sup_a") == {
            "trust_score": 4.7, "on_time_rate": 0.96, "dispute_rate": 0.01,
            "completed_orders": 210,
        }
        reader.get("sup_a")
        assert calls == ["/suppliers/sup_a/trust"]

    def test_failure_yields_none_and_is_not_cached(self):
        responses = [httpx.Response(503), httpx.Response(200, json={"trust_score": 3.9})]
        reader = _reader(lambda request: responses.pop(0))

        assert reader.get("sup_a") is None
        assert reader.get("sup_a")["trust_score"] == 3.9

    def test_unconfigured_service_yields_none(self):
        reader = TrustMetricsReader(cache=BoundedTTLCache(maxsize=10, ttl_seconds=60))

        assert reader.get("sup_a") is None

    def test_invalidate(self):
        reader = _reader(lambda request: httpx.Response(200, json={"trust_score": 4.0}))
        reader.get("sup_a")
        reader.invalidate("sup_a")

        assert len(reader.cache) == 0

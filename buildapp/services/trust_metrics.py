# buildapp/services/trust_metrics.py
"""
Read-only access to supplier trust metrics owned by the trust service.

Lookups are cached with a TTL. A failing or unconfigured trust service
yields None; trust data never blocks a trade operation.
"""
import logging
from typing import Optional

import httpx

from buildapp.core.config import settings
from buildapp.utils.ttl_cache import BoundedTTLCache

logger = logging.getLogger(__name__)


class TrustMetricsReader:
    def __init__(
        self,
        cache: BoundedTTLCache,
        base_url: str = "",
        http_client: Optional[httpx.Client] = None,
        timeout: float = 3.0,
    ):
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self.timeout = timeout

    def _fetch(self, supplier_id: str) -> Optional[dict]:
        if not self.base_url:
            return None
        url = f"{self.base_url}/suppliers/{supplier_id}/trust"
        try:
            if self._http_client is not None:
                response = self._http_client.get(url, timeout=self.timeout)
            else:
                response = httpx.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Trust metrics unavailable for supplier {supplier_id}: {e}")
            return None

        return {
            "trust_score": data.get("trust_score"),
            "on_time_rate": data.get("on_time_rate"),
            "dispute_rate": data.get("dispute_rate"),
            "completed_orders": data.get("completed_orders"),
        }

    def get(self, supplier_id: str) -> Optional[dict]:
        return self.cache.get_or_load(supplier_id, lambda: self._fetch(supplier_id))

    def invalidate(self, supplier_id: Optional[str] = None) -> None:
        if supplier_id is None:
            self.cache.clear()
        else:
            self.cache.delete(supplier_id)


_reader = TrustMetricsReader(
    cache=BoundedTTLCache(
        maxsize=settings.TRUST_METRICS_CACHE_MAXSIZE,
        ttl_seconds=settings.TRUST_METRICS_CACHE_TTL_SECONDS,
    ),
    base_url=settings.TRUST_SERVICE_URL,
)


def get_trust_metrics_reader() -> TrustMetricsReader:
    return _reader

"""HTTP adapters for the remote classifier and the telemetry sink.

Both talk to the same API (``X-API-Key`` auth, JSON bodies):

    POST /v1/analyze-context   {text, context?, fieldType?} → {analysis: {...}}
    POST /v1/detections/batch  {detections: [...]}

The classifier is async so a pending call can be abandoned with its
field.  The sink is sync; it is only ever driven by queue flushes.
"""

from __future__ import annotations
import logging

import httpx

from .errors import ClassifierError, QuotaExceededError
from .types import QueueItem, RemoteAnalysis

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.pasteproof.com"
DEFAULT_TIMEOUT = 10.0

_SUBSCRIPTION_MESSAGE = "Upgrade to Premium to unlock AI scanning"
_RATE_LIMIT_MESSAGE = "Daily AI scan limit reached. Try again tomorrow."


def _headers(api_key: str) -> dict[str, str]:
    return {"X-API-Key": api_key, "Content-Type": "application/json"}


def _error_for(response: httpx.Response) -> ClassifierError:
    try:
        message = str(response.json().get("error") or "")
    except (ValueError, AttributeError):
        message = ""
    lowered = message.lower()
    if response.status_code == 429 or "rate limit" in lowered:
        return QuotaExceededError(_RATE_LIMIT_MESSAGE)
    if response.status_code in (402, 403) and ("subscription" in lowered or "premium" in lowered):
        return QuotaExceededError(_SUBSCRIPTION_MESSAGE)
    return ClassifierError(message or f"API error: {response.status_code}")


class HttpClassifier:
    """Remote classifier client backed by a pooled ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=_headers(api_key),
            timeout=timeout,
            transport=transport,
        )

    async def classify(self, text: str, context: str, coarse_kind: str) -> RemoteAnalysis:
        body: dict[str, str] = {"text": text}
        if context:
            body["context"] = context
        if coarse_kind:
            body["fieldType"] = coarse_kind

        try:
            response = await self._client.post("/v1/analyze-context", json=body)
        except httpx.HTTPError as exc:
            raise ClassifierError(f"request failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_for(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise ClassifierError("response was not JSON") from exc
        analysis = data.get("analysis") if isinstance(data, dict) else None
        if not isinstance(analysis, dict):
            raise ClassifierError("response has no analysis")
        return RemoteAnalysis.from_dict(analysis)

    async def aclose(self) -> None:
        await self._client.aclose()


class HttpTelemetrySink:
    """Ships detection batches with a pooled ``httpx.Client``."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=_headers(api_key),
            timeout=timeout,
            transport=transport,
        )

    def send_batch(self, items: list[QueueItem]) -> None:
        response = self._client.post(
            "/v1/detections/batch",
            json={"detections": [item.to_dict() for item in items]},
        )
        response.raise_for_status()
        logger.debug("sent %d detection events", len(items))

    def close(self) -> None:
        self._client.close()

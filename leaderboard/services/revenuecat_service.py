"""
RevenueCat API integration service

Fetches overview metrics (MRR and revenue) for a project with a read-only
secret key, and classifies every failure as one of:

- InvalidCredentialError: 401 whose JSON body says exactly "Invalid API key"
- TransientError: network trouble or any other non-2xx answer
- MalformedResponseError: a 2xx body that is not a metrics overview
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from leaderboard.core.exceptions import (
    InvalidCredentialError,
    MalformedResponseError,
    MetricsSourceError,
    TransientError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.revenuecat.com/v2"
ITUNES_LOOKUP_URL = "https://itunes.apple.com/lookup"

# Bodies RevenueCat sends when the key itself is rejected
INVALID_API_KEY_MESSAGES = frozenset({"Invalid API key.", "Invalid API key"})

MRR_METRIC_ID = "mrr"
REVENUE_METRIC_ID = "revenue"


@dataclass(frozen=True)
class ParsedMetrics:
    """MRR and total revenue from a metrics overview"""
    mrr: float = 0.0
    revenue: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"mrr": self.mrr, "revenue": self.revenue}


def parse_overview_metrics(payload: Any) -> ParsedMetrics:
    """
    Extract MRR and revenue from a /metrics/overview body.

    A metric missing from the list counts as zero.  Only a body that is not
    an object with a `metrics` list, or a metric value that is not a number,
    is malformed.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("metrics"), list):
        raise MalformedResponseError("RevenueCat response has no metrics list")

    values = {}
    for metric in payload["metrics"]:
        if not isinstance(metric, dict):
            continue
        metric_id = metric.get("id")
        if metric_id in (MRR_METRIC_ID, REVENUE_METRIC_ID) and metric_id not in values:
            values[metric_id] = _metric_value(metric_id, metric.get("value"))

    return ParsedMetrics(
        mrr=values.get(MRR_METRIC_ID, 0.0),
        revenue=values.get(REVENUE_METRIC_ID, 0.0)
    )


def _metric_value(metric_id: str, value: Any) -> float:
    if value is None:
        return 0.0
    # bool is an int subclass but never a metric value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"RevenueCat metric '{metric_id}' has a non-numeric value")
    try:
        value = float(value)
    except OverflowError as e:
        raise MalformedResponseError(f"RevenueCat metric '{metric_id}' is out of range") from e
    # json accepts NaN and Infinity; stored revenue is never negative
    if not math.isfinite(value) or value < 0:
        raise MalformedResponseError(f"RevenueCat metric '{metric_id}' is out of range: {value}")
    return value


def _is_invalid_api_key_response(response: httpx.Response) -> bool:
    if response.status_code != 401:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    if not isinstance(body, dict):
        return False
    message = body.get("message")
    if not isinstance(message, str):
        message = body.get("error")
    return isinstance(message, str) and message.strip() in INVALID_API_KEY_MESSAGES


class RevenueCatService:
    """Async client for the RevenueCat v2 metrics API"""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_metrics(self, api_key: str, project_id: str) -> ParsedMetrics:
        """
        Fetch overview metrics for a project.

        Raises:
            ValueError: project_id is empty
            InvalidCredentialError: the key was rejected by RevenueCat
            TransientError: network error or non-2xx response
            MalformedResponseError: unusable 2xx response
        """
        if not project_id:
            raise ValueError("Project ID is required")

        url = f"{self.base_url}/projects/{quote(project_id, safe='')}/metrics/overview"
        try:
            response = await self.client.get(
                url,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout
            )
        except httpx.HTTPError as e:
            raise TransientError(f"RevenueCat request failed: {type(e).__name__}") from e

        if not response.is_success:
            if _is_invalid_api_key_response(response):
                raise InvalidCredentialError("Invalid API key")
            raise TransientError(
                f"RevenueCat API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError("RevenueCat response is not valid JSON") from e

        return parse_overview_metrics(payload)

    async def validate_credentials(self, api_key: str, project_id: str) -> bool:
        """True only if the key can fetch metrics for the project"""
        try:
            await self.fetch_metrics(api_key, project_id)
            return True
        except (MetricsSourceError, ValueError) as e:
            logger.warning(f"RevenueCat API key validation failed for project {project_id}: {e}")
            return False

    async def lookup_app_icon(self, app_store_id: str) -> Optional[str]:
        """Artwork URL for an App Store app, or None if the lookup finds nothing"""
        try:
            response = await self.client.get(
                ITUNES_LOOKUP_URL,
                params={"id": app_store_id, "entity": "software", "country": "us"},
                timeout=5.0
            )
        except httpx.HTTPError as e:
            logger.warning(f"App Store lookup failed for {app_store_id}: {e}")
            return None

        if not response.is_success:
            return None

        try:
            results = response.json().get("results") or []
        except (ValueError, AttributeError):
            return None

        if not results or not isinstance(results[0], dict):
            return None
        return results[0].get("artworkUrl100")

"""Async client for the blog qualification endpoint."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from blog_analysis.config import Config
from blog_analysis.errors import AnalysisError
from blog_analysis.models import BlogQualificationResult

logger = logging.getLogger(__name__)


class AnalysisClient(Protocol):
    async def analyze(self, company_name: str, website: str) -> BlogQualificationResult: ...


class HttpAnalysisClient:
    """Calls the qualification function over HTTP.

    Uses the callable-function convention: the request body is
    ``{"data": {...}}`` and the response is ``{"result": {...}}`` or
    ``{"error": {"message": ...}}``.
    """

    def __init__(
        self,
        endpoint: str,
        token: str = "",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: Config) -> HttpAnalysisClient:
        return cls(
            endpoint=config.analysis_endpoint,
            token=config.analysis_token,
            timeout=config.analysis_timeout,
        )

    async def analyze(self, company_name: str, website: str) -> BlogQualificationResult:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        payload = {"data": {"companyName": company_name, "website": website}}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Blog analysis timeout for %s (%s)", company_name, website)
            raise AnalysisError(f"Blog analysis timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response) or f"HTTP {e.response.status_code}"
            logger.warning("Blog analysis HTTP %d for %s: %s",
                           e.response.status_code, company_name, message)
            raise AnalysisError(message) from e
        except (httpx.HTTPError, ValueError) as e:
            raise AnalysisError(f"Failed to analyze blog: {e}") from e

        if not isinstance(data, dict):
            raise AnalysisError("Failed to analyze blog: unexpected response")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise AnalysisError(message or "Failed to analyze blog")

        try:
            return BlogQualificationResult.model_validate(data.get("result") or {})
        except ValidationError as e:
            raise AnalysisError(f"Malformed analysis response: {e.error_count()} invalid fields") from e


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message")
    return None

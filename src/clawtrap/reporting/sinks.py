"""Delivery targets for batches of findings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from clawtrap import __version__
from clawtrap.errors import DeliveryError
from clawtrap.logging import get_logger
from clawtrap.reporting.models import utc_now

log = get_logger("clawtrap.reporting.sinks")


class ReportingSink(ABC):
    """Abstract base class for reporting sinks."""

    @abstractmethod
    async def deliver(self, batch: list[dict[str, Any]]) -> bool:
        """Deliver a batch of findings.

        Args:
            batch: JSON-serialisable findings, oldest first.

        Returns:
            True if the whole batch was accepted, False otherwise.

        Raises:
            DeliveryError: On a transient transport failure.
        """

    async def close(self) -> None:  # noqa: B027 - optional hook
        """Release any resources held by the sink."""


class HttpCallbackSink(ReportingSink):
    """POST batches as JSON to a callback URL."""

    def __init__(self, url: str, *, timeout: float = 10.0) -> None:
        self._url = url
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        return self._url

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": f"ClawTrap-Reporter/{__version__}"},
            )
        return self._client

    async def deliver(self, batch: list[dict[str, Any]]) -> bool:
        payload = {"reports": batch, "batch_size": len(batch), "sent_at": utc_now()}
        try:
            client = await self._get_client()
            response = await client.post(self._url, json=payload)
        except httpx.TimeoutException as e:
            raise DeliveryError(f"callback timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"callback request failed: {e}") from e

        if 200 <= response.status_code < 300:
            log.debug("reports_delivered", count=len(batch), status=response.status_code)
            return True

        log.warning(
            "callback_rejected_reports",
            status=response.status_code,
            count=len(batch),
        )
        return False

    async def close(self) -> None:
        """Close the shared HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class LogSink(ReportingSink):
    """Write findings to the structured log; used without a callback URL."""

    async def deliver(self, batch: list[dict[str, Any]]) -> bool:
        for finding in batch:
            log.info("finding", event_type=finding.get("event_type"), finding=finding)
        return True

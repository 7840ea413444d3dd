"""
Webhook Service
Posts `{"text": ...}` to chat webhook endpoints. Every endpoint is attempted
independently and concurrently; one failure never blocks the others.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import httpx

from tms.config import settings

logger = logging.getLogger(__name__)


@dataclass
class DeliveryTally:
    sent: int = 0
    failed: int = 0

    def add(self, other: "DeliveryTally") -> None:
        self.sent += other.sent
        self.failed += other.failed


def dedupe_urls(urls: Iterable[str]) -> List[str]:
    """Keep http(s) URLs only, first occurrence wins."""
    seen: List[str] = []
    for url in urls:
        if isinstance(url, str) and url.startswith("http") and url not in seen:
            seen.append(url)
    return seen


class WebhookService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        # Tests swap in an httpx.MockTransport here
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=settings.webhook_timeout_seconds, transport=self.transport)

    async def _post(self, client: httpx.AsyncClient, url: str, text: str) -> bool:
        try:
            response = await client.post(url, json={"text": text})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Webhook delivery to %s failed: %s", url, exc)
            return False
        if not response.is_success:
            logger.warning("Webhook %s answered %s: %s", url, response.status_code, response.text[:200])
            return False
        return True

    async def broadcast(self, urls: Iterable[str], text: str) -> DeliveryTally:
        targets = list(urls)
        if not targets:
            return DeliveryTally()
        async with self._client() as client:
            results = await asyncio.gather(*(self._post(client, url, text) for url in targets))
        sent = sum(1 for ok in results if ok)
        return DeliveryTally(sent=sent, failed=len(results) - sent)


webhook_service = WebhookService()

"""Best-effort publication of settled facts to an append-only audit endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from cardroom.config import AuditConfig

from .exceptions import AuditPublishError
from .models import AuditResult

logger = logging.getLogger(__name__)

MESSAGE_VERSION = 1

# Dropped, in this order, when a fact exceeds the size budget
TRUNCATABLE_FIELDS = ("rationale", "decisions", "player_cards", "dealer_cards")


def build_message(
    fact: dict[str, Any],
    max_bytes: int,
    now: datetime | None = None,
) -> tuple[dict[str, Any], bool]:
    """Wrap a fact in the versioned envelope and fit it into max_bytes.

    Returns:
        (message, truncated)
    """
    message: dict[str, Any] = {
        "v": MESSAGE_VERSION,
        "ts": (now or datetime.now(timezone.utc)).isoformat(),
        **fact,
    }
    if _size(message) <= max_bytes:
        return message, False

    truncated = dict(message)
    for field in TRUNCATABLE_FIELDS:
        truncated.pop(field, None)
        truncated["_truncated"] = True
        if _size(truncated) <= max_bytes:
            break
    return truncated, True


def _size(message: dict[str, Any]) -> int:
    return len(json.dumps(message, separators=(",", ":"), default=str).encode("utf-8"))


class AuditPublisher:
    """Fire-and-forget audit client.

    ``publish`` never raises and never blocks the caller: delivery runs as a
    background task on the current event loop. Disabled when no endpoint is
    configured.
    """

    def __init__(
        self,
        config: AuditConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or AuditConfig()
        self._transport = transport
        self._tasks: set[asyncio.Task[AuditResult]] = set()

        logger.info(
            f"Initialized AuditPublisher (enabled={self.enabled})"
        )

    @property
    def enabled(self) -> bool:
        return bool(self.config.endpoint_url)

    def publish(self, fact: dict[str, Any]) -> None:
        """Schedule delivery of a fact. Returns immediately."""
        if not self.enabled:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, audit fact dropped: {fact.get('kind')}")
            return

        task = loop.create_task(self.send(fact))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def send(self, fact: dict[str, Any]) -> AuditResult:
        """Deliver one fact with a single retry. Failures are reported, not raised."""
        message, truncated = build_message(fact, self.config.max_message_bytes)
        kind = str(fact.get("kind", "fact"))
        size = _size(message)

        last_error: str | None = None
        for attempt in range(2):
            try:
                await self._post(message)
                logger.debug(f"Audit fact published: {kind} ({size} bytes)")
                return AuditResult(success=True, kind=kind, size_bytes=size, truncated=truncated)
            except AuditPublishError as e:
                last_error = str(e)
                logger.warning(
                    f"Audit publish failed (attempt {attempt + 1}/2): {last_error}"
                )
                if e.status_code is not None and e.status_code < 500:
                    break
            if attempt == 0:
                await asyncio.sleep(1)

        return AuditResult(
            success=False,
            kind=kind,
            size_bytes=size,
            truncated=truncated,
            error=last_error or "Audit publish failed",
        )

    async def _post(self, message: dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(self.config.endpoint_url, json=message)
        except httpx.TimeoutException as e:
            raise AuditPublishError(f"Timeout: {e}") from e
        except httpx.RequestError as e:
            raise AuditPublishError(f"Network error: {e}") from e

        if response.status_code >= 400:
            raise AuditPublishError(
                f"Audit endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

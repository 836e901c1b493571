# src/meal_reco/clients/suitability.py
from __future__ import annotations

"""
suitability.py

Purpose:
    External suitability scoring (0-10 per dish, given current vitals).

  - HttpSuitabilityScorer: POST {vitals, macros, tags, title} -> {"score": n}
  - score_catalog(): asyncio.Queue drained by `concurrency` workers.
    concurrency=1 keeps the one-request-at-a-time rate limit.

Failures never surface: a non-numeric score is coerced to 0, a failed
request scores 0.
"""

import asyncio
import math
from typing import Any, Optional, Protocol, Sequence

import httpx

from meal_reco.domain.schema import CatalogItem, ContextSnapshot
from meal_reco.logging_utils import get_logger

logger = get_logger("suitability")


class SuitabilityScorer(Protocol):
    async def get_suitability_score(
        self, context: Optional[ContextSnapshot], item: CatalogItem
    ) -> Optional[float]:
        ...


def coerce_score(value: Any) -> float:
    """Numeric score or 0.0 for anything malformed (None, text, NaN, bool)."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def build_payload(context: Optional[ContextSnapshot], item: CatalogItem) -> dict:
    return {
        "vitals": context.to_dict() if context else {},
        "macros": item.macros.to_dict() if item.macros else {},
        "tags": item.tag_list,
        "title": item.title,
    }


class HttpSuitabilityScorer:
    def __init__(
        self,
        url: str,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 20.0,
    ) -> None:
        self.url = url
        self.http_client = httpx.AsyncClient(timeout=timeout) if http_client is None else http_client

    async def get_suitability_score(
        self, context: Optional[ContextSnapshot], item: CatalogItem
    ) -> Optional[float]:
        try:
            resp = await self.http_client.post(self.url, json=build_payload(context, item))
        except httpx.HTTPError as exc:
            logger.warning(
                "Suitability request failed for '%s': %s",
                item.title,
                exc,
                extra={
                    "invoking_func": "HttpSuitabilityScorer.get_suitability_score",
                    "invoking_purpose": "External suitability score",
                    "next_step": "Score contributes 0",
                    "resolution": "Check RECO_SUITABILITY_URL",
                },
            )
            return None

        if resp.status_code >= 400:
            return None
        try:
            data = resp.json()
        except ValueError:
            return 0.0
        return coerce_score(data.get("score") if isinstance(data, dict) else None)

    async def aclose(self) -> None:
        await self.http_client.aclose()


async def score_catalog(
    items: Sequence[CatalogItem],
    context: Optional[ContextSnapshot],
    scorer: SuitabilityScorer,
    *,
    concurrency: int = 1,
) -> int:
    """
    Fill `external_suitability_score` on every item.

    Returns:
        number of items that received a usable (non-None) score
    """
    queue: asyncio.Queue[CatalogItem] = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)

    scored = 0

    async def worker() -> None:
        nonlocal scored
        while True:
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                value = await scorer.get_suitability_score(context, item)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Suitability scorer raised for '%s': %s",
                    item.title,
                    exc,
                    extra={
                        "invoking_func": "score_catalog.worker",
                        "invoking_purpose": "External suitability score",
                        "next_step": "Score contributes 0",
                        "resolution": "",
                    },
                )
                value = None
            if value is not None:
                scored += 1
            item.external_suitability_score = coerce_score(value)
            queue.task_done()

    workers = [asyncio.create_task(worker()) for _ in range(max(1, int(concurrency)))]
    await asyncio.gather(*workers)

    logger.info(
        "Suitability scored %d/%d items (concurrency=%d)",
        scored,
        len(items),
        max(1, int(concurrency)),
        extra={"invoking_func": "score_catalog", "next_step": "Re-rank catalog"},
    )
    return scored

# src/meal_reco/clients/evidence.py
from __future__ import annotations

"""
evidence.py

Purpose:
    Research evidence lookup against the Europe PMC REST search API.

    get_evidence(query) -> EvidenceRecord(title, url, abstract) | None

    Returns None on an empty result set or any transport / payload
    problem. The caller (EvidenceMacroCache) decides what to fall back to.
"""

import re
from typing import Any, Dict, Optional

import httpx

from meal_reco.domain.schema import EvidenceRecord
from meal_reco.logging_utils import get_logger

logger = get_logger("evidence")

DEFAULT_BASE_URL = "https://www.ebi.ac.uk/europepmc/webservices/rest"
_TAG_RE = re.compile(r"<[^>]+>")


def _article_url(hit: Dict[str, Any]) -> str:
    source = hit.get("source") or "MED"
    ext_id = hit.get("id") or hit.get("pmid")
    if ext_id:
        return f"https://europepmc.org/article/{source}/{ext_id}"
    doi = hit.get("doi")
    if doi:
        return f"https://doi.org/{doi}"
    return ""


def parse_search_payload(payload: Dict[str, Any]) -> Optional[EvidenceRecord]:
    results = ((payload or {}).get("resultList") or {}).get("result") or []
    if not results:
        return None
    hit = results[0]
    title = _TAG_RE.sub("", str(hit.get("title") or "")).strip()
    if not title:
        return None
    abstract = _TAG_RE.sub("", str(hit.get("abstractText") or "")).strip()
    return EvidenceRecord(title=title, url=_article_url(hit), abstract=abstract)


class EuropePMCEvidenceClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 20.0,
    ) -> None:
        self.http_client = httpx.AsyncClient(timeout=timeout) if http_client is None else http_client
        self.base_url = base_url.rstrip("/")

    async def get_evidence(self, query: str) -> Optional[EvidenceRecord]:
        params = {
            "query": query,
            "format": "json",
            "resultType": "core",
            "pageSize": 1,
        }
        try:
            resp = await self.http_client.get(f"{self.base_url}/search", params=params)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Europe PMC search failed for '%s': %s",
                query,
                exc,
                extra={
                    "invoking_func": "EuropePMCEvidenceClient.get_evidence",
                    "invoking_purpose": "Research evidence lookup",
                    "next_step": "Return None; cache falls back to static evidence",
                    "resolution": "Check network access / RECO_EVIDENCE_BASE_URL",
                },
            )
            return None
        return parse_search_payload(payload)

    async def aclose(self) -> None:
        await self.http_client.aclose()

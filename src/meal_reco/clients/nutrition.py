# src/meal_reco/clients/nutrition.py
from __future__ import annotations

"""
nutrition.py

Purpose:
    Macro lookup against the Open Food Facts search API.

    get_macros(title) -> Macros | None   (values per 100 g)

Open Food Facts reports sodium in grams per 100 g; we convert to mg.
"""

from typing import Any, Dict, Optional

import httpx

from meal_reco.domain.schema import Macros
from meal_reco.logging_utils import get_logger

logger = get_logger("nutrition")

DEFAULT_BASE_URL = "https://world.openfoodfacts.org"


def _num(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_product(product: Dict[str, Any]) -> Optional[Macros]:
    n = product.get("nutriments") or {}
    kcal = _num(n.get("energy-kcal_100g"))
    if kcal is None:
        kj = _num(n.get("energy_100g"))
        kcal = round(kj / 4.184, 1) if kj is not None else None
    sodium_g = _num(n.get("sodium_100g"))
    macros = Macros(
        kcal=kcal,
        protein_g=_num(n.get("proteins_100g")),
        carbs_g=_num(n.get("carbohydrates_100g")),
        fat_g=_num(n.get("fat_100g")),
        sodium_mg=round(sodium_g * 1000.0, 1) if sodium_g is not None else None,
    )
    if macros.kcal is None and macros.protein_g is None and macros.carbs_g is None:
        return None
    return macros


class OpenFoodFactsClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 20.0,
    ) -> None:
        self.http_client = httpx.AsyncClient(timeout=timeout) if http_client is None else http_client
        self.base_url = base_url.rstrip("/")

    async def get_macros(self, title: str) -> Optional[Macros]:
        params = {
            "search_terms": title,
            "search_simple": 1,
            "action": "process",
            "json": 1,
            "page_size": 1,
        }
        try:
            resp = await self.http_client.get(f"{self.base_url}/cgi/search.pl", params=params)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Open Food Facts search failed for '%s': %s",
                title,
                exc,
                extra={
                    "invoking_func": "OpenFoodFactsClient.get_macros",
                    "invoking_purpose": "Dish macro lookup",
                    "next_step": "Return None; cache falls back to macro templates",
                    "resolution": "Check network access / RECO_NUTRITION_BASE_URL",
                },
            )
            return None

        products = (payload or {}).get("products") or []
        if not products:
            return None
        return parse_product(products[0])

    async def aclose(self) -> None:
        await self.http_client.aclose()

"""
recommendation_example.py

Example usage of the RecommendationSession.

Run:
  python -m meal_reco.recommendation.recommendation_example --catalog menus.json
  python -m meal_reco.recommendation.recommendation_example --catalog menus.json \
      --context vitals.json --diet veg --explain 1 --supabase

--catalog  JSON list of partner rows ({name|title, hotel, price, link?, tags?})
--context  JSON object: wearable payload, optionally with "profile":
           {"tags": [...], "medicalFlags": [...], "reasoning": "..."}

Requires (only with --supabase):
  SUPABASE_URL
  SUPABASE_SERVICE_ROLE_KEY
Optional:
  OPENAI_API_KEY, OPENAI_MODEL, RECO_* overrides (see config.py)
"""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Optional

from meal_reco.clients.evidence import EuropePMCEvidenceClient
from meal_reco.clients.narrative import OpenAINarrativeGenerator
from meal_reco.clients.nutrition import OpenFoodFactsClient
from meal_reco.config import RecoConfig, get_supabase_client
from meal_reco.domain.schema import ContextSnapshot, FilterPrefs, ProfileTags
from meal_reco.enrichment.catalog import normalize_menus
from meal_reco.logging_utils import get_logger, init_logging
from meal_reco.recommendation.session import RecommendationSession
from meal_reco.storage.kv_store import InMemoryKeyValueStore, SupabaseKeyValueStore

logger = get_logger("recommendation_example")


def _load_context(path: Optional[str]) -> tuple[Optional[ContextSnapshot], Optional[ProfileTags]]:
    if not path:
        return None, None
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    profile = payload.get("profile")
    return (
        ContextSnapshot.from_wearable(payload),
        ProfileTags.from_dict(profile) if isinstance(profile, dict) else None,
    )


async def run(args: argparse.Namespace) -> None:
    cfg = RecoConfig.from_env()
    if args.page_size:
        cfg.page_size = args.page_size

    if args.supabase:
        store = SupabaseKeyValueStore(get_supabase_client(), table=cfg.kv_table)
    else:
        store = InMemoryKeyValueStore()

    rows = json.loads(Path(args.catalog).read_text(encoding="utf-8"))
    catalog = normalize_menus(rows)
    context, profile = _load_context(args.context)

    evidence = nutrition = None
    generator = None
    if not args.offline:
        evidence = EuropePMCEvidenceClient(
            base_url=cfg.evidence_base_url, timeout=cfg.http_timeout_seconds
        )
        nutrition = OpenFoodFactsClient(
            base_url=cfg.nutrition_base_url, timeout=cfg.http_timeout_seconds
        )
        generator = OpenAINarrativeGenerator(model=cfg.openai_model, api_key=cfg.openai_api_key)

    session = RecommendationSession.from_store(
        store,
        catalog,
        config=cfg,
        evidence_lookup=evidence,
        macro_lookup=nutrition,
        generator=generator,
        filter_prefs=FilterPrefs(diet=args.diet, satvik_only=args.satvik),
        context=context,
        profile=profile,
    )

    try:
        if session.risk_alert:
            print("!! Vitals are in a high-risk range. Please consult a clinician.\n")

        for _ in range(args.page):
            session.next_page()
        page = await session.render_page()
        print(f"Page {session.page + 1}/{max(1, session.total_pages)}")
        for i, r in enumerate(page, start=1):
            m = r.item.macros
            kcal = f"{m.kcal:.0f} kcal" if m and m.kcal is not None else "kcal n/a"
            print(f"{i:02d}. {r.item.title}  score={r.score:.3f}  [{', '.join(r.item.tag_list)}]  {kcal}")

        if args.explain and 0 < args.explain <= len(page):
            record = await session.explain(page[args.explain - 1].item)
            print("\n" + record.composed_markup)
    finally:
        if evidence is not None:
            await evidence.aclose()
        if nutrition is not None:
            await nutrition.aclose()


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--catalog", required=True)
    ap.add_argument("--context", default=None)
    ap.add_argument("--diet", choices=["veg", "nonveg"], default=None)
    ap.add_argument("--satvik", action="store_true")
    ap.add_argument("--page", type=int, default=0, help="0-based page to show")
    ap.add_argument("--page-size", type=int, default=0)
    ap.add_argument("--explain", type=int, default=0, help="1-based row on the page to explain")
    ap.add_argument("--offline", action="store_true", help="skip network collaborators")
    ap.add_argument("--supabase", action="store_true", help="persist learning state in Supabase")
    args = ap.parse_args()

    init_logging()
    asyncio.run(run(args))


if __name__ == "__main__":
    main()

"""
config.py

Purpose:
    Central configuration for the recommendation engine.

    - get_supabase_client() creates a Supabase client from env vars
      (used by SupabaseKeyValueStore).
    - RecoConfig collects every tunable knob (page size, novelty range,
      cache TTLs, collaborator endpoints) with env overrides.

Usage:
    from meal_reco.config import RecoConfig, get_supabase_client
    cfg = RecoConfig.from_env()
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client

load_dotenv()  # loads .env


def get_supabase_client() -> Client:
    """Create a Supabase client using env vars."""
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_ROLE_KEY"]
    return create_client(url, key)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class RecoConfig:
    # Ranking & pagination
    page_size: int = 10
    novelty_max: float = 1.5

    # Scheduling (minutes); 0 disables the loop
    recompute_interval_minutes: int = 60
    context_poll_minutes: int = 15

    # External suitability scoring worker pool
    suitability_concurrency: int = 1
    suitability_url: str = "http://localhost:8888/api/score"

    # Evidence / macro cache
    macro_ttl_days: float = 7.0
    evidence_base_url: str = "https://www.ebi.ac.uk/europepmc/webservices/rest"
    nutrition_base_url: str = "https://world.openfoodfacts.org"

    # Narrative generation
    openai_model: str = "gpt-4o-mini"
    openai_api_key: Optional[str] = None

    # Shared HTTP settings
    http_timeout_seconds: float = 20.0

    # Persistence
    kv_table: str = "kv_store"

    @classmethod
    def from_env(cls) -> "RecoConfig":
        base = cls()
        return cls(
            page_size=_env_int("RECO_PAGE_SIZE", base.page_size),
            novelty_max=_env_float("RECO_NOVELTY_MAX", base.novelty_max),
            recompute_interval_minutes=_env_int(
                "RECO_RECOMPUTE_INTERVAL_MINUTES", base.recompute_interval_minutes
            ),
            context_poll_minutes=_env_int("RECO_CONTEXT_POLL_MINUTES", base.context_poll_minutes),
            suitability_concurrency=max(
                1, _env_int("RECO_SUITABILITY_CONCURRENCY", base.suitability_concurrency)
            ),
            suitability_url=os.getenv("RECO_SUITABILITY_URL", base.suitability_url),
            macro_ttl_days=_env_float("RECO_MACRO_TTL_DAYS", base.macro_ttl_days),
            evidence_base_url=os.getenv("RECO_EVIDENCE_BASE_URL", base.evidence_base_url),
            nutrition_base_url=os.getenv("RECO_NUTRITION_BASE_URL", base.nutrition_base_url),
            openai_model=os.getenv("OPENAI_MODEL", base.openai_model),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            http_timeout_seconds=_env_float("RECO_HTTP_TIMEOUT_SECONDS", base.http_timeout_seconds),
            kv_table=os.getenv("RECO_KV_TABLE", base.kv_table),
        )

    @property
    def macro_ttl_seconds(self) -> float:
        return self.macro_ttl_days * 86400.0

# src/meal_reco/clients/narrative.py
from __future__ import annotations

"""
narrative.py

Purpose:
    Layer-2 narrative generation using an LLM.

    generate_narrative(structured_prompt) -> str | None

Implementation notes:
  - Written for OpenAI's async Python SDK.
  - If OPENAI_API_KEY is missing the generator disables itself and always
    returns None, which the explanation pipeline treats as a failure and
    answers with its deterministic fallback.
  - Empty / "no answer" detection lives in the pipeline, not here, so any
    generator implementation is judged the same way.
"""

import json
import os
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from meal_reco.logging_utils import get_logger

logger = get_logger("narrative")

SYSTEM_PROMPT = (
    "You are a nutrition assistant explaining a single dish recommendation. "
    "Use the user's current vitals, dietary focus tags, medical flags, the dish's tags and macros, "
    "and the research abstract if one is provided. "
    "Write 3-5 plain sentences. Do not repeat raw vital numbers. Do not give medical diagnoses. "
    "If you cannot explain the recommendation, reply exactly: NO ANSWER"
)


class OpenAINarrativeGenerator:
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.4,
    ) -> None:
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if client is None and api_key:
            client = AsyncOpenAI(api_key=api_key)
        self.client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.temperature = temperature

    def enabled(self) -> bool:
        return self.client is not None and bool(self.model)

    async def generate_narrative(self, prompt: Dict[str, Any]) -> Optional[str]:
        if not self.enabled():
            return None

        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": json.dumps(prompt, ensure_ascii=False)},
                ],
                temperature=self.temperature,
            )
        except openai.OpenAIError as exc:
            logger.warning(
                "Narrative generation failed: %s",
                exc,
                extra={
                    "invoking_func": "OpenAINarrativeGenerator.generate_narrative",
                    "invoking_purpose": "Layer-2 narrative for a recommendation",
                    "next_step": "Pipeline uses deterministic fallback narrative",
                    "resolution": "Ensure OPENAI_API_KEY / OPENAI_MODEL are configured",
                },
            )
            return None

        if not resp.choices:
            return None
        content = resp.choices[0].message.content or ""
        return content.strip() or None

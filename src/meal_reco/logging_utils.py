# logging_utils.py
"""
Shared structured logging utilities for the Meal Reco engine.

Log format (one line per entry):
<RunId>|<Date>|<Time>|<Level>|<File:Line>|<Module.Func>|<ModulePurpose>|
<InvokingFunc>|<InvokingFuncPurpose>|<Detail>|<NextStep>|<Resolution>|<END>

Modules never call logging.basicConfig(); they call get_logger() and pass
optional context through `extra`.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Dict

RUN_ID: str = uuid.uuid4().hex[:8]


class StructuredFormatter(logging.Formatter):
    """
    Emit a single '|' separated line per record.

    Format:
    <RunId>|<Date>|<Time>|<Level>|<File:Line>|<Module.Func>|<ModulePurpose>|
    <InvokingFunc>|<InvokingFuncPurpose>|<Detail>|<NextStep>|<Resolution>|<END>
    """

    # High-level purposes by module name
    MODULE_PURPOSES: Dict[str, str] = {
        "scoring": "Score a catalog item against context, preferences and bandit stats",
        "ranker": "Filter, score, sort and paginate the catalog",
        "feedback": "Apply like/skip feedback to preference weights and bandit stats",
        "preferences": "Load and persist the tag preference model and bandit stats",
        "kv_store": "Opaque key-value persistence (memory / Supabase)",
        "cache": "TTL cache fronting macro and evidence lookups",
        "catalog": "Normalise partner menu rows into catalog items",
        "suitability": "External suitability scoring through a bounded worker pool",
        "evidence": "Research evidence lookup (Europe PMC)",
        "nutrition": "Macro lookup (Open Food Facts)",
        "narrative": "Narrative generation through OpenAI chat completions",
        "pipeline": "Explanation synthesis: heuristic line, evidence, narrative, fallback",
        "session": "Recommendation session orchestration (ranking, paging, feedback)",
        "recommendation_example": "Command-line demo of the recommendation session",
        "normalize_partner_menus": "Normalise a partner menu JSON file in place",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        """Format log record into structured pipe-delimited format."""
        dt = datetime.datetime.fromtimestamp(record.created)
        date_str = dt.strftime("%Y-%m-%d")
        time_str = dt.strftime("%H:%M:%S")

        run_id = getattr(record, "run_id", RUN_ID)

        level = record.levelname
        code_location = f"{record.filename}:{record.lineno}"
        func_name = record.funcName
        module_name = record.module
        module_purpose = self.MODULE_PURPOSES.get(module_name, "")

        # Optional extra context supplied via logger calls
        invoking_func = getattr(record, "invoking_func", "")
        invoking_purpose = getattr(record, "invoking_purpose", "")
        next_step = getattr(record, "next_step", "")
        resolution = getattr(record, "resolution", "")

        detail = record.getMessage()
        if record.exc_info:
            detail = f"{detail} | EXC={record.exc_info[1]!r}"

        return (
            f"{run_id}|{date_str}|{time_str}|{level}|{code_location}|"
            f"{module_name}.{func_name}|{module_purpose}|"
            f"{invoking_func}|{invoking_purpose}|"
            f"{detail}|{next_step}|{resolution}|<END>"
        )


def init_logging(level: int = logging.INFO) -> None:
    """
    Initialize root logger once with our StructuredFormatter.

    Call get_logger() from modules instead of configuring logging
    everywhere, so configuration stays central.
    """
    root = logging.getLogger()
    if root.handlers:
        # Already configured (pytest, REPL, host app)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger configured with structured formatting.

    Usage:
        logger = get_logger("ranker")
        logger.info(
            "Ranked %d items",
            n,
            extra={
                "invoking_func": "rank",
                "invoking_purpose": "Full ranking pass",
                "next_step": "Render page 0",
                "resolution": "",
            },
        )
    """
    init_logging()
    return logging.getLogger(name)

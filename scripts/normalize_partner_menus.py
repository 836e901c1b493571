"""
normalize_partner_menus.py

Purpose:
    Normalise a partner-menu JSON file in place.

    Input rows:  {name|title, hotel|vendor, price, link?, tags?, macros?}
    Output rows: {id, title, price, description, vendor, tags, macros, type, link}

    Missing tags / type / macros / description / link are inferred from the
    dish name (keyword tables in meal_reco.enrichment.catalog). Rows without
    a name are dropped.

Usage:
    python scripts/normalize_partner_menus.py data/partner_menus.json
    python scripts/normalize_partner_menus.py data/partner_menus.json --out data/catalog.json
"""
from __future__ import annotations

import argparse
import json
from pathlib import Path

from meal_reco.enrichment.catalog import item_to_row, normalize_menus
from meal_reco.logging_utils import get_logger, init_logging

logger = get_logger("normalize_partner_menus")

MODULE_PURPOSE = "Normalise a partner menu JSON file in place"


def normalize_file(src: Path, dest: Path) -> int:
    rows = json.loads(src.read_text(encoding="utf-8"))
    if not isinstance(rows, list):
        raise ValueError(f"{src} must contain a JSON list of menu rows")

    items = normalize_menus(rows, fill_macros=True)
    dest.write_text(
        json.dumps([item_to_row(i) for i in items], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )

    logger.info(
        "Normalised %d of %d rows -> %s",
        len(items),
        len(rows),
        dest,
        extra={
            "invoking_func": "normalize_file",
            "invoking_purpose": MODULE_PURPOSE,
            "next_step": "Load the file as a catalog",
            "resolution": "",
        },
    )
    return len(items)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("path", help="partner menu JSON file")
    ap.add_argument("--out", default=None, help="write here instead of overwriting the input")
    args = ap.parse_args()

    init_logging()
    src = Path(args.path)
    n = normalize_file(src, Path(args.out) if args.out else src)
    print(f"Normalised {n} items")


if __name__ == "__main__":
    main()

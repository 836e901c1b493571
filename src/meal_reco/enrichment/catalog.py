# src/meal_reco/enrichment/catalog.py
from __future__ import annotations

"""
catalog.py

Purpose:
    Layer-0 (deterministic) normalisation of partner menu rows into
    CatalogItem objects.

Partner rows look like {"name" | "title", "hotel", "price", "link"?}. From the
dish name we infer:
  * tags    (high-protein-snack, low-carb, low-sodium, light-clean, satvik)
  * type    (nonveg if any nonveg keyword matches, else veg)
  * macros  (per-100 g template by dish keyword; offline normaliser only,
             live catalogs leave macros empty for the lookup + cache)
  * description (one line, vendor aware)

Design rules:
  - keyword matching only, no ML assets required
  - veg / nonveg are a type, never a tag
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import quote_plus

from meal_reco.domain.schema import CatalogItem, Macros
from meal_reco.logging_utils import get_logger

logger = get_logger("catalog")


def _contains_any(text_l: str, keywords: Sequence[str]) -> bool:
    return any(k in text_l for k in keywords)


# ---------------------------------------------------------------------
# Tag inference
# ---------------------------------------------------------------------
VEG_KEYWORDS: List[str] = [
    "veg", "paneer", "vegetable", "palak", "subz", "alu", "gobi", "dal",
    "salad", "fruit", "mushroom", "corn", "peas", "cheese",
]

NONVEG_KEYWORDS: List[str] = [
    "chicken", "fish", "egg", "mutton", "prawns", "crab", "surmai",
    "pomfret", "bangda", "bombil", "mandeli", "tisrya",
]

TAG_KEYWORDS: Dict[str, List[str]] = {
    "high-protein-snack": [
        "protein", "chicken", "paneer", "egg", "fish", "prawns", "tikka",
        "grilled", "tandoor", "mutton", "omelette",
    ],
    "low-carb": ["salad", "grilled", "tikka", "tandoor", "steamed", "soup", "egg white"],
    "low-sodium": ["steamed", "boiled", "soup", "clear soup", "salad"],
    "light-clean": [
        "salad", "soup", "steamed", "boiled", "light", "clear", "juice",
        "smoothie", "oats",
    ],
    "satvik": ["khichdi", "dal", "rice", "fruit", "curd", "yogurt", "milk"],
}


def infer_tags(name: str) -> List[str]:
    text_l = (name or "").lower()
    return [tag for tag, kws in TAG_KEYWORDS.items() if _contains_any(text_l, kws)]


def infer_type(name: str) -> str:
    text_l = (name or "").lower()
    return "nonveg" if _contains_any(text_l, NONVEG_KEYWORDS) else "veg"


# ---------------------------------------------------------------------
# Macro templates (per ~100 g)
# ---------------------------------------------------------------------
MACRO_TEMPLATES: Dict[str, Dict[str, float]] = {
    "salad": {"kcal": 100, "protein_g": 8, "carbs_g": 10, "fat_g": 3},
    "protein-rich": {"kcal": 250, "protein_g": 20, "carbs_g": 15, "fat_g": 10},
    "light-meal": {"kcal": 180, "protein_g": 10, "carbs_g": 20, "fat_g": 5},
    "rice-meal": {"kcal": 300, "protein_g": 12, "carbs_g": 50, "fat_g": 8},
    "curry": {"kcal": 220, "protein_g": 12, "carbs_g": 18, "fat_g": 12},
    "biryani": {"kcal": 320, "protein_g": 15, "carbs_g": 45, "fat_g": 12},
    "soup": {"kcal": 80, "protein_g": 5, "carbs_g": 8, "fat_g": 2},
    "sandwich": {"kcal": 200, "protein_g": 10, "carbs_g": 25, "fat_g": 6},
    "wrap": {"kcal": 220, "protein_g": 12, "carbs_g": 28, "fat_g": 7},
    "dessert": {"kcal": 180, "protein_g": 3, "carbs_g": 30, "fat_g": 6},
    "juice": {"kcal": 60, "protein_g": 1, "carbs_g": 14, "fat_g": 0},
    "default": {"kcal": 200, "protein_g": 10, "carbs_g": 25, "fat_g": 8},
}

# First match wins, so order matters (salad before protein, biryani before rice).
MACRO_KEYWORDS: List[tuple[str, List[str]]] = [
    ("salad", ["salad"]),
    ("protein-rich", ["protein", "tikka", "grilled"]),
    ("soup", ["soup"]),
    ("biryani", ["biryani", "pulao"]),
    ("rice-meal", ["rice", "khichdi"]),
    ("curry", ["curry", "masala"]),
    ("sandwich", ["sandwich", "toast"]),
    ("wrap", ["wrap"]),
    ("juice", ["juice", "smoothie", "milkshake"]),
    ("dessert", ["dessert", "sweet", "kulfi", "ice cream"]),
    ("light-meal", ["oats", "light"]),
]


def macro_template_key(name: str) -> Optional[str]:
    """Template key for a known dish keyword, or None."""
    text_l = (name or "").lower()
    for key, kws in MACRO_KEYWORDS:
        if _contains_any(text_l, kws):
            return key
    return None


def infer_macros(name: str) -> Macros:
    key = macro_template_key(name) or "default"
    return Macros.from_dict(MACRO_TEMPLATES[key])


# ---------------------------------------------------------------------
# Description
# ---------------------------------------------------------------------
DESCRIPTION_PREFIXES: List[tuple[List[str], str]] = [
    (["salad"], "Fresh {name} from {vendor}"),
    (["meal box", "thali"], "Complete {name} served at {vendor}"),
    (["biryani", "pulao"], "Aromatic {name} prepared by {vendor}"),
    (["tikka", "tandoor", "grilled"], "Grilled {name} from {vendor}"),
    (["soup"], "Warm {name} served at {vendor}"),
    (["juice", "smoothie"], "Fresh {name} from {vendor}"),
]


def generate_description(name: str, vendor: str) -> str:
    name_l = (name or "").lower()
    for kws, template in DESCRIPTION_PREFIXES:
        if _contains_any(name_l, kws):
            return template.format(name=name_l, vendor=vendor)
    return f"Delicious {name_l} from {vendor}"


# ---------------------------------------------------------------------
# Row -> CatalogItem
# ---------------------------------------------------------------------
def search_link(title: str, vendor: str = "") -> str:
    q = f"{title} {vendor}".strip()
    return f"https://www.swiggy.com/search?q={quote_plus(q)}"


def normalize_menu_item(
    row: Mapping[str, Any],
    *,
    index: Optional[int] = None,
    fill_macros: bool = False,
) -> Optional[CatalogItem]:
    """
    Return a CatalogItem, or None for rows without a usable name.

    Rows without macros keep macros=None unless fill_macros is set.
    """
    title = str(row.get("name") or row.get("title") or "").strip()
    if not title:
        return None
    vendor = str(row.get("hotel") or row.get("vendor") or "Unknown Vendor")

    tags = row.get("tags")
    macros = row.get("macros")
    if isinstance(macros, Mapping):
        item_macros: Optional[Macros] = Macros.from_dict(macros)
    else:
        item_macros = infer_macros(title) if fill_macros else None
    return CatalogItem(
        id=row.get("id") or (f"p_{index}" if index is not None else None),
        title=title,
        tags=list(tags) if tags else infer_tags(title),
        type=row.get("type") or infer_type(title),
        macros=item_macros,
        vendor_label=vendor,
        price=row.get("price") or 0,
        link=row.get("link") or search_link(title, str(row.get("hotel") or "")),
        description=row.get("description") or generate_description(title, vendor),
    )


def normalize_menus(rows: Iterable[Mapping[str, Any]], *, fill_macros: bool = False) -> List[CatalogItem]:
    items: List[CatalogItem] = []
    skipped = 0
    for idx, row in enumerate(rows):
        item = normalize_menu_item(row, index=idx, fill_macros=fill_macros)
        if item is None:
            skipped += 1
            continue
        items.append(item)

    if skipped:
        logger.warning(
            "Skipped %d partner rows without a name",
            skipped,
            extra={
                "invoking_func": "normalize_menus",
                "invoking_purpose": "Partner menu -> catalog",
                "next_step": "Continue with remaining rows",
                "resolution": "Fix the source rows (name/title missing)",
            },
        )
    return items


def item_to_row(item: CatalogItem) -> Dict[str, Any]:
    """Serialisable row in the normalised partner-menu format."""
    return {
        "id": item.id,
        "title": item.title,
        "price": item.price,
        "description": item.description,
        "vendor": item.vendor_label,
        "tags": item.tag_list,
        "macros": item.macros.to_dict() if item.macros else None,
        "type": item.type,
        "link": item.link,
    }

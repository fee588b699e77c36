"""Read CSV/Excel company lists into targets."""

from __future__ import annotations

import re
from pathlib import Path

import pandas as pd

from blog_analysis.models import Enrichment, Target

# Flexible column name matching
ID_COLUMNS = ["id", "company id", "record id", "account id"]

NAME_COLUMNS = [
    "company / account",
    "company/account",
    "company name",
    "company",
    "account",
    "name",
    "organization",
]

WEBSITE_COLUMNS = ["website", "company website", "domain", "url", "website url"]

ENRICHMENT_WEBSITE_COLUMNS = ["apollo website", "enriched website", "enrichment website"]


def read_targets(file_path: str) -> list[Target]:
    """Read a CSV or Excel file into targets, one per row.

    Columns that aren't the id, name, website or enrichment website are
    kept as custom fields, so a blog URL column can be mapped later.
    Raises ValueError on unsupported formats or a missing name column.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {file_path}")

    ext = path.suffix.lower()
    if ext == ".csv":
        df = pd.read_csv(path, dtype=str).fillna("")
    elif ext in (".xlsx", ".xls"):
        df = pd.read_excel(path, dtype=str, engine="openpyxl").fillna("")
    else:
        raise ValueError(
            f"Unsupported file format: {ext}. Use .csv, .xlsx, or .xls"
        )

    if df.empty:
        raise ValueError("Input file is empty")

    normalized = {str(col).strip().lower(): col for col in df.columns}
    name_col = _find(normalized, NAME_COLUMNS)
    if name_col is None:
        raise ValueError(
            f"No company name column found. Expected one of: {', '.join(NAME_COLUMNS)}. "
            f"Got: {', '.join(map(str, df.columns))}"
        )
    id_col = _find(normalized, ID_COLUMNS)
    website_col = _find(normalized, WEBSITE_COLUMNS)
    enrich_col = _find(normalized, ENRICHMENT_WEBSITE_COLUMNS)
    known = {c for c in (id_col, name_col, website_col, enrich_col) if c is not None}

    targets: list[Target] = []
    used_ids: set[str] = set()
    for _, row in df.iterrows():
        name = _cell(row[name_col])
        if not name:
            continue

        target_id = _cell(row[id_col]) if id_col else ""
        if not target_id:
            target_id = _unique(_slugify(name), used_ids)
        used_ids.add(target_id)

        enrichment = None
        if enrich_col and _cell(row[enrich_col]):
            enrichment = Enrichment(website=_cell(row[enrich_col]))

        custom = {
            str(col).strip(): _cell(row[col])
            for col in df.columns
            if col not in known and _cell(row[col])
        }

        targets.append(Target(
            id=target_id,
            name=name,
            website=(_cell(row[website_col]) or None) if website_col else None,
            custom_fields=custom,
            enrichment=enrichment,
        ))

    return targets


def _find(normalized: dict[str, str], candidates: list[str]) -> str | None:
    for candidate in candidates:
        if candidate in normalized:
            return normalized[candidate]
    return None


def _cell(value: object) -> str:
    text = str(value).strip()
    return "" if text.lower() == "nan" else text


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "company"


def _unique(base: str, used: set[str]) -> str:
    candidate = base
    n = 2
    while candidate in used:
        candidate = f"{base}-{n}"
        n += 1
    return candidate

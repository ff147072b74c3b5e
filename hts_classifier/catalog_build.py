from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from .codes import clean_code, format_code, is_well_formed_code
from .config import CATALOG_PATH
from .normalize import basic_clean
from .pipeline_types import CatalogEntry, TriggerTerm, WeightClass


# ---------------------------
# Column layout
# ---------------------------

BASE_COLUMNS: List[str] = ["code", "description", "category", "tariff_rate"]

# One term column per weight class; cells hold ';'-separated terms.
TERM_COLUMNS: Dict[str, WeightClass] = {
    "product_terms": WeightClass.PRODUCT_TYPE,
    "material_terms": WeightClass.MATERIAL,
    "category_terms": WeightClass.CATEGORY,
    "general_terms": WeightClass.GENERAL,
}


# ---------------------------
# Field parsing helpers
# ---------------------------

def parse_terms_field(value) -> List[str]:
    """
    Split a term cell into a de-duplicated, lowercased list.

    'Mug; cup;;mug' -> ['mug', 'cup']
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    terms: List[str] = []
    for part in str(value).split(";"):
        term = basic_clean(part).lower()
        if term and term not in terms:
            terms.append(term)
    return terms


def build_trigger_terms(row: pd.Series) -> Tuple[TriggerTerm, ...]:
    terms: List[TriggerTerm] = []
    for column, weight_class in TERM_COLUMNS.items():
        for term in parse_terms_field(row.get(column, "")):
            terms.append(TriggerTerm(term=term, weight_class=weight_class))
    return tuple(terms)


# ---------------------------
# Catalog normalization
# ---------------------------

def normalize_catalog_df(df_raw: pd.DataFrame) -> pd.DataFrame:
    """
    Clean the raw catalog frame.

    - missing columns are added empty
    - text cells are cleaned, codes trimmed and put in dotted form
    - rows with a malformed code are dropped (logged)
    - duplicate codes keep their first declaration

    Declaration order is preserved; it is the matcher's tie-break order.
    """
    logger.info("Normalizing catalog dataframe with {} raw rows", len(df_raw))

    df = df_raw.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]

    for col in BASE_COLUMNS + list(TERM_COLUMNS):
        if col not in df.columns:
            logger.warning("Catalog is missing column '{}'; treating as empty", col)
            df[col] = ""

    df = df.fillna("")
    df["code"] = df["code"].map(clean_code)
    for col in ("description", "category", "tariff_rate"):
        df[col] = df[col].astype(str).map(basic_clean)

    bad = ~df["code"].map(is_well_formed_code)
    if bad.any():
        logger.warning("Dropping {} catalog rows with malformed codes: {}",
                       int(bad.sum()), df.loc[bad, "code"].tolist())
    df = df[~bad].copy()
    df["code"] = df["code"].map(format_code)

    dupes = df["code"].duplicated(keep="first")
    if dupes.any():
        logger.warning("Dropping {} duplicate catalog codes", int(dupes.sum()))
    df = df[~dupes].reset_index(drop=True)

    logger.info("Catalog normalization complete. Final rows: {}", len(df))
    return df[BASE_COLUMNS + list(TERM_COLUMNS)]


def catalog_entries_from_df(df: pd.DataFrame) -> Tuple[CatalogEntry, ...]:
    entries: List[CatalogEntry] = []
    for _, row in df.iterrows():
        entries.append(
            CatalogEntry(
                code=row["code"],
                description=row["description"],
                category=row["category"],
                trigger_terms=build_trigger_terms(row),
                tariff_rate_hint=row["tariff_rate"],
            )
        )
    return tuple(entries)


# ---------------------------
# IO helpers
# ---------------------------

def load_raw_catalog(path: Optional[Path] = None) -> pd.DataFrame:
    path = Path(path) if path is not None else CATALOG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found at {path}.")

    logger.info("Loading raw catalog from {}", path)
    # dtype=str keeps codes such as 0901.21.00 intact
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    logger.info("Loaded {} rows from raw catalog", len(df))
    return df


def load_catalog(path: Optional[Path] = None) -> Tuple[CatalogEntry, ...]:
    """
    Load → normalize → immutable CatalogEntry tuple, in declaration order.
    """
    df = normalize_catalog_df(load_raw_catalog(path))
    entries = catalog_entries_from_df(df)
    logger.info("Catalog ready with {} entries", len(entries))
    return entries


def entry_by_code(catalog: Sequence[CatalogEntry]) -> Dict[str, CatalogEntry]:
    return {e.code: e for e in catalog}

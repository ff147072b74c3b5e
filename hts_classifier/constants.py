from __future__ import annotations

"""Shared keyword lists used by the fallback and review rules.

Kept in one place so the fallback table and the review watch-list can be read
(and tuned) without touching the rule code.
"""

# Substrings of lowercased title + description that force customs review.
REVIEW_WATCHLIST_TERMS = [
    "battery",
    "lithium",
    "food",
    "cosmetic",
    "pharmaceutical",
    "medical",
    "chemical",
    "hazardous",
    "explosive",
    "flammable",
    "dangerous",
    "supplement",
    "medicine",
    "drug",
    "organic",
    "agriculture",
]

# ---------------------------
# Fallback rule triggers, per descriptor field
# ---------------------------

CERAMIC_MATERIAL_TERMS = ["ceramic", "porcelain"]
CERAMIC_TITLE_TERMS = ["mug", "cup", "bowl"]
CERAMIC_DESCRIPTION_TERMS = ["ceramic", "porcelain"]

APPAREL_MATERIAL_TERMS = ["cotton", "fabric", "textile"]
APPAREL_CATEGORY_TERMS = ["clothing", "apparel"]
APPAREL_TITLE_TERMS = ["shirt", "pants", "dress"]

ELECTRONICS_CATEGORY_TERMS = ["electronic", "tech"]
ELECTRONICS_TITLE_TERMS = ["phone", "computer", "device"]
ELECTRONICS_DESCRIPTION_TERMS = ["electronic", "digital"]

FURNITURE_CATEGORY_TERMS = ["home", "garden", "furniture"]
FURNITURE_TITLE_TERMS = ["furniture", "decor"]
FURNITURE_DESCRIPTION_TERMS = ["household"]

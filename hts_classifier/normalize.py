from __future__ import annotations

"""
Text normalisation helpers shared across catalog loading and matching.

The goal is to have a single, well-defined place that turns free-form
listing copy (often scraped HTML) into something reasonably clean for
keyword matching.

Public helpers:

* basic_clean(text) -> str
    Light-weight clean applied to every descriptor field and catalog cell.

* contains_term(text, term) -> bool
    Whole-word, case-insensitive term lookup that tolerates plural forms.

* text_stems(text) -> Set[str]
    Crude suffix-stripping stems used for category comparison.
"""

from functools import lru_cache
from typing import List, Pattern, Set
import re
import unicodedata

from bs4 import BeautifulSoup

from . import config

MAX_INPUT_CHARS: int = int(config.MAX_INPUT_CHARS)

# Words that carry no category signal.
_STEM_STOPWORDS: Set[str] = {"and", "the", "for", "other", "with", "all", "misc"}

# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def strip_html(text: str) -> str:
    if not text:
        return ""
    if "<" not in text:
        return text
    soup = BeautifulSoup(text, "html.parser")
    # get_text(" ") also separates inline tags from trailing punctuation
    return re.sub(r"\s+([!?.,;:])", r"\1", soup.get_text(" ", strip=True))


def _normalise_unicode(text: str) -> str:
    # Normalise quotes, accents etc. into a consistent representation.
    text = unicodedata.normalize("NFKC", text)
    # Replace fancy quotes / dashes with ASCII variants
    text = text.replace("\u2018", "'").replace("\u2019", "'")
    text = text.replace("\u201c", '"').replace("\u201d", '"')
    text = text.replace("\u2013", "-").replace("\u2014", "-")
    return text


def clamp_text_length(text: str, max_chars: int = MAX_INPUT_CHARS) -> str:
    return text[:max_chars] if len(text) > max_chars else text


@lru_cache(maxsize=4096)
def _term_pattern(term: str) -> Pattern[str]:
    """
    Compile a whole-word pattern for a catalog term.

    Multi-word terms match across any whitespace run; a trailing 's' or 'es'
    is accepted so 'mug' also finds 'mugs'.
    """
    words = [re.escape(w) for w in term.lower().split()]
    body = r"\s+".join(words)
    return re.compile(r"(?<![a-z0-9])" + body + r"(?:s|es)?(?![a-z0-9])")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def basic_clean(text: str | None) -> str:
    """Light-weight clean for descriptor and catalog fields.

    * strips HTML
    * normalises unicode and whitespace
    * truncates excessively long inputs
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    # Guard against pathological inputs
    text = clamp_text_length(text)

    text = strip_html(text)
    text = _normalise_unicode(text)

    # Normalise whitespace
    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    text = re.sub(r"\s+", " ", text).strip()
    return text


def contains_term(text: str, term: str) -> bool:
    """True if ``term`` occurs in ``text`` as a whole word (or its plural)."""
    if not text or not term or not term.strip():
        return False
    return _term_pattern(term.strip()).search(text.lower()) is not None


def simple_tokenize(text: str | None) -> List[str]:
    if not text:
        return []
    return re.findall(r"[a-z0-9]+(?:[-'][a-z0-9]+)*", text.lower())


def stem(word: str) -> str:
    """
    Very small suffix stripper.

    Only needs to be consistent between catalog labels and user category
    hints ('Clothing' vs 'clothes', 'Electronics' vs 'electronic').
    """
    w = word.lower()
    if len(w) > 4 and w.endswith("ies"):
        w = w[:-3] + "y"
    elif w.endswith("sses"):
        w = w[:-2]
    elif len(w) > 4 and (w.endswith("ches") or w.endswith("shes") or w.endswith("xes")):
        w = w[:-2]
    elif len(w) > 3 and w.endswith("s") and not w.endswith("ss"):
        w = w[:-1]
    if len(w) > 5 and w.endswith("ing"):
        w = w[:-3]
    if len(w) > 4 and w.endswith("e"):
        w = w[:-1]
    return w


def text_stems(text: str | None) -> Set[str]:
    """Stems of the meaningful words (3+ chars, no stopwords) in ``text``."""
    return {
        stem(tok)
        for tok in simple_tokenize(text)
        if len(tok) >= 3 and tok not in _STEM_STOPWORDS
    }

"""
Shared string normalization utilities used by the blend canonicalizer and the
taste-source dedupe helpers.

All helpers are pure and return "" for empty/None input.
"""
import re
import unicodedata

# Typography normalization applied before slugging
_TYPOGRAPHY_TRANSLATION = {
    ord("‘"): "'",  # left single quotation mark
    ord("’"): "'",  # right single quotation mark
    ord("“"): '"',  # left double quotation mark
    ord("”"): '"',  # right double quotation mark
    ord("‐"): "-",  # hyphen
    ord("‑"): "-",  # non-breaking hyphen
    ord("–"): "-",  # en dash
    ord("—"): "-",  # em dash
    ord("−"): "-",  # minus sign
    ord("＆"): "&",  # fullwidth ampersand
}

_PARENTHESIZED = re.compile(r"\(.*?\)")
_FEATURING_TOKEN = re.compile(r"\b(?:feat|ft)\.?\b")
_NON_ALNUM_RUN = re.compile(r"[\W_]+")


def normalize_text(text: str, lowercase: bool = True, strip: bool = True) -> str:
    """
    Normalize text for consistent comparisons.

    Handles Unicode normalization (NFC), optional case folding, and whitespace.

    Args:
        text: Text to normalize
        lowercase: Apply case folding (casefold() handles non-ASCII better than lower())
        strip: Remove leading/trailing whitespace

    Returns:
        Normalized text string
    """
    if text is None:
        return ""

    text = unicodedata.normalize("NFC", str(text))

    if lowercase:
        text = text.casefold()

    if strip:
        text = text.strip()

    return text


def fold_diacritics(text: str) -> str:
    """Drop combining marks so "Beyoncé" and "Beyonce" compare equal."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(text: str) -> str:
    """
    Reduce a free-text title or artist credit to a comparable key.

    Steps:
    - Casefold and normalize typography
    - Drop parenthesized segments such as "(feat. X)" or "(Radio Edit)"
    - Drop standalone "feat" / "ft" tokens
    - Spell "&" as "and"
    - Fold diacritics and collapse every non-alphanumeric run to a single space

    Examples:
        "Sorry (feat. Someone)" -> "sorry"
        "Simon & Garfunkel"     -> "simon and garfunkel"
        "Beyoncé"               -> "beyonce"
    """
    if not text:
        return ""

    value = normalize_text(text).translate(_TYPOGRAPHY_TRANSLATION)
    value = _PARENTHESIZED.sub(" ", value)
    value = _FEATURING_TOKEN.sub(" ", value)
    value = value.replace("&", " and ")
    value = fold_diacritics(value)
    value = _NON_ALNUM_RUN.sub(" ", value)
    return " ".join(value.split())


def loose_match_key(title: str, artist: str) -> str:
    """
    Case-insensitive title/artist key used to dedupe one provider's surfaces.

    Deliberately looser than the canonical id: it only folds case and
    whitespace so near-duplicates across a single catalog collapse.
    """
    return f"na:{' '.join(normalize_text(title).split())}|{' '.join(normalize_text(artist).split())}"

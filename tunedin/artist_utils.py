"""
Artist-credit helpers shared by the canonicalizer and the preview builders.

Provider catalogs join collaborating artists differently: Spotify's mapper
joins with ", ", Apple Music returns strings like "A & B" or "A and B".
"""
from typing import List

# Applied in order; each split flattens the previous result.
CREDIT_DELIMITERS = (",", " & ", " and ")


def split_artist_credit(artist: str) -> List[str]:
    """
    Split a display artist credit into its constituent names.

    Examples:
        "DJ Snake, Justin Bieber" -> ["DJ Snake", "Justin Bieber"]
        "Simon & Garfunkel"       -> ["Simon", "Garfunkel"]
        "Solo Artist"             -> ["Solo Artist"]

    Args:
        artist: Display artist string (may be empty)

    Returns:
        Trimmed, non-empty names in credit order (may contain duplicates)
    """
    if not artist:
        return []

    parts = [artist]
    for delimiter in CREDIT_DELIMITERS:
        parts = [piece for part in parts for piece in part.split(delimiter)]

    return [p.strip() for p in parts if p and p.strip()]


def first_credited_artist(artist: str) -> str:
    """Return the first comma-separated name of a credit ("" when empty)."""
    if not artist:
        return ""
    return artist.split(",")[0].strip()

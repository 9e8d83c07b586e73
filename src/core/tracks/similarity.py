"""Edit-distance based string similarity.

Pure functions without side effects, used by the matcher to compare
artist and track names reported by different services.
"""

from rapidfuzz.distance import Levenshtein

from core.models.normalization import normalize

ARTIST_WEIGHT = 0.5
NAME_WEIGHT = 0.5


def similarity(first: str, second: str) -> float:
    """Similarity in ``[0, 1]`` as ``1 - distance / max(len)``.

    Examples:
        >>> similarity("beck", "beck")
        1.0
        >>> similarity("", "beck")
        0.0

    """
    if not first and not second:
        return 1.0
    if not first or not second:
        return 0.0
    return Levenshtein.normalized_similarity(first, second)


def combined_score(artist_a: str, name_a: str, artist_b: str, name_b: str) -> float:
    """Weighted artist/name similarity of two plays, on normalized strings."""
    artist_score = similarity(normalize(artist_a), normalize(artist_b))
    name_score = similarity(normalize(name_a), normalize(name_b))
    return ARTIST_WEIGHT * artist_score + NAME_WEIGHT * name_score

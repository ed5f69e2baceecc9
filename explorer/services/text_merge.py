"""
Overlap-based stitching of text fragments.

A completion provider that hits its token budget is asked to continue, which
yields fragments whose tail and head overlap. ``merge_with_tolerance`` finds
the shared word window and joins the fragments without repeating it.
"""

import re
import unicodedata
from functools import reduce
from typing import List, Optional, Tuple

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_word(word: str) -> str:
    decomposed = unicodedata.normalize("NFD", word.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _NON_ALNUM_RE.sub("", stripped)


def word_similarity(a: str, b: str) -> int:
    """1 when the normalized words are equal or one prefixes the other, else 0."""
    a = normalize_word(a)
    b = normalize_word(b)
    if not a or not b:
        return 0
    if a == b or a.startswith(b) or b.startswith(a):
        return 1
    return 0


def match_score(window1: List[str], window2: List[str]) -> int:
    return sum(word_similarity(w1, w2) for w1, w2 in zip(window1, window2))


def _best_overlap(
    words1: List[str],
    words2: List[str],
    min_words: int,
    max_words: int,
    tolerance: int,
) -> Optional[Tuple[int, int, int]]:
    """
    Search the overlap window, longest first.

    Returns (n, i, j) for the accepted window of ``n`` words starting at
    ``words1[i]`` and ``words2[j]``, or None.
    """
    for n in range(max_words, min_words - 1, -1):
        best: Optional[Tuple[int, int, int]] = None
        best_score = -1
        for i in range(len(words1) - n, -1, -1):
            window1 = words1[i:i + n]
            for j in range(0, len(words2) - n + 1):
                score = match_score(window1, words2[j:j + n])
                if n - score <= tolerance and score > best_score:
                    best_score = score
                    best = (n, i, j)
        if best is not None:
            return best
    return None


def merge_with_tolerance(
    s1: str,
    s2: str,
    min_words: int = 2,
    max_words: int = 10,
    tolerance: int = 0,
) -> str:
    """
    Merge two fragments, dropping the word window they share.

    Args:
        s1: Leading fragment
        s2: Trailing fragment
        min_words: Smallest overlap window considered
        max_words: Largest overlap window considered
        tolerance: Number of mismatching words allowed inside the window

    Returns:
        prefix of ``s1`` + overlap + suffix of ``s2`` joined by single spaces,
        or the plain concatenation when no window is accepted.

    Example:
        >>> merge_with_tolerance("abc def ghi jkl extra noise", "noise ghi jkl mno pqr")
        'abc def ghi jkl mno pqr'
    """
    s1 = (s1 or "").strip()
    s2 = (s2 or "").strip()
    if not s1 and not s2:
        return ""
    if not s1:
        return s2
    if not s2:
        return s1

    words1 = s1.split()
    words2 = s2.split()

    found = _best_overlap(words1, words2, min_words, max_words, tolerance)
    if found is None:
        return " ".join(words1 + words2)

    n, i, j = found
    overlap1 = words1[i:i + n]
    overlap2 = words2[j:j + n]
    # Keep the span that carries the most text (a truncated word loses to its full form)
    if len(" ".join(overlap1)) > len(" ".join(overlap2)):
        overlap = overlap1
    else:
        overlap = overlap2

    return " ".join(words1[:i] + overlap + words2[j + n:])


def merge_all_with_tolerance(
    fragments: List[str],
    min_words: int = 2,
    max_words: int = 10,
    tolerance: int = 0,
) -> str:
    """Left fold of ``merge_with_tolerance`` over ``fragments``."""
    if not fragments:
        return ""
    if len(fragments) == 1:
        return (fragments[0] or "").strip()
    return reduce(
        lambda acc, fragment: merge_with_tolerance(
            acc, fragment, min_words, max_words, tolerance
        ),
        fragments,
    )

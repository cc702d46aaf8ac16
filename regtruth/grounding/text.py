"""Text normalization for quote matching, with a map back to original offsets."""

from __future__ import annotations

import unicodedata

SOFT_HYPHEN = "\u00ad"

_QUOTE_VARIANTS = {
    "“": '"',  # left double
    "”": '"',  # right double
    "„": '"',  # low double (Croatian opening quote)
    "‟": '"',
    "«": '"',  # guillemets
    "»": '"',
    "″": '"',  # double prime
    "‘": "'",  # left single
    "’": "'",  # right single / apostrophe
    "‚": "'",
    "‛": "'",
    "‹": "'",
    "›": "'",
    "′": "'",  # prime
    "`": "'",
    "´": "'",
}


def _clusters(text: str):
    """Yield (start_index, cluster) where a cluster is a base char plus combining marks."""
    i = 0
    n = len(text)
    while i < n:
        j = i + 1
        while j < n and unicodedata.combining(text[j]):
            j += 1
        yield i, text[i:j]
        i = j


def _normalize_cluster(cluster: str) -> str:
    out = unicodedata.normalize("NFKC", cluster)
    out = out.replace(SOFT_HYPHEN, "")
    return "".join(_QUOTE_VARIANTS.get(ch, ch) for ch in out)


def normalize_with_map(text: str) -> tuple[str, list[int]]:
    """Normalize text and return (normalized, index_map).

    index_map[i] is the index in text of the character that produced normalized[i].
    Whitespace runs collapse to one space; leading and trailing whitespace is dropped.
    """
    chars: list[str] = []
    index_map: list[int] = []
    pending_space_at: int | None = None
    for start, cluster in _clusters(text):
        for ch in _normalize_cluster(cluster):
            if ch.isspace():
                if pending_space_at is None:
                    pending_space_at = start
                continue
            if pending_space_at is not None and chars:
                chars.append(" ")
                index_map.append(pending_space_at)
            pending_space_at = None
            chars.append(ch)
            index_map.append(start)
    return "".join(chars), index_map


def normalize_text(text: str) -> str:
    """NFKC, soft hyphens removed, quote variants folded, whitespace collapsed and trimmed."""
    return normalize_with_map(text)[0]

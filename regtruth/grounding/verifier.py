"""Grounding verifier: does a claimed quote occur in its evidence text?

Pure functions over two strings. Exact containment is tried first, then containment
after normalization (regtruth.grounding.text). A failed match reports the longest
prefix of the normalized quote that occurs anywhere in the normalized evidence and
the position where the quote diverges, so a NOT_FOUND can be triaged as a truncated
evidence text, OCR-style character corruption, or a pointer at the wrong evidence.
"""

from __future__ import annotations

from dataclasses import dataclass

from regtruth.grounding.text import normalize_text, normalize_with_map
from regtruth.models.enums import MatchMode, MatchType, RiskTier

# A failed quote whose longest matching prefix is shorter than this is probably
# pointing at the wrong evidence rather than at a corrupted copy of the right one.
WRONG_EVIDENCE_PREFIX = 8

DIAGNOSIS_WRONG_EVIDENCE = "WRONG_EVIDENCE"
DIAGNOSIS_TRUNCATED_EVIDENCE = "TRUNCATED_EVIDENCE"
DIAGNOSIS_CHARACTER_MISMATCH = "CHARACTER_MISMATCH"
DIAGNOSIS_EMPTY_QUOTE = "EMPTY_QUOTE"

EXACT_MATCH_TIERS = frozenset({RiskTier.T0.value, RiskTier.T1.value})


@dataclass(frozen=True)
class QuoteVerification:
    """Outcome of verify(). Offsets index the original evidence text."""

    found: bool
    match_type: MatchType
    match_mode: MatchMode | None = None
    start: int | None = None
    end: int | None = None
    matched_prefix_length: int | None = None
    divergence_index: int | None = None
    diagnosis: str | None = None


def _longest_prefix(haystack: str, needle: str) -> int:
    """Length of the longest prefix of needle occurring in haystack.

    Containment of prefixes is monotonic, so binary search over the length.
    """
    lo, hi = 0, len(needle)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if needle[:mid] in haystack:
            lo = mid
        else:
            hi = mid - 1
    return lo


def _diagnose(normalized_text: str, normalized_quote: str, prefix_len: int) -> str:
    if prefix_len < min(WRONG_EVIDENCE_PREFIX, len(normalized_quote)):
        return DIAGNOSIS_WRONG_EVIDENCE
    if normalized_text.endswith(normalized_quote[:prefix_len]):
        return DIAGNOSIS_TRUNCATED_EVIDENCE
    return DIAGNOSIS_CHARACTER_MISMATCH


def verify(evidence_text: str, claimed_quote: str) -> QuoteVerification:
    """Locate claimed_quote in evidence_text.

    Returns GROUNDED with EXACT or NORMALIZED mode and original offsets, or NOT_FOUND
    with matched_prefix_length and divergence_index measured in the normalized quote.
    """
    quote = claimed_quote or ""
    text = evidence_text or ""

    if quote:
        idx = text.find(quote)
        if idx != -1:
            return QuoteVerification(
                found=True,
                match_type=MatchType.GROUNDED,
                match_mode=MatchMode.EXACT,
                start=idx,
                end=idx + len(quote),
            )

    normalized_quote = normalize_text(quote)
    if not normalized_quote:
        return QuoteVerification(
            found=False,
            match_type=MatchType.NOT_FOUND,
            matched_prefix_length=0,
            divergence_index=0,
            diagnosis=DIAGNOSIS_EMPTY_QUOTE,
        )

    normalized_text, index_map = normalize_with_map(text)
    idx = normalized_text.find(normalized_quote)
    if idx != -1:
        last = idx + len(normalized_quote) - 1
        return QuoteVerification(
            found=True,
            match_type=MatchType.GROUNDED,
            match_mode=MatchMode.NORMALIZED,
            start=index_map[idx],
            end=index_map[last] + 1,
        )

    prefix_len = _longest_prefix(normalized_text, normalized_quote)
    return QuoteVerification(
        found=False,
        match_type=MatchType.NOT_FOUND,
        matched_prefix_length=prefix_len,
        divergence_index=prefix_len,
        diagnosis=_diagnose(normalized_text, normalized_quote, prefix_len),
    )


def check_offset_invariant(text: str, quote: str, start: int, end: int) -> bool:
    """True when text[start:end] is exactly quote (holds for EXACT matches)."""
    return end == start + len(quote) and text[start:end] == quote


def satisfies_tier_policy(match_type: str | None, match_mode: str | None, risk_tier: str) -> bool:
    """T0/T1 rules may only cite EXACT matches; T2/T3 accept NORMALIZED."""
    if match_type != MatchType.GROUNDED.value:
        return False
    if risk_tier in EXACT_MATCH_TIERS:
        return match_mode == MatchMode.EXACT.value
    return match_mode in (MatchMode.EXACT.value, MatchMode.NORMALIZED.value)

"""Token extraction and centroid similarity for lightweight semantic matching."""

import math
import re
from typing import Optional

from models import TokenCentroid

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "been", "be",
    "have", "has", "had", "do", "does", "did", "will", "would", "should",
    "can", "could", "may", "might", "must", "that", "this", "these", "those",
})

_NON_WORD = re.compile(r"[^\w\s-]")
_SPLIT = re.compile(r"[\s-]+")

HASH_DELIMITER = "|"


def extract_tokens(text: str) -> list[str]:
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [t for t in _SPLIT.split(cleaned) if len(t) > 2 and t not in STOP_WORDS]


def tokenize(
    host: Optional[str] = None,
    path_tokens: Optional[list[str]] = None,
    title: Optional[str] = None,
    h1: Optional[str] = None,
    meta: Optional[str] = None,
) -> list[str]:
    """Flatten the tab's textual features into one token list.

    Host labels are kept verbatim when longer than two characters; every
    other field goes through extract_tokens.
    """
    tokens: list[str] = []
    if host:
        tokens.extend(label for label in host.split(".") if len(label) > 2)
    for segment in path_tokens or []:
        tokens.extend(extract_tokens(segment))
    for text in (title, h1, meta):
        if text:
            tokens.extend(extract_tokens(text))
    return tokens


def features_hash(tokens: list[str]) -> str:
    """Order-insensitive fingerprint for change detection (not an identity)."""
    return HASH_DELIMITER.join(sorted(tokens))


# ── Centroids ────────────────────────────────────────────────

def create_centroid(token_lists: list[list[str]], weights: Optional[list[float]] = None) -> TokenCentroid:
    counts: dict[str, float] = {}
    total = 0.0
    for idx, tokens in enumerate(token_lists):
        weight = weights[idx] if weights and idx < len(weights) else 1
        for token in tokens:
            counts[token] = counts.get(token, 0) + weight
            total += weight
    return TokenCentroid(tokens=counts, total_weight=total)


def update_centroid(centroid: TokenCentroid, tokens: list[str], weight: float = 1) -> TokenCentroid:
    """Return a new centroid with `weight` added per token occurrence."""
    counts = dict(centroid.tokens)
    for token in tokens:
        counts[token] = counts.get(token, 0) + weight
    return TokenCentroid(tokens=counts, total_weight=centroid.total_weight + weight * len(tokens))


def cosine_similarity(centroid: TokenCentroid, tokens: list[str]) -> float:
    if not centroid.tokens or not tokens:
        return 0.0

    token_set = set(tokens)
    dot = 0.0
    centroid_mag = 0.0
    for token, weight in centroid.tokens.items():
        centroid_mag += weight * weight
        if token in token_set:
            dot += weight

    centroid_mag = math.sqrt(centroid_mag)
    token_mag = math.sqrt(len(tokens))
    if centroid_mag == 0 or token_mag == 0:
        return 0.0
    return dot / (centroid_mag * token_mag)


def jaccard_similarity(centroid: TokenCentroid, tokens: list[str]) -> float:
    if not centroid.tokens or not tokens:
        return 0.0

    token_set = set(tokens)
    intersection = sum(1 for token in centroid.tokens if token in token_set)
    union = len(centroid.tokens) + len(token_set) - intersection
    return intersection / union if union else 0.0


def weighted_similarity(centroid: TokenCentroid, tokens: list[str]) -> float:
    return 0.6 * cosine_similarity(centroid, tokens) + 0.4 * jaccard_similarity(centroid, tokens)

"""Map a free-text model name onto one canonical fal.ai endpoint.

The resolver is pure: no I/O, no shared state, and it never raises. It picks
one catalog from the registry by (output_type, has_image_input) and scores
every entry of that catalog against the normalized model name.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Optional, Sequence, Tuple

from .registry import (
    CATALOG_DEFAULTS,
    DEFAULT_FAL_ENDPOINT,
    IMAGE_TO_IMAGE_ENDPOINTS,
    IMAGE_TO_VIDEO_ENDPOINTS,
    TEXT_TO_OUTPUT_ENDPOINTS,
)

# Weight of one shared token against one character of edit distance in the
# fuzzy pass. Tuning constant: shared tokens must dominate spelling noise.
FUZZY_OVERLAP_WEIGHT = 25

_SEPARATORS = re.compile(r"[/_]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def normalize(value: str) -> str:
    """Lower-case value and reduce it to hyphen-joined alphanumeric tokens.

    >>> normalize("fal-ai/Kling_Video/v2")
    'kling-video-v2'
    """
    value = (value or "").lower().replace("fal-ai/", " ")
    value = _SEPARATORS.sub(" ", value)
    value = _NON_ALNUM.sub(" ", value).strip()
    return _WHITESPACE.sub("-", value)


def tokenize(value: str) -> FrozenSet[str]:
    return frozenset(t for t in normalize(value).split("-") if t)


def levenshtein(a: str, b: str) -> int:
    """Unit-cost edit distance between a and b."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def select_catalog(output_type: str, has_image_input: bool) -> Tuple[str, ...]:
    if has_image_input:
        return IMAGE_TO_VIDEO_ENDPOINTS if output_type == "video" else IMAGE_TO_IMAGE_ENDPOINTS
    return TEXT_TO_OUTPUT_ENDPOINTS


def catalog_default(catalog: Sequence[str]) -> str:
    return CATALOG_DEFAULTS.get(tuple(catalog), DEFAULT_FAL_ENDPOINT)


def _best_subset_match(wanted: FrozenSet[str], normalized: str, catalog: Sequence[str]) -> Optional[str]:
    best = None
    best_key = None
    for endpoint in catalog:
        tokens = tokenize(endpoint)
        if not wanted <= tokens:
            continue
        # Fewest tokens first, then closest spelling; strict < keeps declaration order on ties
        key = (len(tokens), levenshtein(normalized, normalize(endpoint)))
        if best_key is None or key < best_key:
            best, best_key = endpoint, key
    return best


def _best_fuzzy_match(wanted: FrozenSet[str], normalized: str, catalog: Sequence[str], default: str) -> str:
    best = default
    best_score = float("-inf")
    for endpoint in catalog:
        overlap = len(wanted & tokenize(endpoint))
        score = FUZZY_OVERLAP_WEIGHT * overlap - levenshtein(normalized, normalize(endpoint))
        if score > best_score:
            best, best_score = endpoint, score
    return best


def resolve_fal_endpoint(model_name: str, output_type: str = "image", has_image_input: bool = False) -> str:
    """Resolve a user-facing model name to a fal.ai endpoint identifier.

    Args:
        model_name: Free text such as "Kling", "nano banana" or "fal-ai/veo3".
        output_type: "image" or "video".
        has_image_input: True when the request carries a source image.

    Returns:
        A member of the catalog selected by (output_type, has_image_input), or
        DEFAULT_FAL_ENDPOINT when model_name holds no usable tokens and no
        source image is given.
    """
    catalog = select_catalog(output_type, has_image_input)
    default = catalog_default(catalog)

    wanted = tokenize(model_name)
    if not wanted or not catalog:
        return default

    normalized = normalize(model_name)
    match = _best_subset_match(wanted, normalized, catalog)
    if match is not None:
        return match
    return _best_fuzzy_match(wanted, normalized, catalog, default)

"""Short human-readable names for style profiles.

The name is built from the style keywords found across all structured
prompts of a profile, for example ``"Golden Hour Urban Warm Serene"`` or
``"Night Rainy City Moody"``.

Algorithm
---------
1. Extract and union the keywords of every structured prompt
   (:func:`~styledna.core.style_attributes.aggregate_style_attributes`).
2. Flatten the categories in :data:`PRIORITY_ORDER`.
3. Rank keywords by how often they occur in the flattened list.  Ties keep
   their flattened order.
4. Title-case the top four and join them with spaces.
5. While the name is longer than ``max_length``, drop the last word, but
   never go below two words.

The function is pure: no randomness and no I/O.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from styledna.core.style_attributes import aggregate_style_attributes

logger = logging.getLogger(__name__)

UNTITLED_NAME = "Untitled Style"
NO_KEYWORDS_NAME = "Custom Style Profile"
FALLBACK_NAME = "Style Profile"

DEFAULT_MAX_LENGTH = 40
TOP_KEYWORDS = 4
MIN_WORDS = 2

PRIORITY_ORDER: tuple[str, ...] = (
    "time",
    "weather",
    "location",
    "lighting",
    "mood",
    "colors",
    "atmosphere",
    "technical",
)


def _structured_text(record: Any) -> str:
    """Accept StructuredPrompt models as well as plain mappings."""
    if isinstance(record, Mapping):
        return record["structured_prompt"]
    return record.structured_prompt


def _title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def top_keywords(attributes: Mapping[str, Sequence[str]], limit: int = TOP_KEYWORDS) -> list[str]:
    """Return the *limit* most frequent keywords in priority order."""
    flattened = [
        keyword for category in PRIORITY_ORDER for keyword in attributes.get(category, ())
    ]
    frequency = Counter(flattened)
    # Counter preserves first-seen order and sorted() is stable.
    ranked = sorted(frequency.items(), key=lambda item: item[1], reverse=True)
    return [keyword for keyword, _ in ranked[:limit]]


def generate_profile_name(records: Sequence[Any], max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Generate a short descriptive name for a style profile.

    Args:
        records: Structured prompts of the profile, either
            :class:`~styledna.core.models.StructuredPrompt` instances or
            mappings with a ``structured_prompt`` key.
        max_length: Longest name to produce, unless that would mean fewer
            than two words.

    Returns:
        The generated name, ``"Untitled Style"`` for no records,
        ``"Custom Style Profile"`` when no keyword matched, or
        ``"Style Profile"`` if anything went wrong.
    """
    if not records:
        return UNTITLED_NAME

    try:
        attributes = aggregate_style_attributes(_structured_text(r) for r in records)
        logger.debug(f"Generating profile name from attributes: {attributes}")

        keywords = top_keywords(attributes)
        if not keywords:
            return NO_KEYWORDS_NAME

        words = _title_case(" ".join(keywords)).split(" ")
        while len(words) > MIN_WORDS and len(" ".join(words)) > max_length:
            words.pop()
        name = " ".join(words)
    except Exception as e:
        logger.error(f"Failed to generate profile name: {e}", exc_info=True)
        return FALLBACK_NAME

    logger.info(f"Generated profile name: {name}")
    return name or FALLBACK_NAME

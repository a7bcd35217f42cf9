"""Keyword-based style attribute extraction from structured prompts.

A structured prompt is JSON text describing an image.  This module looks at a
handful of top-level keys and reports which words of a fixed style lexicon
appear in them, grouped into eight categories:

``lighting``, ``colors``, ``mood``, ``atmosphere``, ``time``, ``weather``,
``location`` and ``technical``.

The lexicon is static reference data (:data:`CATEGORY_KEYS`,
:data:`KEYWORD_VOCABULARY`, :data:`COOL_COLOR_MARKERS`,
:data:`WARM_COLOR_MARKERS`, :data:`COLOR_DESCRIPTORS`).  Matches are
returned deduplicated and in lexicon order, so the same input always
produces the same output.

Extraction never raises: text that is not a JSON object simply yields empty
categories.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

logger = logging.getLogger(__name__)

StyleAttributes = dict[str, list[str]]

CATEGORIES: tuple[str, ...] = (
    "lighting",
    "colors",
    "mood",
    "atmosphere",
    "time",
    "weather",
    "location",
    "technical",
)

# Structured prompt keys read for each category, first non-empty value wins.
CATEGORY_KEYS: dict[str, tuple[str, ...]] = {
    "lighting": ("lighting",),
    "colors": ("colors", "color_palette", "palette"),
    "mood": ("mood", "vibe"),
    "atmosphere": ("atmosphere",),
    "time": ("time_of_day", "time"),
    "weather": ("weather",),
    "location": ("environment", "location", "setting"),
    "technical": ("technical", "photography", "camera"),
}

KEYWORD_VOCABULARY: dict[str, tuple[str, ...]] = {
    "lighting": (
        "warm", "cold", "soft", "harsh", "natural", "artificial", "golden",
        "blue", "dramatic", "even", "high contrast", "low key", "bright", "dim",
    ),
    "mood": (
        "serene", "dramatic", "peaceful", "energetic", "calm", "vibrant",
        "moody", "cheerful", "melancholic", "mysterious", "playful", "elegant",
    ),
    "atmosphere": (
        "crisp", "hazy", "foggy", "clear", "ethereal", "intimate", "spacious",
        "cozy", "urban", "rural",
    ),
    "time": (
        "morning", "afternoon", "evening", "night", "dawn", "dusk", "twilight",
        "golden hour", "blue hour", "midday",
    ),
    "weather": (
        "sunny", "cloudy", "rainy", "snowy", "foggy", "overcast", "clear", "stormy",
    ),
    "location": (
        "urban", "city", "street", "nature", "indoor", "outdoor", "studio",
        "landscape", "portrait", "architectural",
    ),
    "technical": (
        "shallow depth", "bokeh", "wide angle", "telephoto", "macro",
        "long exposure", "sharp",
    ),
}

# Color list entries are classified by substring against names and hex prefixes.
COOL_COLOR_MARKERS: tuple[str, ...] = (
    "blue", "cyan", "teal", "turquoise", "#0", "#1", "#2", "#3", "#4", "#5",
)
WARM_COLOR_MARKERS: tuple[str, ...] = ("red", "orange", "yellow", "gold", "#f", "#e", "#d", "#c")

# Used when the color value is free text rather than a list.
COLOR_DESCRIPTORS: tuple[str, ...] = (
    "cool", "warm", "vibrant", "muted", "pastel", "bold", "neutral",
)


def empty_attributes() -> StyleAttributes:
    """Return a mapping with every category present and empty."""
    return {category: [] for category in CATEGORIES}


def match_keywords(text: str, keywords: Iterable[str]) -> list[str]:
    """Return the *keywords* that occur in *text*, case-insensitively."""
    lowered = text.lower()
    return [keyword for keyword in keywords if keyword.lower() in lowered]


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _first_value(parsed: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = parsed.get(key)
        if value:
            return value
    return None


def extract_color_descriptors(color_data: Any) -> list[str]:
    """Describe a color value as cool/warm/balanced plus dominant tones.

    Lists are treated as palettes of color names or hex codes.  Strings are
    matched against :data:`COLOR_DESCRIPTORS`.  Any other value has no
    descriptors.
    """
    if isinstance(color_data, str):
        return match_keywords(color_data, COLOR_DESCRIPTORS)
    if not isinstance(color_data, list):
        return []

    colors = [str(c).lower() for c in color_data]
    has_cool = any(marker in c for c in colors for marker in COOL_COLOR_MARKERS)
    has_warm = any(marker in c for c in colors for marker in WARM_COLOR_MARKERS)

    descriptors: list[str] = []
    if has_cool and has_warm:
        descriptors.append("balanced")
    elif has_cool:
        descriptors.append("cool")
    elif has_warm:
        descriptors.append("warm")

    if any("blue" in c for c in colors):
        descriptors.append("blue")
    if any("gold" in c or "yellow" in c for c in colors):
        descriptors.append("golden")
    if any("gray" in c or "grey" in c for c in colors):
        descriptors.append("neutral")
    return descriptors


def extract_style_attributes(structured_prompt: str) -> StyleAttributes:
    """Extract style keywords from one structured prompt.

    Args:
        structured_prompt: JSON text, expected to decode to an object.

    Returns:
        Mapping of every category to its matched keywords.  All categories
        are empty when the text is not a JSON object.
    """
    attributes = empty_attributes()
    try:
        parsed = json.loads(structured_prompt)
    except (TypeError, ValueError) as e:
        logger.debug(f"Structured prompt is not valid JSON: {e}")
        return attributes

    if not isinstance(parsed, dict):
        return attributes

    try:
        for category in CATEGORIES:
            value = _first_value(parsed, CATEGORY_KEYS[category])
            if value is None:
                continue
            if category == "colors":
                attributes[category] = extract_color_descriptors(value)
            else:
                attributes[category] = match_keywords(
                    _as_text(value), KEYWORD_VOCABULARY[category]
                )
    except Exception as e:
        logger.warning(f"Failed to extract style attributes: {e}")
        return empty_attributes()

    return attributes


def aggregate_style_attributes(structured_prompts: Iterable[str]) -> StyleAttributes:
    """Union the attributes of several structured prompts, per category."""
    merged = empty_attributes()
    for structured_prompt in structured_prompts:
        for category, keywords in extract_style_attributes(structured_prompt).items():
            merged[category].extend(keywords)
    return {category: list(dict.fromkeys(keywords)) for category, keywords in merged.items()}

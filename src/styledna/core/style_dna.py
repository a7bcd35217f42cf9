"""Style DNA: the style-only part of a Bria structured prompt.

A structured prompt describes both *what* is in an image (objects, subjects,
composition) and *how* it looks (lighting, colors, mood, camera settings).
Style transfer needs only the second half.  This module separates the two:

- :func:`parse_structured_prompt` copies the recognised style fields into a
  :class:`StyleDNA`.
- :func:`style_dna_to_prompt` and :func:`create_style_transfer_prompt`
  render a StyleDNA as text that can be appended to a new subject.
- :func:`create_style_only_structured_prompt` re-serialises the whitelisted
  style keys of the original structured prompt as JSON.

Bria rejects partial structured prompts (it needs every scene field), so the
generation endpoint transfers style through the text prompt produced here
and drops the structured prompt entirely.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Lighting sub-keys worth keeping.  "direction" is skipped because it tends to
# describe the geometry of the original scene.
LIGHTING_SUBKEYS: tuple[str, ...] = ("conditions", "quality", "type")

TECHNICAL_FIELDS: tuple[str, ...] = (
    "depth_of_field",
    "focus",
    "lens",
    "aperture",
    "iso",
    "shutter_speed",
)

# Top-level keys allowed into a style-only structured prompt.  A key matches
# when it equals an entry or contains it (case-insensitive).
STYLE_FIELDS_WHITELIST: tuple[str, ...] = (
    "lighting",
    "light",
    "illumination",
    "color_palette",
    "colors",
    "palette",
    "mood",
    "mood_atmosphere",
    "atmosphere",
    "tone",
    "vibe",
    "aesthetics",
    "photographic_characteristics",
    "technical",
    "camera",
    "photography",
    "artistic_style",
    "photographic_style",
    "rendering_style",
    "style",
    "style_medium",
    "time_of_day",
    "time",
    "season",
    "weather",
    "color_scheme",
)

TRANSFER_FALLBACK_SUFFIX = "maintaining the same visual style, lighting, and atmosphere"


@dataclass
class StyleDNA:
    """Style-only attributes of one structured prompt.

    Every field is optional.  ``original`` holds the full decoded structured
    prompt, or the raw text when it could not be decoded.
    """

    lighting: str | dict | None = None
    color_palette: Any = None
    colors: Any = None
    mood: Any = None
    atmosphere: Any = None
    tone: Any = None
    technical: dict[str, Any] | None = None
    artistic_style: Any = None
    photographic_style: Any = None
    rendering_style: Any = None
    time_of_day: Any = None
    season: Any = None
    weather: Any = None
    original: Any = field(default=None, repr=False)

    def style_fields(self) -> dict[str, Any]:
        """Return the populated style fields, without ``original``."""
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if f.name != "original" and getattr(self, f.name)
        }

    def has_style(self) -> bool:
        return bool(self.style_fields())

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view used in API responses."""
        data = self.style_fields()
        if self.original is not None:
            data["original"] = self.original
        return data


def parse_structured_prompt(structured_prompt: str) -> StyleDNA:
    """Extract the style-only fields of a structured prompt.

    Alternate spellings map onto one field, with later spellings winning:
    ``lighting`` < ``light`` < ``illumination``, ``color_palette`` <
    ``palette``, ``mood`` < ``vibe``, ``artistic_style`` < ``style`` and
    ``time_of_day`` < ``time``.

    Returns:
        The parsed :class:`StyleDNA`.  Text that is not valid JSON yields a
        StyleDNA whose ``original`` is the raw text and nothing else.
    """
    try:
        parsed = json.loads(structured_prompt)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to parse structured_prompt: {e}")
        return StyleDNA(original=structured_prompt)

    dna = StyleDNA(original=parsed)
    if not isinstance(parsed, dict):
        return dna

    def pick(*keys: str) -> Any:
        value = None
        for key in keys:
            if parsed.get(key):
                value = parsed[key]
        return value

    dna.lighting = pick("lighting", "light", "illumination")
    dna.color_palette = pick("color_palette", "palette")
    dna.colors = pick("colors")
    dna.mood = pick("mood", "vibe")
    dna.atmosphere = pick("atmosphere")
    dna.tone = pick("tone")

    tech_source = parsed.get("technical") or parsed.get("camera") or parsed.get("photography")
    if isinstance(tech_source, dict):
        technical = {}
        for name in TECHNICAL_FIELDS:
            value = tech_source.get(name)
            if name == "depth_of_field" and tech_source.get("dof"):
                value = tech_source["dof"]
            if value:
                technical[name] = value
        dna.technical = technical or None

    dna.artistic_style = pick("artistic_style", "style")
    dna.photographic_style = pick("photographic_style")
    dna.rendering_style = pick("rendering_style")
    dna.time_of_day = pick("time_of_day", "time")
    dna.season = pick("season")
    dna.weather = pick("weather")

    logger.debug(f"Extracted style DNA fields: {sorted(dna.style_fields())}")
    return dna


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _lighting_clause(lighting: Any) -> str | None:
    if isinstance(lighting, str):
        return lighting
    if isinstance(lighting, dict):
        kept = [_as_text(lighting[key]) for key in LIGHTING_SUBKEYS if lighting.get(key)]
        return ", ".join(kept) or None
    return None


def style_dna_to_prompt(dna: StyleDNA) -> str:
    """Render a StyleDNA as ``"key: value"`` clauses joined by commas.

    Clause order is fixed: lighting, color palette, mood, atmosphere, tone,
    depth of field, focus, lens, aperture, style, time, season, weather.
    An empty StyleDNA renders as ``""``.
    """
    parts: list[str] = []

    if dna.lighting:
        lighting = _lighting_clause(dna.lighting)
        if lighting:
            parts.append(f"lighting: {lighting}")

    colors = dna.color_palette or dna.colors
    if colors:
        if isinstance(colors, list):
            parts.append(f"color palette: {', '.join(str(c) for c in colors)}")
        else:
            parts.append(f"color palette: {_as_text(colors)}")

    for label, value in (("mood", dna.mood), ("atmosphere", dna.atmosphere), ("tone", dna.tone)):
        if value:
            parts.append(f"{label}: {_as_text(value)}")

    if dna.technical:
        for name in ("depth_of_field", "focus", "lens", "aperture"):
            if dna.technical.get(name):
                parts.append(f"{name.replace('_', ' ')}: {_as_text(dna.technical[name])}")

    style = dna.artistic_style or dna.photographic_style or dna.rendering_style
    if style:
        parts.append(f"style: {_as_text(style)}")

    for label, value in (("time", dna.time_of_day), ("season", dna.season), ("weather", dna.weather)):
        if value:
            parts.append(f"{label}: {_as_text(value)}")

    return ", ".join(parts)


def create_style_transfer_prompt(subject: str, dna: StyleDNA) -> str:
    """Combine a new subject with the style described by *dna*."""
    description = style_dna_to_prompt(dna)
    if description:
        return f"{subject}, rendered with: {description}"
    return f"{subject}, {TRANSFER_FALLBACK_SUFFIX}"


def _is_style_key(key: str) -> bool:
    lowered = key.lower()
    return any(lowered == allowed or allowed in lowered for allowed in STYLE_FIELDS_WHITELIST)


def create_style_only_structured_prompt(dna: StyleDNA) -> str:
    """Serialise the whitelisted style keys of ``dna.original`` as JSON.

    ``aesthetics`` is copied without any sub-key mentioning composition,
    since composition describes the layout of the original scene.  When no
    key passes the whitelist, the lighting, color and mood fields already
    on *dna* are used instead.
    """
    original = dna.original if isinstance(dna.original, dict) else {}
    style_obj: dict[str, Any] = {}

    for key, value in original.items():
        if not value or not _is_style_key(key):
            continue
        if key == "aesthetics" and isinstance(value, dict):
            cleaned = {k: v for k, v in value.items() if "composition" not in k.lower()}
            if cleaned:
                style_obj[key] = cleaned
        else:
            style_obj[key] = value

    if not style_obj:
        for name in ("lighting", "color_palette", "colors", "mood", "atmosphere"):
            value = getattr(dna, name)
            if value:
                style_obj[name] = value

    removed = [key for key in original if key not in style_obj]
    logger.debug(f"Style-only keys: {list(style_obj)}; removed scene keys: {removed}")
    return json.dumps(style_obj, separators=(",", ":"))


def aggregate_style_dna(dnas: list[StyleDNA]) -> StyleDNA:
    """Combine the StyleDNA of several reference images.

    This is a placeholder policy, not a merge: with more than one input the
    first StyleDNA is returned (as a copy) and the rest are ignored.
    """
    if not dnas:
        return StyleDNA()
    if len(dnas) > 1:
        # TODO: merge moods and palettes across references instead of taking the first.
        logger.info(f"Aggregating {len(dnas)} style DNAs: using the first one")
    return dataclasses.replace(dnas[0])

"""Tests for styledna.core.style_dna: style-only parsing and prompts.

Tests cover:
- Parsing of structured prompts into StyleDNA, including alternate keys.
- Rendering a StyleDNA as prompt text in a fixed clause order.
- Composing style transfer prompts for a new subject.
- Filtering a structured prompt down to its style keys.
- Aggregation of several StyleDNAs.
"""

from __future__ import annotations

import json

from styledna.core.style_dna import (
    StyleDNA,
    aggregate_style_dna,
    create_style_only_structured_prompt,
    create_style_transfer_prompt,
    parse_structured_prompt,
    style_dna_to_prompt,
)


def parse(**fields) -> StyleDNA:
    return parse_structured_prompt(json.dumps(fields))


# ---------------------------------------------------------------------------
# Parsing.
# ---------------------------------------------------------------------------


class TestParseStructuredPrompt:
    """Tests for parse_structured_prompt."""

    def test_invalid_json_keeps_raw_text(self):
        """Invalid JSON yields an empty StyleDNA holding the raw text."""
        dna = parse_structured_prompt("not json")

        assert dna.original == "not json"
        assert not dna.has_style()
        assert style_dna_to_prompt(dna) == ""

    def test_non_object_json(self):
        """A JSON value that is not an object carries no style."""
        dna = parse_structured_prompt("[1, 2]")

        assert dna.original == [1, 2]
        assert not dna.has_style()

    def test_basic_fields(self):
        """Recognised keys are copied and the parsed prompt is kept."""
        dna = parse(lighting="warm", mood="serene", objects=["a dog"])

        assert dna.lighting == "warm"
        assert dna.mood == "serene"
        assert dna.original["objects"] == ["a dog"]
        assert set(dna.style_fields()) == {"lighting", "mood"}

    def test_later_alternate_key_wins(self):
        """Alternate spellings override earlier ones when present."""
        dna = parse(lighting="soft", illumination="neon", mood="calm", vibe="electric")

        assert dna.lighting == "neon"
        assert dna.mood == "electric"

    def test_empty_alternate_key_ignored(self):
        """An empty alternate spelling does not erase a value."""
        dna = parse(color_palette=["red"], palette=[])

        assert dna.color_palette == ["red"]

    def test_style_and_time_aliases(self):
        """style maps to artistic_style and time to time_of_day."""
        dna = parse(style="watercolor", time="dusk")

        assert dna.artistic_style == "watercolor"
        assert dna.time_of_day == "dusk"

    def test_technical_from_camera(self):
        """Technical settings are read from an object; dof wins over depth_of_field."""
        dna = parse(
            camera={
                "lens": "85mm",
                "depth_of_field": "deep",
                "dof": "shallow",
                "iso": 400,
                "brand": "Leica",
            }
        )

        assert dna.technical == {"depth_of_field": "shallow", "lens": "85mm", "iso": 400}

    def test_technical_string_ignored(self):
        """A technical value that is not an object is not parsed."""
        assert parse(technical="shallow depth of field").technical is None


# ---------------------------------------------------------------------------
# Prompt rendering.
# ---------------------------------------------------------------------------


class TestStyleDnaToPrompt:
    """Tests for style_dna_to_prompt."""

    def test_round_trip(self):
        """A simple prompt renders as ``key: value`` clauses."""
        assert style_dna_to_prompt(parse(lighting="warm", mood="serene")) == (
            "lighting: warm, mood: serene"
        )

    def test_fixed_clause_order(self):
        """Clauses follow a fixed order regardless of input key order."""
        dna = parse(
            weather="rain",
            tone="cool",
            lighting="dim",
            colors=["red", "black"],
            style="film noir",
            time="night",
            season="autumn",
            atmosphere="tense",
        )

        assert style_dna_to_prompt(dna) == (
            "lighting: dim, color palette: red, black, atmosphere: tense, tone: cool, "
            "style: film noir, time: night, season: autumn, weather: rain"
        )

    def test_lighting_object_skips_direction(self):
        """Object lighting keeps conditions, quality and type only."""
        dna = parse(lighting={"conditions": "overcast", "direction": "from left", "quality": "diffused"})

        assert style_dna_to_prompt(dna) == "lighting: overcast, diffused"

    def test_technical_clauses(self):
        """Depth of field, focus, lens and aperture are rendered; iso is not."""
        dna = parse(technical={"aperture": "f/1.8", "dof": "shallow", "iso": 100})

        assert style_dna_to_prompt(dna) == "depth of field: shallow, aperture: f/1.8"

    def test_palette_text(self):
        """A non-list palette is rendered as text."""
        assert style_dna_to_prompt(parse(color_palette="earth tones")) == (
            "color palette: earth tones"
        )

    def test_object_values_serialised(self):
        """Object values are rendered as JSON."""
        assert style_dna_to_prompt(parse(mood={"primary": "calm"})) == 'mood: {"primary": "calm"}'


class TestCreateStyleTransferPrompt:
    """Tests for create_style_transfer_prompt."""

    def test_subject_with_style(self):
        """The rendered style follows the subject."""
        prompt = create_style_transfer_prompt("a red bicycle", parse(lighting="warm"))

        assert prompt == "a red bicycle, rendered with: lighting: warm"

    def test_fallback_without_style(self):
        """Without style fields a generic sentence is appended."""
        prompt = create_style_transfer_prompt("a red bicycle", parse(objects=["a dog"]))

        assert prompt == (
            "a red bicycle, maintaining the same visual style, lighting, and atmosphere"
        )


# ---------------------------------------------------------------------------
# Style-only structured prompts.
# ---------------------------------------------------------------------------


class TestCreateStyleOnlyStructuredPrompt:
    """Tests for create_style_only_structured_prompt."""

    def test_scene_keys_removed(self):
        """Only whitelisted keys survive; composition is dropped from aesthetics."""
        dna = parse(
            short_description="A dog on a beach",
            objects=[{"description": "dog"}],
            lighting={"conditions": "golden hour"},
            aesthetics={
                "composition": "rule of thirds",
                "color_scheme": "warm",
                "mood_atmosphere": "joyful",
            },
            photographic_characteristics={"lens_focal_length": "50mm"},
        )

        result = json.loads(create_style_only_structured_prompt(dna))

        assert result == {
            "lighting": {"conditions": "golden hour"},
            "aesthetics": {"color_scheme": "warm", "mood_atmosphere": "joyful"},
            "photographic_characteristics": {"lens_focal_length": "50mm"},
        }

    def test_key_containing_whitelisted_name(self):
        """Keys that contain a whitelisted name are kept."""
        dna = parse(scene_lighting="dim", background_setting="forest")

        assert json.loads(create_style_only_structured_prompt(dna)) == {"scene_lighting": "dim"}

    def test_nothing_to_keep(self):
        """A prompt with only scene keys filters to an empty object."""
        dna = parse(objects=[{"description": "dog"}], composition={"framing": "close"})

        assert create_style_only_structured_prompt(dna) == "{}"

    def test_composition_only_aesthetics_dropped(self):
        """An aesthetics object left empty after filtering is omitted."""
        dna = parse(aesthetics={"composition": "centered"}, mood="calm")

        assert json.loads(create_style_only_structured_prompt(dna)) == {"mood": "calm"}

    def test_output_is_compact(self):
        """The JSON carries no whitespace between tokens."""
        dna = parse(lighting={"conditions": "soft"}, mood="calm")

        assert create_style_only_structured_prompt(dna) == (
            '{"lighting":{"conditions":"soft"},"mood":"calm"}'
        )

    def test_falls_back_to_parsed_fields(self):
        """With nothing whitelisted in the original, parsed fields are used."""
        dna = StyleDNA(lighting="soft", mood="calm", original={"objects": []})

        assert json.loads(create_style_only_structured_prompt(dna)) == {
            "lighting": "soft",
            "mood": "calm",
        }


class TestAggregateStyleDna:
    """Tests for aggregate_style_dna."""

    def test_empty_list(self):
        """No inputs yields an empty StyleDNA."""
        assert aggregate_style_dna([]) == StyleDNA()

    def test_first_entry_copied(self):
        """The first StyleDNA is returned as a copy."""
        first = parse(lighting="warm")
        second = parse(lighting="cold")

        result = aggregate_style_dna([first, second])

        assert result == first
        assert result is not first


class TestStyleDnaToDict:
    """Tests for StyleDNA.to_dict."""

    def test_excludes_empty_fields(self):
        """Only populated fields and the original are included."""
        dna = parse(lighting="warm", objects=["dog"])

        assert dna.to_dict() == {
            "lighting": "warm",
            "original": {"lighting": "warm", "objects": ["dog"]},
        }

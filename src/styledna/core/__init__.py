"""Core functionality for Style DNA Studio.

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with STYLEDNA_ in .env files

2. **Remote Service Layer** (bria_client.py, retry.py, models.py):
   - Async Bria v2 client with sync/async (202 + polling) handling
   - Bounded exponential-backoff retry around every network call
   - Pydantic models for structured prompts, presets and job results

3. **Style Text Processing** (style_attributes.py, profile_namer.py, style_dna.py):
   - Keyword extraction into style categories
   - Profile name generation from extracted keywords
   - Style DNA parsing and prompt composition for style transfer

Usage Example
-------------
    from styledna.core import BriaApiClient, config, parse_structured_prompt

    async with BriaApiClient.from_config(config) as client:
        structured = await client.extract_style([image_bytes])

    dna = parse_structured_prompt(structured.structured_prompt)
"""

from styledna.core.bria_client import BriaApiClient, BriaApiError
from styledna.core.config import StyleDnaConfig, config
from styledna.core.profile_namer import generate_profile_name
from styledna.core.style_attributes import extract_style_attributes
from styledna.core.style_dna import (
    StyleDNA,
    create_style_transfer_prompt,
    parse_structured_prompt,
)

__all__ = [
    "BriaApiClient",
    "BriaApiError",
    "StyleDNA",
    "StyleDnaConfig",
    "config",
    "create_style_transfer_prompt",
    "extract_style_attributes",
    "generate_profile_name",
    "parse_structured_prompt",
]

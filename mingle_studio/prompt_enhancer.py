"""
Prompt Enhancement for AI Image Generation

Each backend responds best to its own wording, so the clause tables are kept
per provider as PromptProfile records. Every table is keyed by the selector
enums and carries an explicit default entry; enhance() never fails.

Clause order is fixed:
    prompt, reference clause, asset-type clause, style clause,
    quality terms, aspect-ratio composition clause
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .models import AspectRatio, AssetType, Style


@dataclass(frozen=True)
class PromptProfile:
    """Backend-specific wording used by enhance()."""

    name: str
    reference_clause: str
    type_clauses: Dict[AssetType, str]
    default_type_clause: str
    style_clauses: Dict[Style, str]
    default_style_clause: str
    quality_terms: str
    aspect_clauses: Dict[AspectRatio, str]

    def type_clause(self, asset_type: AssetType) -> str:
        return self.type_clauses.get(asset_type, self.default_type_clause)

    def style_clause(self, style: Style) -> str:
        return self.style_clauses.get(style, self.default_style_clause)

    def aspect_clause(self, aspect_ratio: AspectRatio) -> Optional[str]:
        return self.aspect_clauses.get(aspect_ratio)


# ==============================================================================
# Freepik Mystic
# ==============================================================================

FREEPIK_PROFILE = PromptProfile(
    name="freepik",
    reference_clause="with style and aesthetic inspired by the reference image",
    type_clauses={
        AssetType.IMAGE: "high quality, detailed, professional photography",
        AssetType.ICON: "simple icon design, clean, minimal, vector style, clear symbol",
        AssetType.LOGO: "professional logo design, clean, memorable, brand identity, vector style",
        AssetType.LAYOUT: "clean layout design, organized, professional, modern interface",
    },
    default_type_clause="high quality, detailed, professional photography",
    style_clauses={
        Style.COLOURFUL: "vibrant colors, bright, colorful, energetic, lively",
        Style.CYBERPUNK: "cyberpunk aesthetic, neon lights, futuristic, dark atmosphere, digital",
        Style.REAL: "photorealistic, natural lighting, detailed, lifelike, authentic",
        Style.MODERN: "modern design, contemporary, sleek, minimalist, current",
        Style.MINIMALIST: "minimalist design, simple, clean, white space, elegant",
        Style.VINTAGE: "vintage style, retro, classic, aged, nostalgic, timeless",
        Style.BOLD: "bold design, strong colors, high contrast, dramatic, impactful",
        Style.ELEGANT: "elegant, sophisticated, refined, luxury, premium, graceful",
        Style.PLAYFUL: "playful, fun, whimsical, creative, joyful, lighthearted",
    },
    default_style_clause="modern design, contemporary, sleek, minimalist, current",
    quality_terms="masterpiece quality, ultra detailed, sharp focus, professional",
    aspect_clauses={
        AspectRatio.WIDESCREEN: "wide composition, landscape format",
        AspectRatio.STORY: "tall composition, portrait format",
        AspectRatio.SQUARE: "square composition, centered",
    },
)

# ==============================================================================
# Hugging Face inference (also used for the free relay provider)
# ==============================================================================

HUGGINGFACE_PROFILE = PromptProfile(
    name="huggingface",
    reference_clause="inspired by uploaded image, maintaining similar style and composition",
    type_clauses={
        AssetType.IMAGE: "high quality, detailed, professional",
        AssetType.ICON: "simple icon, clean design, minimal, vector style, transparent background",
        AssetType.LOGO: "logo design, clean, professional, minimal, vector style, brand identity",
        AssetType.LAYOUT: "clean layout, organized design, professional, modern interface",
    },
    default_type_clause="high quality, detailed, professional",
    style_clauses={
        Style.COLOURFUL: "vibrant colors, bright, colorful, cheerful, lively design",
        Style.CYBERPUNK: "cyberpunk style, neon lights, dark futuristic, sci-fi, electronic",
        Style.REAL: "realistic, photorealistic, natural lighting, detailed, lifelike",
        Style.MODERN: "modern design, contemporary, sleek, clean lines",
        Style.MINIMALIST: "minimalist, simple, clean, white space, elegant",
        Style.VINTAGE: "vintage style, retro, classic, aged, nostalgic",
        Style.BOLD: "bold design, vibrant colors, strong contrast, dynamic",
        Style.ELEGANT: "elegant, sophisticated, refined, luxury, premium",
        Style.PLAYFUL: "playful, fun, colorful, whimsical, creative",
    },
    default_style_clause="modern design, contemporary, sleek, clean lines",
    quality_terms="masterpiece, best quality, highly detailed, sharp focus",
    aspect_clauses={
        AspectRatio.WIDESCREEN: "wide composition, landscape orientation",
        AspectRatio.STORY: "tall composition, portrait orientation",
        AspectRatio.SQUARE: "square composition, centered",
    },
)

# ==============================================================================
# Gemini
# ==============================================================================

GEMINI_PROFILE = PromptProfile(
    name="gemini",
    reference_clause="inspired by uploaded image style and composition, maintaining visual coherence",
    type_clauses={
        AssetType.IMAGE: "high quality, detailed",
        AssetType.ICON: "simple icon, symbol, flat design, clear",
        AssetType.LOGO: "logo design, brand mark, professional",
        AssetType.LAYOUT: "layout design, composition, structured",
    },
    default_type_clause="high quality",
    style_clauses={
        Style.COLOURFUL: "vibrant, colorful, bright, saturated colors",
        Style.CYBERPUNK: "cyberpunk, neon, futuristic, dark, purple and blue tones",
        Style.REAL: "photorealistic, realistic, detailed, natural lighting",
        Style.MODERN: "modern, clean, contemporary, professional",
        Style.MINIMALIST: "minimalist, simple, clean, white background",
        Style.VINTAGE: "vintage, retro, aged, classic, sepia tones",
        Style.BOLD: "bold, strong, high contrast, dramatic",
        Style.ELEGANT: "elegant, sophisticated, refined, luxury",
        Style.PLAYFUL: "playful, fun, whimsical, bright colors",
    },
    default_style_clause="modern style",
    quality_terms="professional quality, crisp, clear",
    aspect_clauses={
        AspectRatio.WIDESCREEN: "wide composition, landscape format",
        AspectRatio.STORY: "tall composition, portrait format",
        AspectRatio.SQUARE: "square composition, centered",
    },
)

PROFILES: Dict[str, PromptProfile] = {
    "freepik": FREEPIK_PROFILE,
    "huggingface": HUGGINGFACE_PROFILE,
    "relay": HUGGINGFACE_PROFILE,
    "gemini": GEMINI_PROFILE,
}

DEFAULT_PROFILE = HUGGINGFACE_PROFILE


def get_profile(name: Optional[str]) -> PromptProfile:
    """Look up a profile by provider id or profile name."""
    return PROFILES.get(name or "", DEFAULT_PROFILE)


def enhance(
    prompt: str,
    style=Style.MODERN,
    asset_type=AssetType.IMAGE,
    aspect_ratio=AspectRatio.SQUARE,
    has_reference: bool = False,
    profile: Optional[PromptProfile] = None,
) -> str:
    """
    Build the backend-specific prompt.

    Selectors may be enum members or raw strings. Unknown styles and types
    resolve to their defaults; an unknown aspect ratio adds no clause.
    """
    profile = profile or DEFAULT_PROFILE
    style = Style.from_value(style)
    asset_type = AssetType.from_value(asset_type)
    aspect_ratio = AspectRatio.default() if aspect_ratio is None else AspectRatio.parse(aspect_ratio)

    parts = [prompt.strip()] if prompt and prompt.strip() else []
    if has_reference:
        parts.append(profile.reference_clause)
    parts.append(profile.type_clause(asset_type))
    parts.append(profile.style_clause(style))
    parts.append(profile.quality_terms)

    aspect = profile.aspect_clause(aspect_ratio) if aspect_ratio else None
    if aspect:
        parts.append(aspect)

    return ", ".join(parts)

"""
Fallback Renderer

Local, deterministic placeholder images for sub-requests whose provider
failed. Rendering is pure: the same prompt, selectors and seed always yield
the same pixels, and nothing here performs I/O.

Layers, bottom to top:
    diagonal three-stop gradient -> keyword-chosen shapes ->
    prompt label on a dark box -> small watermark
"""

import hashlib
import math
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .image_utils import image_to_data_uri
from .models import AspectRatio, AssetType, GenerationRequest, GenerationResult, Style

FALLBACK_PROVIDER_ID = "fallback"
WATERMARK_TEXT = "AI Generated"


@dataclass(frozen=True)
class Palette:
    primary: str
    secondary: str
    accent: str
    shapes: Tuple[str, ...]
    text: str


PALETTES: Dict[str, Palette] = {
    "colourful": Palette(
        "#FF6B6B", "#4ECDC4", "#45B7D1",
        ("#FF6B6B", "#4ECDC4", "#96CEB4", "#FFEAA7", "#DDA0DD"),
        "#FFFFFF",
    ),
    "cyberpunk": Palette(
        "#0A0A0A", "#FF00FF", "#00FFFF",
        ("#FF00FF", "#00FFFF", "#FF0080", "#8000FF", "#00FF80"),
        "#00FFFF",
    ),
    "real": Palette(
        "#2C3E50", "#34495E", "#ECF0F1",
        ("#3498DB", "#E74C3C", "#2ECC71", "#F39C12", "#9B59B6"),
        "#FFFFFF",
    ),
    "minimalist": Palette(
        "#F8F9FA", "#E9ECEF", "#6C757D",
        ("#007BFF", "#28A745", "#FFC107", "#DC3545", "#6F42C1"),
        "#212529",
    ),
}
DEFAULT_PALETTE = "colourful"

STYLE_PALETTES = {
    Style.COLOURFUL: "colourful",
    Style.CYBERPUNK: "cyberpunk",
    Style.REAL: "real",
    Style.MODERN: "colourful",
    Style.MINIMALIST: "minimalist",
    Style.VINTAGE: "colourful",
    Style.BOLD: "colourful",
    Style.ELEGANT: "colourful",
    Style.PLAYFUL: "colourful",
}

DIMENSIONS = {
    AspectRatio.SQUARE: (512, 512),
    AspectRatio.WIDESCREEN: (768, 432),
    AspectRatio.STORY: (432, 768),
    AspectRatio.CLASSIC: (640, 480),
    AspectRatio.TRADITIONAL: (480, 640),
    AspectRatio.STANDARD: (600, 400),
    AspectRatio.PORTRAIT: (400, 600),
}
DEFAULT_DIMENSIONS = (512, 512)

# Checked in order; first match wins
SHAPE_KEYWORDS = (
    ("circle", ("circle", "round")),
    ("square", ("square", "box")),
    ("triangle", ("triangle", "arrow")),
    ("logo", ("logo", "brand")),
    ("icon", ("icon",)),
)
DEFAULT_SHAPE = "abstract"

SHAPE_DRAWERS = {
    "circle": "_draw_circles",
    "square": "_draw_squares",
    "triangle": "_draw_triangles",
    "logo": "_draw_logo",
    "icon": "_draw_icon",
    "abstract": "_draw_abstract",
}


def palette_for(style) -> Palette:
    name = STYLE_PALETTES.get(Style.from_value(style), DEFAULT_PALETTE)
    return PALETTES.get(name, PALETTES[DEFAULT_PALETTE])


def dimensions_for(aspect_ratio) -> Tuple[int, int]:
    return DIMENSIONS.get(AspectRatio.from_value(aspect_ratio), DEFAULT_DIMENSIONS)


def choose_shape(prompt: str) -> str:
    lowered = (prompt or "").lower()
    for shape, keywords in SHAPE_KEYWORDS:
        if any(word in lowered for word in keywords):
            return shape
    return DEFAULT_SHAPE


def label_text(prompt: str) -> str:
    """First three words, cut to 17 chars + '...' when longer than 20."""
    words = " ".join((prompt or "").split()[:3])
    return words[:17] + "..." if len(words) > 20 else words


def seed_for(prompt: str, seed: int = 0) -> int:
    digest = hashlib.sha256(f"{prompt}|{seed}".encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


def _rgb(hex_color: str) -> Tuple[int, int, int]:
    value = hex_color.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def _rgba(hex_color: str, alpha: int) -> Tuple[int, int, int, int]:
    return _rgb(hex_color) + (alpha,)


def gradient(width: int, height: int, palette: Palette) -> Image.Image:
    """Diagonal gradient primary -> secondary -> accent, top-left to bottom-right."""
    xs = np.linspace(0.0, 1.0, width, dtype=np.float32)
    ys = np.linspace(0.0, 1.0, height, dtype=np.float32)
    t = (xs[np.newaxis, :] + ys[:, np.newaxis]) / 2.0

    stops = np.array([0.0, 0.5, 1.0], dtype=np.float32)
    colors = np.array(
        [_rgb(palette.primary), _rgb(palette.secondary), _rgb(palette.accent)],
        dtype=np.float32,
    )
    channels = [np.interp(t, stops, colors[:, c]) for c in range(3)]
    pixels = np.clip(np.stack(channels, axis=-1), 0, 255).astype(np.uint8)
    return Image.fromarray(pixels).convert("RGBA")


class FallbackRenderer:
    """Produces a placeholder data-URI for any request. Never fails."""

    def __init__(self, format: str = "PNG"):
        self.format = format
        self.font = ImageFont.load_default()

    # ------------------------------------------------------------------
    # Shape layers
    # ------------------------------------------------------------------

    def _composite(self, canvas: Image.Image, draw_fn) -> Image.Image:
        overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw_fn(ImageDraw.Draw(overlay))
        return Image.alpha_composite(canvas, overlay)

    def _draw_circles(self, canvas, rng, palette):
        width, height = canvas.size
        for i in range(3 + int(rng.integers(0, 4))):
            x, y = rng.uniform(0, width), rng.uniform(0, height)
            radius = 20 + rng.uniform(0, 100)
            color = _rgba(palette.shapes[i % len(palette.shapes)], 0x80)
            canvas = self._composite(canvas, lambda d: d.ellipse(
                [x - radius, y - radius, x + radius, y + radius],
                fill=color, outline=_rgb(palette.accent), width=2,
            ))

        # Opaque centred circle in the first shape colour
        cx, cy = width / 2, height / 2
        radius = min(width, height) / 5
        draw = ImageDraw.Draw(canvas)
        draw.ellipse(
            [cx - radius, cy - radius, cx + radius, cy + radius],
            fill=_rgba(palette.shapes[0], 255), outline=_rgb(palette.accent), width=2,
        )
        return canvas

    def _draw_squares(self, canvas, rng, palette):
        width, height = canvas.size
        for i in range(2 + int(rng.integers(0, 3))):
            size = 40 + rng.uniform(0, 120)
            x = rng.uniform(0, max(1, width - size))
            y = rng.uniform(0, max(1, height - size))
            color = _rgba(palette.shapes[i % len(palette.shapes)], 0x90)
            canvas = self._composite(canvas, lambda d: d.rectangle(
                [x, y, x + size, y + size], fill=color, outline=_rgb(palette.accent), width=3,
            ))
        return canvas

    def _draw_triangles(self, canvas, rng, palette):
        width, height = canvas.size
        for i in range(3 + int(rng.integers(0, 3))):
            cx, cy = rng.uniform(0, width), rng.uniform(0, height)
            size = 40 + rng.uniform(0, 100)
            rotation = rng.uniform(0, 2 * math.pi)
            points = [
                (cx + math.cos(rotation + k * 2 * math.pi / 3) * size,
                 cy + math.sin(rotation + k * 2 * math.pi / 3) * size)
                for k in range(3)
            ]
            color = _rgba(palette.shapes[i % len(palette.shapes)], 0x90)
            canvas = self._composite(canvas, lambda d: d.polygon(
                points, fill=color, outline=_rgb(palette.accent),
            ))
        return canvas

    def _draw_logo(self, canvas, rng, palette):
        width, height = canvas.size
        cx, cy = width / 2, height / 2
        outer = min(width, height) / 4
        inner = outer * 0.6
        draw = ImageDraw.Draw(canvas)
        draw.ellipse([cx - outer, cy - outer, cx + outer, cy + outer],
                     fill=_rgba(palette.shapes[0], 255), outline=_rgb(palette.accent), width=4)
        draw.polygon([(cx, cy - inner), (cx + inner, cy), (cx, cy + inner), (cx - inner, cy)],
                     fill=_rgba(palette.shapes[1], 255))
        draw.ellipse([cx - inner / 3, cy - inner / 3, cx + inner / 3, cy + inner / 3],
                     fill=_rgba(palette.shapes[2], 255))
        return canvas

    def _draw_icon(self, canvas, rng, palette):
        width, height = canvas.size
        cx, cy = width / 2, height / 2
        half = min(width, height) / 4
        draw = ImageDraw.Draw(canvas)
        draw.rounded_rectangle([cx - half, cy - half, cx + half, cy + half],
                               radius=half / 3, fill=_rgba(palette.shapes[0], 255),
                               outline=_rgb(palette.accent), width=3)
        glyph = half / 2
        draw.ellipse([cx - glyph, cy - glyph, cx + glyph, cy + glyph],
                     fill=_rgba(palette.text, 255))
        return canvas

    def _draw_abstract(self, canvas, rng, palette):
        width, height = canvas.size
        for i in range(5 + int(rng.integers(0, 5))):
            cx, cy = rng.uniform(0, width), rng.uniform(0, height)
            num_points = 6 + int(rng.integers(0, 6))
            points = []
            for j in range(num_points):
                angle = (j / num_points) * 2 * math.pi
                radius = 30 + rng.uniform(0, 80)
                points.append((cx + math.cos(angle) * radius, cy + math.sin(angle) * radius))
            color = _rgba(palette.shapes[i % len(palette.shapes)], 0x70)
            canvas = self._composite(canvas, lambda d: d.polygon(points, fill=color))
        return canvas

    # ------------------------------------------------------------------
    # Text layers
    # ------------------------------------------------------------------

    def _draw_label(self, canvas: Image.Image, prompt: str, palette: Palette) -> Image.Image:
        width, height = canvas.size
        # The bitmap default font only covers latin-1
        text = label_text(prompt).encode("latin-1", "replace").decode("latin-1")

        def draw_layer(draw):
            if text:
                left, top, right, bottom = draw.textbbox((0, 0), text, font=self.font)
                text_w, text_h = right - left, bottom - top
                box_x = width / 2 - text_w / 2 - 10
                draw.rectangle([box_x, height - 35, box_x + text_w + 20, height - 10],
                               fill=(0, 0, 0, 178))
                draw.text((width / 2 - text_w / 2, height - 22 - text_h / 2), text,
                          font=self.font, fill=_rgba(palette.text, 255))

            left, top, right, bottom = draw.textbbox((0, 0), WATERMARK_TEXT, font=self.font)
            draw.text((width - 10 - (right - left), 10), WATERMARK_TEXT,
                      font=self.font, fill=(255, 255, 255, 153))

        return self._composite(canvas, draw_layer)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def render_image(self, prompt: str, style=Style.MODERN, asset_type=AssetType.IMAGE,
                     aspect_ratio=AspectRatio.SQUARE, seed: int = 0) -> Image.Image:
        width, height = dimensions_for(aspect_ratio)
        palette = palette_for(style)
        rng = np.random.default_rng(seed_for(prompt, seed))

        canvas = gradient(width, height, palette)
        shape = choose_shape(prompt)
        canvas = getattr(self, SHAPE_DRAWERS[shape])(canvas, rng, palette)
        canvas = self._draw_label(canvas, prompt, palette)
        return canvas.convert("RGB")

    def render(self, prompt: str, style=Style.MODERN, asset_type=AssetType.IMAGE,
               aspect_ratio=AspectRatio.SQUARE, seed: int = 0) -> str:
        """Render a placeholder and return it as a data-URI."""
        image = self.render_image(prompt, style, asset_type, aspect_ratio, seed)
        return image_to_data_uri(image, format=self.format)

    def render_result(self, request: GenerationRequest, failed: GenerationResult = None) -> GenerationResult:
        """Fallback result standing in for a failed sub-request."""
        image_ref = self.render(
            request.prompt, request.style, request.asset_type,
            request.aspect_ratio, request.variation_seed,
        )
        return GenerationResult(
            success=True,
            image_ref=image_ref,
            provider_id=failed.provider_id if failed else FALLBACK_PROVIDER_ID,
            prompt=request.prompt,
            is_fallback=True,
            error_message=failed.error_message if failed else "",
            attempts=failed.attempts if failed else 0,
            error_type=failed.error_type if failed else "",
        )

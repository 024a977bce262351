"""
Relay Image Adapter

Keyless URL-addressed backend (Pollinations style). The image URL is built
from the enhanced prompt, the pixel size and the seed, then downloaded
through the NetworkFetcher, which falls back to the CORS-relay on its own.
"""

from typing import Dict, Tuple
from urllib.parse import quote, urlencode

from ..models import AspectRatio, GenerationRequest, GenerationResult
from .base import ProviderAdapter

DIMENSIONS = {
    AspectRatio.SQUARE: (512, 512),
    AspectRatio.WIDESCREEN: (640, 360),
    AspectRatio.STORY: (360, 640),
    AspectRatio.CLASSIC: (640, 480),
    AspectRatio.TRADITIONAL: (480, 640),
    AspectRatio.STANDARD: (600, 400),
    AspectRatio.PORTRAIT: (400, 600),
}
DEFAULT_DIMENSIONS = (512, 512)


def dimensions_for(aspect_ratio: AspectRatio) -> Tuple[int, int]:
    return DIMENSIONS.get(aspect_ratio, DEFAULT_DIMENSIONS)


class RelayImageAdapter(ProviderAdapter):
    """Builds an image URL and fetches it; no credentials involved."""

    def get_headers(self, content_type: str = "") -> Dict:
        return {}

    def image_url(self, request: GenerationRequest) -> str:
        width, height = dimensions_for(request.aspect_ratio)
        query = urlencode({
            "width": width,
            "height": height,
            "seed": request.variation_seed,
            "nologo": "true",
        })
        prompt = quote(self.enhance_prompt(request), safe="")
        return f"{self.base_url}/{prompt}?{query}"

    def _generate(self, request: GenerationRequest) -> GenerationResult:
        image_ref = self.fetcher.fetch(self.image_url(request), self.provider_id)
        return self._success(request, image_ref, attempts=1)

    def test_connection(self) -> Dict:
        return {"success": True, "message": "No API key required"}

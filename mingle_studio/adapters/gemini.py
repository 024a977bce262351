"""
Gemini Adapter

Synchronous generateContent requests in the Gemini native format:
- Endpoint: {base_url}/{model}:generateContent
- Payload: {contents: [...], generationConfig: {...}}
- Reference image sent as inline_data
- Images returned as base64 in candidates[0].content.parts[].inline_data
"""

import base64
import json
from typing import Dict

import requests

from ..errors import MalformedResponseError
from ..image_utils import detect_mime_type, to_data_uri
from ..models import AspectRatio, GenerationRequest
from ..studio_logger import logger
from .synchronous import SynchronousAdapter

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-image"


class GeminiAdapter(SynchronousAdapter):

    def model_for(self, request: GenerationRequest) -> str:
        return self.provider.get("model") or DEFAULT_GEMINI_MODEL

    def get_headers(self, content_type: str = "application/json") -> Dict:
        headers = {self.provider.get("auth_header", "x-goog-api-key"): self.api_key}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def build_request(self, request: GenerationRequest) -> Dict:
        parts = [{"text": self.enhance_prompt(request)}]

        if self.uses_reference(request):
            parts.append({
                "inline_data": {
                    "mime_type": detect_mime_type(request.reference_image),
                    "data": self.reference_base64(request),
                }
            })

        generation_config = {
            "responseModalities": ["TEXT", "IMAGE"],
            "candidateCount": 1,
            "temperature": 0.8,
            "imageConfig": {"aspectRatio": AspectRatio.from_value(request.aspect_ratio).value},
        }
        if request.variation_seed:
            generation_config["seed"] = int(request.variation_seed)

        return {
            "url": f"{self.base_url}/{self.model_for(request)}:generateContent",
            "method": "POST",
            "headers": self.get_headers(),
            "json": {"contents": [{"parts": parts}], "generationConfig": generation_config},
        }

    def parse_response(self, response: requests.Response) -> str:
        data = self._json(response)

        candidates = data.get("candidates", []) if isinstance(data, dict) else []
        if not candidates:
            truncated = json.dumps(data, ensure_ascii=False, default=str)[:500]
            logger.warning(f"[Gemini] No candidates found. Response (truncated): {truncated}")
            raise MalformedResponseError(
                self.provider_id, "No candidates in Gemini response", response_body=response.text
            )

        if candidates[0].get("finishReason") == "OTHER":
            raise MalformedResponseError(
                self.provider_id, "Gemini could not generate image for this prompt"
            )

        for part in candidates[0].get("content", {}).get("parts", []):
            # Both camelCase and snake_case appear in the wild
            inline_data = part.get("inlineData") or part.get("inline_data")
            if inline_data and inline_data.get("data"):
                img_bytes = base64.b64decode(inline_data["data"])
                mime_type = inline_data.get("mimeType") or inline_data.get("mime_type")
                return to_data_uri(img_bytes, mime_type)

        raise MalformedResponseError(
            self.provider_id, "No images found in Gemini response", response_body=response.text
        )

    @property
    def probe_url(self) -> str:
        return self.provider.get("test_url") or self.base_url

"""
Synchronous Adapter

Single request/response backends (Hugging Face inference style). Non-2xx is
terminal except 503 "model loading", which is retried under the attempt
ceiling waiting the server's estimated_time when it sends one. Connection
errors and timeouts are retried under the same ceiling.
"""

from typing import Dict

import requests

from ..errors import TransientBackendError, create_api_error
from ..models import AssetType, GenerationRequest, GenerationResult, Style
from ..studio_logger import calculate_delay, log_error, logger
from .base import ProviderAdapter

# Style -> model id
HF_MODELS = {
    "stable-diffusion": "stabilityai/stable-diffusion-2-1",
    "stable-diffusion-xl": "stabilityai/stable-diffusion-xl-base-1.0",
    "anime": "hakurei/waifu-diffusion",
    "artistic": "prompthero/openjourney-v4",
    "realistic": "SG161222/Realistic_Vision_V2.0",
    "minimalist": "runwayml/stable-diffusion-v1-5",
}
DEFAULT_HF_MODEL = "stable-diffusion"

STYLE_MODELS = {
    Style.COLOURFUL: "stable-diffusion-xl",
    Style.CYBERPUNK: "artistic",
    Style.REAL: "realistic",
    Style.MODERN: "stable-diffusion-xl",
    Style.MINIMALIST: "minimalist",
    Style.VINTAGE: "artistic",
    Style.BOLD: "stable-diffusion",
    Style.ELEGANT: "realistic",
    Style.PLAYFUL: "anime",
}

ASSET_TYPE_MODELS = {
    AssetType.LOGO: "stable-diffusion-xl",
    AssetType.ICON: "stable-diffusion-xl",
    AssetType.LAYOUT: "minimalist",
}

NEGATIVE_PROMPT = "blurry, low quality, distorted, deformed, ugly, bad anatomy"


def select_model(style: Style, asset_type: AssetType) -> str:
    """Model id for a style/type pair; the asset type overrides the style."""
    key = ASSET_TYPE_MODELS.get(asset_type) or STYLE_MODELS.get(style, DEFAULT_HF_MODEL)
    return HF_MODELS.get(key, HF_MODELS[DEFAULT_HF_MODEL])


class SynchronousAdapter(ProviderAdapter):
    """Hugging Face inference style adapter with model-loading retries."""

    def model_for(self, request: GenerationRequest) -> str:
        return self.provider.get("model") or select_model(request.style, request.asset_type)

    def build_request(self, request: GenerationRequest) -> Dict:
        """
        Returns:
            Dict with keys: url, method, headers, json
        """
        model = self.model_for(request)
        parameters = {
            "guidance_scale": self.provider.get("guidance_scale", 7.5),
            "num_inference_steps": self.provider.get("num_inference_steps", 20),
            "negative_prompt": self.provider.get("negative_prompt", NEGATIVE_PROMPT),
        }
        if request.variation_seed:
            parameters["seed"] = request.variation_seed

        payload = {"inputs": self.enhance_prompt(request), "parameters": parameters}
        reference = self.reference_base64(request)
        if reference:
            payload["style_reference"] = reference

        return {
            "url": f"{self.base_url}/{model}",
            "method": "POST",
            "headers": self.get_headers(),
            "json": payload,
        }

    def parse_response(self, response: requests.Response) -> str:
        return self.image_ref_from_response(response)

    def _generate(self, request: GenerationRequest) -> GenerationResult:
        request_info = self.build_request(request)
        url = request_info["url"]
        max_attempts = max(1, self.retry_config.max_attempts)

        for attempt in range(max_attempts):
            is_last = attempt == max_attempts - 1
            try:
                response = self._send(
                    request_info["method"], url, request_info["headers"], request_info["json"]
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                error = TransientBackendError(self.provider_id, message=str(e), url=url)
                if is_last:
                    error.attempts = attempt + 1
                    raise error
                delay = calculate_delay(attempt, self.retry_config)
                logger.warning(
                    f"🔄 Retry {attempt + 1}/{max_attempts - 1} for {self.provider_id} "
                    f"({type(e).__name__}), waiting {delay:.1f}s"
                )
                self.sleep(delay)
                continue

            if response.status_code == 503:
                error = create_api_error(self.provider_id, 503, response.text, url)
                if is_last:
                    log_error(f"Max retries exceeded for {self.provider_id}")
                    error.attempts = attempt + 1
                    raise error
                delay = calculate_delay(attempt, self.retry_config, error.retry_after)
                logger.warning(
                    f"🔄 Model loading on {self.provider_id} (HTTP 503), "
                    f"retry {attempt + 1}/{max_attempts - 1} in {delay:.1f}s"
                )
                self.sleep(delay)
                continue

            self._raise_for_status(response, url)
            return self._success(request, self.parse_response(response), attempts=attempt + 1)

        # Unreachable: the last attempt always returns or raises
        raise TransientBackendError(self.provider_id, message="Retries exhausted", url=url)

    @property
    def probe_url(self) -> str:
        return self.provider.get("test_url") or f"{self.base_url}/{HF_MODELS[DEFAULT_HF_MODEL]}"

"""
Task-Based Adapter

Submit/poll backends (Freepik Mystic style): the submission answers with a
task id, a TaskPoller checks the status endpoint until the task is terminal,
and the first generated URL is downloaded through the NetworkFetcher.
"""

from typing import Dict, Optional

from ..errors import MalformedResponseError
from ..models import AspectRatio, AssetType, GenerationRequest, GenerationResult, GenerationTask, Style
from ..studio_logger import logger
from ..task_poller import (
    DEFAULT_MAX_POLLS,
    DEFAULT_POLL_INTERVAL,
    TaskPoller,
    extract_generated_urls,
    get_nested_value,
)
from .base import ProviderAdapter

STYLE_MODELS = {
    Style.COLOURFUL: "fluid",
    Style.CYBERPUNK: "fluid",
    Style.REAL: "realism",
    Style.MODERN: "fluid",
    Style.MINIMALIST: "zen",
    Style.VINTAGE: "realism",
    Style.BOLD: "fluid",
    Style.ELEGANT: "realism",
    Style.PLAYFUL: "fluid",
}
DEFAULT_MODEL = "fluid"

# Asset types that override the style choice
ASSET_TYPE_MODELS = {
    AssetType.ICON: "zen",
    AssetType.LOGO: "zen",
    AssetType.LAYOUT: "zen",
}

ASPECT_RATIO_CODES = {
    AspectRatio.SQUARE: "square_1_1",
    AspectRatio.WIDESCREEN: "widescreen_16_9",
    AspectRatio.STORY: "social_story_9_16",
    AspectRatio.CLASSIC: "classic_4_3",
    AspectRatio.TRADITIONAL: "traditional_3_4",
    AspectRatio.STANDARD: "standard_3_2",
    AspectRatio.PORTRAIT: "portrait_2_3",
}
DEFAULT_ASPECT_RATIO_CODE = "square_1_1"


def select_model(style: Style, asset_type: AssetType) -> str:
    return ASSET_TYPE_MODELS.get(asset_type) or STYLE_MODELS.get(style, DEFAULT_MODEL)


class TaskBasedAdapter(ProviderAdapter):
    """Freepik Mystic style adapter: submit, poll, download."""

    def __init__(self, *args, poll_interval: float = DEFAULT_POLL_INTERVAL,
                 max_polls: int = DEFAULT_MAX_POLLS, **kwargs):
        super().__init__(*args, **kwargs)
        self.poll_interval = poll_interval
        self.max_polls = max_polls

    def get_headers(self, content_type: str = "application/json") -> Dict:
        headers = {self.provider.get("auth_header", "x-freepik-api-key"): self.api_key}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def build_request(self, request: GenerationRequest) -> Dict:
        """
        Returns:
            Dict with keys: url, method, headers, json
        """
        payload = {
            "prompt": self.enhance_prompt(request),
            "model": select_model(request.style, request.asset_type),
            "resolution": self.provider.get("resolution", "2k"),
            "aspect_ratio": ASPECT_RATIO_CODES.get(request.aspect_ratio, DEFAULT_ASPECT_RATIO_CODE),
            "creative_detailing": 50,
            "engine": "automatic",
            "fixed_generation": False,
            "filter_nsfw": True,
        }

        reference = self.reference_base64(request)
        if reference:
            payload["style_reference"] = reference
            payload["adherence"] = 60
            payload["hdr"] = 40

        return {
            "url": self.base_url,
            "method": "POST",
            "headers": self.get_headers(),
            "json": payload,
        }

    def create_poller(self) -> TaskPoller:
        return TaskPoller(
            session=self.session,
            provider_id=self.provider_id,
            status_url_template=self.provider.get("status_url", f"{self.base_url}/{{task_id}}"),
            headers=self.get_headers(content_type=""),
            interval=self.poll_interval,
            max_attempts=self.max_polls,
            sleep=self.sleep,
        )

    @staticmethod
    def read_task_id(data: Dict) -> Optional[str]:
        task_id = data.get("task_id") or get_nested_value(data, "data.task_id")
        return str(task_id) if task_id else None

    def _generate(self, request: GenerationRequest) -> GenerationResult:
        request_info = self.build_request(request)
        url = request_info["url"]

        # Submission is never retried; a failed submit is terminal
        response = self._send(request_info["method"], url, request_info["headers"], request_info["json"])
        self._raise_for_status(response, url)

        data = self._json(response)
        if not isinstance(data, dict):
            raise MalformedResponseError(
                self.provider_id, "Submission response is not an object", response_body=response.text
            )

        inline_urls = extract_generated_urls(data)
        if inline_urls:
            logger.info(f"✅ {self.provider_id} returned results inline")
            return self._success(request, self.fetcher.fetch(inline_urls[0], self.provider_id), attempts=0)

        task_id = self.read_task_id(data)
        if not task_id:
            raise MalformedResponseError(
                self.provider_id, "No task_id or inline results in response", response_body=response.text
            )

        task = GenerationTask(provider_id=self.provider_id, task_id=task_id)
        logger.info(f"📋 Task ID: {task_id}, starting polling...")
        try:
            urls = self.create_poller().poll(task)
        except Exception as e:
            # Keep the poll count on whatever error ends the loop
            if not hasattr(e, "attempts"):
                e.attempts = task.attempts
            raise

        image_ref = self.fetcher.fetch(urls[0], self.provider_id)
        return self._success(request, image_ref, attempts=task.attempts)

"""
Base Provider Adapter

Defines the uniform generate(request) -> GenerationResult contract shared by
every backend. generate() never raises: credential gating happens before any
network call, and every error below it is folded into a failed intermediate
result that the orchestrator replaces with a fallback image.
"""

import base64
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import requests

from ..errors import (
    APIError,
    CredentialError,
    MalformedResponseError,
    StudioError,
    TransientBackendError,
    create_api_error,
)
from ..image_utils import detect_image_format, to_data_uri
from ..models import GenerationRequest, GenerationResult, ProviderDescriptor
from ..network import NetworkFetcher, get_session
from ..prompt_enhancer import enhance, get_profile
from ..studio_logger import (
    DEFAULT_RETRY_CONFIG,
    RequestTimer,
    RetryConfig,
    log_error,
    log_request,
    log_response,
    logger,
)
from ..task_poller import get_nested_value


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Each adapter implements the specific logic for:
    - Building requests for a specific backend
    - Parsing its responses into a data-URI
    - Retrying or polling where that backend needs it
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        provider_config: Optional[Dict] = None,
        session: Optional[requests.Session] = None,
        fetcher: Optional[NetworkFetcher] = None,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            descriptor: Immutable provider facts (id, credential status, capabilities)
            provider_config: Provider settings (base_url, api_key, timeout, ...)
            session: HTTP session for provider calls (no transport-level retry)
            fetcher: Image downloader for URL results
            retry_config: Attempt ceiling and delays for synchronous retries
            sleep: Injected delay function
        """
        self.descriptor = descriptor
        self.provider = provider_config or {}
        self.session = session or get_session(retry=None)
        self.fetcher = fetcher or NetworkFetcher()
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self.sleep = sleep
        self.timeout = self.provider.get("timeout", 120)
        self.profile = get_profile(self.provider.get("prompt_profile") or descriptor.id)

    @property
    def provider_id(self) -> str:
        return self.descriptor.id

    @property
    def base_url(self) -> str:
        return self.provider.get("base_url", "").rstrip('/')

    @property
    def api_key(self) -> str:
        return self.provider.get("api_key", "") or ""

    def get_headers(self, content_type: str = "application/json") -> Dict:
        """Build standard headers"""
        headers = {}
        auth_header = self.provider.get("auth_header", "Authorization")
        if self.api_key:
            if auth_header == "Authorization":
                headers[auth_header] = f"Bearer {self.api_key}"
            else:
                headers[auth_header] = self.api_key
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def enhance_prompt(self, request: GenerationRequest) -> str:
        return enhance(
            request.prompt,
            request.style,
            request.asset_type,
            request.aspect_ratio,
            has_reference=self.uses_reference(request),
            profile=self.profile,
        )

    def uses_reference(self, request: GenerationRequest) -> bool:
        """Reference images are dropped silently for backends that lack support"""
        return request.has_reference and self.descriptor.supports_reference_image

    def reference_base64(self, request: GenerationRequest) -> Optional[str]:
        """Reference image as bare base64 (no data-URI prefix)"""
        if not self.uses_reference(request):
            return None
        return base64.b64encode(request.reference_image).decode('utf-8')

    def _send(self, method: str, url: str, headers: Dict,
              payload: Optional[Dict] = None) -> requests.Response:
        """Send one HTTP request with request/response logging"""
        log_request(method, url, headers=headers, payload=payload)
        with RequestTimer(f"API call to {self.provider_id}") as timer:
            response = self.session.request(
                method, url, headers=headers, json=payload, timeout=self.timeout
            )
        is_success = 200 <= response.status_code < 300
        log_response(
            status_code=response.status_code,
            elapsed=timer.elapsed,
            response_text=response.text[:500] if not is_success else None,
            success=is_success,
        )
        return response

    def _raise_for_status(self, response: requests.Response, url: str):
        if not 200 <= response.status_code < 300:
            raise create_api_error(self.provider_id, response.status_code, response.text, url)

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            raise MalformedResponseError(
                self.provider_id, "Response is not valid JSON", response_body=response.text
            )

    def image_ref_from_item(self, item: Any) -> Optional[str]:
        """
        Turn one inline result item into a data-URI.

        Accepts data-URIs, http(s) URLs (fetched through the NetworkFetcher),
        bare base64 strings, and dicts carrying any of those under common keys.
        """
        if isinstance(item, dict):
            for key in ("b64_json", "base64", "image", "url", "generated_image"):
                if item.get(key):
                    return self.image_ref_from_item(item[key])
            return None

        if not isinstance(item, str) or not item:
            return None

        if item.startswith("data:"):
            return item
        if item.startswith(("http://", "https://")):
            return self.fetcher.fetch(item, self.provider_id)

        try:
            raw = base64.b64decode(item, validate=True)
        except ValueError:
            return None
        return to_data_uri(raw) if detect_image_format(raw) else None

    def image_ref_from_response(self, response: requests.Response) -> str:
        """Raw image bytes, or JSON with an inline result array"""
        content_type = response.headers.get("Content-Type", "")
        if content_type.startswith("image/") or detect_image_format(response.content):
            return to_data_uri(response.content, content_type)

        data = self._json(response)
        if isinstance(data, dict) and data.get("error"):
            raise MalformedResponseError(
                self.provider_id, f"Backend error: {data['error']}", response_body=response.text
            )

        items = data if isinstance(data, list) else None
        if items is None:
            for path in ("images", "generated", "data", "data.generated", "output"):
                value = get_nested_value(data, path)
                if isinstance(value, list) and value:
                    items = value
                    break

        for item in items or []:
            image_ref = self.image_ref_from_item(item)
            if image_ref:
                return image_ref

        raise MalformedResponseError(
            self.provider_id, "No image found in response", response_body=response.text
        )

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Run one sub-request. Never raises.
        """
        status = self.descriptor.credential_status
        if not status.is_valid():
            logger.warning(f"🔒 {self.provider_id}: credentials {status.value}, skipping request")
            return self._failure(
                request,
                CredentialError(self.provider_id, f"API key {status.value}", status_code=0),
            )

        try:
            return self._generate(request)
        except StudioError as e:
            log_error(f"{self.provider_id} generation failed", e)
            return self._failure(request, e)
        except requests.RequestException as e:
            log_error(f"{self.provider_id} network error", e)
            return self._failure(
                request, TransientBackendError(self.provider_id, message=str(e))
            )
        except Exception as e:
            log_error(f"Request failed for {self.provider_id}", e)
            return self._failure(request, e)

    @abstractmethod
    def _generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Backend-specific request cycle. May raise; generate() converts errors.
        """
        pass

    def _success(self, request: GenerationRequest, image_ref: str,
                 attempts: int = 1) -> GenerationResult:
        return GenerationResult(
            success=True,
            image_ref=image_ref,
            provider_id=self.provider_id,
            prompt=request.prompt,
            attempts=attempts,
        )

    def _failure(self, request: GenerationRequest, error: Exception) -> GenerationResult:
        message = error.message if isinstance(error, StudioError) else str(error)
        return GenerationResult(
            success=False,
            provider_id=self.provider_id,
            prompt=request.prompt,
            error_message=message or type(error).__name__,
            error_type=type(error).__name__,
            attempts=getattr(error, "attempts", 0),
        )

    # ------------------------------------------------------------------
    # Connection test
    # ------------------------------------------------------------------

    @property
    def probe_url(self) -> str:
        return self.provider.get("test_url") or self.base_url

    def test_connection(self) -> Dict:
        """
        Check credentials, then make one cheap request to the backend.

        Returns:
            {"success": True, "message": ...} or {"success": False, "error": ...}
        """
        status = self.descriptor.credential_status
        if not status.is_valid():
            return {"success": False, "error": f"API key {status.value}"}

        try:
            resp = self.session.get(
                self.probe_url, headers=self.get_headers(content_type=""), timeout=10
            )
        except requests.RequestException as e:
            return {"success": False, "error": f"Connection failed: {e}"}

        if resp.status_code in (401, 403):
            return {"success": False, "error": f"Invalid API key (HTTP {resp.status_code})"}
        if resp.status_code >= 500:
            return {"success": False, "error": f"Backend unavailable (HTTP {resp.status_code})"}
        return {"success": True, "message": f"Connected to {self.descriptor.display_name or self.provider_id}"}


__all__ = ["ProviderAdapter", "APIError"]

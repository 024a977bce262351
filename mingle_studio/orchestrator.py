"""
Generation Orchestrator

Turns one user request into N variation sub-requests, routes them to provider
adapters, runs them concurrently, and replaces every failure with a local
fallback image. generate_batch() always returns exactly N successful results.
"""

import asyncio
from enum import Enum
from typing import Dict, List, Optional

from .adapters import ProviderAdapter, create_adapter
from .errors import ConfigError, ValidationError
from .fallback_renderer import FallbackRenderer
from .models import GenerationRequest, GenerationResult, ProviderDescriptor, RoutingMode
from .network import NetworkFetcher, get_session
from .output_buffer import OutputBuffer
from .studio_logger import configure_logging, log_error, logger

DEFAULT_VARIATION_COUNT = 4
DEFAULT_MAX_VARIATION_COUNT = 8
DEFAULT_DISTRIBUTION = {"freepik": 1, "huggingface": 2, "relay": 1}


class BatchState(Enum):
    DISPATCHED = "Dispatched"
    COLLECTING = "Collecting"
    AGGREGATED = "Aggregated"


class Orchestrator:
    """
    Fans requests out to providers and aggregates the results.

    Adapters are built once and shared across batches; they hold no
    per-request state, so concurrent sub-requests never interfere.
    """

    def __init__(
        self,
        adapters: Dict[str, ProviderAdapter],
        renderer: Optional[FallbackRenderer] = None,
        output_buffer: Optional[OutputBuffer] = None,
        routing_mode=RoutingMode.SINGLE,
        active_provider: Optional[str] = None,
        distribution: Optional[Dict[str, int]] = None,
        variation_count: int = DEFAULT_VARIATION_COUNT,
        max_variation_count: int = DEFAULT_MAX_VARIATION_COUNT,
    ):
        if not adapters:
            raise ConfigError("At least one provider adapter is required", field="providers")
        self.adapters = dict(adapters)
        self.renderer = renderer or FallbackRenderer()
        self.output_buffer = output_buffer if output_buffer is not None else OutputBuffer()
        self.routing_mode = RoutingMode.from_value(routing_mode)
        self.active_provider = active_provider if active_provider in self.adapters else next(iter(self.adapters))
        self.distribution = dict(distribution if distribution is not None else DEFAULT_DISTRIBUTION)
        self.variation_count = variation_count
        self.max_variation_count = max_variation_count
        # Most recent batch only; inspection aid
        self.last_batch_state: Optional[BatchState] = None

    # ------------------------------------------------------------------
    # Provider management
    # ------------------------------------------------------------------

    def switch_provider(self, provider_id: str):
        """Make provider_id the active provider and route everything to it."""
        if provider_id not in self.adapters:
            raise ConfigError(
                f"Unknown provider '{provider_id}'",
                field="provider_id",
                value=provider_id,
                suggestion=f"Available: {', '.join(sorted(self.adapters))}",
            )
        self.active_provider = provider_id
        self.routing_mode = RoutingMode.SINGLE
        logger.info(f"🔀 Active provider: {provider_id} (single mode)")

    def set_routing_mode(self, mode):
        try:
            self.routing_mode = mode if isinstance(mode, RoutingMode) else RoutingMode(str(mode).strip().lower())
        except ValueError:
            raise ConfigError(
                f"Unknown routing mode '{mode}'",
                field="routing.mode",
                value=mode,
                suggestion="Use 'single' or 'multi'",
            )
        logger.info(f"🔀 Routing mode: {self.routing_mode.value}")

    def get_provider_health(self) -> List[ProviderDescriptor]:
        return [adapter.descriptor for adapter in self.adapters.values()]

    def test_providers(self) -> Dict[str, Dict]:
        """Run every adapter's connection test."""
        results = {}
        for provider_id, adapter in self.adapters.items():
            try:
                results[provider_id] = adapter.test_connection()
            except Exception as e:
                log_error(f"Connection test failed for {provider_id}", e)
                results[provider_id] = {"success": False, "error": str(e)}
        return results

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def assign_providers(self, count: int) -> List[str]:
        """
        Provider id for each of `count` sub-requests.

        Multi mode expands the distribution into a slot list (unknown ids are
        skipped) and cycles or truncates it to `count`.
        """
        if self.routing_mode == RoutingMode.MULTI:
            slots = [
                provider_id
                for provider_id, weight in self.distribution.items()
                if provider_id in self.adapters
                for _ in range(max(0, int(weight)))
            ]
            if slots:
                return [slots[i % len(slots)] for i in range(count)]
            logger.warning("⚠️ Empty multi-provider distribution, using the active provider")

        return [self.active_provider] * count

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _run_sub_request(self, provider_id: str,
                               sub_request: GenerationRequest) -> GenerationResult:
        adapter = self.adapters[provider_id]
        try:
            result = await asyncio.to_thread(adapter.generate, sub_request)
        except Exception as e:
            log_error(f"Sub-request on {provider_id} raised", e)
            result = GenerationResult(
                success=False,
                provider_id=provider_id,
                prompt=sub_request.prompt,
                error_message=str(e),
                error_type=type(e).__name__,
            )

        if result.success:
            return result

        logger.warning(
            f"🎨 {provider_id} failed ({result.error_type or 'error'}: "
            f"{result.error_message}), rendering fallback"
        )
        return await asyncio.to_thread(self.renderer.render_result, sub_request, result)

    async def generate_batch(self, request: GenerationRequest,
                             variation_count: Optional[int] = None) -> List[GenerationResult]:
        """
        Generate `variation_count` variants of a request.

        Results keep sub-request order and are all successful; failed
        sub-requests carry is_fallback=True. The batch is pushed to the
        output buffer before returning.
        """
        count = self.variation_count if variation_count is None else variation_count
        if not 1 <= count <= self.max_variation_count:
            raise ValidationError(
                "Invalid variation count",
                [f"variation_count must be between 1 and {self.max_variation_count}, got {count}"],
            )

        sub_requests = [request.with_variation(i + 1) for i in range(count)]
        provider_ids = self.assign_providers(count)

        self.last_batch_state = BatchState.DISPATCHED
        logger.info(
            f"🚀 Dispatching {count} sub-request(s) "
            f"({self.routing_mode.value} mode: {', '.join(provider_ids)})"
        )
        pending = [
            self._run_sub_request(provider_id, sub_request)
            for provider_id, sub_request in zip(provider_ids, sub_requests)
        ]

        self.last_batch_state = BatchState.COLLECTING
        results = await asyncio.gather(*pending)

        self.last_batch_state = BatchState.AGGREGATED
        results = list(results)
        self.output_buffer.push(results, request)

        fallback_count = sum(1 for result in results if result.is_fallback)
        logger.info(f"📊 Batch complete: used fallback for {fallback_count} of {count} images")
        return results


def build_orchestrator(config_manager, sleep=None) -> Orchestrator:
    """
    Wire sessions, fetcher, adapters, renderer and buffer from configuration.
    """
    configure_logging(config_manager.get_log_level())

    fetch_settings = config_manager.get_fetch_settings()
    fetcher = NetworkFetcher(
        session=get_session(),
        relay_url=fetch_settings["relay_url"],
        min_bytes=fetch_settings["min_bytes"],
        timeout=fetch_settings["timeout"],
    )
    polling = config_manager.get_polling_settings()
    retry_config = config_manager.get_retry_config()
    provider_session = get_session(retry=None)

    extra = {"sleep": sleep} if sleep is not None else {}
    adapters = {}
    for descriptor in config_manager.get_provider_descriptors():
        adapters[descriptor.id] = create_adapter(
            descriptor,
            config_manager.get_provider_config(descriptor.id),
            session=provider_session,
            fetcher=fetcher,
            retry_config=retry_config,
            poll_interval=polling["interval"],
            max_polls=polling["max_attempts"],
            **extra,
        )

    routing = config_manager.get_routing_settings()
    settings = config_manager.get_settings()
    return Orchestrator(
        adapters,
        renderer=FallbackRenderer(),
        output_buffer=OutputBuffer(settings.get("output_buffer", {}).get("capacity", 6)),
        routing_mode=routing["mode"],
        active_provider=routing["active_provider"],
        distribution=routing["distribution"],
        variation_count=settings.get("variation_count", DEFAULT_VARIATION_COUNT),
        max_variation_count=settings.get("max_variation_count", DEFAULT_MAX_VARIATION_COUNT),
    )

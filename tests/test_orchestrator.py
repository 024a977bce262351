"""
Tests for the generation orchestrator
"""

import asyncio
import io
from unittest.mock import Mock

import pytest
import yaml
from PIL import Image

from mingle_studio.adapters import RelayImageAdapter, SynchronousAdapter, TaskBasedAdapter
from mingle_studio.config_manager import ConfigManager
from mingle_studio.errors import ConfigError, ValidationError
from mingle_studio.image_utils import decode_data_uri
from mingle_studio.models import (
    CredentialStatus,
    GenerationRequest,
    GenerationResult,
    ProviderKind,
    RoutingMode,
)
from mingle_studio.orchestrator import BatchState, Orchestrator, build_orchestrator
from mingle_studio.output_buffer import OutputBuffer

IMAGE_REF = "data:image/png;base64,iVBORw0KGgo="


class FakeAdapter:
    """Records sub-requests and answers with a canned outcome"""

    def __init__(self, descriptor, succeed=True, raises=None):
        self.descriptor = descriptor
        self.succeed = succeed
        self.raises = raises
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.raises:
            raise self.raises
        if self.succeed:
            return GenerationResult(success=True, image_ref=IMAGE_REF,
                                    provider_id=self.descriptor.id, prompt=request.prompt, attempts=1)
        return GenerationResult(success=False, provider_id=self.descriptor.id, prompt=request.prompt,
                                error_message="boom", error_type="TransientBackendError", attempts=3)

    def test_connection(self):
        return {"success": True, "message": "ok"}


@pytest.fixture
def fakes(make_descriptor):
    return {
        "freepik": FakeAdapter(make_descriptor("freepik", ProviderKind.TASK)),
        "huggingface": FakeAdapter(make_descriptor("huggingface")),
        "relay": FakeAdapter(make_descriptor("relay", ProviderKind.RELAY)),
    }


@pytest.fixture
def request_():
    return GenerationRequest.create("a red circle", "minimalist", "icon", "1:1")


class TestGenerateBatch:

    def test_all_successful_in_order(self, fakes, request_):
        orchestrator = Orchestrator(fakes, active_provider="huggingface")

        results = asyncio.run(orchestrator.generate_batch(request_))

        assert len(results) == 4
        assert all(result.success and not result.is_fallback for result in results)
        assert [r.prompt for r in results] == [f"a red circle, variation {k}" for k in range(1, 5)]
        assert len(fakes["huggingface"].requests) == 4
        assert fakes["relay"].requests == []
        assert orchestrator.last_batch_state == BatchState.AGGREGATED

    def test_variation_seeds_are_distinct(self, fakes, request_):
        orchestrator = Orchestrator(fakes, active_provider="relay")

        asyncio.run(orchestrator.generate_batch(request_, 3))

        assert [r.variation_seed for r in fakes["relay"].requests] == [1, 2, 3]

    def test_failures_are_replaced_with_fallbacks(self, make_descriptor, request_):
        adapters = {"huggingface": FakeAdapter(make_descriptor("huggingface"), succeed=False)}
        orchestrator = Orchestrator(adapters)

        results = asyncio.run(orchestrator.generate_batch(request_, 2))

        assert all(result.success and result.is_fallback for result in results)
        assert results[0].provider_id == "huggingface"
        assert results[0].error_type == "TransientBackendError"
        assert results[0].image_ref.startswith("data:image/png;base64,")

    def test_adapter_exception_becomes_fallback(self, make_descriptor, request_):
        adapters = {"relay": FakeAdapter(make_descriptor("relay"), raises=RuntimeError("kaboom"))}
        orchestrator = Orchestrator(adapters)

        results = asyncio.run(orchestrator.generate_batch(request_, 1))

        assert results[0].success is True
        assert results[0].is_fallback is True
        assert results[0].error_type == "RuntimeError"

    def test_mixed_batch_keeps_positions(self, make_descriptor, request_):
        adapters = {
            "good": FakeAdapter(make_descriptor("good")),
            "bad": FakeAdapter(make_descriptor("bad"), succeed=False),
        }
        orchestrator = Orchestrator(adapters, routing_mode=RoutingMode.MULTI,
                                    distribution={"good": 1, "bad": 1})

        results = asyncio.run(orchestrator.generate_batch(request_, 4))

        assert [r.is_fallback for r in results] == [False, True, False, True]

    def test_results_pushed_to_output_buffer(self, fakes, request_):
        buffer = OutputBuffer(capacity=6)
        orchestrator = Orchestrator(fakes, output_buffer=buffer)

        asyncio.run(orchestrator.generate_batch(request_))
        asyncio.run(orchestrator.generate_batch(GenerationRequest.create("a dog"), 4))

        prompts = [entry.prompt for entry in buffer.list()]
        assert prompts[:4] == [f"a dog, variation {k}" for k in range(1, 5)]
        assert prompts[4:] == ["a red circle, variation 1", "a red circle, variation 2"]

    @pytest.mark.parametrize("count", [0, -1, 9])
    def test_invalid_variation_count(self, fakes, request_, count):
        orchestrator = Orchestrator(fakes)
        with pytest.raises(ValidationError):
            asyncio.run(orchestrator.generate_batch(request_, count))

    def test_variation_count_limit_is_configurable(self, fakes, request_):
        orchestrator = Orchestrator(fakes, active_provider="relay", max_variation_count=2)

        with pytest.raises(ValidationError):
            asyncio.run(orchestrator.generate_batch(request_, 3))
        assert fakes["relay"].requests == []
        assert len(asyncio.run(orchestrator.generate_batch(request_, 2))) == 2


class TestInvalidCredentials:

    def test_every_provider_invalid_yields_circle_fallbacks(self, make_descriptor, request_):
        session = Mock()
        fetcher = Mock()
        kwargs = {"session": session, "fetcher": fetcher, "sleep": Mock()}
        invalid = CredentialStatus.INVALID_FORMAT
        adapters = {
            "freepik": TaskBasedAdapter(make_descriptor("freepik", ProviderKind.TASK, invalid),
                                        {"base_url": "https://api.freepik.test/v1/ai/mystic"}, **kwargs),
            "huggingface": SynchronousAdapter(make_descriptor("huggingface", status=invalid),
                                              {"base_url": "https://hf.test/models"}, **kwargs),
            "relay": RelayImageAdapter(make_descriptor("relay", ProviderKind.RELAY, invalid),
                                       {"base_url": "https://relay.test/prompt"}, **kwargs),
        }
        orchestrator = Orchestrator(adapters, routing_mode=RoutingMode.MULTI)

        results = asyncio.run(orchestrator.generate_batch(request_, 4))

        assert len(results) == 4
        for result in results:
            assert result.success is True
            assert result.is_fallback is True
            assert result.error_type == "CredentialError"
            image = Image.open(io.BytesIO(decode_data_uri(result.image_ref))).convert("RGB")
            assert image.getpixel((256, 256)) == (0, 123, 255)
        assert session.mock_calls == []
        assert fetcher.mock_calls == []


class TestRouting:

    def test_single_mode_uses_active_provider(self, fakes):
        orchestrator = Orchestrator(fakes, active_provider="freepik")
        assert orchestrator.assign_providers(3) == ["freepik"] * 3

    def test_multi_mode_cycles_distribution(self, fakes):
        orchestrator = Orchestrator(fakes, routing_mode="multi",
                                    distribution={"freepik": 1, "huggingface": 2, "relay": 1})
        assert orchestrator.assign_providers(6) == [
            "freepik", "huggingface", "huggingface", "relay", "freepik", "huggingface",
        ]

    def test_multi_mode_truncates(self, fakes):
        orchestrator = Orchestrator(fakes, routing_mode="multi", distribution={"relay": 3, "freepik": 3})
        assert orchestrator.assign_providers(2) == ["relay", "relay"]

    def test_multi_mode_skips_unknown_ids(self, fakes):
        orchestrator = Orchestrator(fakes, routing_mode="multi", distribution={"ghost": 2, "relay": 1})
        assert orchestrator.assign_providers(2) == ["relay", "relay"]

    def test_empty_distribution_uses_active_provider(self, fakes):
        orchestrator = Orchestrator(fakes, routing_mode="multi", active_provider="relay",
                                    distribution={"freepik": 0})
        assert orchestrator.assign_providers(2) == ["relay", "relay"]

    def test_switch_provider(self, fakes):
        orchestrator = Orchestrator(fakes, routing_mode="multi")
        orchestrator.switch_provider("relay")
        assert orchestrator.active_provider == "relay"
        assert orchestrator.routing_mode == RoutingMode.SINGLE

    def test_switch_to_unknown_provider_raises(self, fakes):
        orchestrator = Orchestrator(fakes, active_provider="relay")
        with pytest.raises(ConfigError):
            orchestrator.switch_provider("midjourney")
        assert orchestrator.active_provider == "relay"

    def test_set_routing_mode(self, fakes):
        orchestrator = Orchestrator(fakes)
        orchestrator.set_routing_mode("MULTI")
        assert orchestrator.routing_mode == RoutingMode.MULTI
        with pytest.raises(ConfigError):
            orchestrator.set_routing_mode("round-robin")

    def test_unknown_active_provider_defaults_to_first(self, fakes):
        assert Orchestrator(fakes, active_provider="ghost").active_provider == "freepik"

    def test_requires_adapters(self):
        with pytest.raises(ConfigError):
            Orchestrator({})


class TestProviderHealth:

    def test_health_lists_descriptors(self, fakes):
        health = Orchestrator(fakes).get_provider_health()
        assert [d.id for d in health] == ["freepik", "huggingface", "relay"]

    def test_test_providers_reports_errors(self, fakes):
        fakes["relay"].test_connection = Mock(side_effect=RuntimeError("down"))
        results = Orchestrator(fakes).test_providers()
        assert results["freepik"]["success"] is True
        assert results["relay"] == {"success": False, "error": "down"}


class TestBuildOrchestrator:

    def test_wires_adapters_from_config(self, tmp_path):
        config = {
            "settings": {
                "variation_count": 2,
                "max_variation_count": 5,
                "routing": {"mode": "multi", "active_provider": "relay",
                            "distribution": {"huggingface": 1, "relay": 1}},
                "polling": {"interval": 0.5, "max_attempts": 5},
                "output_buffer": {"capacity": 3},
            },
            "providers": {
                "freepik": {"kind": "task", "base_url": "https://api.freepik.com/v1/ai/mystic",
                            "key_prefix": "FPSX", "api_key": "FPSX-abc"},
                "huggingface": {"kind": "synchronous", "base_url": "https://api-inference.huggingface.co/models",
                                "key_prefix": "hf_", "api_key": "wrong"},
                "relay": {"kind": "relay", "base_url": "https://image.pollinations.ai/prompt",
                          "requires_key": False},
            },
        }
        config_path = tmp_path / "api_config.yaml"
        config_path.write_text(yaml.safe_dump(config), encoding="utf-8")

        orchestrator = build_orchestrator(ConfigManager(str(config_path)), sleep=Mock())

        assert set(orchestrator.adapters) == {"freepik", "huggingface", "relay"}
        assert isinstance(orchestrator.adapters["freepik"], TaskBasedAdapter)
        assert orchestrator.adapters["freepik"].max_polls == 5
        assert orchestrator.adapters["huggingface"].descriptor.credential_status == CredentialStatus.INVALID_FORMAT
        assert orchestrator.routing_mode == RoutingMode.MULTI
        assert orchestrator.variation_count == 2
        assert orchestrator.max_variation_count == 5
        assert orchestrator.output_buffer.capacity == 3

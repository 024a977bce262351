"""
HTTP API for the studio UI (aiohttp).

Routes:
    POST /api/studio/generate           generate a batch
    GET  /api/studio/providers          provider health (descriptors)
    POST /api/studio/providers/active   switch the active provider
    POST /api/studio/routing            set single/multi routing
    GET  /api/studio/outputs            output buffer, newest first
    POST /api/studio/providers/test     run connection tests
"""

import asyncio
import binascii

from aiohttp import web

from .errors import StudioError, ValidationError
from .image_utils import decode_data_uri
from .models import GenerationRequest
from .studio_logger import log_error

ORCHESTRATOR_KEY = web.AppKey("orchestrator", object)

routes = web.RouteTableDef()


def _error_response(e: Exception) -> web.Response:
    if isinstance(e, StudioError):
        return web.json_response(e.to_dict(), status=400)
    if isinstance(e, (ValueError, TypeError)):
        # Malformed JSON body or a field of the wrong type
        return web.json_response({"error": str(e)}, status=400)
    log_error("Unhandled API error", e)
    return web.json_response({"error": str(e)}, status=500)


async def _json_object(request) -> dict:
    data = await request.json()
    if not isinstance(data, dict):
        raise ValidationError("Invalid request", ["request body must be a JSON object"])
    return data


@routes.post("/api/studio/generate")
async def generate(request):
    """
    Expects JSON body:
    {
        "prompt": str,              # required
        "style": str,               # optional, default "modern"
        "asset_type": str,          # optional, default "image"
        "aspect_ratio": str,        # optional, default "1:1"
        "variation_count": int,     # optional, default from settings
        "variation_seed": int,      # optional
        "reference_image": str      # optional, base64 or data-URI
    }
    """
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        data = await _json_object(request)
        prompt = (data.get("prompt") or "").strip()
        if not prompt:
            raise ValidationError("Invalid request", ["prompt is required"])

        reference_image = None
        if data.get("reference_image"):
            try:
                reference_image = decode_data_uri(data["reference_image"])
            except (binascii.Error, ValueError):
                raise ValidationError("Invalid request", ["reference_image is not valid base64"])

        generation_request = GenerationRequest.create(
            prompt,
            style=data.get("style"),
            asset_type=data.get("asset_type"),
            aspect_ratio=data.get("aspect_ratio"),
            reference_image=reference_image,
            variation_seed=data.get("variation_seed", 0),
        )
        variation_count = data.get("variation_count")
        results = await orchestrator.generate_batch(
            generation_request, None if variation_count is None else int(variation_count)
        )
        return web.json_response({
            "success": True,
            "results": [result.to_dict() for result in results],
            "fallback_count": sum(1 for result in results if result.is_fallback),
        })
    except Exception as e:
        return _error_response(e)


@routes.get("/api/studio/providers")
async def get_providers(request):
    orchestrator = request.app[ORCHESTRATOR_KEY]
    return web.json_response({
        "providers": [descriptor.to_dict() for descriptor in orchestrator.get_provider_health()],
        "active_provider": orchestrator.active_provider,
        "routing_mode": orchestrator.routing_mode.value,
    })


@routes.post("/api/studio/providers/active")
async def set_active_provider(request):
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        data = await _json_object(request)
        orchestrator.switch_provider(data.get("provider_id", ""))
        return web.json_response({
            "success": True,
            "active_provider": orchestrator.active_provider,
            "routing_mode": orchestrator.routing_mode.value,
        })
    except Exception as e:
        return _error_response(e)


@routes.post("/api/studio/routing")
async def set_routing(request):
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        data = await _json_object(request)
        orchestrator.set_routing_mode(data.get("mode", ""))
        return web.json_response({"success": True, "routing_mode": orchestrator.routing_mode.value})
    except Exception as e:
        return _error_response(e)


@routes.get("/api/studio/outputs")
async def get_outputs(request):
    orchestrator = request.app[ORCHESTRATOR_KEY]
    return web.json_response({
        "outputs": [entry.to_dict() for entry in orchestrator.output_buffer.list()],
    })


@routes.post("/api/studio/providers/test")
async def test_providers(request):
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        results = await asyncio.to_thread(orchestrator.test_providers)
        return web.json_response({"results": results})
    except Exception as e:
        return _error_response(e)


def create_app(orchestrator) -> web.Application:
    app = web.Application(client_max_size=20 * 1024 * 1024)
    app[ORCHESTRATOR_KEY] = orchestrator
    app.add_routes(routes)
    return app

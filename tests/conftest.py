"""
Shared fixtures for the Mingle Studio tests
"""

import io
import json
from unittest.mock import Mock

import numpy as np
import pytest
from PIL import Image

from mingle_studio.models import CredentialStatus, ProviderDescriptor, ProviderKind


def _png_bytes(width=64, height=64, seed=0):
    # Noise keeps the PNG well above the fetcher's size threshold
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, (height, width, 3), dtype=np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


def _response(status_code=200, json_data=None, content=None, headers=None):
    resp = Mock()
    resp.status_code = status_code
    resp.headers = dict(headers or {})
    if json_data is not None:
        text = json.dumps(json_data)
        resp.json.return_value = json_data
        resp.content = text.encode("utf-8")
        resp.text = text
        resp.headers.setdefault("Content-Type", "application/json")
    else:
        resp.content = content if content is not None else b""
        resp.text = resp.content.decode("latin-1")
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    return resp


@pytest.fixture
def png_bytes():
    return _png_bytes()


@pytest.fixture
def make_png():
    return _png_bytes


@pytest.fixture
def make_response():
    return _response


@pytest.fixture
def make_descriptor():
    def factory(provider_id="test", kind=ProviderKind.SYNCHRONOUS,
                status=CredentialStatus.VALID, supports_reference_image=False):
        return ProviderDescriptor(
            id=provider_id,
            credential_status=status,
            supports_reference_image=supports_reference_image,
            is_task_based=kind == ProviderKind.TASK,
            display_name=provider_id.title(),
            kind=kind,
        )
    return factory


@pytest.fixture
def no_sleep():
    """Injected sleep that records the requested delays"""
    return Mock(return_value=None)

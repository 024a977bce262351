"""
Mingle Studio

Multi-provider image generation orchestrator: fans a request out to several
unreliable generation backends and always returns a usable image, falling
back to a locally rendered placeholder when a backend fails.
"""

from .config_manager import ConfigManager
from .errors import StudioError, ConfigError, ValidationError, APIError
from .fallback_renderer import FallbackRenderer
from .models import (
    AspectRatio,
    AssetType,
    CredentialStatus,
    GenerationRequest,
    GenerationResult,
    OutputEntry,
    ProviderDescriptor,
    RoutingMode,
    Style,
)
from .orchestrator import BatchState, Orchestrator, build_orchestrator
from .output_buffer import OutputBuffer
from .prompt_enhancer import enhance

__version__ = "1.0.0"

__all__ = [
    "AspectRatio",
    "AssetType",
    "BatchState",
    "ConfigError",
    "ConfigManager",
    "CredentialStatus",
    "APIError",
    "FallbackRenderer",
    "GenerationRequest",
    "GenerationResult",
    "Orchestrator",
    "OutputBuffer",
    "OutputEntry",
    "ProviderDescriptor",
    "RoutingMode",
    "Style",
    "StudioError",
    "ValidationError",
    "build_orchestrator",
    "enhance",
]

"""
Provider Adapter Module

Provides a unified generate(request) -> GenerationResult interface over the
different backend shapes. Each adapter handles the request/response format
for its provider kind.
"""

from typing import Dict, Optional, Type

from ..errors import ConfigError
from ..models import ProviderDescriptor, ProviderKind
from .base import ProviderAdapter
from .gemini import GeminiAdapter
from .relay import RelayImageAdapter
from .synchronous import SynchronousAdapter
from .task_based import TaskBasedAdapter

ADAPTER_CLASSES: Dict[ProviderKind, Type[ProviderAdapter]] = {
    ProviderKind.SYNCHRONOUS: SynchronousAdapter,
    ProviderKind.TASK: TaskBasedAdapter,
    ProviderKind.RELAY: RelayImageAdapter,
    ProviderKind.GEMINI: GeminiAdapter,
}


def create_adapter(descriptor: ProviderDescriptor, provider_config: Optional[Dict] = None,
                   **kwargs) -> ProviderAdapter:
    """
    Build the adapter for a descriptor's provider kind.

    Extra keyword arguments (session, fetcher, retry_config, sleep, and for
    task-based providers poll_interval/max_polls) are passed through.
    """
    adapter_cls = ADAPTER_CLASSES.get(descriptor.kind)
    if adapter_cls is None:
        raise ConfigError(
            f"No adapter for provider kind '{descriptor.kind}'",
            field=f"providers.{descriptor.id}.kind",
            value=descriptor.kind,
        )
    if adapter_cls is not TaskBasedAdapter:
        kwargs.pop("poll_interval", None)
        kwargs.pop("max_polls", None)
    return adapter_cls(descriptor, provider_config, **kwargs)


__all__ = [
    'ProviderAdapter',
    'SynchronousAdapter',
    'TaskBasedAdapter',
    'RelayImageAdapter',
    'GeminiAdapter',
    'create_adapter',
    'ADAPTER_CLASSES',
]

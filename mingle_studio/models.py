"""
Data model for the generation orchestrator.

Pure data layer - no network or platform dependencies.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class _DefaultingEnum(Enum):
    """Enum whose unknown values resolve to a named default member."""

    @classmethod
    def default(cls):
        raise NotImplementedError

    @classmethod
    def parse(cls, value):
        """Matching member, or None for an unknown value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None

    @classmethod
    def from_value(cls, value):
        member = cls.parse(value)
        return cls.default() if member is None else member


class Style(_DefaultingEnum):
    COLOURFUL = "colourful"
    CYBERPUNK = "cyberpunk"
    REAL = "real"
    MODERN = "modern"
    MINIMALIST = "minimalist"
    VINTAGE = "vintage"
    BOLD = "bold"
    ELEGANT = "elegant"
    PLAYFUL = "playful"

    @classmethod
    def default(cls):
        return cls.MODERN


class AssetType(_DefaultingEnum):
    IMAGE = "image"
    ICON = "icon"
    LOGO = "logo"
    LAYOUT = "layout"

    @classmethod
    def default(cls):
        return cls.IMAGE


class AspectRatio(_DefaultingEnum):
    SQUARE = "1:1"
    WIDESCREEN = "16:9"
    STORY = "9:16"
    CLASSIC = "4:3"
    TRADITIONAL = "3:4"
    STANDARD = "3:2"
    PORTRAIT = "2:3"

    @classmethod
    def default(cls):
        return cls.SQUARE


class RoutingMode(_DefaultingEnum):
    SINGLE = "single"
    MULTI = "multi"

    @classmethod
    def default(cls):
        return cls.SINGLE


class ProviderKind(Enum):
    SYNCHRONOUS = "synchronous"
    TASK = "task"
    RELAY = "relay"
    GEMINI = "gemini"


class CredentialStatus(Enum):
    UNCONFIGURED = "Unconfigured"
    INVALID_FORMAT = "InvalidFormat"
    VALID = "Valid"

    def is_valid(self) -> bool:
        return self == self.VALID


class TaskStatus(Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"

    def is_terminal(self) -> bool:
        return self in (self.COMPLETED, self.FAILED, self.TIMED_OUT)

    def is_success(self) -> bool:
        return self == self.COMPLETED


@dataclass(frozen=True)
class GenerationRequest:
    """One generation request; the orchestrator clones it per variation."""

    prompt: str
    style: Style = Style.MODERN
    asset_type: AssetType = AssetType.IMAGE
    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    reference_image: Optional[bytes] = field(default=None, repr=False)
    variation_seed: int = 0

    @classmethod
    def create(cls, prompt: str, style=None, asset_type=None, aspect_ratio=None,
               reference_image: Optional[bytes] = None,
               variation_seed: int = 0) -> "GenerationRequest":
        """Build a request from loose (string) selector values."""
        return cls(
            prompt=prompt,
            style=Style.from_value(style),
            asset_type=AssetType.from_value(asset_type),
            aspect_ratio=AspectRatio.from_value(aspect_ratio),
            reference_image=reference_image,
            variation_seed=int(variation_seed or 0),
        )

    @property
    def has_reference(self) -> bool:
        return bool(self.reference_image)

    def with_variation(self, index: int) -> "GenerationRequest":
        return replace(
            self,
            prompt=f"{self.prompt}, variation {index}",
            variation_seed=self.variation_seed + index,
        )


@dataclass(frozen=True)
class ProviderDescriptor:
    """Immutable provider facts, built once from configuration."""

    id: str
    credential_status: CredentialStatus
    supports_reference_image: bool = False
    is_task_based: bool = False
    display_name: str = ""
    kind: ProviderKind = ProviderKind.SYNCHRONOUS

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name or self.id,
            "kind": self.kind.value,
            "credential_status": self.credential_status.value,
            "supports_reference_image": self.supports_reference_image,
            "is_task_based": self.is_task_based,
        }


@dataclass
class GenerationTask:
    """Poll state of one provider-side job. Owned by a single poll loop."""

    provider_id: str
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    created_at: float = field(default_factory=time.time)
    result_urls: list = field(default_factory=list)
    error_message: str = ""


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one sub-request."""

    success: bool
    image_ref: Optional[str] = field(default=None, repr=False)
    provider_id: str = ""
    prompt: str = ""
    is_fallback: bool = False
    error_message: str = ""
    attempts: int = 0
    error_type: str = ""

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "image_ref": self.image_ref,
            "provider_id": self.provider_id,
            "prompt": self.prompt,
            "is_fallback": self.is_fallback,
            "error_message": self.error_message,
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class OutputEntry:
    """A successful result as shown in the UI output strip."""

    image_ref: str = field(repr=False)
    prompt: str
    style: Style
    asset_type: AssetType
    provider_id: str = ""
    is_fallback: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "image_ref": self.image_ref,
            "prompt": self.prompt,
            "style": self.style.value,
            "asset_type": self.asset_type.value,
            "provider_id": self.provider_id,
            "is_fallback": self.is_fallback,
            "created_at": self.created_at,
        }

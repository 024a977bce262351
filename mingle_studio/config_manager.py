"""
Mingle Studio Configuration Manager

Configuration manager supporting:
- Multiple generation providers (kind, endpoint, credentials, capabilities)
- Secrets merged from a separate secrets.yaml (or environment variables)
- Hot-reload when either file changes
- Credential status checks that never touch the network
"""

import os
import re
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError, ValidationError
from .models import CredentialStatus, ProviderDescriptor, ProviderKind, RoutingMode
from .studio_logger import RetryConfig, logger

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "api_config.yaml")

PLACEHOLDER_KEYS = ("DEMO_KEY_NEEDS_REPLACEMENT",)
PLACEHOLDER_PATTERN = re.compile(r'^YOUR_.*_HERE$', re.IGNORECASE)

URL_PATTERN = re.compile(
    r'^https?://'  # http:// or https://
    r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,6}\.?|'  # domain
    r'localhost|'  # localhost
    r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # or IP
    r'(?::\d+)?'  # optional port
    r'(?:/?|[/?]\S+)$', re.IGNORECASE
)

DEFAULT_SETTINGS = {
    "log_level": "INFO",
    "variation_count": 4,
    "max_variation_count": 8,
    "routing": {
        "mode": "single",
        "active_provider": "relay",
        "distribution": {"freepik": 1, "huggingface": 2, "relay": 1},
    },
    "polling": {"interval": 2.0, "max_attempts": 30},
    "retry": {"max_attempts": 3, "initial_delay": 10.0, "max_delay": 60.0},
    "fetch": {
        "relay_url": "https://api.allorigins.win/raw?url={url}",
        "min_bytes": 1000,
        "timeout": 60,
    },
    "output_buffer": {"capacity": 6},
}


def is_placeholder_key(api_key: str) -> bool:
    return api_key in PLACEHOLDER_KEYS or bool(PLACEHOLDER_PATTERN.match(api_key))


def credential_status(provider_config: Dict) -> CredentialStatus:
    """
    Classify a provider's API key without any network call.

    No key required -> Valid; empty or placeholder -> Unconfigured;
    wrong prefix -> InvalidFormat.
    """
    if not provider_config.get("requires_key", True):
        return CredentialStatus.VALID

    api_key = str(provider_config.get("api_key") or "").strip()
    if not api_key or is_placeholder_key(api_key):
        return CredentialStatus.UNCONFIGURED

    prefix = provider_config.get("key_prefix", "")
    if prefix and not api_key.startswith(prefix):
        return CredentialStatus.INVALID_FORMAT

    return CredentialStatus.VALID


def _merge_defaults(values: Dict, defaults: Dict) -> Dict:
    merged = dict(defaults)
    for key, value in (values or {}).items():
        if isinstance(value, dict) and isinstance(defaults.get(key), dict) and key != "distribution":
            merged[key] = _merge_defaults(value, defaults[key])
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    Configuration Manager with support for:
    - Provider definitions and descriptors
    - Secrets merge (secrets.yaml beside the config, or api_key_env)
    - Hot-reload on file changes
    """

    def __init__(self, config_path: Optional[str] = None, secrets_path: Optional[str] = None):
        self._config: Dict = {}
        self._last_mtime: float = 0
        self._secrets_mtime: float = 0

        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.secrets_path = secrets_path or os.path.join(
            os.path.dirname(os.path.abspath(self.config_path)), "secrets.yaml"
        )
        self.load_config()

    def load_config(self, force: bool = False) -> bool:
        """
        Loads or reloads the configuration if either file changed.

        Args:
            force: If True, reload even when modification times are unchanged

        Returns:
            True if the configuration was (re)loaded
        """
        if not os.path.exists(self.config_path):
            logger.warning(f"[ConfigManager] Config file not found at {self.config_path}")
            return False

        mtime = os.path.getmtime(self.config_path)
        secrets_mtime = os.path.getmtime(self.secrets_path) if os.path.exists(self.secrets_path) else 0

        if not force and mtime <= self._last_mtime and secrets_mtime <= self._secrets_mtime:
            return False

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}", field="config_path",
                              value=self.config_path)
        self._last_mtime = mtime

        self._merge_secrets()
        self._secrets_mtime = secrets_mtime

        logger.info(f"[ConfigManager] Loaded configuration from {self.config_path}")
        return True

    def _merge_secrets(self):
        """
        Merge per-provider values (api keys, base URLs) from secrets.yaml over
        the main config, then fill still-empty keys from api_key_env.
        """
        providers = self._config.setdefault("providers", {}) or {}
        self._config["providers"] = providers

        if os.path.exists(self.secrets_path):
            try:
                with open(self.secrets_path, 'r', encoding='utf-8') as f:
                    secrets = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.secrets_path}: {e}", field="secrets_path",
                                  value=self.secrets_path)

            for name, values in (secrets.get("providers") or {}).items():
                providers.setdefault(name, {})
                providers[name] = {**(providers[name] or {}), **(values or {})}
            logger.info(f"[ConfigManager] Merged provider secrets from {self.secrets_path}")

        for name, provider in providers.items():
            env_name = (provider or {}).get("api_key_env")
            if env_name and not provider.get("api_key") and os.environ.get(env_name):
                provider["api_key"] = os.environ[env_name]
                logger.debug(f"[ConfigManager] {name}: api_key read from ${env_name}")

    # ==========================================
    # Config Validation
    # ==========================================

    def validate_config(self, raise_on_error: bool = False) -> List[str]:
        """
        Validate the configuration.

        Args:
            raise_on_error: If True, raise ValidationError when problems are found

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        kinds = {kind.value for kind in ProviderKind}

        providers = self._config.get("providers", {})
        if not providers:
            errors.append("No providers configured")

        for name, config in providers.items():
            config = config or {}
            base_url = config.get("base_url", "")
            if not base_url:
                errors.append(f"Provider '{name}': missing 'base_url'")
            elif not URL_PATTERN.match(base_url):
                errors.append(f"Provider '{name}': invalid URL format '{base_url}'")

            kind = config.get("kind", "")
            if kind not in kinds:
                errors.append(f"Provider '{name}': unknown kind '{kind}' (expected one of {sorted(kinds)})")

        settings = self.get_settings()
        routing = settings["routing"]
        if str(routing.get("mode", "")).lower() not in {mode.value for mode in RoutingMode}:
            errors.append(f"Routing: unknown mode '{routing.get('mode')}'")
        if providers and routing.get("active_provider") not in providers:
            errors.append(f"Routing: active provider '{routing.get('active_provider')}' not found")
        for provider_id, weight in (routing.get("distribution") or {}).items():
            if provider_id not in providers:
                errors.append(f"Routing: distribution provider '{provider_id}' not found")
            if not isinstance(weight, int) or weight < 0:
                errors.append(f"Routing: distribution weight for '{provider_id}' must be a non-negative integer")

        if settings["polling"].get("interval", 0) <= 0:
            errors.append("Polling: 'interval' must be positive")
        if settings["polling"].get("max_attempts", 0) < 1:
            errors.append("Polling: 'max_attempts' must be at least 1")
        if settings["retry"].get("max_attempts", 0) < 1:
            errors.append("Retry: 'max_attempts' must be at least 1")
        if settings.get("variation_count", 0) < 1:
            errors.append("'variation_count' must be at least 1")
        if settings.get("variation_count", 0) > settings.get("max_variation_count", 0):
            errors.append("'variation_count' must not exceed 'max_variation_count'")
        if settings["output_buffer"].get("capacity", 0) < 1:
            errors.append("Output buffer: 'capacity' must be at least 1")

        if raise_on_error and errors:
            raise ValidationError("Configuration validation failed", errors)

        return errors

    def is_valid(self) -> bool:
        """Check if current configuration is valid"""
        return len(self.validate_config()) == 0

    # ==========================================
    # Provider Methods
    # ==========================================

    def get_providers(self) -> List[str]:
        """Returns list of enabled provider ids"""
        self.load_config()
        return [
            name for name, config in self._config.get("providers", {}).items()
            if (config or {}).get("enabled", True)
        ]

    def get_provider_config(self, provider_id: str) -> Optional[Dict]:
        """Get a copy of one provider's configuration"""
        self.load_config()
        config = self._config.get("providers", {}).get(provider_id)
        return dict(config) if config is not None else None

    def get_provider_descriptor(self, provider_id: str) -> ProviderDescriptor:
        config = self.get_provider_config(provider_id)
        if config is None:
            raise ConfigError(f"Unknown provider '{provider_id}'", field="providers", value=provider_id)

        try:
            kind = ProviderKind(config.get("kind", ""))
        except ValueError:
            raise ConfigError(
                f"Provider '{provider_id}': unknown kind '{config.get('kind')}'",
                field=f"providers.{provider_id}.kind",
                value=config.get("kind"),
                suggestion=f"Use one of: {', '.join(k.value for k in ProviderKind)}",
            )

        return ProviderDescriptor(
            id=provider_id,
            credential_status=credential_status(config),
            supports_reference_image=bool(config.get("supports_reference_image", False)),
            is_task_based=kind == ProviderKind.TASK,
            display_name=config.get("display_name", provider_id),
            kind=kind,
        )

    def get_provider_descriptors(self) -> List[ProviderDescriptor]:
        """Descriptors for every enabled provider, built from the current config"""
        descriptors = [self.get_provider_descriptor(name) for name in self.get_providers()]
        for descriptor in descriptors:
            if not descriptor.credential_status.is_valid():
                logger.warning(
                    f"[ConfigManager] {descriptor.id}: API key {descriptor.credential_status.value}, "
                    f"requests will use the local fallback"
                )
        return descriptors

    # ==========================================
    # Hot Reload Methods
    # ==========================================

    def force_reload(self) -> bool:
        """Force reload the configuration from disk."""
        self._last_mtime = 0
        self._secrets_mtime = 0
        return self.load_config(force=True)

    def get_raw_config(self) -> Dict:
        """Returns the raw config dictionary"""
        self.load_config()
        return self._config

    # ==========================================
    # Settings Methods
    # ==========================================

    def get_settings(self) -> Dict:
        """Get global settings merged over defaults"""
        self.load_config()
        return _merge_defaults(self._config.get("settings", {}), DEFAULT_SETTINGS)

    def get_retry_config(self) -> RetryConfig:
        """Retry configuration for synchronous adapters"""
        retry = self.get_settings()["retry"]
        return RetryConfig(
            max_attempts=int(retry.get("max_attempts", 3)),
            initial_delay=float(retry.get("initial_delay", 10.0)),
            max_delay=float(retry.get("max_delay", 60.0)),
            exponential_base=float(retry.get("exponential_base", 1.0)),
        )

    def get_polling_settings(self) -> Dict[str, Any]:
        polling = self.get_settings()["polling"]
        return {
            "interval": float(polling.get("interval", 2.0)),
            "max_attempts": int(polling.get("max_attempts", 30)),
        }

    def get_fetch_settings(self) -> Dict[str, Any]:
        fetch = self.get_settings()["fetch"]
        return {
            "relay_url": fetch.get("relay_url", DEFAULT_SETTINGS["fetch"]["relay_url"]),
            "min_bytes": int(fetch.get("min_bytes", 1000)),
            "timeout": float(fetch.get("timeout", 60)),
        }

    def get_routing_settings(self) -> Dict[str, Any]:
        routing = self.get_settings()["routing"]
        return {
            "mode": RoutingMode.from_value(routing.get("mode")),
            "active_provider": routing.get("active_provider"),
            "distribution": dict(routing.get("distribution") or {}),
        }

    def get_log_level(self) -> str:
        """Get configured log level"""
        return str(self.get_settings().get("log_level", "INFO")).upper()

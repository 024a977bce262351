"""
Unit tests for the Mingle Studio configuration layer

This module contains tests for:
- ConfigManager (api_config.yaml + secrets.yaml parsing and management)
- Credential status classification
- Validation and typed settings accessors
"""

import os
import shutil
import tempfile
import time
import unittest
from unittest.mock import patch

import yaml

from mingle_studio.config_manager import DEFAULT_CONFIG_PATH, ConfigManager, credential_status
from mingle_studio.errors import ConfigError, ValidationError
from mingle_studio.models import CredentialStatus, ProviderKind, RoutingMode


class TestCredentialStatus(unittest.TestCase):
    """Tests for the offline API key check"""

    def test_keyless_provider_is_valid(self):
        self.assertEqual(credential_status({"requires_key": False}), CredentialStatus.VALID)

    def test_empty_key_is_unconfigured(self):
        self.assertEqual(credential_status({"api_key": ""}), CredentialStatus.UNCONFIGURED)
        self.assertEqual(credential_status({"api_key": None}), CredentialStatus.UNCONFIGURED)
        self.assertEqual(credential_status({}), CredentialStatus.UNCONFIGURED)

    def test_placeholder_keys_are_unconfigured(self):
        for key in ("DEMO_KEY_NEEDS_REPLACEMENT", "YOUR_FREEPIK_KEY_HERE", "your_api_key_here"):
            with self.subTest(key=key):
                self.assertEqual(credential_status({"api_key": key, "key_prefix": "FPSX"}),
                                 CredentialStatus.UNCONFIGURED)

    def test_prefix_mismatch_is_invalid_format(self):
        self.assertEqual(credential_status({"api_key": "sk-123", "key_prefix": "hf_"}),
                         CredentialStatus.INVALID_FORMAT)

    def test_matching_prefix_is_valid(self):
        self.assertEqual(credential_status({"api_key": "hf_123", "key_prefix": "hf_"}),
                         CredentialStatus.VALID)

    def test_no_prefix_rule_accepts_any_key(self):
        self.assertEqual(credential_status({"api_key": "anything"}), CredentialStatus.VALID)


class TestConfigManager(unittest.TestCase):
    """Tests for ConfigManager class"""

    def setUp(self):
        """Set up test fixtures"""
        self.temp_dir = tempfile.mkdtemp()
        self.temp_config_path = os.path.join(self.temp_dir, "api_config.yaml")
        self.temp_secrets_path = os.path.join(self.temp_dir, "secrets.yaml")

        self.sample_config = {
            "settings": {
                "log_level": "debug",
                "routing": {
                    "mode": "multi",
                    "active_provider": "huggingface",
                    "distribution": {"huggingface": 3, "relay": 1},
                },
                "polling": {"interval": 1.5},
            },
            "providers": {
                "freepik": {
                    "kind": "task",
                    "base_url": "https://api.freepik.com/v1/ai/mystic",
                    "api_key": "",
                    "api_key_env": "TEST_FREEPIK_KEY",
                    "key_prefix": "FPSX",
                    "supports_reference_image": True,
                },
                "huggingface": {
                    "kind": "synchronous",
                    "base_url": "https://api-inference.huggingface.co/models",
                    "api_key": "YOUR_HF_KEY_HERE",
                    "key_prefix": "hf_",
                },
                "relay": {
                    "kind": "relay",
                    "base_url": "https://image.pollinations.ai/prompt",
                    "requires_key": False,
                },
                "legacy": {
                    "kind": "synchronous",
                    "base_url": "https://legacy.example.com",
                    "enabled": False,
                },
            },
        }
        self._write(self.temp_config_path, self.sample_config)

    def tearDown(self):
        """Clean up temporary files"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, path, data):
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f)

    def _manager(self):
        return ConfigManager(self.temp_config_path, self.temp_secrets_path)

    def test_load_config(self):
        """Test that config loads correctly"""
        manager = self._manager()
        self.assertIn("providers", manager.get_raw_config())

    def test_missing_file_keeps_empty_config(self):
        manager = ConfigManager(os.path.join(self.temp_dir, "nope.yaml"))
        self.assertEqual(manager.get_providers(), [])
        self.assertFalse(manager.is_valid())

    def test_invalid_yaml_raises(self):
        with open(self.temp_config_path, 'w', encoding='utf-8') as f:
            f.write("providers: [unclosed")
        with self.assertRaises(ConfigError):
            self._manager()

    def test_get_providers_skips_disabled(self):
        """Test retrieving enabled providers"""
        providers = self._manager().get_providers()
        self.assertEqual(providers, ["freepik", "huggingface", "relay"])

    def test_get_provider_config_is_a_copy(self):
        manager = self._manager()
        config = manager.get_provider_config("relay")
        config["base_url"] = "https://changed.example.com"
        self.assertEqual(manager.get_provider_config("relay")["base_url"], "https://image.pollinations.ai/prompt")

    def test_nonexistent_provider(self):
        """Test handling of nonexistent provider"""
        manager = self._manager()
        self.assertIsNone(manager.get_provider_config("nonexistent"))
        with self.assertRaises(ConfigError):
            manager.get_provider_descriptor("nonexistent")

    def test_secrets_merged_per_provider(self):
        self._write(self.temp_secrets_path, {
            "providers": {"huggingface": {"api_key": "hf_secret"}},
        })
        manager = self._manager()

        huggingface = manager.get_provider_config("huggingface")
        self.assertEqual(huggingface["api_key"], "hf_secret")
        self.assertEqual(huggingface["key_prefix"], "hf_")
        self.assertEqual(manager.get_provider_config("relay")["requires_key"], False)

    def test_api_key_from_environment(self):
        with patch.dict(os.environ, {"TEST_FREEPIK_KEY": "FPSX-from-env"}):
            manager = self._manager()
        self.assertEqual(manager.get_provider_config("freepik")["api_key"], "FPSX-from-env")
        self.assertEqual(manager.get_provider_descriptor("freepik").credential_status,
                         CredentialStatus.VALID)

    def test_secrets_key_wins_over_environment(self):
        self._write(self.temp_secrets_path, {"providers": {"freepik": {"api_key": "FPSX-secret"}}})
        with patch.dict(os.environ, {"TEST_FREEPIK_KEY": "FPSX-from-env"}):
            manager = self._manager()
        self.assertEqual(manager.get_provider_config("freepik")["api_key"], "FPSX-secret")

    def test_descriptors(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("TEST_FREEPIK_KEY", None)
            descriptors = {d.id: d for d in self._manager().get_provider_descriptors()}

        self.assertEqual(set(descriptors), {"freepik", "huggingface", "relay"})
        freepik = descriptors["freepik"]
        self.assertEqual(freepik.kind, ProviderKind.TASK)
        self.assertTrue(freepik.is_task_based)
        self.assertTrue(freepik.supports_reference_image)
        self.assertEqual(freepik.credential_status, CredentialStatus.UNCONFIGURED)
        self.assertEqual(descriptors["huggingface"].credential_status, CredentialStatus.UNCONFIGURED)
        self.assertEqual(descriptors["relay"].credential_status, CredentialStatus.VALID)
        self.assertFalse(descriptors["relay"].supports_reference_image)

    def test_unknown_kind_descriptor_raises(self):
        self.sample_config["providers"]["relay"]["kind"] = "fax"
        self._write(self.temp_config_path, self.sample_config)
        with self.assertRaises(ConfigError):
            self._manager().get_provider_descriptor("relay")

    def test_settings_merged_over_defaults(self):
        """Test getting global settings"""
        manager = self._manager()
        settings = manager.get_settings()

        self.assertEqual(settings["polling"]["interval"], 1.5)
        self.assertEqual(settings["polling"]["max_attempts"], 30)
        self.assertEqual(settings["output_buffer"]["capacity"], 6)
        self.assertEqual(settings["routing"]["distribution"], {"huggingface": 3, "relay": 1})

    def test_typed_accessors(self):
        manager = self._manager()

        self.assertEqual(manager.get_polling_settings(), {"interval": 1.5, "max_attempts": 30})
        retry = manager.get_retry_config()
        self.assertEqual(retry.max_attempts, 3)
        self.assertEqual(retry.initial_delay, 10.0)
        routing = manager.get_routing_settings()
        self.assertEqual(routing["mode"], RoutingMode.MULTI)
        self.assertEqual(routing["active_provider"], "huggingface")
        self.assertEqual(manager.get_fetch_settings()["min_bytes"], 1000)
        self.assertEqual(manager.get_log_level(), "DEBUG")

    def test_valid_config_has_no_errors(self):
        self.assertEqual(self._manager().validate_config(), [])

    def test_validation_collects_errors(self):
        self.sample_config["providers"]["relay"]["base_url"] = "not-a-url"
        self.sample_config["providers"]["huggingface"]["kind"] = "magic"
        self.sample_config["settings"]["routing"]["mode"] = "round-robin"
        self.sample_config["settings"]["routing"]["distribution"]["ghost"] = 1
        self.sample_config["settings"]["polling"]["interval"] = 0
        self._write(self.temp_config_path, self.sample_config)

        errors = self._manager().validate_config()

        self.assertEqual(len(errors), 5)
        with self.assertRaises(ValidationError):
            self._manager().validate_config(raise_on_error=True)

    def test_variation_count_above_limit(self):
        self.sample_config["settings"]["variation_count"] = 12
        self._write(self.temp_config_path, self.sample_config)

        errors = self._manager().validate_config()

        self.assertEqual(errors, ["'variation_count' must not exceed 'max_variation_count'"])

    def test_reload_on_mtime_change(self):
        manager = self._manager()
        self.sample_config["providers"]["relay"]["display_name"] = "Renamed"
        self._write(self.temp_config_path, self.sample_config)
        future = time.time() + 10
        os.utime(self.temp_config_path, (future, future))

        self.assertEqual(manager.get_provider_descriptor("relay").display_name, "Renamed")

    def test_no_reload_when_unchanged(self):
        manager = self._manager()
        self.assertFalse(manager.load_config())
        self.assertTrue(manager.force_reload())


class TestPackagedConfig(unittest.TestCase):
    """The config shipped with the package"""

    def test_packaged_config_is_valid(self):
        manager = ConfigManager(DEFAULT_CONFIG_PATH, os.path.join(tempfile.gettempdir(), "no-secrets.yaml"))
        self.assertEqual(manager.validate_config(), [])
        self.assertEqual(set(manager.get_providers()), {"freepik", "huggingface", "gemini", "relay"})

    def test_packaged_relay_needs_no_key(self):
        manager = ConfigManager(DEFAULT_CONFIG_PATH, os.path.join(tempfile.gettempdir(), "no-secrets.yaml"))
        self.assertEqual(manager.get_provider_descriptor("relay").credential_status, CredentialStatus.VALID)


if __name__ == '__main__':
    unittest.main()

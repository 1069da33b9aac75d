"""
Unit tests for configuration loading and validation.

Tests environment defaults, storage mode resolution, and strict YAML
validation.
"""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from image_playground.config.loader import (
    ConfigError,
    Settings,
    StorageMode,
    load_settings,
    resolve_storage_mode,
    settings_from_env,
)


class TestStorageMode:
    """Test storage mode resolution."""

    def test_explicit_mode_wins(self):
        assert resolve_storage_mode("inline", on_vercel=False) is StorageMode.INLINE
        assert resolve_storage_mode("FS", on_vercel=True) is StorageMode.FS

    def test_vercel_defaults_to_inline(self):
        assert resolve_storage_mode(None, on_vercel=True) is StorageMode.INLINE

    def test_default_is_filesystem(self):
        assert resolve_storage_mode(None, on_vercel=False) is StorageMode.FS

    def test_invalid_mode(self):
        with pytest.raises(ConfigError, match="storage mode must be one of"):
            resolve_storage_mode("indexeddb", on_vercel=False)


class TestSettingsFromEnv:
    """Test environment variable loading."""

    def test_defaults(self):
        settings = settings_from_env({})
        assert settings == Settings()
        assert settings.output_dir == Path("generated-images")
        assert settings.sora_model == "sora-2"
        assert settings.enhance_model == "gpt-5.2-chat"

    def test_values_read(self):
        settings = settings_from_env({
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_API_BASE_URL": "https://proxy.example/v1",
            "VERCEL": "1",
            "IMAGE_OUTPUT_DIR": "/tmp/out",
            "AZURE_OPENAI_API_KEY": "az-key",
            "AZURE_OPENAI_ENDPOINT": "https://res.openai.azure.com/",
            "AZURE_OPENAI_PROMPT_ENHANCE_DEPLOYMENT_NAME": "enhancer",
            "LOG_LEVEL": "debug",
        })
        assert settings.openai_api_key == "sk-test"
        assert settings.storage_mode is StorageMode.INLINE
        assert settings.output_dir == Path("/tmp/out")
        assert settings.log_level == "DEBUG"
        # Azure takes precedence for prompt enhancement
        assert settings.enhance_api_key == "az-key"
        assert settings.enhance_base_url == "https://res.openai.azure.com/"
        assert settings.enhance_model == "enhancer"

    def test_blank_values_ignored(self):
        settings = settings_from_env({"OPENAI_API_KEY": "  ", "AZURE_OPENAI_SORA_MODEL": ""})
        assert settings.openai_api_key is None
        assert settings.sora_model == "sora-2"

    def test_require_openai_key(self):
        with pytest.raises(ConfigError, match="API key not found"):
            Settings().require_openai_key()
        assert Settings(openai_api_key="k").require_openai_key() == "k"

    def test_require_azure(self):
        with pytest.raises(ConfigError, match="Azure OpenAI credentials"):
            Settings(azure_api_key="k").require_azure()
        Settings(azure_api_key="k", azure_endpoint="https://x").require_azure()


class TestLoadSettings:
    """Test YAML overlay loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_no_path_uses_environment(self):
        settings = load_settings(None, environ={"OPENAI_API_KEY": "sk"})
        assert settings.openai_api_key == "sk"

    def test_yaml_overrides_environment(self):
        path = self._write_config({
            "storage_mode": "inline",
            "output_dir": "renders",
            "db_path": "history.db",
            "sora_model": "sora-2-pro",
            "log_level": "warning",
        })
        settings = load_settings(path, environ={"OPENAI_API_KEY": "sk", "IMAGE_OUTPUT_DIR": "env-out"})
        assert settings.openai_api_key == "sk"
        assert settings.storage_mode is StorageMode.INLINE
        assert settings.output_dir == Path("renders")
        assert settings.db_path == "history.db"
        assert settings.sora_model == "sora-2-pro"
        assert settings.log_level == "WARNING"

    def test_empty_file_keeps_environment(self):
        path = os.path.join(self.temp_dir, "empty.yaml")
        Path(path).write_text("", encoding="utf-8")
        assert load_settings(path, environ={}) == Settings()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(os.path.join(self.temp_dir, "nope.yaml"), environ={})

    def test_invalid_yaml(self):
        path = os.path.join(self.temp_dir, "bad.yaml")
        Path(path).write_text("storage_mode: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_settings(path, environ={})

    def test_unknown_keys_rejected(self):
        path = self._write_config({"output_dir": "x", "openai_api_key": "sk-leak"})
        with pytest.raises(ConfigError, match="Unknown configuration keys"):
            load_settings(path, environ={})

    def test_non_mapping_rejected(self):
        path = self._write_config(["fs"])
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_settings(path, environ={})

    def test_wrong_value_type_rejected(self):
        path = self._write_config({"db_path": 5})
        with pytest.raises(ConfigError, match="'db_path' must be a non-empty string"):
            load_settings(path, environ={})

    def test_invalid_log_level(self):
        path = self._write_config({"log_level": "loud"})
        with pytest.raises(ConfigError, match="log_level"):
            load_settings(path, environ={})

    def test_invalid_storage_mode(self):
        path = self._write_config({"storage_mode": "s3"})
        with pytest.raises(ConfigError, match="storage mode"):
            load_settings(path, environ={})

"""
Unit tests for configuration loading.
"""

import pytest

from autosave.config.config_loader import AutosaveConfig, build_transport
from autosave.core.exceptions import AutosaveConfigError
from autosave.transport.fault_injection import FaultInjectingTransport
from autosave.transport.memory import InMemoryTransport
from autosave.transport.retrying import RetryingTransport


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "AUTOSAVE_DEBOUNCE_MS",
        "AUTOSAVE_TRANSPORT",
        "AUTOSAVE_LOG_LEVEL",
        "AUTOSAVE_LOG_STRUCTURED",
    ):
        monkeypatch.delenv(name, raising=False)


class TestAutosaveConfig:
    """Tests for AutosaveConfig."""
    
    def test_defaults(self):
        config = AutosaveConfig()
        
        assert config.debounce_ms == 1000
        assert config.keys_sample_size == 10
        assert config.transport_type == "memory"
        assert config.log_level == "INFO"
        assert config.structured_logging is False
        assert config.get("transport.retry.enabled") is False
    
    def test_yaml_merges_over_defaults(self, tmp_path):
        path = tmp_path / "autosave.yaml"
        path.write_text(
            "engine:\n"
            "  debounce_ms: 250\n"
            "transport:\n"
            "  retry:\n"
            "    enabled: true\n"
            "    max_attempts: 5\n",
            encoding="utf-8",
        )
        
        config = AutosaveConfig(path)
        
        assert config.debounce_ms == 250
        assert config.keys_sample_size == 10
        assert config.get_retry_config().max_attempts == 5
        assert config.get_retry_config().initial_delay_ms == 250.0
    
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("AUTOSAVE_DEBOUNCE_MS", "400")
        monkeypatch.setenv("AUTOSAVE_LOG_LEVEL", "debug")
        monkeypatch.setenv("AUTOSAVE_LOG_STRUCTURED", "true")
        
        config = AutosaveConfig()
        
        assert config.debounce_ms == 400.0
        assert config.log_level == "DEBUG"
        assert config.structured_logging is True
    
    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        
        assert AutosaveConfig(path).debounce_ms == 1000
    
    def test_get_missing_key_returns_default(self):
        assert AutosaveConfig().get("engine.nope.deeper", "fallback") == "fallback"
    
    @pytest.mark.parametrize("content", [
        "engine:\n  debounce_ms: -5\n",
        "engine:\n  debounce_ms: soon\n",
        "transport:\n  type: carrier-pigeon\n",
        "transport:\n  retry:\n    max_attempts: 0\n",
        "engine:\n  keys_sample_size: lots\n",
        "engine:\n  keys_sample_size: -1\n",
        "transport:\n  retry:\n    initial_delay_ms: soon\n",
        "transport:\n  retry:\n    max_delay_ms: -100\n",
        "transport:\n  retry:\n    backoff_multiplier: double\n",
        "logging:\n  level: LOUD\n",
        "- just\n- a list\n",
        "engine: [unclosed\n",
    ])
    def test_invalid_config_rejected(self, tmp_path, content):
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")
        
        with pytest.raises(AutosaveConfigError):
            AutosaveConfig(path)
    
    def test_missing_file(self, tmp_path):
        with pytest.raises(AutosaveConfigError):
            AutosaveConfig(tmp_path / "missing.yaml")
    
    def test_bad_env_debounce(self, monkeypatch):
        monkeypatch.setenv("AUTOSAVE_DEBOUNCE_MS", "fast")
        
        with pytest.raises(AutosaveConfigError):
            AutosaveConfig()


class TestBuildTransport:
    """Tests for build_transport."""
    
    def test_memory_stack(self):
        transport = build_transport(AutosaveConfig())
        
        assert isinstance(transport, FaultInjectingTransport)
        assert isinstance(transport.inner, InMemoryTransport)
        assert transport.active is False
    
    def test_retry_and_forced_errors(self, tmp_path):
        path = tmp_path / "autosave.yaml"
        path.write_text(
            "transport:\n"
            "  force_save_error: true\n"
            "  retry:\n"
            "    enabled: true\n",
            encoding="utf-8",
        )
        
        transport = build_transport(AutosaveConfig(path))
        
        assert transport.active is True
        assert isinstance(transport.inner, RetryingTransport)
        assert isinstance(transport.inner.inner, InMemoryTransport)

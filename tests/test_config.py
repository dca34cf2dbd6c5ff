import pytest

from config import DEFAULT_BASE_URL, AIServiceConfig, Config, load_config
from errors import ConfigurationError


def test_missing_api_key_fails_at_construction(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        AIServiceConfig.from_env()


def test_from_env_reads_key_and_default_base_url(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)

    service = AIServiceConfig.from_env()
    assert service.api_key == "sk-env"
    assert service.base_url == DEFAULT_BASE_URL


def test_from_env_strips_trailing_slash(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("OPENAI_BASE_URL", "https://proxy.example/v1/")

    assert AIServiceConfig.from_env().base_url == "https://proxy.example/v1"


def test_defaults_match_pipeline_contract():
    config = Config()
    assert config.capture.duration_seconds == 10
    assert config.capture.tick_interval == 1.0
    assert config.frame.target_offset == 5.0
    assert config.frame.epsilon == pytest.approx(0.1)
    assert config.frame.jpeg_quality == 80
    assert config.models.transcription_language == "zh"
    assert config.models.max_tokens == 300
    assert config.models.temperature == 0.7


def test_load_config_applies_known_overrides(tmp_path):
    config = load_config(logs_dir=tmp_path, unknown="ignored")
    assert config.logs_dir == tmp_path
    assert not hasattr(config, "unknown")

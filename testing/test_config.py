# -*- coding: utf-8 -*-
import pytest

from scanvocab.config import LLM_TIMEOUT_SECONDS, PROVIDER_KEY_ENV, Settings, load_settings
from scanvocab.errors import ConfigurationError

ENV_VARS = [
    'SCANVOCAB_MODE', 'SCANVOCAB_LOCALE', 'SCANVOCAB_LLM_PROVIDER', 'SCANVOCAB_API_KEY',
    'SCANVOCAB_LLM_MODEL', 'SCANVOCAB_LLM_TIMEOUT',
] + list(PROVIDER_KEY_ENV.values())


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings == Settings()
    assert settings.mode == 'ocr'
    assert settings.locale == 'ko'
    assert settings.timeout == LLM_TIMEOUT_SECONDS


def test_environment_is_read(monkeypatch):
    monkeypatch.setenv('SCANVOCAB_MODE', 'hybrid')
    monkeypatch.setenv('SCANVOCAB_LLM_PROVIDER', 'anthropic')
    monkeypatch.setenv('SCANVOCAB_API_KEY', 'key')
    monkeypatch.setenv('SCANVOCAB_LLM_TIMEOUT', '15')

    settings = load_settings()
    assert settings.mode == 'hybrid'
    assert settings.provider == 'anthropic'
    assert settings.timeout == 15.0


def test_overrides_win(monkeypatch):
    monkeypatch.setenv('SCANVOCAB_LOCALE', 'ko')
    settings = load_settings(locale='en', mode=None)
    assert settings.locale == 'en'
    assert settings.mode == 'ocr'


def test_llm_mode_requires_key():
    with pytest.raises(ConfigurationError):
        load_settings(mode='llm')


def test_provider_key_fallback(monkeypatch):
    monkeypatch.setenv('GEMINI_API_KEY', 'gem-key')
    settings = load_settings(mode='llm', provider='gemini')
    assert settings.api_key == 'gem-key'


def test_bad_timeout(monkeypatch):
    monkeypatch.setenv('SCANVOCAB_LLM_TIMEOUT', 'soon')
    with pytest.raises(ConfigurationError):
        load_settings()
    with pytest.raises(ConfigurationError):
        load_settings(timeout=0)


def test_unknown_mode_and_provider():
    with pytest.raises(ConfigurationError):
        load_settings(mode='manual')
    with pytest.raises(ConfigurationError):
        load_settings(provider='llama')

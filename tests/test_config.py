"""Tests for settings loading and validation."""

import pytest

from config import DEFAULTS, SettingsError, load_settings_conf, validate_settings

def test_defaults_without_file(tmp_path):
    """Test a missing settings.conf falls back to defaults."""
    settings = load_settings_conf(tmp_path)

    assert settings['storage'] == 'postgres'
    assert settings['port'] == 8000
    assert settings['access_token_minutes'] == 15
    assert settings['refresh_token_days'] == 7
    assert settings['challenge_ttl_minutes'] == 10
    assert settings['message_retention_days'] == 14
    assert settings['rotate_refresh_tokens'] is False
    assert settings['cors_origins'] == ['*']
    # Secrets are generated and never shared between token classes
    assert settings['access_token_secret']
    assert settings['access_token_secret'] != settings['refresh_token_secret']

def test_settings_file_overrides(tmp_path):
    """Test values from settings.conf override defaults."""
    (tmp_path / 'settings.conf').write_text(
        "[DEFAULT]\n"
        "storage = memory\n"
        "access_token_minutes = 5\n"
        "rotate_refresh_tokens = yes\n"
        "cors_origins = https://a.example, https://b.example\n"
        "access_token_secret = one\n"
        "refresh_token_secret = two\n"
        "log_level = debug\n"
    )

    settings = load_settings_conf(tmp_path)

    assert settings['storage'] == 'memory'
    assert settings['access_token_minutes'] == 5
    assert settings['rotate_refresh_tokens'] is True
    assert settings['cors_origins'] == ['https://a.example', 'https://b.example']
    assert settings['access_token_secret'] == 'one'
    assert settings['log_level'] == 'DEBUG'

def test_invalid_settings_are_reported_together():
    """Test every bad value is listed in one error."""
    with pytest.raises(SettingsError) as exc_info:
        validate_settings({
            **DEFAULTS,
            'port': 'eighty',
            'access_token_minutes': '0',
            'storage': 'redis',
            'rotate_refresh_tokens': 'maybe'
        })

    message = str(exc_info.value)
    assert 'port' in message
    assert 'access_token_minutes must be at least 1' in message
    assert 'storage' in message
    assert 'rotate_refresh_tokens' in message

def test_shared_secret_rejected():
    """Test access and refresh secrets must differ."""
    with pytest.raises(SettingsError):
        validate_settings({
            **DEFAULTS,
            'access_token_secret': 'same',
            'refresh_token_secret': 'same'
        })

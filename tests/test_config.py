"""Tests for configuration management."""

from __future__ import annotations

import os
import tempfile

import pytest
from pydantic import ValidationError

from planning_poker.config import Config


def test_config_defaults():
    """Test default configuration values."""
    config = Config(_env_file=None)

    assert config.server_host == "127.0.0.1"
    assert config.server_port == 8000
    assert config.public_base_url is None
    assert config.default_deck == "FIBONACCI"
    assert config.leave_on_disconnect is True
    assert config.cors_origins == ["*"]
    assert config.log_level == "INFO"
    assert config.log_format == "json"


def test_config_with_env_vars(monkeypatch):
    """Test configuration loading from environment variables."""
    monkeypatch.setenv("SERVER_PORT", "9000")
    monkeypatch.setenv("DEFAULT_DECK", "TSHIRT")
    monkeypatch.setenv("LEAVE_ON_DISCONNECT", "false")
    monkeypatch.setenv("CORS_ORIGINS_STR", "https://a.example, https://b.example")

    config = Config(_env_file=None)

    assert config.server_port == 9000
    assert config.default_deck == "TSHIRT"
    assert config.leave_on_disconnect is False
    assert config.cors_origins == ["https://a.example", "https://b.example"]


def test_config_from_env_file():
    """Test configuration loading from .env file."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".env", delete=False) as f:
        f.write("PUBLIC_BASE_URL=https://poker.example.com\n")
        f.write("LOG_FORMAT=console\n")
        env_file = f.name

    try:
        config = Config(_env_file=env_file)

        assert config.public_base_url == "https://poker.example.com"
        assert config.log_format == "console"
    finally:
        os.unlink(env_file)


def test_config_rejects_unknown_default_deck():
    """Test that the default deck must exist in the catalog."""
    with pytest.raises(ValidationError, match="Unknown deck type"):
        Config(_env_file=None, default_deck="POWERS_OF_TWO")

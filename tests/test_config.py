"""Unit tests for hookrelay configuration."""

import importlib.util
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from hookrelay.config import Settings


class TestSettings:
    """Tests for Settings model."""

    def test_default_settings(self):
        """Defaults should match the documented delivery policy."""
        # Use _env_file=None to prevent reading from .env file
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.env == "development"
        assert settings.qdrant_url == "http://localhost:6333"
        assert settings.collection_prefix == "hookrelay"
        assert settings.max_attempts == 5
        assert settings.base_delay_ms == 5000
        assert settings.delivery_timeout_seconds == 5.0
        assert settings.response_snippet_limit == 1000
        assert settings.signature_header_prefix == "X-Relay"
        assert settings.secret_length == 32

    def test_backoff_schedule(self):
        """The schedule covers every retry after the first attempt."""
        settings = Settings(_env_file=None, env="test")
        assert settings.backoff_schedule_ms == [5000, 10000, 20000, 40000]

    def test_backoff_schedule_follows_policy(self):
        settings = Settings(_env_file=None, env="test", max_attempts=3, base_delay_ms=100)
        assert settings.backoff_schedule_ms == [100, 200]

    def test_env_override(self):
        """HOOKRELAY_ variables should override defaults."""
        env = {
            "HOOKRELAY_MAX_ATTEMPTS": "7",
            "HOOKRELAY_WORKER_CONCURRENCY": "16",
            "HOOKRELAY_QDRANT_LOCATION": ":memory:",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_attempts == 7
        assert settings.worker_concurrency == 16
        assert settings.qdrant_location == ":memory:"

    def test_bounds(self):
        """Out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_attempts=0)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, worker_concurrency=0)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, secret_length=8)

    def test_claim_timeout_must_exceed_delivery_timeout(self):
        """A lease shorter than a request would let two workers deliver at once."""
        with pytest.raises(ValidationError, match="claim_timeout_seconds"):
            Settings(_env_file=None, delivery_timeout_seconds=10.0, claim_timeout_seconds=5.0)


class TestSecuritySettings:
    """Tests for token requirements."""

    def test_production_requires_tokens(self):
        """Production refuses to start without both API tokens."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError, match="HOOKRELAY_ADMIN_API_TOKEN"):
                Settings(_env_file=None, env="production", internal_api_token="x")

    def test_production_with_tokens(self):
        settings = Settings(
            _env_file=None,
            env="production",
            internal_api_token="internal",
            admin_api_token="admin",
        )
        assert settings.env == "production"

    def test_development_allows_missing_tokens(self):
        """Development only warns about missing tokens."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None, env="development")
        assert settings.admin_api_token is None

    def test_import_does_not_validate_environment(self):
        """Loading the config module must not build Settings from the environment."""
        import hookrelay.config

        spec = importlib.util.spec_from_file_location(
            "hookrelay_config_fresh", hookrelay.config.__file__
        )
        module = importlib.util.module_from_spec(spec)
        with patch.dict(os.environ, {"HOOKRELAY_ENV": "production"}, clear=True):
            spec.loader.exec_module(module)

        assert not hasattr(module, "settings")
        with patch.dict(os.environ, {"HOOKRELAY_ENV": "production"}, clear=True):
            with pytest.raises(ValidationError):
                module.Settings(_env_file=None)

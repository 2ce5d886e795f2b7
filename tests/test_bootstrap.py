"""
Tests for configuration and process bootstrap.

Validates:
- Settings load from environment
- build_registry deploys a fresh store and attaches to an existing one
- The structlog sink publishes audit records
"""

from __future__ import annotations

import pytest
import structlog
from pydantic import ValidationError
from structlog.testing import capture_logs

from asset_registry.bootstrap import build_registry, configure_logging
from asset_registry.config import RegistrySettings
from asset_registry.errors import InvalidState
from asset_registry.registry.schema import Role
from asset_registry.registry.sinks import StructlogMintSink


class TestSettings:
    """Test environment-driven configuration."""

    def test_defaults(self):
        settings = RegistrySettings(_env_file=None)
        assert settings.database_url.startswith("sqlite")
        assert settings.log_format == "json"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ASSET_REGISTRY_ADMIN_PRINCIPAL", "0xA")
        monkeypatch.setenv("ASSET_REGISTRY_LOG_LEVEL", "DEBUG")
        settings = RegistrySettings(_env_file=None)
        assert settings.admin_principal == "0xA"
        assert settings.log_level == "DEBUG"

    def test_log_level_case_insensitive(self):
        assert RegistrySettings(_env_file=None, log_level="warning").log_level == "WARNING"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            RegistrySettings(_env_file=None, log_level="VERBOSE")


class TestBuildRegistry:
    """Test building a registry from settings."""

    def test_deploys_then_attaches(self, tmp_path):
        settings = RegistrySettings(
            _env_file=None,
            database_url=f"sqlite:///{tmp_path / 'registry.db'}",
            admin_principal="0xA",
        )
        first = build_registry(settings)
        token_id = first.mint_profile("0xA", "0xU", "ipfs://p", 42)
        first.store.dispose()

        second = build_registry(settings.model_copy(update={"admin_principal": "0xOther"}))
        assert second.owner_of(token_id) == "0xU"
        assert second.has_role(Role.ADMINISTRATOR, "0xA")
        assert not second.has_role(Role.ADMINISTRATOR, "0xOther")
        assert second.tokens.next_token_id() == 2
        second.store.dispose()

    def test_missing_admin_rejected(self):
        settings = RegistrySettings(_env_file=None, database_url="sqlite://", admin_principal="")
        with pytest.raises(InvalidState):
            build_registry(settings)


class TestLogging:
    """Test structured logging of audit records."""

    def teardown_method(self):
        structlog.reset_defaults()

    def test_configure_logging_console(self):
        configure_logging(RegistrySettings(_env_file=None, log_format="console"))
        assert structlog.is_configured()

    def test_sink_publishes_audit_record(self):
        settings = RegistrySettings(_env_file=None, database_url="sqlite://", admin_principal="0xA")
        registry = build_registry(settings)
        with capture_logs() as logs:
            registry.mint_badge("0xA", "0xU", "ipfs://b", 7)
        events = [e for e in logs if e["event"] == StructlogMintSink.event]
        assert len(events) == 1
        assert events[0]["tokenId"] == 1
        assert events[0]["kind"] == "badge"
        assert events[0]["externalId1"] == 7

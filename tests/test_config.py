"""
Tests for environment-based configuration
"""

import pytest
from decimal import Decimal

from billing_core.config import BillingConfig, get_config, reload_config, sqlite_path
from billing_core.contracts import ContractManager
from billing_core.storage import InMemoryStorage


@pytest.fixture
def env(monkeypatch):
    yield monkeypatch
    monkeypatch.undo()
    reload_config()


class TestBillingConfig:
    """Test defaults and environment overrides"""

    def test_defaults(self):
        config = BillingConfig()
        assert config.satisfied_tolerance == Decimal("0.01")
        assert config.alert_days == [1, 7, 15, 30]
        assert config.default_currency == "BRL"
        assert config.early_reminder_days == 3

    def test_env_overrides(self, env):
        env.setenv("BILLING_SATISFIED_TOLERANCE", "0.05")
        env.setenv("BILLING_ALERT_DAYS", "[5, 10]")
        env.setenv("billing_api_port", "9000")

        config = reload_config()

        assert config is get_config()
        assert config.satisfied_tolerance == Decimal("0.05")
        assert config.alert_days == [5, 10]
        assert config.api_port == 9000

    def test_manager_reads_configured_tolerance(self, env):
        env.setenv("BILLING_SATISFIED_TOLERANCE", "0.02")
        reload_config()

        assert ContractManager(InMemoryStorage()).tolerance == Decimal("0.02")
        assert ContractManager(InMemoryStorage(), tolerance=Decimal("0")).tolerance == Decimal("0")


class TestSqlitePath:
    """Test database URL parsing"""

    @pytest.mark.parametrize("url,expected", [
        ("sqlite:///billing.db", "billing.db"),
        ("sqlite:////var/data/billing.db", "/var/data/billing.db"),
        ("sqlite:///", ":memory:"),
        ("billing.db", "billing.db"),
    ])
    def test_sqlite_path(self, url, expected):
        assert sqlite_path(url) == expected

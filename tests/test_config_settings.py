from decimal import Decimal

import pytest

from swapdesk.config import Settings


def test_okx_passphrase_alias(monkeypatch):
    """OKX passphrase should load from the legacy alias when the primary is empty."""

    monkeypatch.setenv("OKX_API_PASSPHRASE", "")
    monkeypatch.setenv("OKX_PASSPHRASE", "alias-from-legacy")

    settings = Settings()

    assert settings.okx_api_passphrase == "alias-from-legacy"


def test_okx_passphrase_direct_env(monkeypatch):
    """Environment-provided passphrase remains the primary source."""

    monkeypatch.setenv("OKX_API_PASSPHRASE", "primary")
    monkeypatch.setenv("OKX_PASSPHRASE", "alias-from-legacy")

    settings = Settings()

    assert settings.okx_api_passphrase == "primary"


def test_credentials_require_all_four(monkeypatch):
    monkeypatch.setenv("OKX_API_KEY", "key")
    monkeypatch.setenv("OKX_SECRET_KEY", "secret")
    monkeypatch.setenv("OKX_API_PASSPHRASE", "pass")
    monkeypatch.delenv("OKX_PROJECT_ID", raising=False)

    assert Settings().has_okx_credentials is False
    assert Settings(okx_project_id="project").has_okx_credentials is True


def test_defaults():
    settings = Settings()

    assert settings.ledger_max_attempts == 3
    assert settings.ledger_base_delay_seconds == 2.0
    assert settings.approval_strategy == "exact_with_margin"
    assert settings.gas_margins["complex_swap"] == Decimal("1.5")
    assert settings.supported_chain_ids == [1, 43114]


def test_rejects_inconsistent_slippage_bounds():
    with pytest.raises(ValueError):
        Settings(min_slippage_percent=Decimal("5"), max_slippage_percent=Decimal("1"))


def test_rejects_unknown_approval_strategy():
    with pytest.raises(ValueError):
        Settings(approval_strategy="sometimes")

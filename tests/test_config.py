from decimal import Decimal

import pytest

from sendback.config import Settings
from sendback.logging_config import build_logging_config, setup_logging
from sendback.services.payments import FakePaymentGateway, PaymentError, build_payment_gateway


def test_env_parsing(monkeypatch):
    monkeypatch.setenv("SMS_DRY_RUN", "yes")
    monkeypatch.setenv("MESSAGE_CREDIT_COST", "0.5")
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "abc")
    monkeypatch.setenv("SMS_SENDER_MODE", " Tenant ")

    s = Settings()

    assert s.SMS_DRY_RUN is True
    assert s.MESSAGE_CREDIT_COST == Decimal("0.5")
    assert s.ACCESS_TOKEN_EXPIRE_MINUTES == 60 * 24 * 7
    assert s.SMS_SENDER_MODE == "tenant"


def test_payments_mode_follows_env(monkeypatch):
    monkeypatch.delenv("PAYMENTS_MODE", raising=False)
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)

    monkeypatch.setenv("ENV", "dev")
    assert isinstance(build_payment_gateway(Settings()), FakePaymentGateway)

    monkeypatch.setenv("ENV", "prod")
    prod = Settings()
    assert prod.is_prod
    assert prod.PAYMENTS_MODE == "stripe"
    with pytest.raises(PaymentError):
        build_payment_gateway(prod)


def test_logging_config_writes_to_log_dir(settings, tmp_path):
    cfg = build_logging_config(tmp_path, "DEBUG")
    assert cfg["handlers"]["file"]["filename"] == str(tmp_path / "app.log")
    assert cfg["loggers"]["sendback"]["level"] == "DEBUG"

    setup_logging(settings)
    assert (tmp_path / "logs").is_dir()

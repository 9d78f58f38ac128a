from app.core.config import GENERIC_TAX_CODE, Settings


def test_sandbox_mode_uses_test_key():
    settings = Settings(STRIPE_MODE="sandbox", STRIPE_TEST_SECRET_KEY="sk_test_a", STRIPE_LIVE_SECRET_KEY="sk_live_b")
    assert settings.stripe_secret_key == "sk_test_a"


def test_live_mode_falls_back_to_legacy_key():
    settings = Settings(STRIPE_MODE="live", STRIPE_LIVE_SECRET_KEY="", STRIPE_SECRET_KEY="sk_live_legacy")
    assert settings.stripe_secret_key == "sk_live_legacy"


def test_blank_tax_code_means_generic():
    settings = Settings(STRIPE_DEFAULT_TAX_CODE="  ")
    assert settings.STRIPE_DEFAULT_TAX_CODE is None
    assert settings.default_tax_code == GENERIC_TAX_CODE


def test_configured_tax_code():
    settings = Settings(STRIPE_DEFAULT_TAX_CODE="txcd_30011000")
    assert settings.default_tax_code == "txcd_30011000"


def test_blank_cron_disables_schedule():
    assert Settings(SYNC_SCHEDULE_CRON="").SYNC_SCHEDULE_CRON is None


def test_unused_environment_flags_are_ignored():
    settings = Settings(ENVIRONMENT="production", DEBUG="true", LOG_LEVEL="DEBUG")
    assert not hasattr(settings, "ENVIRONMENT")
    assert not hasattr(settings, "DEBUG")
    assert not hasattr(settings, "LOG_LEVEL")

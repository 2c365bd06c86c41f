from marketplace.core.config import Settings


def test_cors_origins_from_comma_separated_string():
    settings = Settings(CORS_ORIGINS="http://a.test, http://b.test,")
    assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]


def test_cors_origins_from_json_list():
    settings = Settings(CORS_ORIGINS='["http://a.test"]')
    assert settings.CORS_ORIGINS == ["http://a.test"]


def test_cors_allow_all_overrides_origins():
    settings = Settings(CORS_ALLOW_ALL=True, CORS_ORIGINS=["http://a.test"])
    assert settings.CORS_ORIGINS == ["*"]


def test_currency_and_stripe_keys_are_normalized():
    settings = Settings(DEFAULT_CURRENCY=" EUR ", STRIPE_SECRET_KEY=" sk_test_x\n")
    assert settings.DEFAULT_CURRENCY == "eur"
    assert settings.STRIPE_SECRET_KEY == "sk_test_x"


def test_business_defaults():
    settings = Settings()
    assert settings.PLATFORM_FEE_PERCENT == 10.0
    assert settings.BOOKING_MAX_ADVANCE_DAYS == 92
    assert settings.API_V1_STR == "/api/v1"

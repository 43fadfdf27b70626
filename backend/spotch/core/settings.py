import os


def _getenv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.environment = (_getenv("ENVIRONMENT", "development") or "development").lower()
        self.database_url = _getenv("DATABASE_URL", "sqlite:///./spotch.db") or "sqlite:///./spotch.db"
        self.db_auto_create = _getenv_bool("DB_AUTO_CREATE", default=True)
        self.log_level = (_getenv("LOG_LEVEL", "INFO") or "INFO").upper()
        self.cors_allow_origins = _getenv("CORS_ALLOW_ORIGINS")
        self.admin_api_token = _getenv("ADMIN_API_TOKEN")

        # Heartbeats are sent every 5 seconds by the client.
        self.heartbeats_per_minute = max(1, _getenv_int("HEARTBEATS_PER_MINUTE", 12))
        self.active_visitor_window_seconds = _getenv_int("ACTIVE_VISITOR_WINDOW_SECONDS", 30)
        self.stale_visit_minutes = _getenv_int("STALE_VISIT_MINUTES", 5)
        self.checkin_radius_km = _getenv_float("CHECKIN_RADIUS_KM", 0.1)

        self.default_tax_rate = _getenv_int("DEFAULT_TAX_RATE", 5)
        self.tax_boost_rate = _getenv_int("TAX_BOOST_RATE", 10)
        self.takeover_premium = _getenv_int("TAKEOVER_PREMIUM", 100)
        self.takeover_payout_fraction = _getenv_float("TAKEOVER_PAYOUT_FRACTION", 0.5)
        self.shield_cost = _getenv_int("SHIELD_COST", 300)
        self.shield_hours = _getenv_int("SHIELD_HOURS", 24)
        self.tax_boost_cost = _getenv_int("TAX_BOOST_COST", 200)
        self.tax_boost_hours = _getenv_int("TAX_BOOST_HOURS", 24)

        self.welcome_bonus = _getenv_int("WELCOME_BONUS", 1000)
        self.spot_create_xp = _getenv_int("SPOT_CREATE_XP", 50)
        self.min_spot_points = _getenv_int("MIN_SPOT_POINTS", 100)

        self.stripe_secret_key = _getenv("STRIPE_SECRET_KEY")
        # Credits pi_mock_ intents without asking Stripe; local development only.
        self.payments_allow_mock = _getenv_bool("PAYMENTS_ALLOW_MOCK", default=False)
        if self.is_production:
            self.payments_allow_mock = False
        self.expo_push_url = (
            _getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
            or "https://exp.host/--/api/v2/push/send"
        )
        self.expo_access_token = _getenv("EXPO_ACCESS_TOKEN")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def resolved_cors_origins(self) -> list[str]:
        raw = self.cors_allow_origins
        if raw is None:
            return ["http://localhost:8081", "http://localhost:3000"]
        if raw.strip() == "*":
            return ["*"]
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        return origins


settings = Settings()

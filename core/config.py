from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="ASSETFOLIO_")

    database_path: str = "data/assetfolio.db"

    # Exchange rates (HexaRate-compatible endpoint)
    rates_api_url: str = "https://hexarate.paikama.co/api"
    rates_http_timeout: float = 10.0
    # Single knob for freshness; the background refresh interval is derived from it
    rates_ttl_seconds: float = 300.0
    display_currency: str = "USD"

    # Idle-session auto logout
    idle_timeout_seconds: float = 30 * 60
    idle_activity_events: tuple[str, ...] = ("pointerdown", "keydown", "touchstart")
    # Gradio clears its auth cookie at /logout and then shows the login form
    login_path: str = "/logout"
    auth_token_keys: tuple[str, ...] = ("assetfolio-auth-token", "assetfolio.auth.token")

    # email -> password, e.g. ASSETFOLIO_AUTH_USERS='{"me@example.com": "secret"}'
    auth_users: dict[str, str] = {}

    high_risk_warning_pct: float = 30.0

    log_level: str = "INFO"
    log_file: str | None = "assetfolio.log"


_settings_instance = None


def init_settings() -> Settings:
    """
    Initialize and cache the Settings singleton. Idempotent.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve the cached Settings singleton.
    """
    global _settings_instance
    if _settings_instance is None:
        raise RuntimeError("Settings not initialized")
    return _settings_instance


settings = init_settings()

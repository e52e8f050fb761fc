"""Client configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration loaded from environment / .env file."""

    # ── Application ──────────────────────────────────────────────
    app_name: str = "watchd"
    debug: bool = False
    log_level: str = "info"

    # ── Backend ──────────────────────────────────────────────────
    # On a physical device point these at the host machine's LAN address.
    api_base_url: str = "http://localhost:3000/api"
    socket_url: str = "http://localhost:3000"
    icons_base_url: str = "http://localhost:3000"
    request_timeout: float = 30.0

    # ── TMDB images ──────────────────────────────────────────────
    # w780 is sharp enough for detail screens and large cards
    tmdb_image_base: str = "https://image.tmdb.org/t/p/w780"

    # ── Credential store ─────────────────────────────────────────
    credential_db_url: str = "sqlite+aiosqlite:///watchd_credentials.db"

    # ── Real-time ────────────────────────────────────────────────
    socket_reconnect_attempts: int = 5
    socket_reconnect_wait: float = 2.0

    # ── Session coordination ─────────────────────────────────────
    feed_low_water_mark: int = 5
    min_loading_seconds: float = 0.45  # keeps spinners from flickering
    inactive_room_days: int = 14

    @property
    def has_persistent_store(self) -> bool:
        return not self.credential_db_url.endswith(":memory:")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Freelance Marketplace"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── MODERATION ───────────
    moderation_cache_ttl_seconds: float = 300.0
    moderation_cache_sweep_threshold: int = 1000

    # ─────────── DELIVERY CHANNELS ───────────
    onesignal_app_id: Optional[str] = None
    onesignal_api_key: Optional[str] = None
    smsru_api_key: Optional[str] = None
    outbound_timeout_seconds: float = 5.0
    public_base_url: str = ""

    # ─────────── RATE LIMITS ───────────
    bid_submit_rate_capacity: int = 10
    bid_submit_rate_per_minute: float = 10.0
    moderation_rate_capacity: int = 60
    moderation_rate_per_minute: float = 60.0
    rate_limit_prune_threshold: int = 10000
    # comma-separated peer addresses whose X-Forwarded-For is believed
    trusted_proxies: str = ""

    @property
    def trusted_proxy_hosts(self) -> frozenset:
        return frozenset(h.strip() for h in self.trusted_proxies.split(",") if h.strip())

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

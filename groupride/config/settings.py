from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used by the realtime roster feed (bypasses RLS on reads)

    # Roster sync
    roster_fetch_timeout_seconds: float = 10.0
    roster_realtime_enabled: bool = True

    # Rides
    ride_timezone: str = "UTC"  # zone used to resolve Morning / Afternoon / Evening slots

    # Storage
    avatar_bucket: str = "avatars"
    avatar_max_bytes: int = 5 * 1024 * 1024

    # Notifications
    default_notification_radius_km: int = 25

    # App
    app_name: str = "groupride"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()

import os
from dataclasses import dataclass, field
from typing import Optional

from exceptions.custom_exceptions import ConfigurationError

META_DEFAULT_BASE_URL = "https://graph.facebook.com/v22.0"
META_DEFAULT_DIALOG_URL = "https://www.facebook.com/v22.0/dialog/oauth"
META_OAUTH_SCOPES = "ads_management,ads_read,business_management"

DEFAULT_MAX_CREATIVES = 5


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError([name], f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError([name], f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class MetaOAuthSettings:
    app_id: str = ""
    app_secret: str = ""
    redirect_uri: str = ""
    dialog_url: str = META_DEFAULT_DIALOG_URL
    scopes: str = META_OAUTH_SCOPES

    REQUIRED_KEYS = {"app_id": "FACEBOOK_APP_ID", "redirect_uri": "FACEBOOK_REDIRECT_URI"}

    @classmethod
    def from_env(cls) -> "MetaOAuthSettings":
        return cls(
            app_id=os.getenv("FACEBOOK_APP_ID", ""),
            app_secret=os.getenv("FACEBOOK_APP_SECRET", ""),
            redirect_uri=os.getenv("FACEBOOK_REDIRECT_URI", ""),
            dialog_url=os.getenv("META_OAUTH_DIALOG_URL", META_DEFAULT_DIALOG_URL),
        )

    def require(self, *, need_secret: bool = False) -> "MetaOAuthSettings":
        """Raise ConfigurationError naming every missing env key."""
        missing = [
            env_key
            for attr, env_key in self.REQUIRED_KEYS.items()
            if not getattr(self, attr)
        ]
        if need_secret and not self.app_secret:
            missing.append("FACEBOOK_APP_SECRET")
        if missing:
            raise ConfigurationError(missing)
        return self


@dataclass(frozen=True)
class MetaApiSettings:
    base_url: str = META_DEFAULT_BASE_URL
    timeout: float = 30.0
    max_attempts: int = 3
    retry_base_delay: float = 1.0
    # Hosts whose images the ads API can reference directly without an upload
    platform_image_hosts: tuple[str, ...] = ("fbcdn.net", "facebook.com", "fbsbx.com")

    @classmethod
    def from_env(cls) -> "MetaApiSettings":
        return cls(
            base_url=os.getenv("META_GRAPH_BASE_URL", META_DEFAULT_BASE_URL).rstrip("/"),
            timeout=_env_float("META_HTTP_TIMEOUT", 30.0),
            max_attempts=_env_int("META_MAX_RETRIES", 3),
            retry_base_delay=_env_float("META_RETRY_BASE_DELAY", 1.0),
        )


@dataclass(frozen=True)
class SupabaseSettings:
    url: str = ""
    anon_key: str = ""

    @classmethod
    def from_env(cls) -> "SupabaseSettings":
        return cls(
            url=os.getenv("SUPABASE_URL", "").rstrip("/"),
            anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
        )

    def require(self) -> "SupabaseSettings":
        missing = []
        if not self.url:
            missing.append("SUPABASE_URL")
        if not self.anon_key:
            missing.append("SUPABASE_ANON_KEY")
        if missing:
            raise ConfigurationError(missing)
        return self


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    max_creatives: int = DEFAULT_MAX_CREATIVES
    meta_api: MetaApiSettings = field(default_factory=MetaApiSettings)
    meta_oauth: MetaOAuthSettings = field(default_factory=MetaOAuthSettings)
    supabase: SupabaseSettings = field(default_factory=SupabaseSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            max_creatives=_env_int("CAMPAIGN_MAX_CREATIVES", DEFAULT_MAX_CREATIVES),
            meta_api=MetaApiSettings.from_env(),
            meta_oauth=MetaOAuthSettings.from_env(),
            supabase=SupabaseSettings.from_env(),
        )

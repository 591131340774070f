"""Application configuration using pydantic-settings."""

from typing import Any

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Load credential fields from the OS keychain via ``keyring``.

    Only fields whose uppercase name appears in
    :data:`~services.credential_manager.CREDENTIAL_KEYS` are looked up.
    All other fields return ``None`` so the next source in the chain
    handles them.
    """

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        env_name = field_name.upper()
        if env_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        value = get_credential(env_name)
        return value, field_name, False

    def __call__(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for field_name, field_info in self.settings_cls.model_fields.items():
            value, key, is_complex = self.get_field_value(field_info, field_name)
            if value is not None:
                d[key] = value
        return d


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            KeychainSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    # Database
    DATABASE_URL: str = "sqlite:///./cryptofolio.db"

    # CoinGecko (optional demo key for higher rate limits)
    COINGECKO_API_KEY: str = ""
    QUOTE_CURRENCY: str = "usd"

    # Price cache
    PRICE_CACHE_TTL_SECONDS: float = 30.0
    PRICE_FETCH_TIMEOUT_SECONDS: float = 10.0

    # Evaluation scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_INTERVAL_SECONDS: float = 60.0
    CYCLE_DEADLINE_SECONDS: float = 45.0
    SCHEDULER_MAX_WORKERS: int = 4
    STALE_PRICE_FALLBACK: bool = False

    @field_validator("QUOTE_CURRENCY", mode="before")
    @classmethod
    def normalize_quote_currency(cls, v: str) -> str:
        """CoinGecko expects lowercase currency codes (``usd``, ``eur``)."""
        if isinstance(v, str):
            v = v.strip().lower()
        return v

    @field_validator(
        "PRICE_CACHE_TTL_SECONDS",
        "PRICE_FETCH_TIMEOUT_SECONDS",
        "SCHEDULER_INTERVAL_SECONDS",
        "CYCLE_DEADLINE_SECONDS",
    )
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"interval settings must be positive, got {v!r}")
        return v

    @field_validator("SCHEDULER_MAX_WORKERS")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"SCHEDULER_MAX_WORKERS must be at least 1, got {v!r}")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()

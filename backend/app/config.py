from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from app.models.enums import RoomType


class RoomDefaults(BaseModel):
    """Capacity and lifetime applied to rooms of a given type."""

    max_capacity: int = Field(..., ge=1, le=50)
    duration_minutes: int | None = Field(default=None, ge=1)


DEFAULT_ROOM_SETTINGS: dict[RoomType, RoomDefaults] = {
    RoomType.WAITING: RoomDefaults(max_capacity=10, duration_minutes=15),
    RoomType.MATCHING: RoomDefaults(max_capacity=20, duration_minutes=30),
    RoomType.PRIVATE: RoomDefaults(max_capacity=4),
    RoomType.PUBLIC: RoomDefaults(max_capacity=20),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="MatchFyn API", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="List of allowed CORS origins",
    )

    db_user: str = Field(default="matchfyn")
    db_password: str = Field(default="matchfyn")
    db_host: str = Field(default="db")
    db_port: int = Field(default=3306)
    db_name: str = Field(default="matchfyn")
    database_url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
        description="Full SQLAlchemy URL; takes precedence over the DB_* parts",
    )

    jwt_secret_key: str = Field(default="changeme-changeme-changeme-changeme")
    jwt_algorithm: str = Field(default="HS256")
    jwt_issuer: str = Field(default="matchfyn-api")
    jwt_audience: str = Field(default="matchfyn-clients")
    access_token_expire_minutes: int = Field(default=15, ge=1, le=1440)
    refresh_token_expire_days: int = Field(default=7, ge=1, le=365)
    auth_cache_url: str | None = Field(
        default=None,
        description="Redis URL used to store refresh tokens; in-process storage when unset",
    )

    minimum_registration_age: int = Field(default=18)

    chat_history_default_limit: int = Field(default=50)
    chat_history_max_limit: int = Field(default=100)
    chat_message_max_length: int = Field(default=1000)
    websocket_keepalive_timeout_seconds: float = Field(
        default=30,
        description="Seconds to wait for a client frame before probing the socket",
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=30,
        description="Minimum idle time before the server sends a keepalive ping",
    )

    room_maintenance_enabled: bool = Field(
        default=True,
        description="Run the periodic room lifecycle sweep inside the API process",
    )
    room_maintenance_interval_seconds: float = Field(default=60, gt=0)
    room_maintenance_error_backoff_seconds: float = Field(default=300, gt=0)
    participant_idle_minutes: int = Field(
        default=5, description="Inactivity after which a participant is marked away"
    )
    participant_eviction_minutes: int = Field(
        default=10, description="Inactivity after which a participant is removed from the room"
    )
    room_health_interval_minutes: int = Field(default=5, ge=1)
    empty_room_timeout_minutes: int = Field(default=30)
    waiting_rooms_per_gender: int = Field(default=2, ge=0)
    matching_rooms_per_gender: int = Field(default=1, ge=0)
    default_min_age: int = Field(default=18)
    default_max_age: int = Field(default=65)
    room_defaults: dict[RoomType, RoomDefaults] = Field(
        default_factory=lambda: {key: value.model_copy() for key, value in DEFAULT_ROOM_SETTINGS.items()}
    )

    min_group_size: int = Field(default=2)
    max_group_size: int = Field(default=20)

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+pymysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return []
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("room_defaults", mode="after")
    @classmethod
    def fill_missing_room_defaults(
        cls, value: dict[RoomType, RoomDefaults]
    ) -> dict[RoomType, RoomDefaults]:
        merged = {key: item.model_copy() for key, item in DEFAULT_ROOM_SETTINGS.items()}
        merged.update(value)
        return merged

    def room_defaults_for(self, room_type: RoomType | str) -> RoomDefaults:
        return self.room_defaults[RoomType(room_type)]

    def describe_lifecycle(self) -> dict[str, Any]:
        return {
            "interval_seconds": self.room_maintenance_interval_seconds,
            "idle_minutes": self.participant_idle_minutes,
            "eviction_minutes": self.participant_eviction_minutes,
            "health_interval_minutes": self.room_health_interval_minutes,
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()

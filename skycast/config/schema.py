"""Pydantic v2 configuration schema with strict validation."""

from pydantic import BaseModel, Field, field_validator


class ApiConfig(BaseModel):
    model_config = {"extra": "forbid"}

    api_key: str = ""
    base_url: str = "https://api.weatherapi.com/"
    timeout_seconds: float = Field(default=15.0, gt=0.0)
    forecast_days: int = Field(default=5, ge=1, le=14)
    aqi: bool = False

    @field_validator("base_url")
    @classmethod
    def _trailing_slash(cls, v: str) -> str:
        # Endpoint paths are joined relative to the base URL
        return v if v.endswith("/") else v + "/"


class CacheConfig(BaseModel):
    model_config = {"extra": "forbid"}

    db_path: str = "data/skycast.db"
    retention_minutes: int = Field(default=60, ge=1)


class LocationConfig(BaseModel):
    model_config = {"extra": "forbid"}

    min_update_interval_minutes: int = Field(default=5, ge=0)
    resolve_place_names: bool = False


class AppConfig(BaseModel):
    model_config = {"extra": "forbid"}

    api: ApiConfig = ApiConfig()
    cache: CacheConfig = CacheConfig()
    location: LocationConfig = LocationConfig()

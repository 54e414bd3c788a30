from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./shipflow.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # App Settings
    APP_NAME: str = "ShipFlow Shipment Economics"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # DTDC Integration
    DTDC_API_KEY: str = ""  # Consignment API key (softdata + label)
    DTDC_CUSTOMER_CODE: str = ""  # Customer code issued with the API key
    DTDC_API_URL: str = "https://pxapi.dtdc.in"
    DTDC_TRACKING_URL: str = "https://api.dtdc.in"
    DTDC_TRACKING_ACCESS_TOKEN: Optional[str] = None  # Separate token for tracking API
    DTDC_SERVICE_TYPE: str = "GROUND EXPRESS"
    DTDC_COMMODITY_ID: str = "Electric items"
    DTDC_ACCOUNT_TYPE: str = "FORWARD"  # REVERSE for reverse-only customer accounts

    # Courier Gateway behaviour
    COURIER_DEV_MODE: bool = False  # Force synthetic AWBs even when credentials exist
    COURIER_MAX_RETRIES: int = 3  # Retries after the first attempt (4 attempts total)
    COURIER_RETRY_DELAY_SECONDS: float = 2.0
    COURIER_TIMEOUT_SECONDS: float = 30.0
    TRACKING_BATCH_SIZE: int = 5
    TRACKING_BATCH_PAUSE_SECONDS: float = 1.0
    LABEL_DOWNLOAD_BASE: str = "/api/labels/download"

    # Default pickup / return warehouse
    WAREHOUSE_NAME: str = "SpareFlow Logistics Pvt Ltd"
    WAREHOUSE_PHONE: str = "9876543200"
    WAREHOUSE_ADDRESS: str = "Tech Park, Andheri East"
    WAREHOUSE_CITY: str = "Mumbai"
    WAREHOUSE_STATE: str = "Maharashtra"
    WAREHOUSE_PINCODE: str = "400069"
    RETURNS_EMAIL: str = "returns@spareflow.com"

    # Shipment estimation
    DEFAULT_PART_WEIGHT_KG: float = 0.5  # Used when a part has no catalog weight

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()

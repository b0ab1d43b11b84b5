from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "WH-TRANSFERS"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str = "sqlite+pysqlite:///./whtransfers.db"
    SEED_DEFAULT_LOCATIONS: bool = False

    ODOO_URL: str = ""
    ODOO_DB: str = ""
    ODOO_UID: int = 0
    ODOO_API_KEY: str = ""
    ODOO_AUTO_VALIDATE: bool = True

    SHOPIFY_DOMAIN: str = ""
    SHOPIFY_ACCESS_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = "2025-10"
    SHOPIFY_REPLICATE_TRANSFERS: bool = True
    SHOPIFY_STEP_DELAY_SECONDS: float = 0.2

    SPECIAL_DESTINATION_CODE: str = "KRONI/Existencias"
    SPECIAL_DESTINATION_TRANSIT_LOCATION_ID: int | None = None
    SPECIAL_DESTINATION_TRANSIT_NAME: str = "KRONI/Tránsito"
    PLANTA_LOCATION_CODE: str = "WH/Existencias"

    ENABLE_MULTI_DRAFTS: bool = False
    MAX_DRAFTS_PER_OWNER: int = 3
    STOCK_CHECK_FAIL_OPEN: bool = True
    HISTORY_MAX_PAGE_SIZE: int = 200

    HTTP_CONNECT_TIMEOUT_SECONDS: float = 5.0
    HTTP_READ_TIMEOUT_SECONDS: float = 30.0
    HTTP_RETRIES: int = 2
    HTTP_RETRY_BACKOFF_SECONDS: float = 0.5

    METRICS_ENABLED: bool = True


settings = Settings()

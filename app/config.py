from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    mongodb_url: Optional[str] = Field(None, alias="MONGODB_URL")
    mongodb_db: Optional[str] = Field(None, alias="MONGODB_DB")
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(3000, alias="PORT")
    # anything other than "production" runs with development error detail
    environment: str = Field(
        "development",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV"),
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    version: str = "1.0.0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()

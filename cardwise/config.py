from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///data/cardwise.db"
    sql_echo: bool = False
    log_level: str = "INFO"

    # Display only; the engine is currency-agnostic
    currency_symbol: str = "$"

    model_config = SettingsConfigDict(
        env_prefix="CARDWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

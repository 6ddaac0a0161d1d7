from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    APP_URL: str = ""
    JWT_ISS: str = "bars"
    SESSION_COOKIE: str = "bars_session"
    SESSION_MIN: int = 2*60
    SESSION_REMEMBER_MIN: int = 30*24*60
    LOG_LEVEL: str = "INFO"
    PUSH_ENABLED: bool = True
    PUSH_STORE: str = "db"  # db | memory
    PUSH_TIMEOUT_S: float = 5.0
    MOVEMENTS_DEFAULT_LIMIT: int = 50
    MOVEMENTS_MAX_LIMIT: int = 500
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()

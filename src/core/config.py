from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    DATABASE_URL: str = "sqlite:///./volunteer_bot.db"
    LOG_LEVEL: str = "INFO"

    # Messenger transport (delivers outbound messages to users)
    MESSENGER_BOT_URL: str = "http://localhost:3000"
    MESSENGER_TIMEOUT: float = 10.0
    SKIP_MESSENGER_IN_DEV: bool = True  # Log outbound messages instead of sending

    class Config:
        env_file = ".env"

settings = Settings()

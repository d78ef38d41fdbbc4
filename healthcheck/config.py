import os
from dotenv import load_dotenv

load_dotenv()

VERSION = "1.0.0"
USER_AGENT = f"healthcheck/{VERSION}"


def _env_bool(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    HEALTHCHECK_CONFIG: str = os.getenv("HEALTHCHECK_CONFIG")
    HEALTHCHECK_TIMEOUT: float = float(os.getenv("HEALTHCHECK_TIMEOUT", "5"))
    HEALTHCHECK_RETRIES: int = int(os.getenv("HEALTHCHECK_RETRIES", 0))
    HEALTHCHECK_INTERVAL: float = float(os.getenv("HEALTHCHECK_INTERVAL", "30"))
    HEALTHCHECK_VERBOSE: bool = _env_bool("HEALTHCHECK_VERBOSE")
    HEALTHCHECK_WEBHOOK_URL: str = os.getenv("HEALTHCHECK_WEBHOOK_URL")
    HEALTHCHECK_SLACK_WEBHOOK_URL: str = os.getenv("HEALTHCHECK_SLACK_WEBHOOK_URL")
    HEALTHCHECK_LOG_LEVEL: str = os.getenv("HEALTHCHECK_LOG_LEVEL", "INFO")


settings = Settings()

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings:
    MODELSCOPE_BASE_URL: str = os.getenv("MODELSCOPE_BASE_URL", "https://api-inference.modelscope.cn/")
    MODELSCOPE_MODEL: str = os.getenv("MODELSCOPE_MODEL", "Tongyi-MAI/Z-Image-Turbo")

    # 40 x 3s keeps a request inside a one-minute-ish serverless execution window
    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "3.0"))  # seconds
    MAX_POLLS: int = int(os.getenv("MAX_POLLS", "40"))

    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30.0"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def MODELSCOPE_API_KEY(self) -> str | None:
        # Read on every access so a rotated secret is picked up per request
        return os.getenv("MODELSCOPE_API_KEY")


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)


settings = Settings()

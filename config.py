import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

BASEDIR = os.path.abspath(os.path.dirname(__file__))
DATA_DIR = os.path.join(BASEDIR, "data")


@dataclass
class Settings:
    # Database
    database_url: str = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{os.path.join(DATA_DIR, 'library.sqlite')}"
    )

    # Flask
    secret_key: str = os.getenv("SECRET_KEY", "dev-secret-key")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Number of threads used to issue independent reads side by side.
    parallel_read_workers: int = int(os.getenv("PARALLEL_READ_WORKERS", "4"))


settings = Settings()

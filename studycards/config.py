import logging
import os
from typing import List, Mapping, Optional

from pydantic import BaseModel

# Dev servers allowed by default
DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
]

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    store: str = "csv"  # "csv" or "mongo"
    csv_path: str = "flashcards.csv"
    mongo_uri: Optional[str] = None
    mongo_db: str = "studycards"
    quiz_seconds: int = 30
    reveal_seconds: int = 2
    strict_grading: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = DEFAULT_ORIGINS
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {}
        simple = {
            "store": "STUDYCARDS_STORE",
            "csv_path": "STUDYCARDS_CSV_PATH",
            "mongo_uri": "STUDYCARDS_MONGO_URI",
            "mongo_db": "STUDYCARDS_MONGO_DB",
            "quiz_seconds": "STUDYCARDS_QUIZ_SECONDS",
            "reveal_seconds": "STUDYCARDS_REVEAL_SECONDS",
            "strict_grading": "STUDYCARDS_STRICT_GRADING",
            "log_level": "STUDYCARDS_LOG_LEVEL",
            "port": "PORT",
        }
        for field, var in simple.items():
            if env.get(var):
                values[field] = env[var]
        if env.get("STUDYCARDS_CORS_ORIGINS"):
            values["cors_origins"] = [o.strip() for o in env["STUDYCARDS_CORS_ORIGINS"].split(",") if o.strip()]
        settings = cls(**values)
        if settings.store not in ("csv", "mongo"):
            raise ValueError(f"Unknown store {settings.store!r}, expected 'csv' or 'mongo'")
        if settings.store == "mongo" and not settings.mongo_uri:
            raise ValueError("STUDYCARDS_MONGO_URI is required when STUDYCARDS_STORE=mongo")
        return settings


def configure_logging(settings: Settings):
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

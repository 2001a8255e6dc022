"""Runtime configuration, read from the environment (and ``.env``)."""

import os
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv


def _atlas_uri() -> Optional[str]:
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASS")
    if not user or not password:
        return None
    host = os.getenv("DB_HOST", "cluster0.mongodb.net")
    return f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{host}/?retryWrites=true&w=majority"


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_name: str = "textila_db"
    stripe_secret_key: Optional[str] = None
    site_domain: str = "http://localhost:5173"
    currency: str = "usd"
    port: int = 8000
    environment: str = "development"
    log_level: Optional[str] = None
    cors_origins: tuple = ("*",)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins: List[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            database_url=os.getenv("DATABASE_URL") or _atlas_uri(),
            database_name=os.getenv("DATABASE_NAME", "textila_db"),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            site_domain=os.getenv("SITE_DOMAIN", "http://localhost:5173").rstrip("/"),
            currency=os.getenv("CURRENCY", "usd").lower(),
            port=int(os.getenv("PORT", 8000)),
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            log_level=os.getenv("LOG_LEVEL") or None,
            cors_origins=tuple(origins or ["*"]),
        )

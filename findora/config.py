# file: findora/config.py

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _as_int(val: Optional[str], default: Optional[int]) -> Optional[int]:
    if val is None or not val.strip():
        return default
    return int(val)


def _as_float(val: Optional[str], default: float) -> float:
    if val is None or not val.strip():
        return default
    return float(val)


class Settings:
    """Reads application configuration from the environment (and .env)."""

    def __init__(self) -> None:
        # --- Places providers ---
        self.PLACES_PROVIDER: Optional[str] = os.getenv("PLACES_PROVIDER") or None
        self.GOOGLE_PLACES_API_KEY: str = os.getenv("GOOGLE_PLACES_API_KEY", "")
        self.OPENTRIPMAP_API_KEY: str = os.getenv("OPENTRIPMAP_API_KEY", "")
        self.NOMINATIM_USER_AGENT: str = os.getenv("NOMINATIM_USER_AGENT", "findora-backend/0.1")
        self.HTTP_TIMEOUT_SECONDS: float = _as_float(os.getenv("HTTP_TIMEOUT_SECONDS"), 10.0)

        # --- AI categorization ---
        self.GOOGLE_GEMINI_API_KEY: str = os.getenv("GOOGLE_GEMINI_API_KEY", "")
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash-latest")
        self.ENRICHMENT_TIMEOUT_SECONDS: float = _as_float(os.getenv("ENRICHMENT_TIMEOUT_SECONDS"), 15.0)

        # --- Cache ---
        # Unset means no bound: results are memoized for the process lifetime.
        self.PLACES_CACHE_MAX_ENTRIES: Optional[int] = _as_int(os.getenv("PLACES_CACHE_MAX_ENTRIES"), None)

        # --- Auth ---
        self.JWT_SECRET: str = os.getenv("JWT_SECRET") or os.getenv("SESSION_SECRET") or "default-secret"
        self.JWT_ALGORITHM: str = "HS256"
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = _as_int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES"), 7 * 24 * 60)

        # --- Storage ---
        self.DATA_DIR: str = os.getenv("DATA_DIR", "./data")
        self.DATABASE_URL: str = os.getenv(
            "DATABASE_URL",
            f"sqlite+aiosqlite:///{os.path.join(self.DATA_DIR, 'findora.db')}",
        )

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()

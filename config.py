"""Configuration for modvault."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'modvault.db'}",
)
DEVMODE = os.getenv("DEVMODE", "").lower() in ("1", "true", "yes")

# Web auth (JWT secret)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = 7

# Built-in server account, always id=1
SERVER_ADMIN_USERNAME = os.getenv("SERVER_ADMIN_USERNAME", "ServerAdmin")

# Background jobs (seconds)
CACHE_REFRESH_INTERVAL = int(os.getenv("CACHE_REFRESH_INTERVAL", "60"))
HEALTH_CHECK_INTERVAL = int(os.getenv("HEALTH_CHECK_INTERVAL", "3600"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# Allowed origins (comma-separated). Empty means any origin.
def _parse_origins(value: str) -> list[str]:
    if not value:
        return ["*"]
    return [x.strip() for x in value.split(",") if x.strip()]


CORS_ORIGINS = _parse_origins(os.getenv("CORS_ORIGINS", ""))

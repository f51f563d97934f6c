"""
Mileage Tracker — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from mileage/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_KNOWN_STYLES = ("path", "action", "route", "op")


def _split_csv(v: str | list[str]) -> list[str]:
    if isinstance(v, list):
        return [s.strip() for s in v if s.strip()]
    return [s.strip() for s in v.split(",") if s.strip()]


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Remote record-keeping service (Worker URL or Apps Script /exec URL)
    API_BASE_URL: str

    # Network
    REQUEST_TIMEOUT_SECONDS: float = 25.0
    WARMUP_TIMEOUT_SECONDS: float = 4.0

    # Ordered URL conventions tried by the dispatcher: path | action | route | op
    ENDPOINT_STYLES: list[str] = list(_KNOWN_STYLES)

    # Cache
    SOFT_REFRESH_AFTER_SECONDS: float = 20.0
    CACHE_DATABASE_PATH: str = "data/cache.db"

    # Fallback when the config payload carries no categories
    DEFAULT_CATEGORIES: list[str] = ["Walk", "Bike", "Other"]

    @field_validator("ENDPOINT_STYLES", mode="before")
    @classmethod
    def parse_styles(cls, v: str | list[str]) -> list[str]:
        styles = [s.lower() for s in _split_csv(v)]
        unknown = [s for s in styles if s not in _KNOWN_STYLES]
        if unknown:
            raise ValueError(f"Unknown endpoint style(s): {', '.join(unknown)}")
        return styles or list(_KNOWN_STYLES)

    @field_validator("DEFAULT_CATEGORIES", mode="before")
    @classmethod
    def parse_categories(cls, v: str | list[str]) -> list[str]:
        return _split_csv(v)

    @field_validator(
        "REQUEST_TIMEOUT_SECONDS",
        "WARMUP_TIMEOUT_SECONDS",
        "SOFT_REFRESH_AFTER_SECONDS",
        mode="before",
    )
    @classmethod
    def parse_seconds(cls, v: str | float) -> float:
        return float(v)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    base_url = os.getenv("API_BASE_URL", "").strip()

    if not base_url or base_url.startswith("your-"):
        print("ERROR: API_BASE_URL is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        API_BASE_URL=base_url,
        REQUEST_TIMEOUT_SECONDS=os.getenv("REQUEST_TIMEOUT_SECONDS", "25"),
        WARMUP_TIMEOUT_SECONDS=os.getenv("WARMUP_TIMEOUT_SECONDS", "4"),
        ENDPOINT_STYLES=os.getenv("ENDPOINT_STYLES", "path,action,route,op"),
        SOFT_REFRESH_AFTER_SECONDS=os.getenv("SOFT_REFRESH_AFTER_SECONDS", "20"),
        CACHE_DATABASE_PATH=os.getenv("CACHE_DATABASE_PATH", "data/cache.db"),
        DEFAULT_CATEGORIES=os.getenv("DEFAULT_CATEGORIES", "Walk,Bike,Other"),
    )


# Singleton — imported by all other modules as:
#   from mileage.config import settings
settings = _load_settings()

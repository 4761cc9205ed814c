"""
A11y Persona Scanner Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATA_DIR = Path(__file__).resolve().parent / "data"


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Versioning ---
    VERSION: str = "1.0.0"
    API_VERSION: str = "1"

    # --- Rule set + persona catalog ---
    PATTERNS_PATH: str = os.getenv(
        "A11Y_PATTERNS_PATH", str(DATA_DIR / "accessibility-patterns.json")
    )
    PERSONAS_DIR: str = os.getenv("A11Y_PERSONAS_DIR", str(DATA_DIR / "personas"))

    # --- Scanning ---
    MAX_SCAN_CHARS: int = int(os.getenv("A11Y_MAX_SCAN_CHARS", "50000"))
    MATCH_TIMEOUT_SECONDS: float = float(os.getenv("A11Y_MATCH_TIMEOUT_SECONDS", "0.5"))

    # --- API ---
    MAX_BODY_BYTES: int = int(os.getenv("A11Y_MAX_BODY_BYTES", str(1024 * 1024)))

    # --- Server ---
    HOST: str = os.getenv("A11Y_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("A11Y_PORT", "8000"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("A11Y_CORS_ORIGINS", "*")


settings = Settings()

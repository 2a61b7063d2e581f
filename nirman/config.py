"""
Application configuration settings.
"""
import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file if it exists (for local development)
env_file = BASE_DIR / ".env"
if env_file.exists():
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Deployment - Jashpur and Raipur run the same code against separate databases
NIRMAN_DEPLOYMENT = os.getenv("NIRMAN_DEPLOYMENT", "Jashpur")

# Database - Support both SQLite (local) and PostgreSQL (production)
DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_PATH = BASE_DIR / "nirman.db"

# Determine if using PostgreSQL
USE_POSTGRES = DATABASE_URL.startswith("postgres")

# Hosted Postgres often hands out postgres:// but psycopg2 needs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Security
SECRET_KEY = os.getenv("SECRET_KEY", "nirman-dev-secret-key-change-in-production")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", 60 * 60 * 24))  # 24 hours in seconds
BEARER_SCHEME = "Bearer"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Listing pagination
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

# Installments recorded through the progress update are checked against the
# sanctioned amount exactly like the dedicated installment endpoint.
ENFORCE_CEILING_ON_PROGRESS_INSTALLMENTS = _env_flag("ENFORCE_CEILING_ON_PROGRESS_INSTALLMENTS", True)

import os

from dotenv import load_dotenv

load_dotenv()

DB_PATH = (
    os.environ.get("BILLTRACKER_DB_PATH")
    or os.environ.get("DB_PATH")
    or "billtracker.sqlite3"  # fallback
)

POOL_MAX     = int(os.getenv("BILLTRACKER_POOL_MAX", "10"))
POOL_TIMEOUT = float(os.getenv("BILLTRACKER_POOL_TIMEOUT", "5"))

CORS_ORIGINS = [o for o in os.getenv("BILLTRACKER_CORS", "").split(",") if o]
DOCS_ENABLED = os.getenv("BILLTRACKER_DOCS", "0") == "1"
DEBUG_MODE   = os.getenv("BILLTRACKER_DEBUG", "0") == "1"
LOG_LEVEL    = os.getenv("LOG_LEVEL", "INFO")

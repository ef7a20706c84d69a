import os

# Database Configuration
# Embedded SQLite file used by the transactional backend
DB_URL = os.getenv("DATABASE_URL", "sqlite://data/cafepos.sqlite3")

# Application Metadata
PROJECT_NAME = "Cafe POS Engine"
VERSION = "1.0.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Storage selection: "auto" tries the embedded database and falls back to the key-value store
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "auto")
FALLBACK_STORE_DIR = os.getenv("FALLBACK_STORE_DIR", "data/fallback")
FALLBACK_KEY_PREFIX = os.getenv("FALLBACK_KEY_PREFIX", "cafepos_")

# Inventory
LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", 10)) # Alert at or below this quantity
OVERSELL_POLICY = os.getenv("OVERSELL_POLICY", "ALLOW_OVERSELL") # or "REJECT"

# Cash flow
RECENT_TRANSACTIONS_LIMIT = int(os.getenv("RECENT_TRANSACTIONS_LIMIT", 10))

# Fallback -> transactional import at startup
MIGRATE_ON_STARTUP = os.getenv("MIGRATE_ON_STARTUP", "true").lower() in ("1", "true", "yes")

import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_PATH = BASE_DIR / DATA_DIR

# RETAIL_BILLING_DB points the app at another database file (tests, multi-shop setups)
DB_PATH = Path(os.environ.get("RETAIL_BILLING_DB") or DATA_PATH / DB_FILE_NAME)

# used when shop_settings.state is empty
SHOP_STATE = os.environ.get("RETAIL_BILLING_SHOP_STATE") or None

LOG_LEVEL = os.environ.get("RETAIL_BILLING_LOG_LEVEL", "INFO").upper()

import os
import logging
from dotenv import load_dotenv

load_dotenv()

# Logging Configuration
# Hosted Streamlit deployments may not allow writing next to the app, so fall back to console only
handlers = []
try:
    handlers.append(logging.FileHandler('bet_ledger.log'))
except (OSError, PermissionError):
    pass
handlers.append(logging.StreamHandler())

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)
logger = logging.getLogger('bet_ledger')

# Database Configuration
DATABASE_PATH = os.getenv(
    "DATABASE_PATH",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "bet_ledger.db"),
)

# CSV Import Configuration
DEFAULT_BATCH_SIZE = 200


def _read_batch_size(raw: str) -> int:
    """Parse CSV_IMPORT_BATCH_SIZE, falling back to the default for junk values."""
    try:
        value = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_BATCH_SIZE
    return value if value > 0 else DEFAULT_BATCH_SIZE


CSV_IMPORT_BATCH_SIZE = _read_batch_size(os.getenv("CSV_IMPORT_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)))

# Import endpoint used by the dashboard's CSV upload card
IMPORT_API_URL = os.getenv("IMPORT_API_URL", "http://localhost:8000/csv-import")

# Display
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "EUR")

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}

# Readable names for bet statuses
STATUS_LABELS = {
    "pending": "Pending",
    "won": "Won",
    "lost": "Lost",
    "void": "Void",
    "cashed_out": "Cashed Out",
    "cancelled": "Cancelled",
}

GROUPING_LABELS = {
    "week": "weeks",
    "month": "months",
    "quarter": "quarters",
}

BREAKDOWN_LABELS = {
    "bankroll_id": "Bankroll",
    "bookmaker_id": "Bookmaker",
    "event_id": "Event",
}

# Insight thresholds
STRONG_ROI_THRESHOLD = 8.0
NEGATIVE_ROI_THRESHOLD = -5.0
PENDING_ALERT_COUNT = 5
LOSING_STREAK_ALERT = 3
MAX_INSIGHTS = 4
PERIOD_SUMMARY_LIMIT = 5

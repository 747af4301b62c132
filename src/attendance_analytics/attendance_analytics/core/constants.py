"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Risk tiers, inclusive at the lower edge.
SAFE_THRESHOLD_PCT = 85.0
MODERATE_THRESHOLD_PCT = 75.0

# Number of most recent records used for trend statistics.
TREND_WINDOW = 5

# Percentage reported for a student with no attendance history.
OPTIMISTIC_DEFAULT_PCT = 100.0

MAX_SEND_ATTEMPTS = 5
BACKOFF_BASE_MS = 500
BACKOFF_MAX_MS = 20_000
DEFAULT_EMAIL_TIMEOUT_SECONDS = 10

MIN_OVERRIDE_REASON_LENGTH = 3

EMAIL_SIGNATURE = "WAA-100"

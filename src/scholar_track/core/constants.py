"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_LOOKBACK_DAYS = 30
DEFAULT_WEEKLY_DAYS = 7
DEFAULT_ATTENTION_THRESHOLD = 75
ATTENTION_LIST_LIMIT = 10

GOOD_RATE_THRESHOLD = 75
AVERAGE_RATE_THRESHOLD = 50

CONFLICT_RETRIES = 1

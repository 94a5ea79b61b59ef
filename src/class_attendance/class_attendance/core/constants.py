"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_LATE_MINUTES_ALLOWED = 10
MAX_SESSION_NAME_LENGTH = 200
MAX_EXCUSE_REASON_LENGTH = 1000
CHECK_IN_TOKEN_BYTES = 24
RECOMPUTE_MAX_ATTEMPTS = 2
RECOMPUTE_RETRY_BACKOFF_SECONDS = 0.2
DEFAULT_REPORT_DAYS = 30
DEFAULT_LIST_LIMIT = 200

MAX_CLASS_NAME_LENGTH = 255
MAX_CLASS_CODE_LENGTH = 50
MAX_COURSE_LENGTH = 100
MAX_SECTION_LENGTH = 10
MAX_YEAR_LENGTH = 20
MAX_FULL_NAME_LENGTH = 200
MAX_EMAIL_LENGTH = 190
MAX_STUDENT_NUMBER_LENGTH = 50

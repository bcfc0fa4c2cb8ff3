"""Quiz-related constants shared across the core and API layers."""

JOIN_CODE_LENGTH: int = 6
JOIN_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
PRACTICE_JOIN_CODE: str = "PRACTICE"
BANK_QUIZ_ID: str = "bank"
DEFAULT_CATEGORY: str = "General"

MIN_GENERATED_QUESTIONS: int = 10
PRACTICE_MINUTES_PER_QUESTION: int = 2

UPCOMING_WINDOW_MINUTES: int = 15
DEADLINE_WINDOW_MINUTES: int = 30
NOTIFICATION_DEDUP_WINDOW_SECONDS: int = 60 * 60

NOTIFICATION_POLL_INTERVAL_SECONDS: float = 30.0
EXPIRY_SWEEP_INTERVAL_SECONDS: float = 1.0

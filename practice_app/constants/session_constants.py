"""Session and timer constants shared across the core layers."""

TICK_INTERVAL_MS: int = 100
LOW_TIME_THRESHOLD_SECONDS: int = 60

EPHEMERAL_SLOT_PREFIX: str = "practice-session:"

END_OF_SET_MESSAGE: str = "You have reached the last question."
TIME_UP_MESSAGE: str = "Time's up! Auto-submitting your answers..."
SAVE_FAILED_MESSAGE: str = "Could not save your session. Please try again."
SUBMIT_FAILED_MESSAGE: str = "Submission failed. Please try again."
BOOKMARK_FAILED_MESSAGE: str = "Could not update the bookmark."

"""Network configuration constants for the practice application."""

import os

DEFAULT_HOST: str = os.getenv("PRACTICE_HOST", "127.0.0.1")
DEFAULT_PORT: int = int(os.getenv("PRACTICE_PORT", "8000"))
DEFAULT_API_URL: str = os.getenv("PRACTICE_API_URL", f"http://{DEFAULT_HOST}:{DEFAULT_PORT}")
REQUEST_TIMEOUT_SECONDS: float = 15.0

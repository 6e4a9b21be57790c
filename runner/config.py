import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root (parent of runner/)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

QUIZ_URL = os.getenv("QUIZ_URL", "http://localhost:8080")
WORKERS = int(os.getenv("QUIZ_WORKERS", os.cpu_count() or 1))
RATE_PER_SECOND = float(os.getenv("QUIZ_RATE_PER_SECOND", "1"))
RATE_BURST = int(os.getenv("QUIZ_RATE_BURST", "10"))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("QUIZ_REQUEST_TIMEOUT_SECONDS", "30"))
SUCCESS_TITLE = os.getenv("QUIZ_SUCCESS_TITLE", "Test successfully passed")
TEXT_PLACEHOLDER = os.getenv("QUIZ_TEXT_PLACEHOLDER", "test")
MAX_PAGES = int(os.getenv("QUIZ_MAX_PAGES", "1000"))

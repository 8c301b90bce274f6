import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SCREENSHOTS_DIR = os.getenv("STEPFLOW_SCREENSHOTS_DIR", "screenshots")
BROWSER = os.getenv("STEPFLOW_BROWSER", "chromium")
HEADLESS = _env_flag("STEPFLOW_HEADLESS", True)
STEP_TIMEOUT_MS = int(os.getenv("STEPFLOW_STEP_TIMEOUT_MS", "30000"))
MAX_CONCURRENT_RUNS = int(os.getenv("STEPFLOW_MAX_CONCURRENT_RUNS", "4"))
LOG_LEVEL = os.getenv("STEPFLOW_LOG_LEVEL", "WARNING")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_API_BASE_URL", os.getenv("OPENAI_BASE_URL")) # Support both namings
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")


def check_api_key():
    if not OPENAI_API_KEY:
        print("Error: OPENAI_API_KEY environment variable is not set.")
        print("Please export OPENAI_API_KEY='sk-...' or create a .env file.")
        raise SystemExit(1)

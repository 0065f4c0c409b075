from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List

# Only these file types are sent for analysis
CODE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".py", ".go", ".rs", ".java", ".c", ".cpp")

# Any tree path containing one of these is skipped
IGNORE_PATTERNS = ("node_modules/", "dist/", "build/", ".git/", "package-lock.json", "yarn.lock")

# Client-side refresh interval while a scan is pending/processing
POLL_INTERVAL_SECONDS = 3


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./local_dev.db"

    GROQ_API_KEY: str = ""
    OPENROUTER_API_KEY: str = ""

    # "groq" or "openrouter"
    ANALYSIS_PROVIDER: str = "groq"
    DEFAULT_MODEL_GROQ: str = "llama-3.3-70b-versatile"
    DEFAULT_MODEL_OPENROUTER: str = "openai/gpt-3.5-turbo"
    ANALYSIS_MAX_TOKENS: int = 4096

    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: str = ""

    # Applies to GitHub and model calls alike
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # ─── Scan Limits ────────────────────────────────────
    # Files analyzed per scan (prefix of the filtered tree)
    SCAN_MAX_FILES: int = 5
    # Files analyzed at the same time
    SCAN_CONCURRENCY: int = 2
    # Characters of each file sent to the model
    ANALYSIS_MAX_CHARS: int = 15000
    ANALYSIS_MAX_ISSUES: int = 10

    # ─── Sessions ───────────────────────────────────────
    SESSION_COOKIE_NAME: str = "debtlens_session"
    SESSION_TTL_DAYS: int = 7
    SESSION_COOKIE_SECURE: bool = False

    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

@lru_cache
def get_settings():
    return Settings()

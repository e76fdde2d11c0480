import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./sugar.db")
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Full-text search index (HTTP)
SEARCH_INDEX_URL = os.getenv("SEARCH_INDEX_URL", "http://localhost:7700")
SEARCH_INDEX_NAME = os.getenv("SEARCH_INDEX_NAME", "discussions")
SEARCH_TIMEOUT = float(os.getenv("SEARCH_TIMEOUT", "3.0"))

# Emit bare numeric ids instead of title slugs in thread URLs
WORK_SAFE_URLS = _env_bool("WORK_SAFE_URLS")

DISCUSSIONS_PER_PAGE = int(os.getenv("DISCUSSIONS_PER_PAGE", "30"))
POSTS_PER_PAGE = int(os.getenv("POSTS_PER_PAGE", "50"))

RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", "true")
THREAD_CREATE_RATE = os.getenv("THREAD_CREATE_RATE", "3/minute;20/hour;60/day")
POST_CREATE_RATE = os.getenv("POST_CREATE_RATE", "6/minute;40/hour;150/day")

import os
import pathlib
from dotenv import load_dotenv

load_dotenv()

user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST")
port = os.getenv("DB_PORT")
db_name = os.getenv("DB_NAME")

redis_host = os.getenv("REDIS_HOST")
redis_port = int(os.getenv("REDIS_PORT", "6379"))

income_interval_minutes = int(os.getenv("INCOME_INTERVAL_MINUTES", "5"))
raid_success_probability = float(os.getenv("RAID_SUCCESS_PROBABILITY", "0.5"))
retry_attempts = int(os.getenv("RETRY_ATTEMPTS", "3"))
retry_backoff_seconds = float(os.getenv("RETRY_BACKOFF_SECONDS", "0.05"))
subscriber_queue_size = int(os.getenv("SUBSCRIBER_QUEUE_SIZE", "1000"))
log_level = os.getenv("LOG_LEVEL", "INFO").upper()


def database_url() -> str:
    """Resolve the async database URL.

    DATABASE_URL wins; hosted Postgres hands out postgres:// which SQLAlchemy
    needs as postgresql+asyncpg://. Without it, the DB_* parts build a Postgres
    URL, and with neither a local SQLite file is used.
    """
    raw_url = os.getenv("DATABASE_URL")
    if raw_url:
        for prefix in ("postgres://", "postgresql://"):
            if raw_url.startswith(prefix):
                return raw_url.replace(prefix, "postgresql+asyncpg://", 1)
        return raw_url
    if host:
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port or 5432}/{db_name}"
    file_path = pathlib.Path(__file__).parents[1] / "nodewar.sqlite3"
    return f"sqlite+aiosqlite:///{file_path}"


if __name__ == "__main__":
    print(database_url(), redis_host, redis_port, income_interval_minutes)

import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL", "")
    if url:
        # Hosted providers hand out postgres:// but SQLAlchemy requires postgresql://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    host = os.environ.get("DB_HOST", "")
    if host:
        user     = os.environ.get("DB_USER", "root")
        password = quote_plus(os.environ.get("DB_PASSWORD", ""))
        name     = os.environ.get("DB_NAME", "event_management")
        return f"mysql+pymysql://{user}:{password}@{host}/{name}?charset=utf8mb4"

    # Local development fallback: SQLite, no database server required
    return f"sqlite:///{os.path.abspath('local_dev.db')}"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Build with ``Settings.from_env()`` in production."""

    database_url:    str
    db_pool_timeout: float = 30.0
    server_url:      str = "http://localhost:8000"
    static_root:     str = "public"
    smtp_host:       str = "smtp.gmail.com"
    smtp_port:       int = 587
    smtp_user:       str = ""
    smtp_pass:       str = ""
    smtp_from:       str = ""
    admin_key:       Optional[str] = None
    cors_origins:    List[str] = field(default_factory=lambda: ["*"])
    log_level:       str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        raw_origins = os.environ.get("CORS_ORIGINS", "*")
        return cls(
            database_url    = _database_url(),
            db_pool_timeout = float(os.environ.get("DB_POOL_TIMEOUT", "30")),
            server_url      = os.environ.get("SERVER_URL", "http://localhost:8000").rstrip("/"),
            static_root     = os.environ.get("STATIC_ROOT", "public"),
            smtp_host       = os.environ.get("SMTP_HOST", "smtp.gmail.com"),
            smtp_port       = int(os.environ.get("SMTP_PORT", "587")),
            smtp_user       = os.environ.get("SMTP_USER", ""),
            smtp_pass       = os.environ.get("SMTP_PASS", ""),
            smtp_from       = os.environ.get("SMTP_FROM", ""),
            admin_key       = os.environ.get("ADMIN_KEY") or None,
            cors_origins    = [o.strip() for o in raw_origins.split(",")] if raw_origins != "*" else ["*"],
            log_level       = os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_user and self.smtp_pass)

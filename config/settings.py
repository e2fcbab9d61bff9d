# config/settings.py
from __future__ import annotations
from dataclasses import dataclass
import os
from dotenv import load_dotenv

load_dotenv()

@dataclass(frozen=True)
class Settings:
    # IMAP (Gmail por defecto)
    IMAP_HOST: str = os.getenv("IMAP_HOST", "imap.gmail.com")
    IMAP_PORT: int = int(os.getenv("IMAP_PORT", 993))
    IMAP_SSL: bool = os.getenv("IMAP_SSL", "true").lower() == "true"
    IMAP_USERNAME: str = os.getenv("IMAP_USERNAME", "")
    IMAP_PASSWORD: str = os.getenv("IMAP_PASSWORD", "")
    IMAP_AUTH_TIMEOUT: float = float(os.getenv("IMAP_AUTH_TIMEOUT", "10"))

    # Carpetas por tipo de buzón (nombres propios del proveedor)
    IMAP_FOLDER_INBOX: str = os.getenv("IMAP_FOLDER_INBOX", "INBOX")
    IMAP_FOLDER_SPAM: str = os.getenv("IMAP_FOLDER_SPAM", "[Gmail]/Spam")

    # Fetch / paginación
    FETCH_GRACE_PERIOD: float = float(os.getenv("FETCH_GRACE_PERIOD", "5"))
    PREVIEW_MAX_CHARS: int = int(os.getenv("PREVIEW_MAX_CHARS", 200))
    DEFAULT_LIMIT: int = int(os.getenv("DEFAULT_LIMIT", 10))
    MAX_LIMIT: int = int(os.getenv("MAX_LIMIT", 100))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # ───────── helpers ─────────
    def folder_map(self) -> dict[str, str]:
        return {"inbox": self.IMAP_FOLDER_INBOX, "spam": self.IMAP_FOLDER_SPAM}

    def has_default_credentials(self) -> bool:
        return bool(self.IMAP_USERNAME and self.IMAP_PASSWORD)

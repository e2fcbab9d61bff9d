# infrastructure/email/imap_client.py
from __future__ import annotations
import logging
from typing import Mapping

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError, LoginError

from domain.errors import (
    AuthenticationError,
    CallerInputError,
    FetchCommandError,
    MailboxConnectionError,
    MailboxOpenError,
)
from domain.models import RawMessage, SequenceWindow

logger = logging.getLogger(__name__)

DEFAULT_FOLDER_MAP: dict[str, str] = {"inbox": "INBOX", "spam": "[Gmail]/Spam"}

# BODY.PEEK no marca los mensajes como leídos
FETCH_ITEMS = ["UID", "INTERNALDATE", "BODY.PEEK[HEADER]", "BODY.PEEK[TEXT]"]


def resolve_folder(kind: str, folder_map: Mapping[str, str] | None = None) -> str:
    mapping = folder_map or DEFAULT_FOLDER_MAP
    try:
        return mapping[kind]
    except KeyError:
        raise CallerInputError(
            f"Unknown mailbox kind '{kind}' (expected one of: {', '.join(sorted(mapping))})"
        ) from None


class IMAPInbox:
    """Una sesión IMAP por petición: open → fetch_range → close. Nunca se reutiliza."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        ssl: bool = True,
        timeout: float | None = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.ssl = ssl
        self.timeout = timeout
        self.client: IMAPClient | None = None
        self.folder: str | None = None
        self.total_messages: int = 0

    def __enter__(self) -> "IMAPInbox":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.client is not None

    # ───────── ciclo de vida ─────────
    def open(self, folder: str) -> int:
        """Conecta, autentica y selecciona ``folder`` (solo lectura). Devuelve el nº de mensajes."""
        try:
            self.client = IMAPClient(self.host, port=self.port, ssl=self.ssl, timeout=self.timeout)
        except (OSError, IMAPClientError) as exc:
            raise MailboxConnectionError(f"IMAP connection error: {exc}") from exc

        try:
            self.client.login(self.user, self.password)
        except LoginError as exc:
            self.close()
            raise AuthenticationError(f"Invalid credentials: {exc}") from exc
        except (OSError, IMAPClientError) as exc:
            self.close()
            raise MailboxConnectionError(f"IMAP connection error: {exc}") from exc

        try:
            info = self.client.select_folder(folder, readonly=True)
        except (OSError, IMAPClientError) as exc:
            self.close()
            raise MailboxOpenError(f"Failed to open mailbox: {exc}") from exc

        self.folder = folder
        self.total_messages = int(info.get(b"EXISTS", 0))
        logger.info("Buzón %s abierto en %s (%d mensajes)", folder, self.host, self.total_messages)
        return self.total_messages

    def close(self) -> None:
        client, self.client = self.client, None
        if client is None:
            return
        try:
            client.logout()
        except Exception:
            logger.exception("Error cerrando IMAP")
        else:
            logger.info("Conexión IMAP cerrada")

    # ───────── fetch ─────────
    def fetch_range(self, window: SequenceWindow) -> list[RawMessage]:
        """Un único FETCH por número de secuencia para toda la ventana."""
        if self.client is None:
            raise FetchCommandError("IMAP fetch error: session is not open")
        try:
            self.client.use_uid = False
            resp = self.client.fetch(window.as_imap_range(), FETCH_ITEMS)
        except (OSError, IMAPClientError) as exc:
            raise FetchCommandError(f"IMAP fetch error: {exc}") from exc

        messages: list[RawMessage] = []
        for seq in sorted(resp):
            # respuestas FETCH no solicitadas (p. ej. FLAGS) fuera de la ventana
            if not window.start <= int(seq) <= window.end:
                continue
            data = resp[seq]
            uid = data.get(b"UID")
            messages.append(
                RawMessage(
                    seq=int(seq),
                    uid=str(uid) if uid is not None else str(seq),
                    internal_date=data.get(b"INTERNALDATE"),
                    header=data.get(b"BODY[HEADER]"),
                    body=data.get(b"BODY[TEXT]") or b"",
                )
            )
        logger.info("FETCH %s: %d/%d mensajes recibidos", window.as_imap_range(), len(messages), window.size)
        return messages

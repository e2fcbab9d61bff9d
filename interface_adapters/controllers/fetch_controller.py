# interface_adapters/controllers/fetch_controller.py
from __future__ import annotations
import logging
from typing import Any, Callable, Optional

from config.settings import Settings
from application.use_cases.fetch_messages_usecase import FetchMessagesUseCase, MailboxSession
from domain.errors import CallerInputError, MailFetchError, MissingCredentialsError
from domain.header_extractor import logging_observer
from domain.models import Credentials, FetchRequest
from infrastructure.email.imap_client import IMAPInbox

logger = logging.getLogger(__name__)

SORT_ORDERS = ("asc", "desc")


def _as_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return str(value).strip() if value is not None else ""


def _as_int(raw: Any, default: int) -> int:
    # Igual que el cliente web: lo que no sea número vuelve al valor por defecto
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value


class FetchController:
    def __init__(
        self,
        settings: Settings,
        session_factory: Optional[Callable[[FetchRequest], MailboxSession]] = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory or self._imap_session
        self.uc = FetchMessagesUseCase(
            session_factory=self.session_factory,
            folder_map=settings.folder_map(),
            grace_period=settings.FETCH_GRACE_PERIOD,
            preview_max_chars=settings.PREVIEW_MAX_CHARS,
            observer=logging_observer(logging.getLogger("domain.header_extractor")),
        )

    def _imap_session(self, request: FetchRequest) -> IMAPInbox:
        st = self.settings
        return IMAPInbox(
            st.IMAP_HOST,
            st.IMAP_PORT,
            request.credentials.email,
            request.credentials.app_password,
            ssl=st.IMAP_SSL,
            timeout=st.IMAP_AUTH_TIMEOUT,
        )

    # ───────────────────────── petición ─────────────────────────
    def parse_request(self, payload: dict[str, Any]) -> FetchRequest:
        st = self.settings
        email = _as_text(payload, "email")
        password = _as_text(payload, "appPassword")
        if not (email or password) and st.has_default_credentials():
            email, password = st.IMAP_USERNAME, st.IMAP_PASSWORD
        if not email or not password:
            raise MissingCredentialsError("Email and app password are required")

        mailbox_kind = (_as_text(payload, "mailboxKind") or "inbox").lower()
        if mailbox_kind not in st.folder_map():
            raise CallerInputError(f"Unknown mailbox kind '{mailbox_kind}'")

        order = (_as_text(payload, "order") or "desc").lower()
        if order not in SORT_ORDERS:
            raise CallerInputError(f"Invalid order '{order}' (expected asc or desc)")

        offset = max(1, _as_int(payload.get("offset"), 1))
        limit = min(st.MAX_LIMIT, max(1, _as_int(payload.get("limit"), st.DEFAULT_LIMIT)))

        return FetchRequest(
            credentials=Credentials(email=email, app_password=password),
            mailbox_kind=mailbox_kind,
            order=order,  # type: ignore[arg-type]
            offset=offset,
            limit=limit,
            search=_as_text(payload, "search"),
            from_domain=_as_text(payload, "fromDomain"),
            from_address=_as_text(payload, "fromAddress"),
            to_substring=_as_text(payload, "toSubstring"),
        )

    def handle(self, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """
        Devuelve (status, cuerpo JSON). 400 = entrada inválida, 401/502 = fallo aguas arriba.
        """
        try:
            request = self.parse_request(payload)
            logger.info(
                "=== Fetch %s (%s) offset=%d limit=%d ===",
                request.mailbox_kind, request.order, request.offset, request.limit,
            )
            result = self.uc.run(request)
        except MailFetchError as exc:
            log = logger.warning if isinstance(exc, CallerInputError) else logger.error
            log("Fetch rechazado [%s]: %s", exc.kind, exc.message)
            return exc.status, exc.to_dict()
        except Exception as exc:
            logger.exception("Error inesperado obteniendo correos")
            return 500, {"error": str(exc) or "Failed to fetch emails", "kind": "internal_error"}

        if result.partial:
            logger.warning("Resultado parcial: %d mensajes", result.total)
        logger.info("Devueltos %d mensajes", result.total)
        return 200, result.to_dict()

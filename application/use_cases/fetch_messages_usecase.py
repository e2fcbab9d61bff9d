# application/use_cases/fetch_messages_usecase.py
from __future__ import annotations
import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Mapping, Optional, Protocol

from application.services.message_parser import parse_header_block, render_preview
from domain.errors import FetchCommandError, MailFetchError, MessageParseError
from domain.filters import FilterCandidate, MessageFilters, matches
from domain.header_extractor import (
    Observer,
    extract_auth_results,
    extract_auxiliary,
    extract_origin_ip,
    extract_recipients,
    extract_sender,
    header_value,
    header_values,
)
from domain.models import NO_SUBJECT, ExtractedMessage, FetchRequest, FetchResult, RawMessage, SequenceWindow
from domain.sequence_window import compute_window
from infrastructure.email.imap_client import resolve_folder

logger = logging.getLogger(__name__)


class MailboxSession(Protocol):
    def open(self, folder: str) -> int: ...
    def fetch_range(self, window: SequenceWindow) -> list[RawMessage]: ...
    def close(self) -> None: ...


SessionFactory = Callable[[FetchRequest], MailboxSession]


class FetchMessagesUseCase:
    def __init__(
        self,
        *,
        session_factory: SessionFactory,
        folder_map: Mapping[str, str] | None = None,
        grace_period: float = 5.0,
        preview_max_chars: int = 200,
        observer: Optional[Observer] = None,
        max_workers: int = 8,
    ) -> None:
        self.session_factory = session_factory
        self.folder_map = folder_map
        self.grace_period = grace_period
        self.preview_max_chars = preview_max_chars
        self.observer = observer
        self.max_workers = max_workers

    def run(self, request: FetchRequest) -> FetchResult:
        return asyncio.run(self.execute(request))

    async def execute(self, request: FetchRequest) -> FetchResult:
        """
        Abre sesión, calcula la ventana, hace un FETCH y procesa cada mensaje
        en su propia task. Errores de página se propagan; errores de mensaje no.
        """
        folder = resolve_folder(request.mailbox_kind, self.folder_map)
        filters = MessageFilters(
            search=request.search,
            from_domain=request.from_domain,
            from_address=request.from_address,
            to_substring=request.to_substring,
        )

        session = self.session_factory(request)
        try:
            total = await asyncio.to_thread(session.open, folder)
            if total == 0:
                logger.info("Buzón %s vacío", folder)
                return FetchResult(mailbox_kind=request.mailbox_kind, results=[])

            window = compute_window(total, request.offset, request.limit, request.order)
            assert window is not None
            logger.info(
                "Ventana %s (%s, offset=%d, limit=%d, total=%d)",
                window.as_imap_range(), request.order, request.offset, request.limit, total,
            )

            try:
                raw_messages = await asyncio.to_thread(session.fetch_range, window)
            except MailFetchError:
                raise
            except Exception as exc:
                raise FetchCommandError(f"IMAP fetch error: {exc}") from exc

            accepted, partial = await self._collect(raw_messages, window, request, filters)
        finally:
            await asyncio.to_thread(session.close)

        accepted.sort(key=_sort_key, reverse=request.order == "desc")
        return FetchResult(mailbox_kind=request.mailbox_kind, results=accepted, partial=partial)

    # ───────────────────────── por mensaje ─────────────────────────
    async def _collect(
        self,
        raw_messages: list[RawMessage],
        window: SequenceWindow,
        request: FetchRequest,
        filters: MessageFilters,
    ) -> tuple[list[ExtractedMessage], bool]:
        if not raw_messages:
            return [], True

        # Pool propio: al vencer la gracia se suelta sin esperar a los hilos colgados
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(raw_messages)),
            thread_name_prefix="fetch-parse",
        )
        try:
            tasks = [
                asyncio.create_task(self._process(executor, raw, request.mailbox_kind, filters))
                for raw in raw_messages
            ]
            if len(raw_messages) >= window.size:
                outcomes = await asyncio.gather(*tasks)
                return [m for m in outcomes if m is not None], False

            # El stream terminó antes de tiempo: espera acotada y se devuelve lo que haya
            logger.warning(
                "FETCH incompleto: %d/%d mensajes; esperando %.1fs",
                len(raw_messages), window.size, self.grace_period,
            )
            done, pending = await asyncio.wait(tasks, timeout=self.grace_period)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("%d mensajes descartados tras el periodo de gracia", len(pending))
            ordered = [t.result() for t in tasks if t in done]
            return [m for m in ordered if m is not None], True
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    async def _process(
        self,
        executor: Executor,
        raw: RawMessage,
        mailbox_kind: str,
        filters: MessageFilters,
    ) -> ExtractedMessage | None:
        loop = asyncio.get_running_loop()
        try:
            headers = await loop.run_in_executor(executor, parse_header_block, raw.header)
            preview = await loop.run_in_executor(
                executor, render_preview, raw.header, raw.body, self.preview_max_chars
            )
            message = self._build(raw, headers, preview, mailbox_kind)
        except MessageParseError as exc:
            logger.warning("Mensaje seq=%d uid=%s omitido: %s", raw.seq, raw.uid, exc)
            return None
        except Exception:
            logger.exception("Error procesando mensaje seq=%d uid=%s", raw.seq, raw.uid)
            return None

        candidate = FilterCandidate(
            subject=message.subject,
            from_header=message.from_header,
            from_address=message.sender.address,
            from_domain=message.sender.domain,
            recipients=message.recipients,
            preview=message.preview,
        )
        return message if matches(filters, candidate) else None

    def _build(self, raw: RawMessage, headers, preview: str, mailbox_kind: str) -> ExtractedMessage:
        from_header = header_value(headers, "from")
        to_header = ", ".join(header_values(headers, "to"))
        return ExtractedMessage(
            uid=raw.uid,
            subject=header_value(headers, "subject") or NO_SUBJECT,
            from_header=from_header,
            sender=extract_sender(from_header),
            to_header=to_header,
            recipients=tuple(extract_recipients(to_header)),
            date=raw.internal_date,
            preview=preview,
            mailbox_kind=mailbox_kind,
            origin_ip=extract_origin_ip(headers, self.observer),
            verdicts=extract_auth_results(headers, self.observer),
            auxiliary=extract_auxiliary(headers),
        )


def _sort_key(message: ExtractedMessage) -> float:
    return message.date.timestamp() if message.date else 0.0

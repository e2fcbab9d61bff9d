from __future__ import annotations

from datetime import datetime, timedelta

from domain.models import Credentials, FetchRequest, RawMessage, SequenceWindow


BASE_DATE = datetime(2026, 2, 16, 10, 0, 0)


def make_header_block(
    *,
    sender: str = '"Jane Doe" <jane@Example.COM>',
    to: str = "main@example.test",
    subject: str = "Test message",
    extra: tuple[str, ...] = (),
) -> bytes:
    lines = [
        "Received: from mail.example.com (mail.example.com [203.0.113.5])\r\n"
        "\tby mx.example.test with ESMTPS id abc123",
        "Authentication-Results: mx.example.test; spf=pass dkim=pass dmarc=pass",
        f"From: {sender}",
        f"To: {to}",
        f"Subject: {subject}",
        "Message-ID: <msg@example.com>",
        "MIME-Version: 1.0",
        "Content-Type: text/plain; charset=utf-8",
        *extra,
    ]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def make_raw_message(
    seq: int,
    *,
    header: bytes | None = None,
    body: bytes = b"Hello from the body.\r\n",
    minutes: int | None = None,
    **header_kwargs,
) -> RawMessage:
    return RawMessage(
        seq=seq,
        uid=str(1000 + seq),
        internal_date=BASE_DATE + timedelta(minutes=seq if minutes is None else minutes),
        header=header if header is not None else make_header_block(**header_kwargs),
        body=body,
    )


def make_request(**overrides) -> FetchRequest:
    values = {
        "credentials": Credentials(email="main@example.test", app_password="app-password"),
        "mailbox_kind": "inbox",
        "order": "desc",
        "offset": 1,
        "limit": 10,
    }
    values.update(overrides)
    return FetchRequest(**values)


class FakeSession:
    """Sesión en memoria: mensajes 1..N; ``fetch_range`` devuelve la ventana."""

    def __init__(
        self,
        messages: list[RawMessage] | None = None,
        *,
        open_error: Exception | None = None,
        fetch_error: Exception | None = None,
        drop_seqs: set[int] | None = None,
    ) -> None:
        self.messages = messages or []
        self.open_error = open_error
        self.fetch_error = fetch_error
        self.drop_seqs = drop_seqs or set()
        self.opened_folder: str | None = None
        self.fetched_windows: list[SequenceWindow] = []
        self.close_calls = 0

    def open(self, folder: str) -> int:
        if self.open_error is not None:
            raise self.open_error
        self.opened_folder = folder
        return len(self.messages)

    def fetch_range(self, window: SequenceWindow) -> list[RawMessage]:
        self.fetched_windows.append(window)
        if self.fetch_error is not None:
            raise self.fetch_error
        return [
            m for m in self.messages
            if window.start <= m.seq <= window.end and m.seq not in self.drop_seqs
        ]

    def close(self) -> None:
        self.close_calls += 1

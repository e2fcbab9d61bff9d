# domain/errors.py
from __future__ import annotations


class MailFetchError(Exception):
    """Error de página: llega al llamador con un ``kind`` y un status HTTP."""

    kind = "fetch_error"
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "kind": self.kind}


class CallerInputError(MailFetchError):
    kind = "invalid_request"
    status = 400


class MissingCredentialsError(CallerInputError):
    kind = "missing_credentials"


class MailboxConnectionError(MailFetchError):
    kind = "connection_failed"
    status = 502


class AuthenticationError(MailboxConnectionError):
    kind = "authentication_failed"
    status = 401


class MailboxOpenError(MailFetchError):
    kind = "mailbox_unavailable"
    status = 502


class FetchCommandError(MailFetchError):
    kind = "fetch_failed"
    status = 502


class MessageParseError(Exception):
    """Fallo local de un solo mensaje; nunca sale del orquestador."""

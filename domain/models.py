# domain/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

MailboxKind = Literal["inbox", "spam"]
SortOrder = Literal["asc", "desc"]

UNKNOWN_IP = "Unknown"
NO_SUBJECT = "(No Subject)"


@dataclass(frozen=True)
class Credentials:
    email: str
    app_password: str = field(repr=False)


@dataclass(frozen=True)
class SequenceWindow:
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def as_imap_range(self) -> str:
        return f"{self.start}:{self.end}"


@dataclass
class RawMessage:
    seq: int
    uid: str
    internal_date: datetime | None
    header: bytes | None
    body: bytes = b""


@dataclass(frozen=True)
class SenderIdentity:
    name: str
    address: str
    domain: str


@dataclass(frozen=True)
class AuthVerdicts:
    spf: str = "none"
    dkim: str = "none"
    dmarc: str = "none"


@dataclass(frozen=True)
class AuxiliaryHeaders:
    feedback_id: str = ""
    list_id: str = ""
    content_type: str = ""
    message_id: str = ""
    received: str = ""
    sender: str = ""
    list_unsubscribe: str = ""
    mime_version: str = ""


@dataclass(frozen=True)
class ExtractedMessage:
    uid: str
    subject: str
    from_header: str
    sender: SenderIdentity
    to_header: str
    recipients: tuple[str, ...]
    date: datetime | None
    preview: str
    mailbox_kind: str
    origin_ip: str
    verdicts: AuthVerdicts
    auxiliary: AuxiliaryHeaders

    @property
    def message_id(self) -> str:
        return self.auxiliary.message_id

    def to_dict(self) -> dict[str, Any]:
        aux = self.auxiliary
        return {
            "uid": self.uid,
            "messageId": aux.message_id,
            "subject": self.subject,
            "from": self.from_header,
            "fromName": self.sender.name,
            "fromEmail": self.sender.address,
            "fromDomain": self.sender.domain,
            "to": self.to_header,
            "recipients": list(self.recipients),
            "date": self.date.isoformat() if self.date else None,
            "preview": self.preview,
            "mailbox": self.mailbox_kind,
            "ip": self.origin_ip,
            "spfStatus": self.verdicts.spf,
            "dkimStatus": self.verdicts.dkim,
            "dmarcStatus": self.verdicts.dmarc,
            "feedbackId": aux.feedback_id,
            "listId": aux.list_id,
            "contentType": aux.content_type,
            "received": aux.received,
            "sender": aux.sender,
            "listUnsubscribe": aux.list_unsubscribe,
            "mimeVersion": aux.mime_version,
        }


@dataclass(frozen=True)
class FetchRequest:
    credentials: Credentials
    mailbox_kind: str = "inbox"
    order: SortOrder = "desc"
    offset: int = 1
    limit: int = 10
    search: str = ""
    from_domain: str = ""
    from_address: str = ""
    to_substring: str = ""


@dataclass
class FetchResult:
    mailbox_kind: str
    results: list[ExtractedMessage]
    partial: bool = False

    @property
    def total(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [m.to_dict() for m in self.results],
            "total": self.total,
            "mailboxKind": self.mailbox_kind,
        }

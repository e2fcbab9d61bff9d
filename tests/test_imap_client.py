from __future__ import annotations

from datetime import datetime

import pytest
from imapclient.exceptions import IMAPClientError, LoginError

import infrastructure.email.imap_client as imap_module
from domain.errors import (
    AuthenticationError,
    CallerInputError,
    FetchCommandError,
    MailboxConnectionError,
    MailboxOpenError,
)
from domain.models import SequenceWindow
from infrastructure.email.imap_client import IMAPInbox, resolve_folder
from tests.helpers import make_header_block


class FakeIMAPClient:
    instances: list["FakeIMAPClient"] = []

    def __init__(self, host, port=None, ssl=True, timeout=None, **kwargs) -> None:
        self.host = host
        self.port = port
        self.ssl = ssl
        self.timeout = timeout
        self.use_uid = True
        self.login_error: Exception | None = None
        self.select_error: Exception | None = None
        self.fetch_error: Exception | None = None
        self.logout_calls = 0
        self.selected: tuple[str, bool] | None = None
        self.fetch_calls: list[tuple[object, list[str], bool]] = []
        self.exists = 3
        FakeIMAPClient.instances.append(self)

    def login(self, user, password):
        if self.login_error is not None:
            raise self.login_error
        return b"LOGIN completed"

    def select_folder(self, folder, readonly=False):
        if self.select_error is not None:
            raise self.select_error
        self.selected = (folder, readonly)
        return {b"EXISTS": self.exists, b"UIDVALIDITY": 1}

    def fetch(self, messages, data):
        self.fetch_calls.append((messages, list(data), self.use_uid))
        if self.fetch_error is not None:
            raise self.fetch_error
        return {
            3: {
                b"SEQ": 3,
                b"UID": 503,
                b"INTERNALDATE": datetime(2026, 2, 16, 12, 0),
                b"BODY[HEADER]": make_header_block(),
                b"BODY[TEXT]": b"third",
            },
            2: {
                b"SEQ": 2,
                b"UID": 502,
                b"INTERNALDATE": datetime(2026, 2, 16, 11, 0),
                b"BODY[TEXT]": b"no header",
            },
        }

    def logout(self):
        self.logout_calls += 1
        return b"LOGOUT"


@pytest.fixture
def fake_client(monkeypatch):
    FakeIMAPClient.instances = []
    monkeypatch.setattr(imap_module, "IMAPClient", FakeIMAPClient)
    return FakeIMAPClient


def make_inbox() -> IMAPInbox:
    return IMAPInbox("imap.example.test", 993, "main@example.test", "secret", ssl=True, timeout=7)


def test_resolve_folder() -> None:
    assert resolve_folder("inbox") == "INBOX"
    assert resolve_folder("spam") == "[Gmail]/Spam"
    assert resolve_folder("spam", {"inbox": "INBOX", "spam": "Junk"}) == "Junk"
    with pytest.raises(CallerInputError):
        resolve_folder("archive")


def test_open_selects_folder_readonly_and_returns_count(fake_client) -> None:
    inbox = make_inbox()

    total = inbox.open("INBOX")

    client = fake_client.instances[0]
    assert total == 3
    assert client.timeout == 7
    assert client.selected == ("INBOX", True)
    assert inbox.is_open


def test_fetch_range_uses_sequence_numbers(fake_client) -> None:
    inbox = make_inbox()
    inbox.open("INBOX")

    messages = inbox.fetch_range(SequenceWindow(2, 3))

    messages_arg, items, use_uid = fake_client.instances[0].fetch_calls[0]
    assert messages_arg == "2:3"
    assert use_uid is False
    assert "BODY.PEEK[HEADER]" in items and "BODY.PEEK[TEXT]" in items
    assert [m.seq for m in messages] == [2, 3]
    assert messages[0].uid == "502"
    assert messages[0].header is None
    assert messages[1].body == b"third"
    assert messages[1].internal_date == datetime(2026, 2, 16, 12, 0)


def test_login_error_maps_to_authentication_error(fake_client, monkeypatch) -> None:
    original_init = FakeIMAPClient.__init__

    def init(self, *args, **kwargs):
        original_init(self, *args, **kwargs)
        self.login_error = LoginError("[AUTHENTICATIONFAILED] Invalid credentials")

    monkeypatch.setattr(FakeIMAPClient, "__init__", init)
    inbox = make_inbox()

    with pytest.raises(AuthenticationError) as excinfo:
        inbox.open("INBOX")
    assert excinfo.value.status == 401
    assert not inbox.is_open
    assert fake_client.instances[0].logout_calls == 1


def test_network_error_maps_to_connection_error(monkeypatch) -> None:
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(imap_module, "IMAPClient", refuse)

    with pytest.raises(MailboxConnectionError) as excinfo:
        make_inbox().open("INBOX")
    assert not isinstance(excinfo.value, AuthenticationError)


def test_select_error_maps_to_mailbox_open_error(fake_client, monkeypatch) -> None:
    original_init = FakeIMAPClient.__init__

    def init(self, *args, **kwargs):
        original_init(self, *args, **kwargs)
        self.select_error = IMAPClientError("select failed: NONEXISTENT")

    monkeypatch.setattr(FakeIMAPClient, "__init__", init)

    with pytest.raises(MailboxOpenError):
        make_inbox().open("[Gmail]/Spam")


def test_fetch_error_maps_to_fetch_command_error(fake_client) -> None:
    inbox = make_inbox()
    inbox.open("INBOX")
    fake_client.instances[0].fetch_error = IMAPClientError("FETCH failed")

    with pytest.raises(FetchCommandError):
        inbox.fetch_range(SequenceWindow(1, 3))


def test_fetch_without_session_fails() -> None:
    with pytest.raises(FetchCommandError):
        make_inbox().fetch_range(SequenceWindow(1, 1))


def test_close_is_idempotent(fake_client) -> None:
    inbox = make_inbox()
    inbox.open("INBOX")

    inbox.close()
    inbox.close()

    assert fake_client.instances[0].logout_calls == 1
    assert not inbox.is_open


def test_close_swallows_logout_failure(fake_client) -> None:
    inbox = make_inbox()
    inbox.open("INBOX")

    def broken_logout():
        raise OSError("socket closed")

    fake_client.instances[0].logout = broken_logout

    inbox.close()

    assert not inbox.is_open


def test_context_manager_closes(fake_client) -> None:
    with make_inbox() as inbox:
        inbox.open("INBOX")
    assert fake_client.instances[0].logout_calls == 1


def test_fetch_range_ignores_responses_outside_window(fake_client) -> None:
    inbox = make_inbox()
    inbox.open("INBOX")

    # el servidor devuelve también seq 2 (p. ej. un FLAGS no solicitado)
    messages = inbox.fetch_range(SequenceWindow(3, 3))

    assert [m.seq for m in messages] == [3]
    assert messages[0].uid == "503"

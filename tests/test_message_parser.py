from __future__ import annotations

import pytest

from application.services.message_parser import (
    PREVIEW_FALLBACK,
    decode_header_text,
    parse_header_block,
    render_preview,
)
from domain.errors import MessageParseError
from tests.helpers import make_header_block


def test_parse_header_block_lowercases_names_and_keeps_order() -> None:
    headers = parse_header_block(
        make_header_block(extra=("Received: from second.example ([198.51.100.9])",))
    )

    assert headers["from"] == ['"Jane Doe" <jane@Example.COM>']
    assert headers["subject"] == ["Test message"]
    assert len(headers["received"]) == 2
    # la línea plegada se une en una sola
    assert headers["received"][0].startswith("from mail.example.com")
    assert "by mx.example.test" in headers["received"][0]


def test_parse_header_block_decodes_encoded_words() -> None:
    headers = parse_header_block(make_header_block(subject="=?utf-8?q?Caf=C3=A9?="))

    assert headers["subject"] == ["Café"]


def test_parse_header_block_missing_raises() -> None:
    with pytest.raises(MessageParseError):
        parse_header_block(None)
    with pytest.raises(MessageParseError):
        parse_header_block(b"\r\n")


def test_decode_header_text_plain() -> None:
    assert decode_header_text("  plain value ") == "plain value"


def test_render_preview_plain_text_is_truncated() -> None:
    header = make_header_block()
    body = ("word " * 100).encode("utf-8")

    preview = render_preview(header, body, max_chars=20)

    assert preview == "word word word word "


def test_render_preview_html_strips_tags() -> None:
    header = make_header_block(extra=()).replace(
        b"Content-Type: text/plain; charset=utf-8", b"Content-Type: text/html; charset=utf-8"
    )
    body = b"<html><body><p>Hello <b>there</b></p></body></html>"

    assert render_preview(header, body) == "Hello there"


def test_render_preview_failure_returns_fallback(monkeypatch) -> None:
    import application.services.message_parser as parser_module

    def boom(*args, **kwargs):
        raise ValueError("corrupt")

    monkeypatch.setattr(parser_module.pyzmail.PyzMessage, "factory", boom)

    assert render_preview(make_header_block(), b"body") == PREVIEW_FALLBACK

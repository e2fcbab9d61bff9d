# application/services/message_parser.py
from __future__ import annotations
import logging
import re
from email import policy
from email.header import decode_header, make_header
from email.parser import BytesHeaderParser

import pyzmail

from domain.errors import MessageParseError
from domain.header_extractor import HeaderMap

logger = logging.getLogger(__name__)

PREVIEW_FALLBACK = "Unable to parse email content"
_TAG_RE = re.compile(r"<[^>]*>")
_FOLD_RE = re.compile(r"\r?\n[ \t]+")


def decode_header_text(value: str) -> str:
    """Decodifica encoded-words (RFC 2047) y une las líneas plegadas."""
    unfolded = _FOLD_RE.sub(" ", value or "").strip()
    try:
        return str(make_header(decode_header(unfolded)))
    except Exception:
        return unfolded


def parse_header_block(raw: bytes | None) -> HeaderMap:
    if not raw or not raw.strip():
        raise MessageParseError("No headers found")
    try:
        msg = BytesHeaderParser(policy=policy.compat32).parsebytes(raw)
    except Exception as exc:
        raise MessageParseError(f"Unparseable header block: {exc}") from exc

    headers: HeaderMap = {}
    for name, value in msg.items():
        headers.setdefault(name.lower(), []).append(decode_header_text(str(value)))
    if not headers:
        raise MessageParseError("No headers found")
    return headers


def _decode_part(part) -> str:
    payload = part.get_payload()
    if isinstance(payload, bytes):
        charset = part.charset or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except LookupError:
            return payload.decode("utf-8", errors="replace")
    return str(payload or "")


def render_preview(header: bytes | None, body: bytes, max_chars: int = 200) -> str:
    """Texto corto del cuerpo: text/plain si existe, si no HTML sin etiquetas."""
    try:
        msg = pyzmail.PyzMessage.factory((header or b"") + (body or b""))
        if msg.text_part is not None:
            text = _decode_part(msg.text_part)
        elif msg.html_part is not None:
            text = _TAG_RE.sub("", _decode_part(msg.html_part))
        else:
            text = ""
        return text.strip()[:max_chars]
    except Exception:
        logger.debug("No se pudo renderizar el preview", exc_info=True)
        return PREVIEW_FALLBACK

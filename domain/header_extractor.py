# domain/header_extractor.py
"""
Extracción forense de campos de cabecera.

Todo son funciones puras sobre un ``HeaderMap`` (nombres en minúscula, lista de
valores en orden de llegada). Los diagnósticos no van a ``logging`` directamente:
se pasa un observer opcional ``(evento, detalle) -> None``.
"""
from __future__ import annotations
import ipaddress
import logging
import re
from typing import Callable, Optional, Sequence

from domain.models import UNKNOWN_IP, AuthVerdicts, AuxiliaryHeaders, SenderIdentity

HeaderMap = dict[str, list[str]]
Observer = Callable[[str, str], None]
IpStrategy = Callable[[HeaderMap, Optional[Observer]], Optional[str]]

ADDRESS_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
NAME_ADDRESS_RE = re.compile(r"^(.+?)\s*<([^>]+)>$")

IPV4_TOKEN_RE = re.compile(r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b")
IPV4_SHAPE_RE = re.compile(r"^(?:[0-9]{1,3}\.){3}[0-9]{1,3}$")
IPV6_SHAPE_RE = re.compile(r"^[A-F0-9:]+$", re.IGNORECASE)

# Campos que suelen traer la IP de origen, por prioridad
ORIGIN_IP_FIELDS = (
    "x-originating-ip",
    "x-sender-ip",
    "received",
    "x-mailgun-sending-ip",
    "x-postmark-spamcheck",
    "x-spamcop-source-ip",
    "x-remote-ip",
    "x-sender",
    "x-sender-ip-address",
)

_IP = r"([0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3})"
RECEIVED_IP_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("from-bracketed", re.compile(r"from\s+.*?\[" + _IP + r"\]", re.IGNORECASE)),
    ("parenthesized-bracketed", re.compile(r"\(.*?\[" + _IP + r"\].*?\)", re.IGNORECASE)),
    ("from-parenthesized", re.compile(r"from\s+.*?\(" + _IP + r"\)", re.IGNORECASE)),
    ("bracketed", re.compile(r"\[" + _IP + r"\]")),
    ("bare", re.compile(r"\b" + _IP + r"\b")),
)

AUTH_MECHANISM_RES = {
    "spf": re.compile(r"spf=([a-z]+)", re.IGNORECASE),
    "dkim": re.compile(r"dkim=([a-z]+)", re.IGNORECASE),
    "dmarc": re.compile(r"dmarc=([a-z]+)", re.IGNORECASE),
}
# "fail" va antes que "softfail": se conserva el orden de comprobación histórico
RECEIVED_SPF_KEYWORDS = ("pass", "fail", "softfail", "neutral")


def logging_observer(log: logging.Logger, level: int = logging.DEBUG) -> Observer:
    def _observe(event: str, detail: str) -> None:
        log.log(level, "%s: %s", event, detail)
    return _observe


def _notify(observer: Optional[Observer], event: str, detail: str) -> None:
    if observer is not None:
        observer(event, detail)


# ───────────────────────── lookups ─────────────────────────
def header_value(headers: HeaderMap, name: str) -> str:
    values = headers.get(name.lower()) or []
    return values[0] if values else ""


def header_values(headers: HeaderMap, name: str) -> list[str]:
    return list(headers.get(name.lower()) or [])


def extract_auxiliary(headers: HeaderMap) -> AuxiliaryHeaders:
    return AuxiliaryHeaders(
        feedback_id=header_value(headers, "feedback-id"),
        list_id=header_value(headers, "list-id"),
        content_type=header_value(headers, "content-type"),
        message_id=header_value(headers, "message-id"),
        received=header_value(headers, "received"),
        sender=header_value(headers, "sender"),
        list_unsubscribe=header_value(headers, "list-unsubscribe"),
        mime_version=header_value(headers, "mime-version"),
    )


# ───────────────────────── identidad ─────────────────────────
def extract_sender(from_header: str) -> SenderIdentity:
    raw = (from_header or "").strip()
    name = ""
    match = NAME_ADDRESS_RE.match(raw)
    if match:
        name = match.group(1).replace('"', "").replace("'", "").strip()
        address = match.group(2).strip()
    else:
        found = ADDRESS_RE.search(raw)
        address = found.group(0) if found else raw

    local, _, domain = address.partition("@")
    return SenderIdentity(
        name=name or local,
        address=address.lower(),
        domain=domain.lower(),
    )


def extract_recipients(to_header: str) -> list[str]:
    if not to_header:
        return []
    return [m.lower() for m in ADDRESS_RE.findall(to_header)]


# ───────────────────────── IP de origen ─────────────────────────
_PRIVATE_NETS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "127.0.0.0/8")
)


def is_valid_ip(candidate: str) -> bool:
    if IPV4_SHAPE_RE.match(candidate):
        return all(0 <= int(part) <= 255 for part in candidate.split("."))
    # IPv6 permisivo: basta con hex y ':'
    return bool(IPV6_SHAPE_RE.match(candidate))


def is_private_ip(candidate: str) -> bool:
    try:
        addr = ipaddress.IPv4Address(candidate)
    except ValueError:
        return False
    return any(addr in net for net in _PRIVATE_NETS)


def ip_from_direct_fields(headers: HeaderMap, observer: Optional[Observer] = None) -> Optional[str]:
    for name in ORIGIN_IP_FIELDS:
        values = header_values(headers, name)
        if not values:
            continue
        joined = " ".join(values)
        _notify(observer, "ip.field", f"{name}={joined[:200]}")
        match = IPV4_TOKEN_RE.search(joined)
        if not match or not is_valid_ip(match.group(0)):
            continue
        if name == "received" and is_private_ip(match.group(0)):
            # el salto local (127.0.0.1, 10/8...) de un Received no es el origen
            _notify(observer, "ip.private", f"{name}: {match.group(0)}")
            continue
        _notify(observer, "ip.found", f"{name} -> {match.group(0)}")
        return match.group(0)
    return None


def ip_from_received_chain(headers: HeaderMap, observer: Optional[Observer] = None) -> Optional[str]:
    for index, line in enumerate(header_values(headers, "received")):
        _notify(observer, "ip.received", f"[{index}] {line[:300]}")
        for label, pattern in RECEIVED_IP_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            candidate = match.group(1)
            if not is_valid_ip(candidate):
                _notify(observer, "ip.invalid", f"{label}: {candidate}")
                continue
            if is_private_ip(candidate):
                _notify(observer, "ip.private", f"{label}: {candidate}")
                continue
            _notify(observer, "ip.found", f"{label}: {candidate}")
            return candidate
    return None


IP_STRATEGIES: tuple[IpStrategy, ...] = (ip_from_direct_fields, ip_from_received_chain)


def extract_origin_ip(
    headers: HeaderMap,
    observer: Optional[Observer] = None,
    strategies: Sequence[IpStrategy] = IP_STRATEGIES,
) -> str:
    for strategy in strategies:
        try:
            found = strategy(headers, observer)
        except Exception as exc:
            _notify(observer, "ip.error", f"{getattr(strategy, '__name__', strategy)}: {exc}")
            continue
        if found:
            return found
    _notify(observer, "ip.unknown", "no candidate qualified")
    return UNKNOWN_IP


# ───────────────────────── SPF / DKIM / DMARC ─────────────────────────
def extract_auth_results(headers: HeaderMap, observer: Optional[Observer] = None) -> AuthVerdicts:
    try:
        verdicts = {mech: "none" for mech in AUTH_MECHANISM_RES}
        auth_results = header_value(headers, "authentication-results")
        if auth_results:
            _notify(observer, "auth.results", auth_results)
            for mech, pattern in AUTH_MECHANISM_RES.items():
                match = pattern.search(auth_results)
                if match:
                    verdicts[mech] = match.group(1).lower()

        received_spf = header_value(headers, "received-spf").lower()
        if received_spf and verdicts["spf"] == "none":
            for keyword in RECEIVED_SPF_KEYWORDS:
                if keyword in received_spf:
                    verdicts["spf"] = keyword
                    break

        _notify(observer, "auth.verdicts", ", ".join(f"{k}={v}" for k, v in verdicts.items()))
        return AuthVerdicts(**verdicts)
    except Exception as exc:
        _notify(observer, "auth.error", str(exc))
        return AuthVerdicts()

# domain/filters.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class MessageFilters:
    search: str = ""
    from_domain: str = ""
    from_address: str = ""
    to_substring: str = ""

    def is_empty(self) -> bool:
        return not (self.search or self.from_domain or self.from_address or self.to_substring)


@dataclass(frozen=True)
class FilterCandidate:
    subject: str
    from_header: str
    from_address: str
    from_domain: str
    recipients: tuple[str, ...]
    preview: str


def _search_ok(term: str, c: FilterCandidate) -> bool:
    if not term:
        return True
    t = term.lower()
    return any(t in (text or "").lower() for text in (c.subject, c.from_header, c.from_address, c.preview))


def _recipient_ok(fragment: str, recipients: Iterable[str]) -> bool:
    if not fragment:
        return True
    f = fragment.lower()
    return any(f in r for r in recipients)


def matches(filters: MessageFilters, candidate: FilterCandidate) -> bool:
    """Todos los filtros son AND; un filtro vacío siempre se cumple."""
    if not _search_ok(filters.search, candidate):
        return False
    if filters.from_domain and candidate.from_domain.lower() != filters.from_domain.lower():
        return False
    if filters.from_address and candidate.from_address.lower() != filters.from_address.lower():
        return False
    return _recipient_ok(filters.to_substring, candidate.recipients)

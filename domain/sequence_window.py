# domain/sequence_window.py
from __future__ import annotations

from domain.models import SequenceWindow, SortOrder


def compute_window(total: int, offset: int, limit: int, order: SortOrder) -> SequenceWindow | None:
    """
    Traduce (offset, limit, order) a un rango de números de secuencia IMAP.

    Los números de secuencia crecen con la llegada, así que en orden "desc"
    el offset 1 apunta a la cola del buzón (los N más recientes).
    Devuelve None si el buzón está vacío.
    """
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    if offset < 1 or limit < 1:
        raise ValueError(f"offset and limit must be >= 1 (offset={offset}, limit={limit})")
    if total == 0:
        return None

    if order == "desc":
        start = max(1, total - offset - limit + 2)
        end = total - offset + 1
    else:
        start = max(1, offset)
        end = min(total, offset + limit - 1)

    # offset > total deja el rango fuera del buzón: se recorta a [1, total]
    start = max(1, min(start, total))
    end = max(start, min(end, total))
    return SequenceWindow(start=start, end=end)

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from rich.markup import escape
from rich.text import Text


VALUE_STYLES: dict[str, str] = {
    "hash": "blue",
    "peerId": "green",
    "number": "magenta",
    "highlight": "yellow",
    "failure": "red",
    "success": "green",
    "muted": "grey50",
}


def style_value(value: Any, kind: str | None = None) -> str:
    """Render a value as rich markup.

    Without ``kind``, numbers get the ``number`` style and anything else is
    returned escaped but unstyled.
    """

    if kind is None:
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            kind = "number"
        else:
            return escape(str(value))
    text = escape(str(value))
    style = VALUE_STYLES.get(kind)
    if not style:
        return text
    return f"[{style}]{text}[/{style}]"


def plain_text(markup: str) -> str:
    return Text.from_markup(markup).plain


def get_padding_length(items: Iterable[str]) -> int:
    lengths = [len(item) for item in items]
    if not lengths:
        return 0
    return max(lengths) + 1


def move_decimal_point(value: int | str | Decimal, places: int) -> str:
    """Shift ``value`` by ``places`` decimal digits (negative moves left)."""

    shifted = Decimal(str(value)).scaleb(places)
    if shifted.is_zero():
        return "0"
    return format(shifted.normalize(), "f")


def encode_message(text: str) -> bytes:
    return text.encode("utf-8")


def decode_message(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")

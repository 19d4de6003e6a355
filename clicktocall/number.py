"""Extraction of a dialable number from an OS-delivered telephone link.

Accepts ``tel:`` and ``callto:`` links (case-insensitive, with or without
``//``) as well as bare numbers typed by hand.  The result is an optional
single leading ``+`` followed by ASCII digits in their original order.

Examples:
    >>> normalize("tel:+1-555-123-4567")
    '+15551234567'
    >>> normalize("callto://(030) 1234 56")
    '030123456'
"""

import re
from urllib.parse import unquote

from clicktocall.errors import InvalidNumber

SUPPORTED_SCHEMES: tuple[str, ...] = ("tel", "callto")

_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*):(?://)?")
_NON_DIGITS_RE = re.compile(r"[^0-9]")


def _strip_scheme(text: str) -> str:
    match = _SCHEME_RE.match(text)
    if match is None:
        return text
    scheme = match.group("scheme").lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise InvalidNumber(f"Unsupported link scheme '{scheme}:'")
    return text[match.end() :]


def normalize(raw_argument: str) -> str:
    """Turn a raw link or typed number into a dialable number.

    Args:
        raw_argument: The argument exactly as delivered by the OS, e.g.
            ``"tel:+1 (555) 123-4567;ext=12"``.

    Returns:
        The cleaned number, e.g. ``"+15551234567"``.

    Raises:
        InvalidNumber: If the scheme is not supported or no digit remains.
    """
    text = unquote(raw_argument or "").strip()
    payload = _strip_scheme(text)

    # RFC 3966 parameters (;ext=, ;phone-context=) and stray query strings
    payload = re.split(r"[;?]", payload, maxsplit=1)[0].strip()

    digits = _NON_DIGITS_RE.sub("", payload)
    if not digits:
        raise InvalidNumber(f"No digits to dial in {raw_argument!r}")

    return f"+{digits}" if payload.startswith("+") else digits


def is_link(argument: str) -> bool:
    """Return ``True`` if *argument* starts with a supported scheme prefix."""
    match = _SCHEME_RE.match(argument.strip())
    return match is not None and match.group("scheme").lower() in SUPPORTED_SCHEMES


def find_link_argument(argv: list[str]) -> str | None:
    """Return the first argument in *argv* that looks like a telephone link.

    Some desktops launch the handler with the link as a bare argument
    instead of ``dial <link>``.
    """
    for arg in argv:
        if is_link(arg):
            return arg
    return None

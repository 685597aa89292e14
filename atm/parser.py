"""Parser for the dpkg status database.

Each parser takes a bytes object and returns a pair ``(value, rest)`` where
``rest`` is the input left over once the value has been consumed.  A parser
that cannot match raises :class:`ParseError`.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Set, Tuple, TypeVar

T = TypeVar("T")
Parser = Callable[[bytes], Tuple[T, bytes]]


class ParseError(ValueError):
    """Raised when the input does not match the expected grammar."""


def _take_until(data: bytes, token: bytes) -> Tuple[bytes, bytes]:
    index = data.find(token)
    if index < 0:
        raise ParseError(f"expected {token!r}")
    return data[:index], data[index:]


def _literal(data: bytes, token: bytes) -> bytes:
    if not data.startswith(token):
        raise ParseError(f"expected {token!r}")
    return data[len(token):]


def _terminated(parser: Parser, token: bytes) -> Parser:
    def run(data: bytes):
        value, rest = parser(data)
        return value, _literal(rest, token)

    return run


def _repeat1(parser: Parser, data: bytes) -> Tuple[list, bytes]:
    items = []
    while True:
        try:
            item, rest = parser(data)
        except ParseError:
            break
        if len(rest) == len(data):
            raise ParseError("parser made no progress")
        items.append(item)
        data = rest
    if not items:
        raise ParseError("expected at least one match")
    return items, data


def key_name(data: bytes) -> Tuple[bytes, bytes]:
    """Parse a field name: everything up to the next colon."""
    name, rest = _take_until(bytes(data), b":")
    if not name or name[:1] == b"\n":
        raise ParseError("invalid key name")
    return name, rest


def separator(data: bytes) -> Tuple[None, bytes]:
    """Parse a colon followed by optional spaces and tabs."""
    rest = _literal(bytes(data), b":")
    return None, rest.lstrip(b" \t")


def single_line(data: bytes) -> Tuple[bytes, bytes]:
    """Parse everything up to (not including) the next newline."""
    return _take_until(bytes(data), b"\n")


def key_value(data: bytes) -> Tuple[Tuple[bytes, bytes], bytes]:
    """Parse a ``key: value`` pair, leaving the newline unconsumed."""
    key, rest = key_name(data)
    _, rest = separator(rest)
    value, rest = single_line(rest)
    return (key, value), rest


def single_package(data: bytes) -> Tuple[List[Tuple[bytes, bytes]], bytes]:
    """Parse one paragraph of newline-terminated ``key: value`` pairs."""
    return _repeat1(_terminated(key_value, b"\n"), bytes(data))


def extract_name(data: bytes) -> Tuple[bytes, bytes]:
    """Parse one paragraph and return the package name if it is installed.

    The name is empty when the paragraph does not describe an installed package.
    """
    fields, rest = single_package(data)
    found: Optional[bytes] = None
    for key, value in fields:
        if key == b"Package":
            found = value
        if (
            key == b"Status"
            and len(value) > 8
            and value.startswith(b"install ")
            and found is not None
        ):
            return found, rest
    return b"", rest


def extract_all_names(data: bytes) -> Tuple[List[bytes], bytes]:
    """Parse blank-line separated paragraphs, returning one name per paragraph."""
    return _repeat1(_terminated(extract_name, b"\n"), bytes(data))


def list_installed(data: bytes) -> Set[str]:
    """Return the names of all installed packages in a dpkg status file."""
    try:
        names, _ = extract_all_names(data)
    except ParseError as exc:
        raise ParseError("Failed to parse dpkg status file") from exc
    return {name.decode("utf-8", errors="replace") for name in names if name}
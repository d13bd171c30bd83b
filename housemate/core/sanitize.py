"""Sanitization of externally supplied identifiers used as store path segments."""

from typing import overload


@overload
def sanitize_ref(ref: None) -> None: ...


@overload
def sanitize_ref(ref: object) -> str: ...


def sanitize_ref(ref: object | None) -> str | None:
    """Strip every '/' from an identifier so it cannot address another node.

    None passes through unchanged; anything else is coerced to a string first.
    """
    if ref is None:
        return None
    return str(ref).replace("/", "")

"""
Secure random strings for document ids and generated passwords.

Bytes come from os.urandom and are mapped onto the charset with rejection
sampling, so every symbol is equally likely.
"""

import os
from typing import Iterable

# URL-safe alphanumerics without the ambiguous 0, O, 1, l, I
PASSWORD_CHARSET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
PASSWORD_LENGTH = 24

DOCUMENT_ID_CHARSET = PASSWORD_CHARSET
DOCUMENT_ID_LENGTH = 12


def _check_charset(charset: str) -> None:
    if not charset:
        raise ValueError("Charset must not be empty")
    if len(set(charset)) != len(charset):
        raise ValueError("Charset symbols must be unique")
    if len(charset) > 256:
        raise ValueError("Charset cannot hold more than 256 symbols")


def rejection_bound(charset: str) -> int:
    """Bytes at or above this value are discarded."""
    return (256 // len(charset)) * len(charset)


def map_bytes_to_charset(data: Iterable[int], charset: str, length: int, out: list[str]) -> list[str]:
    """
    Append charset symbols drawn from ``data`` to ``out`` until it holds ``length``.

    Shared by the random and the content-derived paths so both apply the
    same rejection rule. Returns ``out``; it may still be short if ``data``
    ran out.
    """
    bound = rejection_bound(charset)
    for byte in data:
        if len(out) >= length:
            break
        if byte < bound:
            out.append(charset[byte % len(charset)])
    return out


def secure_random_string(length: int, charset: str) -> str:
    """
    Generate a cryptographically secure random string over ``charset``.

    Args:
        length: Number of symbols, at least 1
        charset: Non-empty string of unique symbols

    Returns:
        String of exactly ``length`` symbols from ``charset``
    """
    if length < 1:
        raise ValueError("Length must be at least 1")
    _check_charset(charset)

    result: list[str] = []
    while len(result) < length:
        map_bytes_to_charset(os.urandom(length - len(result)), charset, length, result)
    return "".join(result)


def generate_password() -> str:
    """Generate a 24-symbol password for the manual-password flow."""
    return secure_random_string(PASSWORD_LENGTH, PASSWORD_CHARSET)


def generate_document_id() -> str:
    """Generate a 12-symbol URL-safe document id."""
    return secure_random_string(DOCUMENT_ID_LENGTH, DOCUMENT_ID_CHARSET)

"""Stable identifiers and sort names"""

import hashlib
import secrets
import string

ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
ID_LENGTH = 20

_ARTICLES = ("the ", "a ", "an ")
_LEADING_JUNK = string.whitespace + string.punctuation


def _encode(n: int) -> str:
    """Base62 encode exactly ID_LENGTH digits, least significant first"""
    out = []
    for _ in range(ID_LENGTH):
        n, m = divmod(n, 62)
        out.append(ALPHABET[m])
    return "".join(out)


def id_hash(value: str) -> str:
    """Deterministic 20 character base62 id for a string"""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    # top 128 bits, keep 119 of them
    n = int.from_bytes(digest[:16], "big") >> 9
    return _encode(n)


def random_id() -> str:
    """Random 20 character base62 id"""
    n = int.from_bytes(secrets.token_bytes(16), "big") >> 9
    return _encode(n)


def sort_name(name: str) -> str:
    """Lowercased name without leading article or punctuation"""
    title = name.lower().strip()
    for article in _ARTICLES:
        if title.startswith(article):
            title = title[len(article):]
            break
    return title.lstrip(_LEADING_JUNK)


def person_sort_name(name: str) -> str:
    return name.lower().strip().lstrip(_LEADING_JUNK)

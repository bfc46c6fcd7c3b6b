"""Zone name normalization.

Panel zone labels are free text typed on a keypad or an installer app.
They frequently carry the zone number as a prefix (``zona_2_...``) and
repeat themselves (``finestra_cucina_finestra_cucina``) because the panel
concatenates label fields.  :func:`normalize` turns such a label into a
machine-safe slug and a display name.
"""

from __future__ import annotations

import re
import unicodedata
from typing import NamedTuple

UNKNOWN_SLUG = "unknown"
UNKNOWN_DISPLAY_NAME = "Unknown Device"

_SEPARATORS = re.compile(r"[_\s-]+")
_NON_SLUG = re.compile(r"[^a-z0-9]")
_ZONE_WORDS = frozenset({"zone", "zona"})
_ZONE_WORD_WITH_NUMBER = re.compile(r"^zon[ae]\d+$")
_FUSED_ZONE_PREFIX = re.compile(r"^zon[ae]\d+(?=[a-z])")
_FUSED_ZONE_PREFIX_WORD = re.compile(r"^zon[ae]\d+", re.IGNORECASE)


class ZoneName(NamedTuple):
    slug: str
    display_name: str


class _Token(NamedTuple):
    key: str
    word: str


def _token_key(word: str) -> str:
    folded = unicodedata.normalize("NFKD", word).encode("ascii", "ignore").decode("ascii")
    return _NON_SLUG.sub("", folded.lower())


def _tokenize(raw_name: str) -> list[_Token]:
    tokens: list[_Token] = []
    for word in _SEPARATORS.split(raw_name):
        key = _token_key(word)
        if key:
            tokens.append(_Token(key, word))
    return tokens


def _split_fused_prefix(token: _Token) -> _Token | None:
    match = _FUSED_ZONE_PREFIX.match(token.key)
    if match is None:
        return None
    key = token.key[match.end() :]
    word_match = _FUSED_ZONE_PREFIX_WORD.match(token.word)
    word = token.word[word_match.end() :] if word_match else ""
    return _Token(key, word if _token_key(word) == key else key)


def _strip_zone_prefix(tokens: list[_Token]) -> list[_Token]:
    """Drop leading zone-number prefixes, unless nothing else is left.

    A label that is only a prefix (``Zone 5``) is returned unchanged.
    """
    stripped = tokens
    while stripped:
        if _ZONE_WORD_WITH_NUMBER.match(stripped[0].key):
            stripped = stripped[1:]
        elif len(stripped) > 1 and stripped[0].key in _ZONE_WORDS and stripped[1].key.isdigit():
            stripped = stripped[2:]
        else:
            rest = _split_fused_prefix(stripped[0])
            if rest is None:
                break
            stripped = [rest, *stripped[1:]]
    return stripped or tokens


def _collapse_full_duplication(tokens: list[_Token]) -> list[_Token]:
    half, odd = divmod(len(tokens), 2)
    if half == 0 or odd:
        return tokens
    first, second = tokens[:half], tokens[half:]
    if all(a.key == b.key for a, b in zip(first, second, strict=True)):
        return first
    return tokens


def _collapse_consecutive(tokens: list[_Token]) -> list[_Token]:
    deduped: list[_Token] = []
    for token in tokens:
        if deduped and deduped[-1].key == token.key:
            continue
        deduped.append(token)
    return deduped


def _title(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def normalize(raw_name: str | None) -> ZoneName:
    """Return the ``(slug, display_name)`` pair for a raw zone label.

    Prefix stripping and duplicate collapsing are repeated until nothing
    changes, so normalizing a slug again yields the same slug.
    """
    tokens = _tokenize(raw_name or "")
    while True:
        reduced = _collapse_consecutive(_collapse_full_duplication(_strip_zone_prefix(tokens)))
        if reduced == tokens:
            break
        tokens = reduced

    if not tokens:
        return ZoneName(UNKNOWN_SLUG, UNKNOWN_DISPLAY_NAME)
    slug = "_".join(token.key for token in tokens)
    display_name = " ".join(_title(token.word) for token in tokens)
    return ZoneName(slug, display_name)

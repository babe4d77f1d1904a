"""RFC 5545 text escaping, parameter quoting and line folding.

Callers escape raw text exactly once; escaping already escaped text doubles
every backslash.
"""

import logging
from typing import Union

from .exceptions import MalformedInputError

logger = logging.getLogger(__name__)

CRLF = "\r\n"
FOLD_LIMIT = 75

# Sequences that must never be split across a fold.
_PROTECTED_TOKENS = ("mailto:",)

_UNESCAPE_MAP = {"n": "\n", "N": "\n", "\\": "\\", ";": ";", ",": ","}

_PARAM_SPECIALS = frozenset(':;,\\')
_CARET_MAP = {"^^": "^", "^n": "\n", "^N": "\n", "^'": '"'}


def ensure_text(value: Union[str, bytes]) -> str:
    """Return ``value`` as a str that is guaranteed to encode as UTF-8.

    Raises:
        MalformedInputError: If bytes are not valid UTF-8 or the string
            contains lone surrogates
    """
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"Input is not valid UTF-8: {e}") from e
    if not isinstance(value, str):
        raise MalformedInputError(f"Expected text, got {type(value).__name__}")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MalformedInputError(f"Input cannot be encoded as UTF-8: {e}") from e
    return value


def escape_text(value: Union[str, bytes]) -> str:
    """Escape a TEXT value for an iCalendar content line.

    Backslash, semicolon and comma are backslash-escaped, newlines become the
    two-character sequence ``\\n`` and carriage returns are dropped.
    """
    text = ensure_text(value)
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\n")
        .replace("\r", "")
        .replace("\n", "\\n")
    )


def unescape_text(value: str) -> str:
    """Reverse :func:`escape_text`.

    Unknown escapes keep the escaped character; a trailing lone backslash is
    kept as is.
    """
    out = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            nxt = value[i + 1]
            out.append(_UNESCAPE_MAP.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def quote_param_value(value: Union[str, bytes]) -> str:
    """Encode a parameter value such as CN.

    Carets, newlines and double quotes use the RFC 6868 caret escapes. The
    value is wrapped in double quotes when it contains a colon, semicolon,
    comma or backslash, so it is never read as the end of the parameter.
    """
    text = ensure_text(value)
    encoded = (
        text.replace("^", "^^")
        .replace("\r\n", "\n")
        .replace("\r", "")
        .replace("\n", "^n")
        .replace('"', "^'")
    )
    if any(ch in _PARAM_SPECIALS for ch in encoded):
        return f'"{encoded}"'
    return encoded


def _decode_carets(value: str) -> str:
    out = []
    i = 0
    while i < len(value):
        pair = value[i : i + 2]
        if pair in _CARET_MAP:
            out.append(_CARET_MAP[pair])
            i += 2
            continue
        out.append(value[i])
        i += 1
    return "".join(out)


def unquote_param_value(value: str) -> str:
    """Reverse :func:`quote_param_value`.

    Unquoted values also accept the backslash escapes older payloads used in
    CN, which :func:`quote_param_value` never produces outside quotes.
    """
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return _decode_carets(value[1:-1])
    return _decode_carets(unescape_text(value))


def _tokenize(line: str) -> list[str]:
    """Split a content line into units that folding may not break apart.

    Units are escape pairs, protected tokens such as ``mailto:``, and single
    characters.
    """
    tokens = []
    i = 0
    length = len(line)
    while i < length:
        if line[i] == "\\" and i + 1 < length:
            tokens.append(line[i : i + 2])
            i += 2
            continue
        for protected in _PROTECTED_TOKENS:
            if line.startswith(protected, i):
                tokens.append(protected)
                i += len(protected)
                break
        else:
            tokens.append(line[i])
            i += 1
    return tokens


def fold_line(line: Union[str, bytes]) -> str:
    """Fold a content line at 75 octets.

    Lengths are measured in UTF-8 bytes. Continuation lines start with a
    single space, which counts toward their 75 octets. Multibyte characters,
    escape pairs and ``mailto:`` are never split.
    """
    text = ensure_text(line)
    if len(text.encode("utf-8")) <= FOLD_LIMIT:
        return text

    chunks = []
    current: list[str] = []
    current_size = 0
    limit = FOLD_LIMIT
    for token in _tokenize(text):
        size = len(token.encode("utf-8"))
        if current and current_size + size > limit:
            chunks.append("".join(current))
            current = []
            current_size = 0
            # continuation lines lose one octet to the leading space
            limit = FOLD_LIMIT - 1
        current.append(token)
        current_size += size
    if current:
        chunks.append("".join(current))

    logger.debug("Folded %d-octet line into %d physical lines", len(text.encode("utf-8")), len(chunks))
    return (CRLF + " ").join(chunks)


def unfold_lines(text: str) -> str:
    """Undo line folding, accepting CRLF or bare LF line breaks."""
    normalized = text.replace("\r\n", "\n").replace("\n", CRLF)
    return normalized.replace(CRLF + " ", "").replace(CRLF + "\t", "")


def split_content_lines(text: str) -> list[str]:
    """Unfold a payload and return its logical content lines."""
    return [line for line in unfold_lines(text).split(CRLF) if line]

"""Format-preserving transforms, one per body kind.

Each transform applies :func:`remove_signature` to the text fields of its
format and leaves everything else as it was. When no text field changes
the raw body is returned untouched, so bodies without a footer are
forwarded byte-for-byte.
"""

from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import urlencode

from .classify import CRLF, FormEncoded, JsonObject, Multipart, has_surrogates, is_text_field
from .signature import remove_signature

_PART_SEPARATOR = CRLF + CRLF

# ``name="..."`` (or bare ``name=...``) as a header parameter; ``filename=`` is not matched.
_PART_NAME_RE = re.compile(r';\s*name\s*=\s*(?:"([^"]*)"|([^;\s]+))', re.IGNORECASE)

# A dangling "--" line left at the end of a part by a malformed body.
_TRAILING_BOUNDARY_RE = re.compile(r'\r?\n--\s*$')


# ── Multipart ─────────────────────────────────────────────────────────


def part_name(header_block: str) -> str:
    """Return the lower-cased form field name declared in a part's headers."""
    match = _PART_NAME_RE.search(header_block)
    if not match:
        return ''
    return (match.group(1) if match.group(1) is not None else match.group(2)).lower()


def _line_terminator(content: str) -> str:
    if content.endswith(CRLF):
        return CRLF
    if content.endswith('\n'):
        return '\n'
    return ''


def _clean_part(chunk: str) -> str:
    """Sanitize one part (boundary line excluded) if it is a text field."""
    split_at = chunk.find(_PART_SEPARATOR)
    if split_at == -1:
        return chunk

    headers = chunk[:split_at]
    content = chunk[split_at + len(_PART_SEPARATOR):]
    if not content or not is_text_field(part_name(headers)):
        return chunk

    terminator = _line_terminator(content)
    text = _TRAILING_BOUNDARY_RE.sub('', content)
    cleaned = remove_signature(text) + terminator
    return headers + _PART_SEPARATOR + cleaned


def clean_multipart(body: str, kind: Multipart) -> str:
    """Rebuild a multipart body with its text/caption parts sanitized.

    Parts are delimited by ``CRLF--boundary``; the first delimiter may sit
    at the very start of the body. Anything before it (the preamble) is
    dropped when the body is rebuilt. Everything from the closing
    ``--boundary--`` on is carried over as it was.
    """
    delimiter = kind.delimiter
    chunks = (CRLF + body).split(CRLF + delimiter)

    parts: list[str] = []
    closing: str | None = None
    for index, chunk in enumerate(chunks[1:], start=1):
        if chunk.startswith('--'):
            closing = (CRLF + delimiter).join(chunks[index:])
            break
        parts.append(chunk)

    cleaned = [_clean_part(chunk) for chunk in parts]
    if cleaned == parts:
        return body

    rebuilt = CRLF.join(delimiter + chunk for chunk in cleaned)
    if closing is not None:
        rebuilt = (rebuilt + CRLF if rebuilt else '') + delimiter + closing
    return rebuilt


# ── JSON ──────────────────────────────────────────────────────────────


def _dump_json(data: dict[str, Any]) -> str:
    text = json.dumps(data, ensure_ascii=False, separators=(',', ':'))
    if has_surrogates(text):
        return json.dumps(data, separators=(',', ':'))
    return text


def clean_json(body: str, kind: JsonObject) -> str:
    data = dict(kind.data)
    changed = False
    for key, value in kind.data.items():
        if is_text_field(key) and isinstance(value, str):
            cleaned = remove_signature(value)
            if cleaned != value:
                data[key] = cleaned
                changed = True
    return _dump_json(data) if changed else body


# ── Form-urlencoded ───────────────────────────────────────────────────


def clean_form(body: str, kind: FormEncoded) -> str:
    pairs: list[tuple[str, str]] = []
    changed = False
    for key, value in kind.pairs:
        if is_text_field(key):
            cleaned = remove_signature(value)
            if cleaned != value:
                value = cleaned
                changed = True
        pairs.append((key, value))
    return urlencode(pairs) if changed else body


# ── Plain text ────────────────────────────────────────────────────────


def clean_plain(body: str) -> str:
    return remove_signature(body)

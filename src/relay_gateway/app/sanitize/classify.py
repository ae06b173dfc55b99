"""Content classification for request bodies.

A body is classified exactly once, in priority order, into one of:

- ``Multipart``   -- ``multipart/form-data`` with a boundary that the body
  actually uses.
- ``JsonObject``  -- the whole body parses as a JSON object.
- ``FormEncoded`` -- the body parses as ``key=value`` pairs and one of the
  keys is a text field.
- ``PlainText``   -- anything else.

A failed parse is simply "not this kind"; classification never raises.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl

# Field names whose values carry user-visible message text.
TEXT_FIELDS: frozenset[str] = frozenset({'text', 'caption'})

CRLF = '\r\n'

_BOUNDARY_RE = re.compile(r'boundary=([^;\s]+)', re.IGNORECASE)
_SURROGATE_RE = re.compile('[\ud800-\udfff]')


@dataclass(frozen=True, slots=True)
class Multipart:
    boundary: str

    @property
    def delimiter(self) -> str:
        return '--' + self.boundary


@dataclass(frozen=True, slots=True)
class JsonObject:
    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class FormEncoded:
    pairs: tuple[tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class PlainText:
    pass


BodyKind = Multipart | JsonObject | FormEncoded | PlainText


def is_text_field(name: str) -> bool:
    return name.lower() in TEXT_FIELDS


def has_surrogates(text: str) -> bool:
    """True if ``text`` holds undecodable bytes smuggled in as surrogates."""
    return _SURROGATE_RE.search(text) is not None


def multipart_boundary(content_type: str | None) -> str | None:
    """Extract the boundary parameter of a multipart/form-data content type."""
    if not content_type or 'multipart/form-data' not in content_type.lower():
        return None
    match = _BOUNDARY_RE.search(content_type)
    if not match:
        return None
    boundary = match.group(1).strip().strip('"\'')
    return boundary or None


def _json_object(body: str) -> dict[str, Any] | None:
    try:
        data = json.loads(body)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def _form_pairs(body: str) -> tuple[tuple[str, str], ...] | None:
    # Raw undecodable bytes cannot be re-encoded as a query string.
    if has_surrogates(body):
        return None
    try:
        pairs = parse_qsl(body, keep_blank_values=True, errors='strict')
    except ValueError:
        return None
    if not any(is_text_field(key) for key, _ in pairs):
        return None
    return tuple(pairs)


def classify(body: str, content_type: str | None) -> BodyKind:
    """Decide which structural form ``body`` takes."""
    boundary = multipart_boundary(content_type)
    if boundary and (CRLF + '--' + boundary) in (CRLF + body):
        return Multipart(boundary)

    data = _json_object(body)
    if data is not None:
        return JsonObject(data)

    pairs = _form_pairs(body)
    if pairs is not None:
        return FormEncoded(pairs)

    return PlainText()

"""Content-type-aware removal of the n8n footer from request bodies.

``sanitize(raw_body, content_type)`` classifies the body once
(multipart, JSON object, form-urlencoded, plain text, in that order) and
applies the matching format-preserving transform. It is a pure function
and never raises.
"""

from __future__ import annotations

from relay_gateway.observability import get_logger
from relay_gateway.observability.metrics import BODY_SANITIZED_TOTAL

from .classify import (
    TEXT_FIELDS,
    BodyKind,
    FormEncoded,
    JsonObject,
    Multipart,
    PlainText,
    classify,
    multipart_boundary,
)
from .signature import SIGNATURE_PHRASE, remove_signature
from .transforms import clean_form, clean_json, clean_multipart, clean_plain

logger = get_logger(__name__)

__all__ = [
    'SIGNATURE_PHRASE',
    'TEXT_FIELDS',
    'BodyKind',
    'FormEncoded',
    'JsonObject',
    'Multipart',
    'PlainText',
    'classify',
    'kind_label',
    'multipart_boundary',
    'remove_signature',
    'sanitize',
]


def kind_label(kind: BodyKind) -> str:
    if isinstance(kind, Multipart):
        return 'multipart'
    if isinstance(kind, JsonObject):
        return 'json'
    if isinstance(kind, FormEncoded):
        return 'form'
    return 'plain'


def _apply(body: str, kind: BodyKind) -> str:
    if isinstance(kind, Multipart):
        return clean_multipart(body, kind)
    if isinstance(kind, JsonObject):
        return clean_json(body, kind)
    if isinstance(kind, FormEncoded):
        return clean_form(body, kind)
    return clean_plain(body)


def sanitize(raw_body: str, content_type: str | None) -> str:
    """Remove the n8n footer from the text fields of ``raw_body``."""
    if not raw_body:
        return raw_body

    kind = classify(raw_body, content_type)
    result = _apply(raw_body, kind)

    changed = result != raw_body
    BODY_SANITIZED_TOTAL.labels(kind=kind_label(kind), changed=str(changed).lower()).inc()
    logger.debug('body_sanitized', kind=kind_label(kind), changed=changed)
    return result

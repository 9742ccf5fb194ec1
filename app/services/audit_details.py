"""Canonical encoding of audit ``details`` payloads.

Writer and reader share this module. Every stored value decodes to exactly
one of three shapes:

- ``Structured``: a JSON document (object, array or scalar).
- ``RawText``: free text; ``parse_error`` marks text that looked like JSON
  but did not parse.
- ``Unreadable``: the ``[object Object]`` signature left by an old writer
  that coerced objects to strings. Nothing can be recovered from it.

Rows written through :func:`encode_details` carry their encoding, so the
reader only sniffs content for legacy rows whose encoding is unknown.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from app.models.audit import DetailsEncoding

logger = logging.getLogger(__name__)

UNREADABLE_SIGNATURE = "[object Object]"


@dataclass(frozen=True)
class Structured:
    value: Any


@dataclass(frozen=True)
class RawText:
    text: str
    parse_error: bool = False


@dataclass(frozen=True)
class Unreadable:
    raw: str


DecodedDetails = Structured | RawText | Unreadable


@dataclass(frozen=True)
class EncodedDetails:
    text: str | None
    encoding: DetailsEncoding | None


def _json_default(value: Any):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_details(details: Any) -> EncodedDetails:
    """Serialize a payload for storage.

    Mappings and sequences become compact JSON; text is kept verbatim; any
    other value, or a structure that refuses to serialize, is coerced with
    ``str`` so the event is never lost.
    """
    if details is None:
        return EncodedDetails(None, None)
    if isinstance(details, str):
        return EncodedDetails(details, DetailsEncoding.text)
    if isinstance(details, (dict, list, tuple)):
        try:
            text = json.dumps(details, default=_json_default, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to serialize audit details, storing text: %s", exc)
            return EncodedDetails(str(details), DetailsEncoding.text)
        return EncodedDetails(text, DetailsEncoding.json)
    return EncodedDetails(str(details), DetailsEncoding.text)


def _parse_json(text: str) -> DecodedDetails:
    try:
        return Structured(json.loads(text))
    except ValueError:
        return RawText(text, parse_error=True)


def _sniff_legacy(text: str) -> DecodedDetails:
    if text == UNREADABLE_SIGNATURE:
        return Unreadable(text)
    if text.startswith("{") or text.startswith("["):
        return _parse_json(text)
    return RawText(text)


def decode_details(stored: Any, encoding: str | None = None) -> DecodedDetails | None:
    """Decode a stored value. ``None`` means the row has no details."""
    if stored is None:
        return None
    if isinstance(stored, (dict, list)):
        return Structured(stored)
    if isinstance(stored, (bytes, bytearray)):
        stored = stored.decode("utf-8", errors="replace")
    text = str(stored)
    if encoding == DetailsEncoding.json.value:
        return _parse_json(text)
    if encoding == DetailsEncoding.text.value:
        return RawText(text)
    if text == "":
        return None
    return _sniff_legacy(text)


def to_payload(decoded: DecodedDetails | None) -> Any:
    """Render a decoded value the way API consumers expect it."""
    if decoded is None:
        return None
    if isinstance(decoded, Structured):
        return decoded.value
    if isinstance(decoded, Unreadable):
        return None
    if decoded.parse_error:
        return {"raw": decoded.text, "parseError": True}
    return {"message": decoded.text}


def is_repairable(decoded: DecodedDetails | None, encoding: str | None) -> bool:
    """True when the stored details should be nulled by the repair pass.

    Covers JSON that does not parse, the unreadable signature, and legacy
    free text that never went through the canonical writer.
    """
    if decoded is None or isinstance(decoded, Structured):
        return False
    if isinstance(decoded, Unreadable):
        return True
    if decoded.parse_error:
        return True
    return encoding is None

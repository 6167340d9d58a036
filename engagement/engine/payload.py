"""
Payload extraction for semi-structured event and offer text.

The ``value`` column of the event log holds a small key-value record written
as a Python dict literal, as JSON, or as a loose fragment, and the key
spelling differs by event kind (``'offer id'`` on received/viewed events,
``'offer_id'`` on completed events, ``amount`` on transactions with several
punctuation variants). Each target field is described by an ordered tuple of
:class:`PayloadFormat` descriptors; extraction tries them in order and the
first one whose capture coerces to the target type wins.

A parse failure is data, not an error: no function in this module raises for
any input.
"""

import ast
import json
import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Iterable, NamedTuple, Optional, Sequence

_LITERAL_ERRORS = (ValueError, SyntaxError, TypeError, MemoryError, RecursionError)


def parse_literal(payload: str) -> Optional[Any]:
    """
    Decode *payload* as JSON, then as a Python literal.

    Returns:
        The decoded object, or None when neither decoder accepts the text
    """
    text = payload.strip()
    if not text or text[0] not in "{[":
        return None
    try:
        return json.loads(text)
    except _LITERAL_ERRORS:
        pass
    try:
        return ast.literal_eval(text)
    except _LITERAL_ERRORS:
        return None


@dataclass(frozen=True)
class PayloadFormat:
    """
    One known textual shape of a payload field.

    Attributes:
        name: Identifier reported alongside extracted values
        capture: Returns the raw captured value, or None when the shape does not match
    """

    name: str
    capture: Callable[[str], Optional[Any]]


def literal_key(name: str, keys: Sequence[str]) -> PayloadFormat:
    """Format matching a dict literal that carries any of *keys*."""

    def capture(payload: str) -> Optional[Any]:
        decoded = parse_literal(payload)
        if not isinstance(decoded, dict):
            return None
        for key in keys:
            if key in decoded:
                return decoded[key]
        return None

    return PayloadFormat(name=name, capture=capture)


def regex(name: str, pattern: str) -> PayloadFormat:
    """Format matching the first group of a case-insensitive pattern."""
    compiled = re.compile(pattern, re.IGNORECASE)

    def capture(payload: str) -> Optional[Any]:
        match = compiled.search(payload)
        return match.group(1) if match else None

    return PayloadFormat(name=name, capture=capture)


OFFER_ID_FORMATS: tuple[PayloadFormat, ...] = (
    literal_key("literal", ("offer id", "offer_id")),
    regex("quoted_offer_id_space", r"""['"]offer id['"]\s*:\s*['"]([^'"]+)['"]"""),
    regex("quoted_offer_id_underscore", r"""['"]offer_id['"]\s*:\s*['"]([^'"]+)['"]"""),
    regex("bare_offer_id", r"""\boffer[ _]id['"]?\s*[:=]\s*['"]?([A-Za-z0-9_\-]+)"""),
)

AMOUNT_FORMATS: tuple[PayloadFormat, ...] = (
    literal_key("literal", ("amount",)),
    regex("amount_colon", r"""\bamount['"]*\s*:\s*([0-9.]+(?:[eE][+-]?[0-9]+)?)(?![0-9.eE])"""),
    regex("amount_equals", r"""\bamount['"]*\s*=\s*([0-9.]+(?:[eE][+-]?[0-9]+)?)(?![0-9.eE])"""),
)


class Extraction(NamedTuple):
    """Extracted value and the name of the format that produced it."""

    value: Any
    format_name: str


def extract(
    payload: Any,
    formats: Sequence[PayloadFormat],
    coerce: Callable[[Any], Optional[Any]],
) -> Optional[Extraction]:
    """
    Try *formats* in order; return the first capture that *coerce* accepts.

    A capture that fails coercion falls through to the next format.
    Non-string payloads never match.
    """
    if not isinstance(payload, str) or not payload:
        return None
    for fmt in formats:
        raw = fmt.capture(payload)
        if raw is None:
            continue
        value = coerce(raw)
        if value is not None:
            return Extraction(value=value, format_name=fmt.name)
    return None


UNPARSED = "unparsed"


def extract_many(
    payloads: Iterable[Any],
    formats: Sequence[PayloadFormat],
    coerce: Callable[[Any], Optional[Any]],
) -> tuple[list[Any], Counter]:
    """
    Extract from every payload, skipping the ones no format accepts.

    Returns:
        ``(values, tally)``; the tally counts payloads per winning format
        name, and under ``"unparsed"`` the payloads that matched none
    """
    values: list[Any] = []
    tally: Counter = Counter()
    for payload in payloads:
        result = extract(payload, formats, coerce)
        if result is None:
            tally[UNPARSED] += 1
        else:
            values.append(result.value)
            tally[result.format_name] += 1
    return values, tally


def to_offer_id(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    stripped = raw.strip()
    return stripped or None


def to_amount(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def extract_offer_id(payload: Any) -> Optional[str]:
    """
    Offer id carried by an offer event payload.

    >>> extract_offer_id("{'offer id': '9b98b8c7a33c4b65b9aebfe6a799e6d9'}")
    '9b98b8c7a33c4b65b9aebfe6a799e6d9'
    >>> extract_offer_id("{'offer_id': 'fafdcd668e3743c1bb461111dcafc2a4', 'reward': 2}")
    'fafdcd668e3743c1bb461111dcafc2a4'
    >>> extract_offer_id("{'amount': 0.83}") is None
    True
    """
    result = extract(payload, OFFER_ID_FORMATS, to_offer_id)
    return result.value if result else None


def extract_amount(payload: Any) -> Optional[float]:
    """
    Transaction amount carried by a transaction payload.

    >>> extract_amount("{'amount': 0.83}")
    0.83
    >>> extract_amount("amount=20")
    20.0
    >>> extract_amount("amount: n/a") is None
    True
    """
    result = extract(payload, AMOUNT_FORMATS, to_amount)
    return result.value if result else None


def parse_channels(raw: Any) -> list[str]:
    """
    Channel tags of an offer, in first-seen order without duplicates.

    Accepts the bracket-delimited, quoted, comma-separated text stored in the
    ``channels`` column (``"['web', 'email']"``), a bare comma list, or an
    already-decoded list.

    >>> parse_channels("['web', 'email', 'mobile', 'web']")
    ['web', 'email', 'mobile']
    """
    if isinstance(raw, (list, tuple)):
        items = [item for item in raw if isinstance(item, str)]
    elif isinstance(raw, str):
        decoded = parse_literal(raw)
        if isinstance(decoded, (list, tuple)):
            items = [item for item in decoded if isinstance(item, str)]
        else:
            items = re.sub(r"[\[\]]", "", raw).split(",")
    else:
        return []

    channels: list[str] = []
    for item in items:
        tag = item.strip().strip("'\"").strip()
        if tag and tag not in channels:
            channels.append(tag)
    return channels

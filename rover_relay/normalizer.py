"""
Payload normalization for inbound MQTT messages.

ESP32 nodes publish either JSON objects or plain-text telemetry such as
``T:23.5,H:40,Lux:120``. Both are turned into a flat ``dict`` here; the
plain-text form also keeps the original text under ``RAW_KEY``.
"""

import json
import logging
import math
import re
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

RAW_KEY = "_raw"

# Leading numeric literal, e.g. "23.5C" -> 23.5
_NUMBER_PREFIX = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_INT_PREFIX = re.compile(r"^\s*[-+]?\d+")


def decode_payload(payload: Union[bytes, bytearray, str]) -> str:
    """Decode a raw MQTT payload to text, replacing invalid UTF-8."""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return str(payload)


def to_number(text: str) -> Optional[float]:
    """Strict numeric parse of a whole string; None if it is not a finite number."""
    try:
        value = float(text)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_plain_string(raw: str) -> Dict[str, Any]:
    """
    Parse ``key:value`` pairs separated by commas.

    Keys are trimmed and lower-cased, values are converted to numbers
    when possible. Segments without a colon or with an empty key are
    skipped. Never raises.

    Args:
        raw: Plain-text payload

    Returns:
        Mapping of parsed pairs plus the original text under RAW_KEY
    """
    result: Dict[str, Any] = {RAW_KEY: raw}
    for part in raw.split(","):
        key, sep, value = part.strip().partition(":")
        key = key.strip()
        if not key or not sep:
            continue
        value = value.strip()
        number = to_number(value)
        result[key.lower()] = value if number is None else number
    return result


def normalize(payload: Union[bytes, bytearray, str]) -> Dict[str, Any]:
    """
    Turn an MQTT payload into a key/value mapping.

    JSON objects are returned as parsed. Anything else (invalid JSON,
    JSON scalars or arrays) goes through the plain-text parser.
    """
    raw = decode_payload(payload)
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if isinstance(data, dict):
        return data
    logger.debug(f"Non-JSON payload, parsing as plain text: {raw!r}")
    return parse_plain_string(raw)


def parse_float(value: Any, default: float) -> float:
    """
    Lenient float conversion used when building canonical events.

    Numbers pass through, strings are read up to the first non-numeric
    character ("23.5C" -> 23.5). Missing, boolean or unparsable values
    give ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else default
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if match:
            number = float(match.group(0))
            return number if math.isfinite(number) else default
    return default


def parse_int(value: Any, default: int) -> int:
    """Lenient integer conversion; fractional numbers are truncated."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        match = _INT_PREFIX.match(value)
        if match:
            return int(match.group(0))
    return default

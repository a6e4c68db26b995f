# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

"""Decoding of upstream response bodies.

The moresleep API occasionally returns session bodies containing raw control
characters, and wraps collections inconsistently (a bare array for some
endpoints, ``{"sessions": [...]}`` or ``{"conferences": [...]}`` for others).
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from libum.types import MalformedResponseError
from libum.utils.logger import logger

# Everything below 0x20 except tab, newline and carriage return.
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class CollectionKind(str, Enum):
    ARRAY = "array"
    WRAPPED = "wrapped"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class DecodedCollection:
    """A collection payload together with the shape it was found in."""

    kind: CollectionKind
    items: list[Any] = field(default_factory=list)


def sanitize(text: str) -> str:
    """Strip control characters that are not valid inside JSON strings."""
    return CONTROL_CHARS.sub("", text)


def parse_body(text: str) -> Any:
    """
    Decode a JSON body, retrying once on a sanitized copy.

    Raises:
        MalformedResponseError: If the body is not JSON even after sanitization.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Error parsing JSON, attempting to sanitize: {e}")

    try:
        return json.loads(sanitize(text))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response body is not valid JSON: {e}") from e


def decode_collection(payload: Any, field_name: str) -> DecodedCollection:
    """
    Classify a collection payload.

    Args:
        payload: The decoded JSON body.
        field_name: Key holding the list when the payload is wrapped in an object.

    Returns:
        A DecodedCollection; unrecognized shapes carry an empty list.
    """
    if isinstance(payload, list):
        return DecodedCollection(CollectionKind.ARRAY, payload)
    if isinstance(payload, dict) and isinstance(payload.get(field_name), list):
        return DecodedCollection(CollectionKind.WRAPPED, payload[field_name])

    logger.warning(f"Unrecognized collection payload (expected list or '{field_name}' field), using empty list")
    return DecodedCollection(CollectionKind.UNRECOGNIZED)

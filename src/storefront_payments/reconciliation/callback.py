"""Parsing and classification of the gateway's redirect parameters."""

import base64
import binascii
import json
import logging
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlsplit

from pydantic import ValidationError

from ..connectors.base import CallbackPayload
from ..exceptions import MalformedCallback
from .models import CallbackClass

logger = logging.getLogger(__name__)

KNOWN_FIELDS = frozenset(
    name for name in CallbackPayload.model_fields if name != "extra"
)

# eSewa v2 delivers the whole response as base64 JSON in this parameter
DATA_PARAM = "data"


def extract_query(location: str) -> str:
    """Return the query part of a full URL, ``?query`` or bare query string."""
    if not location:
        return ""
    if "://" in location or location.startswith("/"):
        return urlsplit(location).query
    query = location.split("#", 1)[0]
    return query.split("?", 1)[1] if "?" in query else query


def _pairs(location: str) -> Dict[str, str]:
    # First occurrence wins when a name repeats
    params: Dict[str, str] = {}
    for name, value in parse_qsl(extract_query(location), keep_blank_values=True):
        params.setdefault(name, value)
    return params


def has_query_params(location: str) -> bool:
    """Whether the location carries any parameter at all, blank ones included."""
    return bool(_pairs(location))


def _decode_data_param(value: str) -> Dict[str, str]:
    # Unescaped "+" arrives as a space; accept the URL-safe alphabet too
    normalized = value.strip().replace(" ", "+").replace("-", "+").replace("_", "/")
    padded = normalized + "=" * (-len(normalized) % 4)
    try:
        decoded = json.loads(base64.b64decode(padded, validate=True))
    except (binascii.Error, ValueError) as e:
        raise MalformedCallback("Undecodable data parameter", {"error": str(e)}) from e
    if not isinstance(decoded, dict):
        raise MalformedCallback("Data parameter is not an object", {"type": type(decoded).__name__})
    return {str(k): "" if v is None else str(v) for k, v in decoded.items()}


def parse_callback(location: str) -> Optional[CallbackPayload]:
    """
    Extract the gateway's callback fields from a redirect location.

    Returns None when no parameter carries anything. Never raises: a
    ``data`` parameter that cannot be decoded is logged and ignored.
    """
    params = _pairs(location)
    if DATA_PARAM in params:
        raw = params.pop(DATA_PARAM)
        try:
            decoded = _decode_data_param(raw)
        except MalformedCallback as e:
            logger.warning(f"Ignoring malformed callback data: {e.to_dict()}")
        else:
            # Explicit query fields win over the encoded blob
            params = {**decoded, **params}

    if not any(value for value in params.values()):
        return None

    known = {name: value for name, value in params.items() if name in KNOWN_FIELDS and value != ""}
    extra = {name: value for name, value in params.items() if name not in KNOWN_FIELDS}
    try:
        return CallbackPayload(**known, extra=extra)
    except ValidationError as e:
        logger.warning(f"Callback parameters could not be read: {e}")
        return None


def classify(payload: Optional[CallbackPayload]) -> CallbackClass:
    if payload is None:
        return CallbackClass.EMPTY
    if payload.is_verifiable:
        return CallbackClass.VERIFIABLE
    if payload.is_informative:
        return CallbackClass.INFORMATIVE
    return CallbackClass.EMPTY

"""eSewa HMAC-SHA256 signature helpers."""

import base64
import hashlib
import hmac
from typing import Mapping, Any

DEFAULT_SIGNED_FIELD_NAMES = "total_amount,transaction_uuid,product_code"


def build_signature_message(fields: Mapping[str, Any], signed_field_names: str) -> str:
    """Build the ``name=value,name=value`` message eSewa signs.

    Args:
        fields: Field values, keyed by wire name.
        signed_field_names: Comma separated names in signing order.

    Returns:
        The message string.

    Raises:
        KeyError: If a signed field is missing from ``fields``.
    """
    names = [name.strip() for name in signed_field_names.split(",") if name.strip()]
    return ",".join(f"{name}={fields[name]}" for name in names)


def generate_signature(message: str, secret_key: str) -> str:
    digest = hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def sign_fields(
    fields: Mapping[str, Any],
    secret_key: str,
    signed_field_names: str = DEFAULT_SIGNED_FIELD_NAMES,
) -> str:
    return generate_signature(build_signature_message(fields, signed_field_names), secret_key)


def verify_signature(fields: Mapping[str, Any], secret_key: str) -> bool:
    """Check ``fields["signature"]`` against the fields it claims to sign.

    Returns False when the signature, the signed field list, or any signed
    field is missing.
    """
    signature = fields.get("signature")
    signed_field_names = fields.get("signed_field_names")
    if not signature or not signed_field_names:
        return False
    try:
        expected = sign_fields(fields, secret_key, signed_field_names)
    except KeyError:
        return False
    return hmac.compare_digest(expected, str(signature))

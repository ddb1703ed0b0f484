"""Tests for eSewa signature helpers."""

import base64
import hashlib
import hmac

from storefront_payments.connectors import (
    DEFAULT_SIGNED_FIELD_NAMES,
    build_signature_message,
    generate_signature,
    sign_fields,
    verify_signature,
)

SECRET = "8gBm/:&EnhH.1/q"


def test_message_follows_signed_field_order():
    fields = {"product_code": "EPAYTEST", "total_amount": "100", "transaction_uuid": "11-201-13"}

    message = build_signature_message(fields, DEFAULT_SIGNED_FIELD_NAMES)

    assert message == "total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST"


def test_signature_is_base64_hmac_sha256():
    message = "total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST"
    expected = base64.b64encode(
        hmac.new(SECRET.encode(), message.encode(), hashlib.sha256).digest()
    ).decode()

    assert generate_signature(message, SECRET) == expected


def test_signature_for_fixed_message():
    message = "total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST"

    assert generate_signature(message, SECRET) == "5DZywcrTKD0gia/rsSMcrRHmJl+4Tbol6S+lWgdJ94E="


def test_verify_accepts_own_signature():
    fields = {"total_amount": "100", "transaction_uuid": "o-1", "product_code": "EPAYTEST",
              "signed_field_names": DEFAULT_SIGNED_FIELD_NAMES}
    fields["signature"] = sign_fields(fields, SECRET)

    assert verify_signature(fields, SECRET)


def test_verify_rejects_tampered_field():
    fields = {"total_amount": "100", "transaction_uuid": "o-1", "product_code": "EPAYTEST",
              "signed_field_names": DEFAULT_SIGNED_FIELD_NAMES}
    fields["signature"] = sign_fields(fields, SECRET)
    fields["total_amount"] = "1"

    assert not verify_signature(fields, SECRET)


def test_verify_rejects_wrong_secret():
    fields = {"total_amount": "100", "transaction_uuid": "o-1", "product_code": "EPAYTEST",
              "signed_field_names": DEFAULT_SIGNED_FIELD_NAMES}
    fields["signature"] = sign_fields(fields, "other-secret")

    assert not verify_signature(fields, SECRET)


def test_verify_missing_pieces():
    assert not verify_signature({"total_amount": "100"}, SECRET)
    assert not verify_signature(
        {"signature": "abc", "signed_field_names": "total_amount,transaction_uuid"}, SECRET
    )

"""Tests for callback parsing and classification."""

import base64
import json
import pytest

from storefront_payments.reconciliation import (
    CallbackClass,
    classify,
    extract_query,
    has_query_params,
    parse_callback,
)


def encode_data(fields):
    return base64.b64encode(json.dumps(fields).encode()).decode()


class TestExtractQuery:

    @pytest.mark.parametrize("location,expected", [
        ("http://shop.test/payment/esewa/success?a=1&b=2", "a=1&b=2"),
        ("/payment/esewa/success?a=1", "a=1"),
        ("?a=1", "a=1"),
        ("a=1&b=2", "a=1&b=2"),
        ("http://shop.test/payment/esewa/success", ""),
        ("", ""),
    ])
    def test_forms_of_location(self, location, expected):
        assert extract_query(location) == expected


class TestParseCallback:

    def test_full_payload(self):
        payload = parse_callback(
            "?product_code=EPAYTEST&total_amount=100.0&transaction_uuid=o-1"
            "&status=COMPLETE&signed_field_names=total_amount,transaction_uuid&signature=abc%2B%3D"
            "&ref_id=R1"
        )

        assert payload.product_code == "EPAYTEST"
        assert payload.total_amount == "100.0"
        assert payload.transaction_uuid == "o-1"
        assert payload.signature == "abc+="
        assert payload.ref_id == "R1"
        assert payload.extra == {}

    def test_unknown_fields_kept_in_extra(self):
        payload = parse_callback("?transaction_uuid=o-1&signature=s&merchant_note=hi")

        assert payload.extra == {"merchant_note": "hi"}
        assert payload.to_wire()["merchant_note"] == "hi"

    def test_no_parameters(self):
        assert parse_callback("http://shop.test/payment/esewa/success") is None

    def test_only_blank_parameters(self):
        assert parse_callback("?transaction_uuid=&signature=") is None

    def test_blank_known_field_is_absent(self):
        payload = parse_callback("?transaction_uuid=o-1&signature=")

        assert payload.signature is None
        assert not payload.is_verifiable

    def test_first_repeated_value_wins(self):
        payload = parse_callback("?transaction_uuid=first&transaction_uuid=second")

        assert payload.transaction_uuid == "first"

    def test_data_parameter_decoded(self):
        data = encode_data({
            "transaction_code": "000AE01",
            "status": "COMPLETE",
            "total_amount": 1000.0,
            "transaction_uuid": "o-1",
            "product_code": "EPAYTEST",
            "signed_field_names": "transaction_code,status,total_amount",
            "signature": "sig",
        })

        payload = parse_callback(f"?data={data}")

        assert payload.transaction_uuid == "o-1"
        assert payload.total_amount == "1000.0"
        assert payload.transaction_code == "000AE01"
        assert payload.is_verifiable

    def test_data_parameter_with_unescaped_plus(self):
        data = encode_data({"transaction_uuid": "o-1", "signature": "s", "note": ">>>>"})

        payload = parse_callback("?data=" + data.replace("+", " "))

        assert payload.transaction_uuid == "o-1"

    def test_query_fields_override_data(self):
        data = encode_data({"transaction_uuid": "from-data", "signature": "s"})

        payload = parse_callback(f"?data={data}&transaction_uuid=from-query")

        assert payload.transaction_uuid == "from-query"

    def test_malformed_data_is_ignored(self, caplog):
        payload = parse_callback("?data=not-base64!!")

        assert payload is None
        assert "malformed callback data" in caplog.text

    def test_data_that_is_not_an_object(self):
        assert parse_callback(f"?data={encode_data([1, 2, 3])}") is None


class TestHasQueryParams:

    def test_blank_value_counts(self):
        assert has_query_params("?foo=")

    def test_bare_path(self):
        assert not has_query_params("http://shop.test/payment/esewa/success")


class TestClassify:

    def test_verifiable(self):
        assert classify(parse_callback("?transaction_uuid=o-1&signature=s")) == CallbackClass.VERIFIABLE

    def test_informative(self):
        assert classify(parse_callback("?product_code=EPAYTEST")) == CallbackClass.INFORMATIVE

    def test_signature_without_uuid_is_informative(self):
        assert classify(parse_callback("?signature=s")) == CallbackClass.INFORMATIVE

    def test_unrelated_parameters_are_empty(self):
        assert classify(parse_callback("?utm_source=mail")) == CallbackClass.EMPTY

    def test_none(self):
        assert classify(None) == CallbackClass.EMPTY

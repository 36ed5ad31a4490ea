# Overview: Pytest coverage for money parsing and payload validation helpers.

import pytest

from rpbiz.models import Product
from rpbiz.money import MoneyError, format_cents, parse_cents
from rpbiz.validation import (
    ModelValidationPolicy,
    ValidationError,
    db_int,
    parse_sale_items,
    require_int,
    validate_payload,
)


class TestParseCents:

    @pytest.mark.parametrize("value, cents", [
        ("200.00", 20000),
        ("12.5", 1250),
        ("7", 700),
        (7, 700),
        (0.1, 10),
        (" 3.30 ", 330),
    ])
    def test_valid(self, value, cents):
        assert parse_cents(value) == cents

    @pytest.mark.parametrize("value", ["1e3", "1.234", "abc", "", "NaN", "Infinity", True, None])
    def test_invalid(self, value):
        with pytest.raises(MoneyError):
            parse_cents(value)

    def test_format(self):
        assert format_cents(20000) == "200.00"
        assert format_cents(5) == "0.05"
        assert format_cents(None) is None


class TestValidatePayload:
    POLICY = ModelValidationPolicy(
        writable_fields={"name": "name", "price": "price_cents", "stock": "stock", "isActive": "is_active"},
        required_on_create=frozenset({"name", "price"}),
    )

    def test_create_maps_keys(self, app):
        patch = validate_payload(
            model=Product,
            payload={"name": "  Wrench ", "price": "4.50", "stock": "12", "isActive": True},
            policy=self.POLICY,
            partial=False,
        )
        assert patch == {"name": "Wrench", "price_cents": 450, "stock": 12, "is_active": True}

    @pytest.mark.parametrize("payload", [
        {"name": "Wrench", "price": "1.00", "stock": 1.5},
        {"name": "Wrench", "price": "1.00", "stock": "1e2"},
        {"name": "Wrench", "price": "1.00", "isActive": "yes"},
        {"name": "", "price": "1.00"},
        {"name": None, "price": "1.00"},
        {"name": "W" * 256, "price": "1.00"},
    ])
    def test_rejections(self, app, payload):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload=payload, policy=self.POLICY, partial=True)

    def test_partial_skips_required(self, app):
        assert validate_payload(model=Product, payload={"stock": 4}, policy=self.POLICY, partial=True) == {"stock": 4}


class TestParseSaleItems:

    def test_extra_fields_ignored(self):
        lines = parse_sale_items([
            {"productId": 1, "quantity": 2, "price": "0.01", "productName": "Free stuff"},
            {"productId": "3", "quantity": "1"},
        ])
        assert lines == [(1, 2), (3, 1)]

    @pytest.mark.parametrize("raw", [None, [], {}, [1], [{"quantity": 1}], [{"productId": 1}]])
    def test_malformed(self, raw):
        with pytest.raises(ValidationError):
            parse_sale_items(raw)


class TestIntegerBounds:

    @pytest.mark.parametrize("value", [2 ** 31, -(2 ** 31) - 1, 10 ** 20, "99999999999999999999"])
    def test_require_int_out_of_range(self, value):
        with pytest.raises(ValidationError, match="out of range"):
            require_int({"businessId": value}, "businessId")

    def test_require_int_limits(self):
        assert require_int({"businessId": 2 ** 31 - 1}, "businessId") == 2 ** 31 - 1
        assert require_int({"businessId": "42"}, "businessId") == 42

    def test_db_int(self):
        assert db_int("17") == 17
        with pytest.raises(ValueError):
            db_int(str(10 ** 20))

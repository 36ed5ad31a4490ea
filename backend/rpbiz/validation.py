from __future__ import annotations
from datetime import datetime
from rpbiz.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta
from werkzeug.routing import IntegerConverter

from rpbiz.money import MAX_PRICE_CENTS, MoneyError, parse_cents
from rpbiz.models.business import BUSINESS_TYPES, EMPLOYEE_ROLES


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate membership)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: payload key -> model attribute clients may set (security boundary)
    - required_on_create: payload keys required for POST
    - ignored_fields: payload keys accepted but dropped (e.g. immutable references)
    """
    writable_fields: dict[str, str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)
    ignored_fields: frozenset[str] = field(default_factory=frozenset)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.column_attrs}


# Integer columns (ids, stock, quantities) are 32-bit on PostgreSQL
MIN_DB_INT = -(2 ** 31)
MAX_DB_INT = 2 ** 31 - 1


def _check_int_range(name: str, value: int) -> int:
    if not MIN_DB_INT <= value <= MAX_DB_INT:
        raise ValidationError(f"{name} is out of range")
    return value


class DbIntConverter(IntegerConverter):
    """``<int:...>`` URL converter that refuses ids an Integer column cannot hold."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("max", MAX_DB_INT)
        super().__init__(map, *args, **kwargs)


def db_int(value: Any) -> int:
    """
    ``type=`` callable for request.args: an int that fits an Integer column.

    Raises ValueError so werkzeug falls back to the default.
    """
    number = int(value)
    if not MIN_DB_INT <= number <= MAX_DB_INT:
        raise ValueError(f"{value!r} is out of range")
    return number


def _coerce_integer(name: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return _check_int_range(name, value)
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            number = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
        return _check_int_range(name, number)
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def _coerce_value(name: str, col, value: Any):
    coltype = col.columns[0].type

    if value is None:
        return None

    # Money columns travel as decimal strings and are stored in cents
    if col.key.endswith("_cents"):
        try:
            return parse_cents(value)
        except MoneyError as e:
            raise ValidationError(f"{name}: {e}")

    if isinstance(coltype, Integer):
        return _coerce_integer(name, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{name} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{name} must be a datetime")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{name} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by model attribute.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k in policy.ignored_fields:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in policy.ignored_fields:
            continue
        attr = policy.writable_fields[k]
        col = cols[attr]
        column = col.columns[0]

        # NULL handling
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[attr] = None
            continue

        val = _coerce_value(k, col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(column.type, (String, Text)) and not column.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(column.type, String) and column.type.length and isinstance(val, str):
            if len(val) > column.type.length:
                raise ValidationError(f"{k} exceeds max length {column.type.length}")

        patch[attr] = val

    return patch


def enforce_rules_business(patch: dict) -> None:
    if "name" in patch and patch["name"] is not None and len(patch["name"]) < 2:
        raise ValidationError("name must be at least 2 characters")
    if "business_type" in patch and patch["business_type"] not in BUSINESS_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(BUSINESS_TYPES)}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "name" in patch and patch["name"] is not None and len(patch["name"]) < 2:
        raise ValidationError("name must be at least 2 characters")
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")


def validate_employee_role(role: Any) -> str:
    if role is None:
        return "employee"
    if role not in EMPLOYEE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(EMPLOYEE_ROLES)}")
    return role


def require_int(payload: dict, key: str) -> int:
    """Read a required integer id (e.g. businessId) from a JSON payload."""
    if payload.get(key) is None:
        raise ValidationError(f"{key} required")
    return _coerce_integer(key, payload[key])


def parse_sale_items(raw_items: Any) -> list[tuple[int, int]]:
    """
    Normalize requested sale lines into (product_id, quantity) pairs.

    Only productId and quantity are read. Any client-supplied price or
    name fields are ignored: prices are always resolved server-side.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    lines: list[tuple[int, int]] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = require_int(raw, "productId") if raw.get("productId") is not None else None
        if product_id is None:
            raise ValidationError(f"items[{index}].productId required")
        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity required")
        quantity = _coerce_integer(f"items[{index}].quantity", raw["quantity"])
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        lines.append((product_id, quantity))
    return lines


def parse_buyer_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("buyerName required")
    name = value.strip()
    if len(name) > 255:
        raise ValidationError("buyerName exceeds max length 255")
    return name

from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from phoneshop.time_utils import parse_iso_datetime, parse_date_range

from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum money amount accepted from clients: 99,999,999.
# Matches the Numeric(12, 2) columns with headroom for totals.
MAX_AMOUNT = Decimal("99999999")

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


class ValidationError(ValueError):
    """400-level input problem. `errors` carries per-field detail."""

    def __init__(self, message: str, *, field: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        if errors is None:
            errors = [{"field": field, "message": message}] if field else []
        self.errors = errors

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.errors:
            body["errors"] = self.errors
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate IMEI)."""


class InvalidStateError(ValueError):
    """400-level: operation is not allowed for the record's current status."""


class NotFoundError(LookupError):
    """404-level: the addressed row does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: fields restricted to a fixed set of values (status/type enums)
    - min_length: minimum length for string fields
    - positive_fields / non_negative_fields: numeric range rules
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    choices: Mapping[str, tuple[str, ...]] | None = None
    min_length: Mapping[str, int] | None = None
    positive_fields: set[str] | None = None
    non_negative_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_decimal(value: Any, field_name: str) -> Decimal:
    """Strict money parsing: ints, floats, numeric strings. Rejects bools and NaN."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, int):
        dec = Decimal(value)
    elif isinstance(value, float):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        try:
            dec = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a number", field=field_name)
    else:
        raise ValidationError(f"{field_name} must be a number", field=field_name)

    if not dec.is_finite():
        raise ValidationError(f"{field_name} must be a finite number", field=field_name)
    if abs(dec) > MAX_AMOUNT:
        raise ValidationError(f"{field_name} cannot exceed {MAX_AMOUNT}", field=field_name)
    return dec


def coerce_int(value: Any, field_name: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer", field=field_name)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)", field=field_name)
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)", field=field_name)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer", field=field_name)
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal", field=field_name)
    # Other types
    raise ValidationError(f"{field_name} must be an integer", field=field_name)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # Money
    if isinstance(coltype, Numeric):
        return coerce_decimal(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            return dt
        raise ValidationError(f"{col.key} must be a datetime", field=col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string", field=col.key)
        return str(value).strip()

    # Default: leave as-is
    return value


def _check_rules(key: str, val: Any, policy: ModelValidationPolicy) -> None:
    if val is None:
        return

    choices = (policy.choices or {}).get(key)
    if choices is not None and val not in choices:
        raise ValidationError(f"{key} must be one of: {', '.join(choices)}", field=key)

    min_len = (policy.min_length or {}).get(key)
    if min_len is not None and isinstance(val, str) and len(val) < min_len:
        raise ValidationError(f"{key} must be at least {min_len} characters", field=key)

    if key in (policy.positive_fields or set()) and val <= 0:
        raise ValidationError(f"{key} must be greater than 0", field=key)

    if key in (policy.non_negative_fields or set()) and val < 0:
        raise ValidationError(f"{key} must be >= 0", field=key)


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
    - a policy allowlist (writable_fields) and its value rules
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    All field problems are collected and raised together as one
    ValidationError whose `errors` list has one entry per field.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                errors.append({"field": f, "message": f"{f} is required"})

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            errors.append({"field": k, "message": f"Field not allowed: {k}"})
        elif k not in cols:
            errors.append({"field": k, "message": f"Unknown field: {k}"})

    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        col = cols[k]

        try:
            # Blank strings on nullable text columns mean "clear"
            if isinstance(raw, str) and raw.strip() == "" and col.nullable \
                    and isinstance(col.type, (String, Text)):
                raw = None

            # NULL handling
            if raw is None:
                if not col.nullable or (not partial and k in required):
                    raise ValidationError(f"{k} cannot be null", field=k)
                patch[k] = None
                continue

            val = _coerce_value(col, raw)

            # Blank string check for non-nullable text fields
            if isinstance(col.type, (String, Text)) and not col.nullable:
                if isinstance(val, str) and val == "":
                    raise ValidationError(f"{k} cannot be blank", field=k)

            # Max length check for String(n)
            if isinstance(col.type, String) and col.type.length and isinstance(val, str):
                if len(val) > col.type.length:
                    raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

            _check_rules(k, val, policy)
        except ValidationError as e:
            errors.extend(e.errors)
            continue

        patch[k] = val

    if errors:
        raise ValidationError("Validation failed", errors=errors)

    return patch


def enforce_rules_installment(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    total = patch.get("total_amount")
    down = patch.get("down_payment")
    if total is not None and down is not None and down >= total:
        raise ValidationError("down_payment must be less than total_amount", field="down_payment")


def enforce_rules_warranty(patch: dict) -> None:
    start = patch.get("start_date")
    end = patch.get("end_date")
    if start is not None and end is not None and end < start:
        raise ValidationError("end_date must be on or after start_date", field="end_date")


# =============================================================================
# LIST CRITERIA
# =============================================================================

@dataclass(frozen=True)
class ListCriteria:
    """
    Typed, validated list query: free-text search, paging, exact-match filters
    and an optional inclusive date range.
    """
    q: str | None = None
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT
    filters: dict[str, Any] = field(default_factory=dict)
    date_from: datetime | None = None
    date_to: datetime | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def get(self, key: str, default: Any = None) -> Any:
        return self.filters.get(key, default)


def _parse_filter(key: str, raw: str, kind: Any) -> Any:
    if kind is int:
        return coerce_int(raw, key)
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered not in ("true", "false"):
            raise ValidationError(f"{key} must be true or false", field=key)
        return lowered == "true"
    if isinstance(kind, (tuple, list, frozenset, set)):
        if raw not in kind:
            raise ValidationError(f"{key} must be one of: {', '.join(sorted(kind))}", field=key)
        return raw
    return raw


def parse_list_criteria(
    args: Mapping[str, str],
    *,
    filters: Mapping[str, Any] | None = None,
    date_range: bool = False,
    default_limit: int = DEFAULT_PAGE_LIMIT,
) -> ListCriteria:
    """
    Build ListCriteria from request query args.

    filters maps a query key to its type: int, bool, str, or a tuple of
    allowed values. Empty values are ignored. page < 1 is clamped to 1 and
    limit is clamped to [1, MAX_PAGE_LIMIT]; non-integer values are rejected.
    """
    errors: list[dict] = []

    def _int_arg(key: str, default: int) -> int:
        raw = args.get(key)
        if raw is None or str(raw).strip() == "":
            return default
        try:
            return coerce_int(raw, key)
        except ValidationError as e:
            errors.extend(e.errors)
            return default

    page = max(1, _int_arg("page", 1))
    limit = min(MAX_PAGE_LIMIT, max(1, _int_arg("limit", default_limit)))

    q = (args.get("q") or "").strip() or None

    parsed: dict[str, Any] = {}
    for key, kind in (filters or {}).items():
        raw = args.get(key)
        if raw is None or str(raw).strip() == "":
            continue
        try:
            parsed[key] = _parse_filter(key, str(raw).strip(), kind)
        except ValidationError as e:
            errors.extend(e.errors)

    date_from = date_to = None
    if date_range:
        try:
            date_from, date_to = parse_date_range(args.get("from"), args.get("to"))
        except ValueError:
            errors.append({"field": "from/to", "message": "from/to must be ISO-8601 dates"})

    if errors:
        raise ValidationError("Invalid query parameters", errors=errors)

    return ListCriteria(q=q, page=page, limit=limit, filters=parsed, date_from=date_from, date_to=date_to)

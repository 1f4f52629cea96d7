"""
rfq_form.py: Server-side validation for every form the dashboard posts

Each validate_* function takes the raw request payload (form or JSON, camel or
snake case keys) and returns cleaned values, or raises FormValidationError with
a {field: message} dict the route hands straight back to the browser.

Product form layouts differ per series (a Topper has a base, not a cap); see
PRODUCT_FORM_CONFIGS. Series without a config use DEFAULT_PRODUCT_FIELDS.
"""

import re
from datetime import datetime

from src.core.models import (Product, PRODUCT_SERIES, LANGUAGES, UserRole,
                             UserStatus, parse_timestamp)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_REASON_LEN = 300
MIN_PASSWORD_LEN = 6
MIN_NAME_LEN = 2
CUSTOMER_TYPES = ("New", "Returning")
PLACEHOLDER = "No such parameter, please fill in /"


class FormValidationError(ValueError):
    def __init__(self, errors: dict):
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


def _field(name, label, kind="text", options=None):
    f = {"name": name, "label": label, "type": kind, "required": True}
    if options:
        f["options"] = options
    else:
        f["placeholder"] = PLACEHOLDER
    return f


DEFAULT_PRODUCT_FIELDS = [
    _field("sku", "field_sku"),
    _field("hair_fiber", "field_hair_fiber"),
    _field("cap", "field_cap"),
    _field("cap_size", "field_cap_size"),
    _field("length", "field_length"),
    _field("density", "field_density"),
    _field("color", "field_color"),
    _field("curl_style", "field_curl_style"),
]

PRODUCT_FORM_CONFIGS = {
    "Wig": [
        _field("sku", "field_sku"),
        _field("hair_fiber", "field_hair_fiber", "select",
               ["Remy Human Hair", "Virgin Human Hair", "Synthetic Fiber",
                "Heat Friendly Synthetic"]),
        _field("cap", "field_wig_cap_construction", "select",
               ["Lace Front", "Full Lace", "Monofilament", "Basic Cap",
                "Hand Tied", "360 Lace"]),
        _field("cap_size", "field_cap_size", "select",
               ["Petite", "Average", "Large", "Custom"]),
        _field("length", "field_length"),
        _field("density", "field_density"),
        _field("color", "field_color"),
        _field("curl_style", "field_curl_style"),
    ],
    "Topper": [
        _field("sku", "field_sku"),
        _field("hair_fiber", "field_hair_fiber", "select",
               ["Human Hair", "Heat Friendly Synthetic", "Synthetic Fiber"]),
        _field("cap", "field_base_construction", "select",
               ["Monofilament", "Silk Top", "Lace Top", "Basic Base"]),
        _field("cap_size", "field_base_size"),
        _field("length", "field_length"),
        _field("density", "field_density"),
        _field("color", "field_color"),
        _field("curl_style", "field_style"),
    ],
}


def get_product_form_config(series: str) -> list:
    return PRODUCT_FORM_CONFIGS.get(series, DEFAULT_PRODUCT_FIELDS)


def _get(data: dict, snake: str, camel: str = None, default=None):
    if snake in data:
        return data[snake]
    if camel and camel in data:
        return data[camel]
    return default


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


# ── RFQ ──────────────────────────────────────────────────────────────────────

def validate_product(data: dict, prefix: str = "") -> tuple:
    """Returns (Product, errors). Product has no id/wlid yet."""
    errors = {}
    product = Product.from_dict(data or {})
    series = product.product_series
    if series not in PRODUCT_SERIES:
        errors[f"{prefix}product_series"] = "Choose a valid product series"
        fields = DEFAULT_PRODUCT_FIELDS
    else:
        fields = get_product_form_config(series)

    for f in fields:
        value = _text(getattr(product, f["name"]))
        if f["required"] and not value:
            errors[f"{prefix}{f['name']}"] = "This field is required"
        setattr(product, f["name"], value or None)

    images = product.images
    if not all(isinstance(i, str) for i in images):
        errors[f"{prefix}images"] = "Images must be URLs"
    elif len(images) > 5:
        errors[f"{prefix}images"] = "A maximum of 5 images can be uploaded"
    return product, errors


def validate_rfq_form(data: dict) -> dict:
    """
    Validate a new-RFQ submission.

    Returns {"customer_type", "customer_email", "assigned_purchaser_ids",
    "products": [Product, ...]}.
    """
    data = data or {}
    errors = {}

    customer_type = _text(_get(data, "customer_type", "customerType", "New")) or "New"
    if customer_type not in CUSTOMER_TYPES:
        errors["customer_type"] = "Customer type must be New or Returning"

    email = _text(_get(data, "customer_email", "customerEmail", ""))
    if not EMAIL_RE.match(email):
        errors["customer_email"] = "Invalid email address"

    purchasers = _get(data, "assigned_purchaser_ids", "assignedPurchaserIds", [])
    if isinstance(purchasers, str):
        purchasers = [purchasers]
    purchasers = [p for p in (purchasers or []) if isinstance(p, str) and p.strip()]
    if not purchasers:
        errors["assigned_purchaser_ids"] = "At least one purchaser must be assigned"

    raw_products = data.get("products") or []
    products = []
    if not raw_products:
        errors["products"] = "At least one product is required"
    for i, raw in enumerate(raw_products):
        product, perrs = validate_product(raw, prefix=f"products.{i}.")
        errors.update(perrs)
        products.append(product)

    if errors:
        raise FormValidationError(errors)
    return {
        "customer_type": customer_type,
        "customer_email": email,
        "assigned_purchaser_ids": list(dict.fromkeys(purchasers)),
        "products": products,
    }


# ── Quotes ───────────────────────────────────────────────────────────────────

def validate_quote_form(data: dict) -> dict:
    """Returns {"product_id", "price", "delivery_date", "notes"}."""
    data = data or {}
    errors = {}

    product_id = _text(_get(data, "product_id", "productId", ""))
    if not product_id:
        errors["product_id"] = "Product is required"

    price = _get(data, "price", default=None)
    try:
        price = float(price)
        if price <= 0:
            errors["price"] = "Price must be greater than 0"
    except (TypeError, ValueError):
        errors["price"] = "Price must be a number"

    delivery = None
    raw_delivery = _get(data, "delivery_date", "deliveryDate", "")
    try:
        delivery = parse_timestamp(raw_delivery)
    except (ValueError, OverflowError):
        delivery = None
    if delivery is None:
        errors["delivery_date"] = "Delivery date is required"

    if errors:
        raise FormValidationError(errors)
    return {
        "product_id": product_id,
        "price": round(price, 2),
        "delivery_date": delivery,
        "notes": _text(data.get("notes", "")),
    }


def validate_reason(reason, field: str = "reason") -> str:
    """Withdraw / archive reasons: required, at most 300 characters."""
    text = _text(reason)
    if not text:
        raise FormValidationError({field: "Reason is required"})
    if len(text) > MAX_REASON_LEN:
        raise FormValidationError({field: f"Reason must be {MAX_REASON_LEN} characters or less"})
    return text


# ── Users ────────────────────────────────────────────────────────────────────

_ROLES = tuple(r.value for r in UserRole)
_STATUSES = tuple(s.value for s in UserStatus)


def validate_user_form(data: dict) -> dict:
    """New account: email, name, password, role, language."""
    data = data or {}
    errors = {}
    email = _text(data.get("email"))
    if not EMAIL_RE.match(email):
        errors["email"] = "Invalid email address"
    name = _text(data.get("name"))
    if len(name) < MIN_NAME_LEN:
        errors["name"] = f"Name must be at least {MIN_NAME_LEN} characters"
    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LEN:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LEN} characters"
    role = _text(data.get("role")) or UserRole.SALES.value
    if role not in _ROLES:
        errors["role"] = "Invalid role"
    language = _text(data.get("language")) or "en"
    if language not in LANGUAGES:
        errors["language"] = "Invalid language"
    if errors:
        raise FormValidationError(errors)
    return {"email": email.lower(), "name": name, "password": password,
            "role": role, "language": language}


def validate_user_update(data: dict) -> dict:
    """Partial update: only keys present are checked and returned."""
    data = data or {}
    errors = {}
    out = {}
    if "name" in data:
        name = _text(data["name"])
        if len(name) < MIN_NAME_LEN:
            errors["name"] = f"Name must be at least {MIN_NAME_LEN} characters"
        out["name"] = name
    if "role" in data:
        if data["role"] not in _ROLES:
            errors["role"] = "Invalid role"
        out["role"] = data["role"]
    if "status" in data:
        if data["status"] not in _STATUSES:
            errors["status"] = "Invalid status"
        out["status"] = data["status"]
    if "language" in data:
        if data["language"] not in LANGUAGES:
            errors["language"] = "Invalid language"
        out["language"] = data["language"]
    if "password" in data:
        if len(data["password"] or "") < MIN_PASSWORD_LEN:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LEN} characters"
        out["password"] = data["password"]
    if errors:
        raise FormValidationError(errors)
    return out


def parse_date_input(value: str):
    """HTML <input type=date> value → aware datetime at midnight UTC, or None."""
    try:
        return parse_timestamp(datetime.strptime(value, "%Y-%m-%d"))
    except (TypeError, ValueError):
        return None

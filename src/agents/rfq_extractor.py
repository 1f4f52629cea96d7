"""
rfq_extractor.py: Free text → new-RFQ form fields

Sales often receive requests as chat messages ("customer jane@shop.com wants a
lace front wig, 18 inch, natural black, give it to Li Wei"). This agent turns
that text into a partial RFQ form payload the browser uses to pre-fill the form.

Modes:
  RULE-BASED (no API key): email regex, series keywords, purchaser names
    matched against the Purchasing accounts. Works offline.
  LLM-ENHANCED (with AGENT_RFQ_EXTRACT_KEY or ANTHROPIC_API_KEY): Claude Haiku
    fills product attributes as well. Falls back to rule-based on any failure.

The output is never trusted: it goes through validate_rfq_form() on submit.
"""

import json
import logging
import re

import requests

from src.core.models import PRODUCT_SERIES
from src.core.secrets import get_agent_key

log = logging.getLogger("rfq_extract")

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_MODEL = "claude-haiku-4-5-20251001"
LLM_TIMEOUT = 15

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")

# Checked in order; first hit wins per product
SERIES_KEYWORDS = [
    ("Hair Extension", ["extension", "extensions", "clip-in", "clip in", "tape-in", "tape in"]),
    ("Topper", ["topper", "hair piece", "hairpiece"]),
    ("Toupee", ["toupee", "men's system", "hair system"]),
    ("Synthetic Product", ["synthetic"]),
    ("Wig", ["wig", "wigs", "lace front", "full lace"]),
]

_PRODUCT_KEYS = ("product_series", "sku", "hair_fiber", "cap", "cap_size",
                 "length", "density", "color", "curl_style")

_LLM_SYSTEM = """You extract Request for Quotation details from a sales user's text.
Return ONLY a JSON object with any of these keys you can fill:
  customer_type: "New" | "Returning"
  customer_email: string
  assigned_purchaser_ids: [purchaser ids from the list given]
  products: [{product_series, sku, hair_fiber, cap, cap_size, length, density, color, curl_style}]
product_series must be one of: """ + ", ".join(PRODUCT_SERIES) + """.
Create one product object per product mentioned. Leave out anything not in the text."""


# ─── Rule-based ──────────────────────────────────────────────────────────────

def detect_series(text: str) -> list:
    """Series mentioned in `text`, in order of first appearance."""
    lower = text.lower()
    hits = []
    for series, words in SERIES_KEYWORDS:
        positions = [lower.find(w) for w in words if w in lower]
        if positions:
            hits.append((min(positions), series))
    return [s for _, s in sorted(hits)]


def match_purchasers(text: str, purchasers) -> list:
    """Ids of purchasers whose full name or first name appears in the text."""
    lower = text.lower()
    ids = []
    for p in purchasers:
        name = (p.name or "").lower()
        first = name.split()[0] if name.split() else ""
        if name and (name in lower or (len(first) > 2 and re.search(rf"\b{re.escape(first)}\b", lower))):
            ids.append(p.id)
    return ids


def extract_rule_based(text: str, purchasers=()) -> dict:
    out = {}
    email = EMAIL_RE.search(text)
    if email:
        out["customer_email"] = email.group(0).rstrip(".")
    lower = text.lower()
    if "returning" in lower or "existing customer" in lower:
        out["customer_type"] = "Returning"
    elif "new customer" in lower:
        out["customer_type"] = "New"
    ids = match_purchasers(text, purchasers)
    if ids:
        out["assigned_purchaser_ids"] = ids
    series = detect_series(text)
    if series:
        out["products"] = [{"product_series": s} for s in series]
    return out


# ─── LLM ─────────────────────────────────────────────────────────────────────

def _call_llm(text: str, purchasers, api_key: str):
    roster = "\n".join(f"- {p.name} (id: {p.id})" for p in purchasers) or "(none)"
    prompt = f"Available purchasers:\n{roster}\n\nUser input text:\n\"{text}\""
    try:
        resp = requests.post(
            ANTHROPIC_URL,
            headers={
                "x-api-key": api_key,
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            },
            json={
                "model": ANTHROPIC_MODEL,
                "max_tokens": 800,
                "system": _LLM_SYSTEM,
                "messages": [{"role": "user", "content": prompt}],
            },
            timeout=LLM_TIMEOUT,
        )
        resp.raise_for_status()
        body = resp.json()["content"][0]["text"].strip()
        if body.startswith("```"):
            body = re.sub(r'^```\w*\n?', '', body)
            body = re.sub(r'\n?```$', '', body)
        data = json.loads(body)
        return data if isinstance(data, dict) else None
    except json.JSONDecodeError as e:
        log.warning("LLM returned non-JSON: %s", e)
        return None
    except (requests.RequestException, KeyError, IndexError, TypeError) as e:
        log.warning("LLM call failed: %s", e)
        return None


def _clean_llm_output(data: dict, purchasers) -> dict:
    """Keep only known keys and valid values from the model's answer."""
    valid_ids = {p.id for p in purchasers}
    out = {}
    if data.get("customer_type") in ("New", "Returning"):
        out["customer_type"] = data["customer_type"]
    if isinstance(data.get("customer_email"), str) and EMAIL_RE.fullmatch(data["customer_email"]):
        out["customer_email"] = data["customer_email"]
    ids = [i for i in data.get("assigned_purchaser_ids") or [] if i in valid_ids]
    if ids:
        out["assigned_purchaser_ids"] = ids
    products = []
    for raw in data.get("products") or []:
        if not isinstance(raw, dict):
            continue
        p = {k: str(raw[k]) for k in _PRODUCT_KEYS if raw.get(k) not in (None, "")}
        if p.get("product_series") not in PRODUCT_SERIES:
            p.pop("product_series", None)
        if p:
            products.append(p)
    if products:
        out["products"] = products
    return out


# ─── Public API ──────────────────────────────────────────────────────────────

def extract_rfq(text: str, purchasers=(), use_llm: bool = True) -> dict:
    """
    Extract partial RFQ form data from free text.

    Returns {"method": "rule_based" | "llm_enhanced", "data": {...}} where
    data may contain customer_type, customer_email, assigned_purchaser_ids
    and products (list of partial product dicts).
    """
    if not text or not text.strip():
        return {"method": "none", "data": {}}
    purchasers = list(purchasers)

    base = extract_rule_based(text, purchasers)
    api_key = get_agent_key("rfq_extractor") if use_llm else ""
    if not api_key:
        return {"method": "rule_based", "data": base}

    llm = _call_llm(text, purchasers, api_key)
    if not llm:
        log.info("LLM unavailable, using rule-based for: %s", text[:50])
        return {"method": "rule_based", "data": base}

    merged = dict(base)
    merged.update(_clean_llm_output(llm, purchasers))
    return {"method": "llm_enhanced", "data": merged}

"""
Credentials read from the environment, in one place.

  name                      env var                   notes
  secret_key                SECRET_KEY                signs the Flask session (required)
  anthropic_shared          ANTHROPIC_API_KEY         shared Claude key
  agent_rfq_extract         AGENT_RFQ_EXTRACT_KEY     RFQ extractor, falls back to the shared key
  bootstrap_admin_email     BOOTSTRAP_ADMIN_EMAIL     first admin, only used on an empty users table
  bootstrap_admin_password  BOOTSTRAP_ADMIN_PASSWORD

Nothing here logs a key value. validate_all() reports only set / not set
for sensitive entries.
"""

import logging
import os

log = logging.getLogger("secrets")

_REGISTRY = {
    "secret_key": {
        "env": "SECRET_KEY",
        "required": True,
        "desc": "Flask session signing key",
        "used_by": ["dashboard"],
        "sensitive": True,
    },
    "anthropic_shared": {
        "env": "ANTHROPIC_API_KEY",
        "desc": "Claude API key shared by every agent",
        "used_by": ["rfq_extractor"],
        "sensitive": True,
    },
    "agent_rfq_extract": {
        "env": "AGENT_RFQ_EXTRACT_KEY",
        "fallback": "ANTHROPIC_API_KEY",
        "desc": "Claude key for free-text RFQ extraction",
        "used_by": ["rfq_extractor"],
        "sensitive": True,
    },
    "bootstrap_admin_email": {
        "env": "BOOTSTRAP_ADMIN_EMAIL",
        "desc": "Admin account created on first boot",
        "used_by": ["app"],
    },
    "bootstrap_admin_password": {
        "env": "BOOTSTRAP_ADMIN_PASSWORD",
        "desc": "Initial password for the bootstrap admin",
        "used_by": ["app"],
        "sensitive": True,
    },
}

# agent name → registry entry holding its key
_AGENT_MAP = {
    "rfq_extractor": "agent_rfq_extract",
}


def _env(var: str) -> str:
    return os.environ.get(var, "").strip() if var else ""


def get_key(name: str) -> str:
    """Value for registry entry `name`, or "" when unset or unknown."""
    meta = _REGISTRY.get(name)
    if meta is None:
        log.warning("Unknown secret requested: %s", name)
        return ""
    return _env(meta["env"]) or _env(meta.get("fallback"))


def get_agent_key(agent_name: str) -> str:
    return get_key(_AGENT_MAP.get(agent_name, "anthropic_shared"))


def mask(value: str) -> str:
    """'sk-ant-0123…' → 'sk-ant-0****(23 chars)'; short values keep 4 chars."""
    if not value:
        return "(not set)"
    if len(value) <= 12:
        return f"{value[:4]}****"
    return f"{value[:8]}****({len(value)} chars)"


def validate_all() -> dict:
    """Which secrets are configured. Safe to return from an admin endpoint."""
    entries = {}
    warnings = []
    for name, meta in _REGISTRY.items():
        value = get_key(name)
        own = bool(_env(meta["env"]))
        entry = {
            "env": meta["env"],
            "desc": meta["desc"],
            "used_by": meta["used_by"],
            "required": meta.get("required", False),
            "set": bool(value),
            "masked": ("set" if value else "not set") if meta.get("sensitive") else mask(value),
        }
        if meta.get("fallback"):
            entry["fallback"] = meta["fallback"]
            entry["using_fallback"] = bool(value) and not own
        if entry["required"] and not value:
            warnings.append(f"{meta['env']} is not set ({meta['desc']})")
        entries[name] = entry

    configured = sum(1 for e in entries.values() if e["set"])
    return {
        "secrets": entries,
        "total": len(entries),
        "set": configured,
        "missing": len(entries) - configured,
        "warnings": warnings,
    }


def startup_check() -> dict:
    report = validate_all()
    log.info("Secrets configured: %d of %d", report["set"], report["total"])
    for warning in report["warnings"]:
        log.warning("Missing secret: %s", warning)
    return report

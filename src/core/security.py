"""
Request guards for the dashboard: throttling, CSRF tokens, response headers.

THROTTLING
  Each (caller, tier) pair owns a token bucket. A caller is the client IP
  unless the route passes an explicit key. Buckets refill continuously and
  an empty bucket means HTTP 429. Set DISABLE_RATE_LIMIT=true to switch it
  off (tests, local dev).

  tier     burst  refill/s   used by
  default  60     2.0        pages
  api      30     1.0        JSON endpoints
  auth     5      0.1        failed Basic-auth attempts
  heavy    10     0.2        /api/rfq/extract (LLM call)

CSRF
  Only the HTML new-RFQ form is a classic form post. Its token lives in the
  Flask session and comes back as the _csrf_token field or X-CSRF-Token
  header. Requests with an Authorization header are API clients and skip it.
"""

import functools
import hmac
import logging
import os
import secrets
import time
from threading import Lock

from flask import jsonify, request, session

log = logging.getLogger("quoteflow.security")

RATE_LIMITS = {
    "default": {"max_tokens": 60, "refill_rate": 2.0},
    "api": {"max_tokens": 30, "refill_rate": 1.0},
    "auth": {"max_tokens": 5, "refill_rate": 0.1},
    "heavy": {"max_tokens": 10, "refill_rate": 0.2},
}

# idle buckets are forgotten after an hour, checked at most hourly
SWEEP_INTERVAL = 3600

CSRF_SESSION_KEY = "_csrf_token"
CSRF_HEADER = "X-CSRF-Token"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


# ── Throttling ───────────────────────────────────────────────────────────────

class RateLimiter:
    """Token buckets keyed by an arbitrary string."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = Lock()
        # key → [tokens, last_seen]
        self._state = {}
        self._last_sweep = clock()

    def check(self, key: str, max_tokens: int = 60, refill_rate: float = 1.0) -> bool:
        """Spend one token for `key`; False when none is left."""
        with self._lock:
            now = self._clock()
            tokens, last_seen = self._state.get(key, (float(max_tokens), now))
            tokens = min(float(max_tokens), tokens + (now - last_seen) * refill_rate)
            allowed = tokens >= 1.0
            if allowed:
                tokens -= 1.0
            self._state[key] = (tokens, now)
        return allowed

    def cleanup(self, max_age: int = 3600) -> int:
        """Forget keys not seen for `max_age` seconds. Returns how many."""
        cutoff = self._clock() - max_age
        with self._lock:
            idle = [k for k, (_, seen) in self._state.items() if seen < cutoff]
            for k in idle:
                self._state.pop(k)
        return len(idle)

    def sweep(self, every: int = SWEEP_INTERVAL) -> int:
        """cleanup() at most once per `every` seconds; 0 when not due yet."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep < every:
                return 0
            self._last_sweep = now
        dropped = self.cleanup()
        if dropped:
            log.info("Rate limiter dropped %d idle buckets, %d left", dropped, len(self._state))
        return dropped


_limiter = RateLimiter()


def _sweep_buckets():
    _limiter.sweep()


def rate_limited(tier: str, key: str = None) -> bool:
    """True when this request is over its budget for `tier`."""
    if _env_flag("DISABLE_RATE_LIMIT"):
        return False
    caller = key or request.remote_addr or "unknown"
    budget = RATE_LIMITS.get(tier) or RATE_LIMITS["default"]
    if _limiter.check(f"{tier}|{caller}", **budget):
        return False
    log.warning("Throttled %s on tier %s (%s %s)", caller, tier, request.method, request.path)
    return True


def rate_limit(tier: str = "default"):
    """Route decorator: 429 JSON once the caller's `tier` bucket is empty."""
    def decorator(view):
        @functools.wraps(view)
        def guarded(*args, **kwargs):
            if rate_limited(tier):
                return jsonify({"ok": False, "error": "Too many requests, slow down"}), 429
            return view(*args, **kwargs)
        return guarded
    return decorator


# ── CSRF ─────────────────────────────────────────────────────────────────────

def generate_csrf_token() -> str:
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf_token() -> bool:
    expected = session.get(CSRF_SESSION_KEY)
    sent = request.headers.get(CSRF_HEADER) or request.form.get(CSRF_SESSION_KEY) or ""
    return bool(expected) and hmac.compare_digest(sent, expected)


def _needs_csrf() -> bool:
    if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
        return False
    if request.headers.get("Authorization"):
        return False
    mimetype = request.mimetype or ""
    return mimetype in ("application/x-www-form-urlencoded", "multipart/form-data")


def csrf_protect(view):
    """Reject browser form posts that don't echo the session token."""
    @functools.wraps(view)
    def guarded(*args, **kwargs):
        if not _env_flag("DISABLE_CSRF") and _needs_csrf() and not validate_csrf_token():
            log.warning("CSRF token mismatch on %s %s from %s",
                        request.method, request.path, request.remote_addr)
            return jsonify({"ok": False, "error": "Form expired, reload the page"}), 403
        return view(*args, **kwargs)
    return guarded


# ── Response headers ─────────────────────────────────────────────────────────

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def add_security_headers(response):
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    # RFQ pages carry customer emails; keep them out of shared caches
    response.headers.setdefault("Cache-Control", "no-store")
    return response


def init_security(app):
    app.before_request(_sweep_buckets)
    app.after_request(add_security_headers)
    app.jinja_env.globals["csrf_token"] = generate_csrf_token
    log.info("Security guards active (rate limit %s, CSRF %s)",
             "off" if _env_flag("DISABLE_RATE_LIMIT") else "on",
             "off" if _env_flag("DISABLE_CSRF") else "on")

"""
QuoteFlow Dashboard
Blueprint, auth, request logging, page rendering and JSON error mapping.

Route modules in src/api/modules/ are loaded into this module's namespace by
load_module(), so they can use bp, auth_required, render and the imports
below without importing anything themselves.
"""
import os, time, logging, functools
from flask import (Blueprint, request, redirect, render_template_string,
                   jsonify, flash, Response, g)

from src.core import db
from src.core.models import (Product, RFQStatus, QuoteStatus, UserRole,
                             UserStatus, LANGUAGES, PRODUCT_SERIES, as_jsonable)
from src.core.currency import rmb_to_usd, format_rmb, format_usd
from src.core.i18n import translate, status_key
from src.core.security import rate_limit, rate_limited, csrf_protect
from src.core.wlid import peek_next_wlid, UnknownSeriesError
from src.core import workflow
from src.core.workflow import WorkflowError, NotFound, PermissionDenied
from src.forms.rfq_form import (FormValidationError, validate_rfq_form,
                                validate_quote_form, validate_user_form,
                                validate_user_update, parse_date_input,
                                PRODUCT_FORM_CONFIGS, DEFAULT_PRODUCT_FIELDS,
                                CUSTOMER_TYPES)
from src.knowledge.similar_quotes import find_similar_quotes, InvalidInputError
from src.knowledge.corpus import corpus_provider
from src.knowledge import stats as stats_mod
from src.agents import notify_agent
from src.agents.rfq_extractor import extract_rfq
from src.api.templates import (LAYOUT_HEAD, LAYOUT_FOOT, PAGE_HOME, PAGE_RFQ_NEW,
                               PAGE_RFQ_DETAIL, PAGE_USERS, PAGE_STATS)

log = logging.getLogger("dashboard")

bp = Blueprint("dashboard", __name__)

# ── Request-level structured logging ────────────────────────────────────────
@bp.before_app_request
def _log_request_start():
    g._start_time = time.time()

@bp.after_app_request
def _log_request_end(response):
    start = g.get("_start_time")
    if start is not None:
        duration_ms = round((time.time() - start) * 1000, 1)
        # Skip health-check spam
        if request.path != "/api/health":
            user = g.get("user")
            log.info("%s %s → %d (%.0fms)",
                     request.method, request.path, response.status_code, duration_ms,
                     extra={"route": request.path, "method": request.method,
                            "status": response.status_code, "duration_ms": duration_ms,
                            "user": user.email if user else None})
    return response


def _wants_json() -> bool:
    return request.path.startswith("/api/")


# ═══════════════════════════════════════════════════════════════════════
# Authentication (HTTP Basic against the users table)
# ═══════════════════════════════════════════════════════════════════════

def check_auth(username, password):
    """Active User for valid credentials, else None."""
    return workflow.authenticate(username, password)


def _login_required():
    return Response(
        "QuoteFlow: Login Required", 401,
        {"WWW-Authenticate": 'Basic realm="QuoteFlow"'})


def auth_required(f):
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        auth = request.authorization
        user = check_auth(auth.username, auth.password) if auth and auth.username else None
        if user is None:
            if auth and rate_limited("auth"):
                return jsonify({"ok": False, "error": "Too many failed logins"}), 429
            return _login_required()
        g.user = user
        return f(*args, **kwargs)
    return decorated


def role_required(*roles):
    """auth_required plus a role check (403 for other roles)."""
    allowed = [getattr(r, "value", r) for r in roles]
    def decorator(f):
        @functools.wraps(f)
        @auth_required
        def wrapper(*args, **kwargs):
            if g.user.role not in allowed:
                raise PermissionDenied(f"Requires role: {', '.join(allowed)}")
            return f(*args, **kwargs)
        return wrapper
    return decorator


def current_user():
    return g.get("user")


# ═══════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════

def api_ok(code=200, **payload):
    return jsonify({"ok": True, **as_jsonable(payload)}), code


def api_error(message, status=400, **extra):
    return jsonify({"ok": False, "error": message, **extra}), status


def _error(message, status, **extra):
    if _wants_json():
        return api_error(message, status, **extra)
    flash(message, "error")
    return render(f"<div class='card'><div class='card-t'>Error {status}</div></div>"), status


@bp.errorhandler(FormValidationError)
def _handle_form_error(e):
    return _error("Validation failed", 400, errors=e.errors)

@bp.errorhandler(InvalidInputError)
def _handle_invalid_input(e):
    return _error(str(e), 400)

@bp.errorhandler(UnknownSeriesError)
def _handle_unknown_series(e):
    return _error(str(e), 400)

@bp.errorhandler(NotFound)
def _handle_not_found(e):
    return _error(str(e), 404)

@bp.errorhandler(PermissionDenied)
def _handle_forbidden(e):
    log.warning("Forbidden %s %s for %s: %s", request.method, request.path,
                getattr(current_user(), "email", None), e)
    return _error(str(e), 403)

@bp.errorhandler(WorkflowError)
def _handle_workflow_error(e):
    return _error(str(e), 409)


# ═══════════════════════════════════════════════════════════════════════
# Page rendering
# ═══════════════════════════════════════════════════════════════════════

_BADGES = {
    RFQStatus.WAITING.value: "b-waiting",
    RFQStatus.IN_PROGRESS.value: "b-progress",
    RFQStatus.COMPLETED.value: "b-completed",
    RFQStatus.ARCHIVED.value: "b-archived",
    QuoteStatus.PENDING.value: "b-waiting",
    QuoteStatus.ACCEPTED.value: "b-completed",
    QuoteStatus.REJECTED.value: "b-rejected",
    QuoteStatus.WITHDRAWN.value: "b-withdrawn",
}


def render(content, **kw):
    user = current_user()
    lang = user.language if user else "en"
    html = LAYOUT_HEAD + content + LAYOUT_FOOT
    return render_template_string(
        html, user=user,
        t=lambda key, **params: translate(key, lang, params),
        status_key=status_key, badge=lambda s: _BADGES.get(s, ""),
        format_rmb=format_rmb, format_usd=format_usd, rmb_to_usd=rmb_to_usd,
        **kw)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ═══════════════════════════════════════════════════════════════════════
# Health
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/health")
def api_health():
    try:
        stats = db.get_db_stats()
    except Exception as e:
        log.error("Health check DB error: %s", e)
        return api_error(f"database: {e}", 503)
    return api_ok(status="healthy", db=stats)


# ═══════════════════════════════════════════════════════════════════════
# Route modules
# ═══════════════════════════════════════════════════════════════════════

_MODULES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "modules")


def load_module(name):
    """Execute a route module inside this module's namespace."""
    path = os.path.join(_MODULES_DIR, f"{name}.py")
    with open(path, encoding="utf-8") as f:
        code = compile(f.read(), path, "exec")
    exec(code, globals())
    log.debug("Loaded route module %s", name)


for _mod in ("routes_rfq", "routes_users", "routes_stats"):
    load_module(_mod)

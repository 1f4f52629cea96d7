"""
Boot-time self test, run from create_app() outside of tests.

Each check returns a list of (level, message) findings; levels are PASS,
WARN and FAIL. Nothing here raises: a check that blows up is itself reported
as a FAIL so the app still comes up and the log says why.
"""

import logging

from src.core import db
from src.core.models import UserRole
from src.core.paths import DATA_DIR, validate_paths
from src.core.secrets import validate_all

log = logging.getLogger("quoteflow.startup")

PASS, WARN, FAIL = "PASS", "WARN", "FAIL"


def check_paths(app=None) -> list:
    report = validate_paths()
    found = [(FAIL, e) for e in report["errors"]]
    found += [(WARN, w) for w in report["warnings"]]
    if report["ok"]:
        found.append((PASS, f"DATA_DIR writable: {DATA_DIR}"))
    return found


def check_database(app=None) -> list:
    stats = db.get_db_stats()
    return [(PASS, f"Database readable: {stats['users']} users, {stats['rfqs']} RFQs, "
                   f"{stats['wlid_counters']} WLID series")]


def check_admins(app=None) -> list:
    admins = [u for u in db.list_users(role=UserRole.ADMIN.value) if u.is_active]
    if not admins:
        return [(WARN, "No active Admin: set BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD")]
    return [(PASS, f"{len(admins)} active admin account(s)")]


def check_secrets(app=None) -> list:
    report = validate_all()
    found = [(WARN, w) for w in report["warnings"]]
    found.append((PASS, f"Secrets: {report['set']}/{report['total']} set"))
    return found


def check_routes(app=None) -> list:
    """Every (rule, method) pair must map to exactly one endpoint."""
    if app is None:
        return []
    owners = {}
    found = []
    rules = [r for r in app.url_map.iter_rules() if r.endpoint != "static"]
    for rule in rules:
        for method in sorted(rule.methods - {"HEAD", "OPTIONS"}):
            other = owners.setdefault((rule.rule, method), rule.endpoint)
            if other != rule.endpoint:
                found.append((FAIL, f"{method} {rule.rule} bound to both {other} and {rule.endpoint}"))
    found.append((PASS, f"{len(rules)} routes registered"))
    return found


CHECKS = (check_paths, check_database, check_admins, check_secrets, check_routes)


def run_startup_checks(app=None) -> dict:
    """Run CHECKS and log the findings. Returns counts plus every finding."""
    results = {"passed": 0, "failed": 0, "warnings": 0, "details": []}
    counter = {PASS: "passed", WARN: "warnings", FAIL: "failed"}

    for check in CHECKS:
        try:
            findings = check(app)
        except Exception as e:
            findings = [(FAIL, f"{check.__name__} crashed: {e}")]
        for level, message in findings:
            results[counter[level]] += 1
            results["details"].append((level, message))
            if level == FAIL:
                log.error("STARTUP %s", message)
            elif level == WARN:
                log.warning("STARTUP %s", message)
            else:
                log.info("STARTUP %s", message)

    log.info("Startup checks: %d passed, %d warnings, %d failed",
             results["passed"], results["warnings"], results["failed"])
    return results

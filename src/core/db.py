"""
SQLite persistence for QuoteFlow.

Stands in for the hosted document store: every RFQ is one JSON document
(products + quotes embedded) with a few indexed columns pulled out for
listing. Users, notifications and the WLID counters are ordinary tables.

SETUP (Railway):
  1. Add a volume mounted at /data
  2. Set QUOTEFLOW_DATA_DIR=/data
  3. Redeploy; quoteflow.db now survives deploys

TABLES:
  users          accounts (Admin / Sales / Purchasing) with password hashes
  rfqs           one row per RFQ, full document in `doc`
  notifications  in-app bell notifications per recipient
  wlid_counters  last issued WLID suffix per series prefix
"""

import os
import json
import sqlite3
import logging
import threading
from datetime import datetime, timezone
from contextlib import contextmanager

from src.core.paths import DATA_DIR, DB_FILENAME
from src.core.models import (RFQ, User, Notification, parse_timestamp,
                             format_timestamp, DEFAULT_AVATAR)

log = logging.getLogger("quoteflow.db")

DB_PATH = os.path.join(DATA_DIR, DB_FILENAME)

_db_lock = threading.Lock()


# ── Connection factory ────────────────────────────────────────────────────────
@contextmanager
def get_db():
    """Thread-safe SQLite connection with WAL mode for 2-worker gunicorn."""
    with _db_lock:
        conn = sqlite3.connect(DB_PATH, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


# ── Schema ────────────────────────────────────────────────────────────────────
SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id                   TEXT PRIMARY KEY,
    email                TEXT UNIQUE NOT NULL,
    name                 TEXT NOT NULL,
    role                 TEXT NOT NULL,            -- Admin|Sales|Purchasing
    password_hash        TEXT NOT NULL,
    status               TEXT DEFAULT 'Active',    -- Active|Inactive
    language             TEXT DEFAULT 'en',        -- en|de|zh
    avatar               TEXT,
    registration_date    TEXT NOT NULL,
    last_login_time      TEXT,
    must_change_password INTEGER DEFAULT 0,
    created_by           TEXT,
    updated_by           TEXT,
    updated_at           TEXT
);

CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);

CREATE TABLE IF NOT EXISTS rfqs (
    id              TEXT PRIMARY KEY,
    code            TEXT NOT NULL,
    status          TEXT NOT NULL,
    creator_id      TEXT NOT NULL,
    inquiry_time    TEXT NOT NULL,
    doc             TEXT NOT NULL,             -- full RFQ JSON (products, quotes)
    created_at      TEXT NOT NULL,
    updated_at      TEXT
);

CREATE INDEX IF NOT EXISTS idx_rfqs_status ON rfqs(status);
CREATE INDEX IF NOT EXISTS idx_rfqs_creator ON rfqs(creator_id);

CREATE TABLE IF NOT EXISTS notifications (
    id              TEXT PRIMARY KEY,
    recipient_id    TEXT NOT NULL,
    title_key       TEXT NOT NULL,
    body_key        TEXT NOT NULL,
    body_params     TEXT,                      -- JSON object
    href            TEXT,
    created_at      TEXT NOT NULL,
    is_read         INTEGER DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_notif_recipient ON notifications(recipient_id);

CREATE TABLE IF NOT EXISTS wlid_counters (
    prefix          TEXT PRIMARY KEY,
    last_value      INTEGER NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db():
    """Create all tables if they don't exist. Safe to call multiple times."""
    os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
    with get_db() as conn:
        conn.executescript(SCHEMA)
    log.info("DB initialized at %s", DB_PATH)
    return True


def _jl(val, default):
    """JSON-load a DB column value safely."""
    if val is None:
        return default
    try:
        return json.loads(val)
    except (TypeError, ValueError):
        log.warning("Unreadable JSON column value: %.60r", val)
        return default


# ══════════════════════════════════════════════════════════════════════════════
# USERS
# ══════════════════════════════════════════════════════════════════════════════

def _row_to_user(row) -> User:
    d = dict(row)
    return User(
        id=d["id"],
        email=d["email"],
        name=d["name"],
        role=d["role"],
        status=d.get("status") or "Active",
        language=d.get("language") or "en",
        avatar=d.get("avatar") or DEFAULT_AVATAR,
        registration_date=parse_timestamp(d.get("registration_date")),
        last_login_time=parse_timestamp(d.get("last_login_time")),
        must_change_password=bool(d.get("must_change_password")),
        created_by=d.get("created_by"),
        updated_by=d.get("updated_by"),
        updated_at=parse_timestamp(d.get("updated_at")),
    )


def insert_user(user: User, password_hash: str) -> User:
    """Insert a new account. Raises sqlite3.IntegrityError on duplicate email."""
    if user.registration_date is None:
        user.registration_date = datetime.now(timezone.utc)
    with get_db() as conn:
        conn.execute("""
            INSERT INTO users
              (id, email, name, role, password_hash, status, language, avatar,
               registration_date, last_login_time, must_change_password,
               created_by, updated_by, updated_at)
            VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        """, (
            user.id, user.email, user.name, user.role, password_hash,
            user.status, user.language, user.avatar,
            format_timestamp(user.registration_date),
            format_timestamp(user.last_login_time),
            1 if user.must_change_password else 0,
            user.created_by, user.updated_by, format_timestamp(user.updated_at),
        ))
    return user


def get_user(user_id: str):
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
    return _row_to_user(row) if row else None


def get_user_by_email(email: str):
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE lower(email)=lower(?)",
                           (email or "",)).fetchone()
    return _row_to_user(row) if row else None


def get_password_hash(user_id: str) -> str:
    with get_db() as conn:
        row = conn.execute("SELECT password_hash FROM users WHERE id=?",
                           (user_id,)).fetchone()
    return row["password_hash"] if row else ""


def list_users(role: str = None) -> list:
    with get_db() as conn:
        if role:
            rows = conn.execute("SELECT * FROM users WHERE role=? ORDER BY name",
                                (role,)).fetchall()
        else:
            rows = conn.execute("SELECT * FROM users ORDER BY name").fetchall()
    return [_row_to_user(r) for r in rows]


_USER_UPDATABLE = ("name", "role", "status", "language", "avatar",
                   "must_change_password", "password_hash")


def update_user(user_id: str, updated_by: str = None, **fields) -> bool:
    """Update selected columns of a user. Unknown keys are ignored."""
    sets = {k: v for k, v in fields.items() if k in _USER_UPDATABLE}
    if not sets:
        return False
    if "must_change_password" in sets:
        sets["must_change_password"] = 1 if sets["must_change_password"] else 0
    sets["updated_by"] = updated_by
    sets["updated_at"] = _now()
    cols = ", ".join(f"{k}=?" for k in sets)
    with get_db() as conn:
        cur = conn.execute(f"UPDATE users SET {cols} WHERE id=?",
                           (*sets.values(), user_id))
    return cur.rowcount > 0


def touch_last_login(user_id: str):
    with get_db() as conn:
        conn.execute("UPDATE users SET last_login_time=? WHERE id=?",
                     (_now(), user_id))


# ══════════════════════════════════════════════════════════════════════════════
# RFQS: one JSON document per row
# ══════════════════════════════════════════════════════════════════════════════

def _write_rfq(conn, rfq: RFQ):
    now = _now()
    doc = json.dumps(rfq.to_dict(), default=str)
    conn.execute("""
        INSERT INTO rfqs (id, code, status, creator_id, inquiry_time,
                          doc, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?)
        ON CONFLICT(id) DO UPDATE SET
          code=excluded.code, status=excluded.status,
          creator_id=excluded.creator_id,
          inquiry_time=excluded.inquiry_time,
          doc=excluded.doc, updated_at=excluded.updated_at
    """, (rfq.id, rfq.code, rfq.status, rfq.creator_id,
          format_timestamp(rfq.inquiry_time), doc, now, now))


def _fetch_rfq(conn, rfq_id: str):
    row = conn.execute("SELECT doc FROM rfqs WHERE id=?", (rfq_id,)).fetchone()
    return _row_to_rfq(row) if row else None


def save_rfq(rfq: RFQ) -> RFQ:
    """Insert or replace the full RFQ document."""
    try:
        with get_db() as conn:
            _write_rfq(conn, rfq)
    except sqlite3.Error as e:
        log.error("save_rfq %s: %s", rfq.id, e)
        raise
    return rfq


@contextmanager
def rfq_for_update(rfq_id: str):
    """
    Yield the stored RFQ (None if missing) inside one IMMEDIATE transaction
    and write it back when the block exits cleanly. An exception in the
    block rolls back and nothing is written.

    Nothing inside the block may open another get_db() connection.
    """
    with get_db() as conn:
        conn.execute("BEGIN IMMEDIATE")
        rfq = _fetch_rfq(conn, rfq_id)
        yield rfq
        if rfq is not None:
            _write_rfq(conn, rfq)


def _row_to_rfq(row):
    data = _jl(row["doc"], None)
    if not isinstance(data, dict):
        return None
    return RFQ.from_dict(data)


def get_rfq(rfq_id: str):
    with get_db() as conn:
        return _fetch_rfq(conn, rfq_id)


def load_rfqs(status: str = None) -> list:
    """All RFQs, newest inquiry first. Optionally filtered by status."""
    with get_db() as conn:
        if status:
            rows = conn.execute(
                "SELECT doc FROM rfqs WHERE status=? ORDER BY inquiry_time DESC",
                (status,)).fetchall()
        else:
            rows = conn.execute(
                "SELECT doc FROM rfqs ORDER BY inquiry_time DESC").fetchall()
    rfqs = []
    for row in rows:
        rfq = _row_to_rfq(row)
        if rfq is not None:
            rfqs.append(rfq)
    return rfqs


def delete_rfq(rfq_id: str) -> bool:
    with get_db() as conn:
        cur = conn.execute("DELETE FROM rfqs WHERE id=?", (rfq_id,))
    return cur.rowcount > 0


# ══════════════════════════════════════════════════════════════════════════════
# NOTIFICATIONS
# ══════════════════════════════════════════════════════════════════════════════

def _row_to_notification(row) -> Notification:
    d = dict(row)
    return Notification(
        id=d["id"],
        recipient_id=d["recipient_id"],
        title_key=d["title_key"],
        body_key=d["body_key"],
        body_params=_jl(d.get("body_params"), {}),
        href=d.get("href"),
        created_at=parse_timestamp(d["created_at"]),
        read=bool(d.get("is_read")),
    )


def insert_notification(n: Notification):
    with get_db() as conn:
        conn.execute("""
            INSERT INTO notifications
              (id, recipient_id, title_key, body_key, body_params, href, created_at, is_read)
            VALUES (?,?,?,?,?,?,?,?)
        """, (n.id, n.recipient_id, n.title_key, n.body_key,
              json.dumps(n.body_params or {}), n.href,
              format_timestamp(n.created_at), 1 if n.read else 0))


def get_notifications(recipient_id: str, limit: int = 100) -> list:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM notifications WHERE recipient_id=? "
            "ORDER BY created_at DESC LIMIT ?", (recipient_id, limit)).fetchall()
    return [_row_to_notification(r) for r in rows]


def mark_notification_read(notification_id: str, recipient_id: str) -> bool:
    with get_db() as conn:
        cur = conn.execute(
            "UPDATE notifications SET is_read=1 WHERE id=? AND recipient_id=?",
            (notification_id, recipient_id))
    return cur.rowcount > 0


def mark_all_notifications_read(recipient_id: str) -> int:
    with get_db() as conn:
        cur = conn.execute(
            "UPDATE notifications SET is_read=1 WHERE recipient_id=? AND is_read=0",
            (recipient_id,))
    return cur.rowcount


def delete_notifications(recipient_id: str = None) -> int:
    with get_db() as conn:
        if recipient_id:
            cur = conn.execute("DELETE FROM notifications WHERE recipient_id=?",
                               (recipient_id,))
        else:
            cur = conn.execute("DELETE FROM notifications")
    return cur.rowcount


# ── DB stats ─────────────────────────────────────────────────────────────────
def get_db_stats() -> dict:
    """Return row counts for all tables: used in /api/health."""
    tables = ["users", "rfqs", "notifications", "wlid_counters"]
    stats = {"db_path": DB_PATH, "db_size_kb": 0}
    try:
        stats["db_size_kb"] = round(os.path.getsize(DB_PATH) / 1024, 1)
    except FileNotFoundError:
        pass
    with get_db() as conn:
        for table in tables:
            stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    return stats


# ── Startup ───────────────────────────────────────────────────────────────────
def startup() -> dict:
    """Initialize DB. Call once at app start."""
    init_db()
    stats = get_db_stats()
    log.info("DB ready: %s",
             {k: v for k, v in stats.items() if k not in ("db_path", "db_size_kb")})
    return {"ok": True, "db_path": DB_PATH, "stats": stats}

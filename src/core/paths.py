"""
Where QuoteFlow keeps its files.

  DATA_DIR   quoteflow.db and logs/. Resolved once at import:
               1. QUOTEFLOW_DATA_DIR, if set
               2. RAILWAY_VOLUME_MOUNT_PATH (its data/ subfolder), if mounted
               3. <project>/data for local development
  LOG_DIR    DATA_DIR/logs

Import these constants; never rebuild the paths elsewhere.
"""

import logging
import os
import tempfile

log = logging.getLogger("quoteflow.paths")

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
LOCAL_DATA_DIR = os.path.join(PROJECT_ROOT, "data")
DB_FILENAME = "quoteflow.db"


def _volume_data_dir():
    mount = os.environ.get("RAILWAY_VOLUME_MOUNT_PATH", "").rstrip("/")
    if not mount or not os.path.isdir(mount):
        return None
    return mount if os.path.basename(mount) == "data" else os.path.join(mount, "data")


def resolve_data_dir() -> str:
    return (os.environ.get("QUOTEFLOW_DATA_DIR")
            or _volume_data_dir()
            or LOCAL_DATA_DIR)


DATA_DIR = resolve_data_dir()
LOG_DIR = os.path.join(DATA_DIR, "logs")
PERSISTENT = DATA_DIR != LOCAL_DATA_DIR

os.makedirs(DATA_DIR, exist_ok=True)


def validate_paths() -> dict:
    """
    Check DATA_DIR exists and accepts writes.

    Returns {"ok", "errors", "warnings", "resolved"}; never raises.
    """
    report = {
        "ok": True,
        "errors": [],
        "warnings": [],
        "resolved": {"PROJECT_ROOT": PROJECT_ROOT, "DATA_DIR": DATA_DIR,
                     "LOG_DIR": LOG_DIR, "PERSISTENT": PERSISTENT},
    }
    if not os.path.isdir(DATA_DIR):
        report["errors"].append(f"DATA_DIR missing: {DATA_DIR}")
    else:
        try:
            with tempfile.NamedTemporaryFile(dir=DATA_DIR, prefix=".writecheck-"):
                pass
        except OSError as e:
            report["errors"].append(f"DATA_DIR is read-only: {e}")

    if os.environ.get("RAILWAY_ENVIRONMENT") and not PERSISTENT:
        report["warnings"].append(
            f"No Railway volume: {DB_FILENAME} lives in the container and is lost on redeploy")

    report["ok"] = not report["errors"]
    return report

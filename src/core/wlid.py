"""
WLID numbering: {PREFIX}{4-digit seq}, one sequence per product series

  Wig               FTCV0001, FTCV0002 ...
  Hair Extension    FTCE....
  Topper            FTCP....
  Toupee            FTCU....
  Synthetic Product FTCS....

Allocation happens inside one IMMEDIATE transaction on wlid_counters, so two
RFQs created at the same moment can never receive the same code. A prefix
with no counter row yet is seeded from the highest suffix already stored in
the rfqs documents.
"""

import logging
import re

from src.core import db

log = logging.getLogger("quoteflow.wlid")

WLID_PREFIXES = {
    "Wig": "FTCV",
    "Hair Extension": "FTCE",
    "Topper": "FTCP",
    "Toupee": "FTCU",
    "Synthetic Product": "FTCS",
}
SUFFIX_WIDTH = 4


class UnknownSeriesError(ValueError):
    pass


def prefix_for(series: str) -> str:
    try:
        return WLID_PREFIXES[series]
    except KeyError:
        raise UnknownSeriesError(f"Unknown product series: {series!r}") from None


def format_wlid(prefix: str, seq: int) -> str:
    return f"{prefix}{str(seq).zfill(SUFFIX_WIDTH)}"


def max_suffix(prefix: str, wlids) -> int:
    """Highest numeric suffix among `wlids` carrying `prefix` (0 if none)."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    best = 0
    for wlid in wlids:
        m = pattern.match(wlid or "")
        if m:
            best = max(best, int(m.group(1)))
    return best


def _stored_wlids(conn) -> list:
    wlids = []
    for row in conn.execute("SELECT doc FROM rfqs").fetchall():
        doc = db._jl(row["doc"], {})
        for p in doc.get("products") or []:
            if p.get("wlid"):
                wlids.append(p["wlid"])
    return wlids


def _current_value(conn, prefix: str) -> int:
    row = conn.execute("SELECT last_value FROM wlid_counters WHERE prefix=?",
                       (prefix,)).fetchone()
    if row is not None:
        return row["last_value"]
    return max_suffix(prefix, _stored_wlids(conn))


def allocate_wlids(series_list) -> list:
    """Reserve one WLID per entry of `series_list`, in order."""
    prefixes = [prefix_for(s) for s in series_list]
    if not prefixes:
        return []
    issued = []
    with db.get_db() as conn:
        conn.execute("BEGIN IMMEDIATE")
        counters = {}
        for prefix in prefixes:
            if prefix not in counters:
                counters[prefix] = _current_value(conn, prefix)
            counters[prefix] += 1
            issued.append(format_wlid(prefix, counters[prefix]))
        for prefix, value in counters.items():
            conn.execute("""
                INSERT INTO wlid_counters (prefix, last_value) VALUES (?, ?)
                ON CONFLICT(prefix) DO UPDATE SET last_value=excluded.last_value
            """, (prefix, value))
    log.info("Allocated WLIDs %s", ", ".join(issued))
    return issued


def next_wlid(series: str) -> str:
    return allocate_wlids([series])[0]


def peek_next_wlid(series: str) -> str:
    """Preview what the next WLID would be without consuming it."""
    prefix = prefix_for(series)
    with db.get_db() as conn:
        value = _current_value(conn, prefix)
    return format_wlid(prefix, value + 1)

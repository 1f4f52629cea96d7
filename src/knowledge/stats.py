"""
Dashboard statistics per role.

  sales_stats(user, rfqs)      : RFQs the user created
  purchasing_stats(user, rfqs) : RFQs the user is assigned to, quotes they sent
  overview(rfqs, users)        : admin counts

All functions take the RFQ list as an argument (normally the cached corpus) so
they stay pure and easy to test. Monthly series are Jan..Dec of `year`
(defaults to the current UTC year).
"""

from collections import Counter, OrderedDict

from src.core.models import QuoteStatus, RFQStatus, UserRole, utcnow

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _monthly(timestamps, year: int) -> "OrderedDict[str, int]":
    counts = OrderedDict((m, 0) for m in MONTHS)
    for ts in timestamps:
        if ts is not None and ts.year == year:
            counts[MONTHS[ts.month - 1]] += 1
    return counts


def sales_stats(user, rfqs, year: int = None) -> dict:
    year = year or utcnow().year
    mine = [r for r in rfqs if r.creator_id == user.id]
    total = len(mine)
    completed = sum(1 for r in mine if r.status == RFQStatus.COMPLETED.value)
    by_status = Counter(r.status for r in mine)
    return {
        "total_rfqs": total,
        "completed_rfqs": completed,
        "completion_rate": round(completed / total * 100, 1) if total else 0.0,
        "status_breakdown": {s.value: by_status.get(s.value, 0) for s in RFQStatus},
        "monthly_rfqs": _monthly((r.inquiry_time for r in mine), year),
    }


def purchasing_stats(user, rfqs, year: int = None) -> dict:
    year = year or utcnow().year
    assigned = [r for r in rfqs if user.id in r.assigned_purchaser_ids]
    # a withdrawn quote no longer counts as priced by the purchaser
    quotes = [q for r in rfqs for q in r.quotes
              if q.purchaser_id == user.id and q.status != QuoteStatus.WITHDRAWN.value]
    quoted_rfq_ids = {q.rfq_id for q in quotes}
    closed = (RFQStatus.COMPLETED.value, RFQStatus.ARCHIVED.value)
    pending = sum(1 for r in assigned
                  if r.status not in closed and r.id not in quoted_rfq_ids)
    avg = sum(q.price for q in quotes) / len(quotes) if quotes else 0.0
    return {
        "total_assigned": len(assigned),
        "total_quoted": len(quotes),
        "accepted_quotes": sum(1 for q in quotes if q.status == QuoteStatus.ACCEPTED.value),
        "avg_quote_value": round(avg, 2),
        "quoted_rfqs": len(quoted_rfq_ids),
        "pending_rfqs": pending,
        "monthly_quotes": _monthly((q.quote_time for q in quotes), year),
    }


def overview(rfqs, users) -> dict:
    roles = Counter(u.role for u in users)
    statuses = Counter(r.status for r in rfqs)
    return {
        "users": len(users),
        "active_users": sum(1 for u in users if u.is_active),
        "users_by_role": {r.value: roles.get(r.value, 0) for r in UserRole},
        "rfqs": len(rfqs),
        "rfqs_by_status": {s.value: statuses.get(s.value, 0) for s in RFQStatus},
        "quotes": sum(len(r.quotes) for r in rfqs),
    }

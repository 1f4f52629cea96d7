"""
notify_agent.py: In-app notifications for QuoteFlow

Every workflow event fans out to one or more users as a dashboard bell entry.
Notifications store message KEYS plus params, not rendered text, so each
recipient reads them in their own language (see src.core.i18n).

EVENT MAP:
  ┌──────────────────┬──────────────────────────┬──────────────────────────┐
  │ Event            │ Recipients               │ Message keys             │
  ├──────────────────┼──────────────────────────┼──────────────────────────┤
  │ rfq_assigned     │ assigned purchasers      │ notification_rfq_assigned│
  │ new_quote        │ RFQ creator              │ notification_new_quote   │
  │ quote_updated    │ RFQ creator              │ notification_quote_updated│
  │ quote_accepted   │ accepted purchaser       │ notification_quote_accepted│
  │ quote_withdrawn  │ RFQ creator              │ notification_quote_withdrawn│
  └──────────────────┴──────────────────────────┴──────────────────────────┘

STORAGE:
  NotificationStore is injected. SQLiteNotificationStore backs the app
  (notifications table); MemoryNotificationStore is for tests and scripts.
"""

import logging
import threading
import uuid

from src.core import db
from src.core.i18n import translate
from src.core.models import Notification, utcnow

log = logging.getLogger("notify")

EVENT_KEYS = {
    "rfq_assigned": "notification_rfq_assigned",
    "new_quote": "notification_new_quote",
    "quote_updated": "notification_quote_updated",
    "quote_accepted": "notification_quote_accepted",
    "quote_withdrawn": "notification_quote_withdrawn",
}


class NotificationStore:
    """Interface for notification persistence."""

    def add(self, notification: Notification):
        raise NotImplementedError

    def list_for(self, recipient_id: str, limit: int = 100) -> list:
        raise NotImplementedError

    def mark_read(self, notification_id: str, recipient_id: str) -> bool:
        raise NotImplementedError

    def mark_all_read(self, recipient_id: str) -> int:
        raise NotImplementedError

    def clear(self, recipient_id: str = None) -> int:
        raise NotImplementedError

    def unread_count(self, recipient_id: str) -> int:
        return sum(1 for n in self.list_for(recipient_id) if not n.read)


class SQLiteNotificationStore(NotificationStore):
    def add(self, notification):
        db.insert_notification(notification)

    def list_for(self, recipient_id, limit=100):
        return db.get_notifications(recipient_id, limit=limit)

    def mark_read(self, notification_id, recipient_id):
        return db.mark_notification_read(notification_id, recipient_id)

    def mark_all_read(self, recipient_id):
        return db.mark_all_notifications_read(recipient_id)

    def clear(self, recipient_id=None):
        return db.delete_notifications(recipient_id)


class MemoryNotificationStore(NotificationStore):
    def __init__(self):
        self._items = []
        self._lock = threading.Lock()

    def add(self, notification):
        with self._lock:
            self._items.append(notification)

    def list_for(self, recipient_id, limit=100):
        with self._lock:
            mine = [n for n in self._items if n.recipient_id == recipient_id]
        mine.sort(key=lambda n: n.created_at, reverse=True)
        return mine[:limit]

    def mark_read(self, notification_id, recipient_id):
        with self._lock:
            for n in self._items:
                if n.id == notification_id and n.recipient_id == recipient_id:
                    n.read = True
                    return True
        return False

    def mark_all_read(self, recipient_id):
        count = 0
        with self._lock:
            for n in self._items:
                if n.recipient_id == recipient_id and not n.read:
                    n.read = True
                    count += 1
        return count

    def clear(self, recipient_id=None):
        with self._lock:
            before = len(self._items)
            if recipient_id:
                self._items = [n for n in self._items if n.recipient_id != recipient_id]
            else:
                self._items = []
            return before - len(self._items)


default_store = SQLiteNotificationStore()


# ══════════════════════════════════════════════════════════════════════════════
# MAIN ENTRY POINT
# ══════════════════════════════════════════════════════════════════════════════

def _get_deep_link(event_type: str, context: dict) -> str:
    rfq_id = context.get("rfqId")
    return f"/rfq/{rfq_id}" if rfq_id else "/"


def notify(event_type: str, recipient_ids, context: dict = None,
           store: NotificationStore = None) -> list:
    """
    Push one bell notification per recipient for `event_type`.

    `context` becomes the message params ({rfqCode}, {purchaserName}, ...);
    an `rfqId` key is used for the deep link. Returns the created records.

        notify("new_quote", [rfq.creator_id],
               {"rfqId": rfq.id, "rfqCode": rfq.code, "purchaserName": "Li Wei"})
    """
    if event_type not in EVENT_KEYS:
        raise ValueError(f"Unknown notification event: {event_type}")
    store = store or default_store
    context = dict(context or {})
    base = EVENT_KEYS[event_type]
    href = _get_deep_link(event_type, context)

    created = []
    for recipient_id in dict.fromkeys(r for r in recipient_ids if r):
        n = Notification(
            id=uuid.uuid4().hex,
            recipient_id=recipient_id,
            title_key=f"{base}_title",
            body_key=f"{base}_body",
            body_params=context,
            href=href,
            created_at=utcnow(),
        )
        store.add(n)
        created.append(n)

    log.info("Notification %s → %d recipient(s)", event_type, len(created))
    return created


def render(notification: Notification, lang: str = "en") -> dict:
    """Notification with title/body translated for the reader."""
    d = notification.to_dict()
    d["title"] = translate(notification.title_key, lang)
    d["body"] = translate(notification.body_key, lang, notification.body_params)
    return d


def get_notifications(recipient_id: str, lang: str = "en", limit: int = 30,
                      unread_only: bool = False,
                      store: NotificationStore = None) -> list:
    store = store or default_store
    items = store.list_for(recipient_id, limit=limit)
    if unread_only:
        items = [n for n in items if not n.read]
    return [render(n, lang) for n in items]


def get_unread_count(recipient_id: str, store: NotificationStore = None) -> int:
    return (store or default_store).unread_count(recipient_id)

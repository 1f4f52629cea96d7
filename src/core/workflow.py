"""
src/core/workflow.py: RFQ lifecycle and account administration

All state changes go through here so that role checks, status transitions,
notifications and corpus invalidation happen in one place. Routes only
validate input (src.forms.rfq_form) and translate exceptions to HTTP codes.

RFQ STATUS FLOW:
  Waiting for Quote ──first quote──▶ Quotation in Progress
  Quotation in Progress ──every product has an accepted quote──▶ Quotation Completed
  any ──archive──▶ Archived ──restore──▶ (recomputed from quotes)
  Archived ──delete (Admin)──▶ gone

QUOTE STATUS FLOW:
  Pending Acceptance ──accept──▶ Accepted   (siblings on the product → Rejected)
  Pending Acceptance ──withdraw──▶ Withdrawn   (reason also logged in rfq.withdrawals)
  Withdrawn / Rejected ──re-quote──▶ Pending Acceptance

Every change to an existing RFQ is a single load-modify-store under
_editing(); notifications go out only after it commits.
"""

import logging
import uuid
from contextlib import contextmanager

from werkzeug.security import check_password_hash, generate_password_hash

from src.core import db
from src.core.models import (RFQ, Quote, User, Withdrawal, QuoteStatus, RFQStatus,
                             UserRole, UserStatus, utcnow)
from src.core.wlid import allocate_wlids
from src.forms.rfq_form import FormValidationError, validate_reason
from src.knowledge.corpus import corpus_provider
from src.agents.notify_agent import notify

log = logging.getLogger("quoteflow.workflow")


class WorkflowError(Exception):
    """Operation not allowed in the RFQ's or quote's current state."""


class NotFound(WorkflowError):
    pass


class PermissionDenied(WorkflowError):
    pass


# ── Helpers ──────────────────────────────────────────────────────────────────

def _require_role(actor: User, *roles):
    if actor is None or actor.role not in [getattr(r, "value", r) for r in roles]:
        raise PermissionDenied(f"{getattr(actor, 'role', 'anonymous')} may not do this")


def _load(rfq_id: str) -> RFQ:
    rfq = db.get_rfq(rfq_id)
    if rfq is None:
        raise NotFound(f"RFQ {rfq_id} not found")
    return rfq


def _save(rfq: RFQ) -> RFQ:
    db.save_rfq(rfq)
    corpus_provider.invalidate()
    return rfq


@contextmanager
def _editing(rfq_id: str):
    """
    Yield the stored RFQ for modification; it is written back in the same
    transaction when the block ends. Raising inside the block discards the
    change. The block must not touch the database itself.
    """
    with db.rfq_for_update(rfq_id) as rfq:
        if rfq is None:
            raise NotFound(f"RFQ {rfq_id} not found")
        yield rfq
    corpus_provider.invalidate()


def _require_owner(actor: User, rfq: RFQ):
    """Sales may only manage their own RFQs; Admin manages all."""
    if actor.role == UserRole.ADMIN.value:
        return
    if actor.role != UserRole.SALES.value or rfq.creator_id != actor.id:
        raise PermissionDenied("Only the RFQ's creator can do this")


def _require_open(rfq: RFQ):
    if rfq.status == RFQStatus.ARCHIVED.value:
        raise WorkflowError(f"RFQ {rfq.code} is archived")
    if rfq.status == RFQStatus.COMPLETED.value:
        raise WorkflowError(f"RFQ {rfq.code} is already completed")


def rfq_code(inquiry_time) -> str:
    return inquiry_time.strftime("%y%m%d%H%M%S")


def product_label(product) -> str:
    return product.sku or product.wlid or product.id


def status_from_quotes(rfq: RFQ) -> str:
    """Non-archived status implied by the quotes an RFQ holds."""
    if rfq.products and all(
            any(q.status == QuoteStatus.ACCEPTED.value for q in rfq.quotes_for(p.id))
            for p in rfq.products):
        return RFQStatus.COMPLETED.value
    if any(q.status != QuoteStatus.WITHDRAWN.value for q in rfq.quotes):
        return RFQStatus.IN_PROGRESS.value
    return RFQStatus.WAITING.value


# ══════════════════════════════════════════════════════════════════════════════
# RFQS
# ══════════════════════════════════════════════════════════════════════════════

def can_view(actor: User, rfq: RFQ) -> bool:
    if actor.role == UserRole.ADMIN.value:
        return True
    if actor.role == UserRole.SALES.value:
        return rfq.creator_id == actor.id
    return actor.id in rfq.assigned_purchaser_ids


def get_rfq_for(actor: User, rfq_id: str) -> RFQ:
    rfq = _load(rfq_id)
    if not can_view(actor, rfq):
        raise PermissionDenied("Not your RFQ")
    return rfq


def visible_rfqs(actor: User, archived: bool = False) -> list:
    """RFQs the actor may see, newest first; archived ones only when asked."""
    out = []
    for rfq in db.load_rfqs():
        if (rfq.status == RFQStatus.ARCHIVED.value) != archived:
            continue
        if can_view(actor, rfq):
            out.append(rfq)
    return out


def create_rfq(actor: User, form: dict, store=None) -> RFQ:
    """
    Create an RFQ from a cleaned validate_rfq_form() result.

    Assigns product ids and WLIDs, derives the code from the inquiry time and
    notifies every assigned purchaser.
    """
    _require_role(actor, UserRole.SALES, UserRole.ADMIN)

    purchaser_ids = form["assigned_purchaser_ids"]
    for pid in purchaser_ids:
        user = db.get_user(pid)
        if user is None or user.role != UserRole.PURCHASING.value or not user.is_active:
            raise FormValidationError({"assigned_purchaser_ids": f"Unknown purchaser: {pid}"})

    products = form["products"]
    wlids = allocate_wlids([p.product_series for p in products])
    for product, wlid in zip(products, wlids):
        product.id = uuid.uuid4().hex
        product.wlid = wlid

    now = utcnow()
    rfq = RFQ(
        id=uuid.uuid4().hex,
        code=rfq_code(now),
        creator_id=actor.id,
        inquiry_time=now,
        status=RFQStatus.WAITING.value,
        assigned_purchaser_ids=list(purchaser_ids),
        customer_type=form.get("customer_type", "New"),
        customer_email=form.get("customer_email", ""),
        products=products,
    )
    _save(rfq)
    log.info("RFQ %s created by %s: %d product(s), purchasers=%s",
             rfq.code, actor.email, len(products), purchaser_ids)

    notify("rfq_assigned", purchaser_ids,
           {"rfqId": rfq.id, "rfqCode": rfq.code}, store=store)
    return rfq


def archive_rfq(actor: User, rfq_id: str, reason: str) -> RFQ:
    reason = validate_reason(reason)
    with _editing(rfq_id) as rfq:
        _require_owner(actor, rfq)
        if rfq.status == RFQStatus.ARCHIVED.value:
            raise WorkflowError(f"RFQ {rfq.code} is already archived")
        rfq.archive_reason = reason
        rfq.status = RFQStatus.ARCHIVED.value
    log.info("RFQ %s archived by %s", rfq.code, actor.email)
    return rfq


def restore_rfq(actor: User, rfq_id: str) -> RFQ:
    with _editing(rfq_id) as rfq:
        _require_owner(actor, rfq)
        if rfq.status != RFQStatus.ARCHIVED.value:
            raise WorkflowError(f"RFQ {rfq.code} is not archived")
        rfq.status = status_from_quotes(rfq)
        rfq.archive_reason = None
    log.info("RFQ %s restored by %s → %s", rfq.code, actor.email, rfq.status)
    return rfq


def delete_rfq(actor: User, rfq_id: str) -> bool:
    """Permanent delete; only archived RFQs, only by an Admin."""
    _require_role(actor, UserRole.ADMIN)
    rfq = _load(rfq_id)
    if rfq.status != RFQStatus.ARCHIVED.value:
        raise WorkflowError("Only archived RFQs can be deleted")
    db.delete_rfq(rfq.id)
    corpus_provider.invalidate()
    log.warning("RFQ %s permanently deleted by %s", rfq.code, actor.email)
    return True


# ══════════════════════════════════════════════════════════════════════════════
# QUOTES
# ══════════════════════════════════════════════════════════════════════════════

def _own_quote(rfq: RFQ, product_id: str, purchaser_id: str):
    for q in rfq.quotes:
        if q.product_id == product_id and q.purchaser_id == purchaser_id:
            return q
    return None


def _require_assigned(actor: User, rfq: RFQ):
    _require_role(actor, UserRole.PURCHASING)
    if actor.id not in rfq.assigned_purchaser_ids:
        raise PermissionDenied("You are not assigned to this RFQ")


def submit_quote(actor: User, rfq_id: str, form: dict, store=None) -> Quote:
    """
    Create or update the actor's quote for one product (cleaned
    validate_quote_form() result). Re-quoting re-stamps quote_time and puts
    the quote back to Pending Acceptance.
    """
    with _editing(rfq_id) as rfq:
        _require_assigned(actor, rfq)
        _require_open(rfq)
        product = rfq.product(form["product_id"])
        if product is None:
            raise NotFound(f"Product {form['product_id']} not on RFQ {rfq.code}")

        now = utcnow()
        quote = _own_quote(rfq, product.id, actor.id)
        if quote is not None and quote.status == QuoteStatus.ACCEPTED.value:
            raise WorkflowError("Accepted quotes cannot be changed")

        if quote is None:
            event = "new_quote"
            quote = Quote(
                id=uuid.uuid4().hex,
                rfq_id=rfq.id,
                product_id=product.id,
                purchaser_id=actor.id,
                price=form["price"],
                quote_time=now,
                delivery_date=form["delivery_date"],
                notes=form.get("notes", ""),
            )
            rfq.quotes.append(quote)
        else:
            event = "quote_updated"
            quote.price = form["price"]
            quote.delivery_date = form["delivery_date"]
            quote.notes = form.get("notes", "")
            quote.quote_time = now
            quote.status = QuoteStatus.PENDING.value
            quote.withdraw_reason = None

        if rfq.status == RFQStatus.WAITING.value:
            rfq.status = RFQStatus.IN_PROGRESS.value
    log.info("Quote %s on RFQ %s by %s: %.2f", event, rfq.code, actor.email, quote.price)

    notify(event, [rfq.creator_id],
           {"rfqId": rfq.id, "rfqCode": rfq.code, "purchaserName": actor.name,
            "productName": product_label(product)}, store=store)
    return quote


def accept_quote(actor: User, rfq_id: str, quote_id: str, store=None) -> RFQ:
    with _editing(rfq_id) as rfq:
        _require_owner(actor, rfq)
        _require_open(rfq)
        quote = next((q for q in rfq.quotes if q.id == quote_id), None)
        if quote is None:
            raise NotFound(f"Quote {quote_id} not on RFQ {rfq.code}")
        if quote.status != QuoteStatus.PENDING.value:
            raise WorkflowError(f"Quote is {quote.status}, not pending")

        quote.status = QuoteStatus.ACCEPTED.value
        for sibling in rfq.quotes_for(quote.product_id):
            if sibling is not quote and sibling.status == QuoteStatus.PENDING.value:
                sibling.status = QuoteStatus.REJECTED.value
        rfq.status = status_from_quotes(rfq)
    product = rfq.product(quote.product_id)
    log.info("Quote %s accepted on RFQ %s → %s", quote.id, rfq.code, rfq.status)

    notify("quote_accepted", [quote.purchaser_id],
           {"rfqId": rfq.id, "rfqCode": rfq.code,
            "productName": product_label(product) if product else quote.product_id},
           store=store)
    return rfq


def withdraw_quote(actor: User, rfq_id: str, product_id: str, reason: str,
                   store=None) -> Withdrawal:
    """
    Purchaser abandons quoting a product. The reason goes to rfq.withdrawals;
    a quote already submitted is also marked Withdrawn. No quote is created,
    so nothing unpriced reaches the similar-quote corpus.
    """
    reason = validate_reason(reason)
    with _editing(rfq_id) as rfq:
        _require_assigned(actor, rfq)
        _require_open(rfq)
        product = rfq.product(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not on RFQ {rfq.code}")

        quote = _own_quote(rfq, product_id, actor.id)
        if quote is not None:
            if quote.status == QuoteStatus.ACCEPTED.value:
                raise WorkflowError("Accepted quotes cannot be withdrawn")
            quote.status = QuoteStatus.WITHDRAWN.value
            quote.withdraw_reason = reason
        withdrawal = Withdrawal(product_id=product_id, purchaser_id=actor.id,
                                reason=reason, withdrawn_at=utcnow())
        rfq.withdrawals.append(withdrawal)
        rfq.status = status_from_quotes(rfq)
    log.info("Purchaser %s withdrew from %s on RFQ %s → %s",
             actor.email, product_label(product), rfq.code, rfq.status)

    notify("quote_withdrawn", [rfq.creator_id],
           {"rfqId": rfq.id, "rfqCode": rfq.code, "purchaserName": actor.name,
            "productName": product_label(product), "reason": reason}, store=store)
    return withdrawal


# ══════════════════════════════════════════════════════════════════════════════
# USERS
# ══════════════════════════════════════════════════════════════════════════════

def create_user(actor: User, form: dict) -> User:
    """Admin-only. New accounts must change their password on first login."""
    _require_role(actor, UserRole.ADMIN)
    if db.get_user_by_email(form["email"]) is not None:
        raise FormValidationError({"email": "Email is already registered"})
    user = User(
        id=uuid.uuid4().hex,
        email=form["email"],
        name=form["name"],
        role=form["role"],
        language=form.get("language") or "en",
        must_change_password=True,
        created_by=actor.id,
        updated_by=actor.id,
        updated_at=utcnow(),
    )
    db.insert_user(user, generate_password_hash(form["password"]))
    log.info("User %s (%s) created by %s", user.email, user.role, actor.email)
    return user


def update_user(actor: User, user_id: str, changes: dict) -> User:
    """
    Admins may change anything; users may change their own language and
    password. Setting a password yourself clears must_change_password.
    """
    target = db.get_user(user_id)
    if target is None:
        raise NotFound(f"User {user_id} not found")
    is_admin = actor.role == UserRole.ADMIN.value
    is_self = actor.id == target.id
    if not is_admin and not (is_self and set(changes) <= {"language", "password"}):
        raise PermissionDenied("Only admins can change other accounts")
    if is_self and changes.get("status") == UserStatus.INACTIVE.value:
        raise WorkflowError("You cannot deactivate your own account")

    fields = {k: v for k, v in changes.items() if k != "password"}
    if "password" in changes:
        fields["password_hash"] = generate_password_hash(changes["password"])
        fields["must_change_password"] = not is_self
    db.update_user(target.id, updated_by=actor.id, **fields)
    log.info("User %s updated by %s: %s", target.email, actor.email, sorted(changes))
    return db.get_user(target.id)


def authenticate(email: str, password: str):
    """User for valid, active credentials; None otherwise."""
    user = db.get_user_by_email(email)
    if user is None or not user.is_active:
        return None
    if not check_password_hash(db.get_password_hash(user.id), password or ""):
        return None
    db.touch_last_login(user.id)
    return user


def bootstrap_admin(email: str, password: str):
    """Create the first Admin when the users table is empty."""
    if not email or not password or db.list_users():
        return None
    user = User(id=uuid.uuid4().hex, email=email.lower(), name="Administrator",
                role=UserRole.ADMIN.value, must_change_password=True)
    db.insert_user(user, generate_password_hash(password))
    log.warning("Bootstrapped admin account %s", user.email)
    return user
